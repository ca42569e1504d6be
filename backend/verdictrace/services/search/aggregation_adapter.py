"""
Aggregation Adapter

Translates a scan window into one three-level grouping request against the
complaints index and flattens the nested bucket tree into ClusterCandidates:

    product_sku -> failure_mode -> { over_time, by_region, injury_mentions }

Time buckets keep the order returned by the histogram (chronological).
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ...config import get_config
from ...exceptions import AggregationFetchError
from ...models.aggregation import (
    ClusterAggregationResponse,
    ComplaintSearchResponse,
    FailureModeBucket,
    TimeBucket,
)
from ...models.signals import ClusterCandidate, Exemplar, ScanWindow
from .es_client import ElasticsearchClient


logger = logging.getLogger(__name__)

# Terms aggregation sizes
PRODUCT_BUCKETS = 50
FAILURE_MODE_BUCKETS = 20
REGION_BUCKETS = 20


def build_cluster_query(window: ScanWindow) -> Dict[str, Any]:
    """Build the product x failure-mode x {time, region, injury} aggregation body."""
    return {
        "size": 0,
        "query": {
            "bool": {
                "filter": [
                    {"range": {"created_at": {
                        "gte": window.start.isoformat(),
                        "lte": window.end.isoformat(),
                    }}},
                ],
            },
        },
        "aggs": {
            "by_product": {
                "terms": {"field": "product_sku", "size": PRODUCT_BUCKETS},
                "aggs": {
                    "by_failure_mode": {
                        "terms": {"field": "failure_mode.keyword", "size": FAILURE_MODE_BUCKETS},
                        "aggs": {
                            "over_time": {
                                "date_histogram": {
                                    "field": "created_at",
                                    "calendar_interval": window.bucket_interval,
                                },
                            },
                            "by_region": {
                                "terms": {"field": "geo_region.keyword", "size": REGION_BUCKETS},
                            },
                            "injury_mentions": {
                                "filter": {"term": {"injury_mentioned": True}},
                            },
                        },
                    },
                },
            },
        },
    }


def build_exemplar_query(product_sku: str, failure_mode: str, size: int) -> Dict[str, Any]:
    """Most recent complaints matching both cluster keys."""
    return {
        "size": size,
        "query": {
            "bool": {
                "filter": [
                    {"term": {"product_sku": product_sku}},
                    {"term": {"failure_mode.keyword": failure_mode}},
                ],
            },
        },
        "sort": [{"created_at": "desc"}],
    }


def _period_label(bucket: TimeBucket) -> str:
    if bucket.key_as_string:
        return bucket.key_as_string
    return datetime.fromtimestamp(bucket.key / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


def _to_candidate(product_sku: str, bucket: FailureModeBucket) -> ClusterCandidate:
    return ClusterCandidate(
        product_sku=product_sku,
        failure_mode=bucket.key,
        count=bucket.doc_count,
        injury_count=bucket.injury_mentions.doc_count,
        regions=tuple(r.key for r in bucket.by_region.buckets),
        trend=tuple((_period_label(t), t.doc_count) for t in bucket.over_time.buckets),
    )


class AggregationAdapter:
    """
    Pulls cluster candidates from the search collaborator.

    Usage:
        adapter = AggregationAdapter()
        candidates = adapter.fetch_candidates(window)
    """

    def __init__(self, client: Optional[ElasticsearchClient] = None, index: Optional[str] = None):
        self.client = client or ElasticsearchClient()
        self.index = index or get_config().es_index_complaints

    def fetch_candidates(self, window: ScanWindow) -> List[ClusterCandidate]:
        """
        Run the cluster aggregation and flatten it.

        Raises:
            AggregationFetchError: collaborator unreachable or payload malformed
        """
        raw = self.client.search(self.index, build_cluster_query(window))

        try:
            parsed = ClusterAggregationResponse.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Malformed aggregation payload: {e.error_count()} validation errors")
            raise AggregationFetchError(f"Malformed aggregation payload: {e}") from e

        candidates = []
        for product in parsed.aggregations.by_product.buckets:
            for failure_mode in product.by_failure_mode.buckets:
                try:
                    candidates.append(_to_candidate(product.key, failure_mode))
                except ValueError as e:
                    raise AggregationFetchError(
                        f"Inconsistent bucket {product.key}/{failure_mode.key}: {e}"
                    ) from e

        logger.info(
            f"Aggregation returned {len(parsed.aggregations.by_product.buckets)} product buckets, "
            f"{len(candidates)} cluster candidates"
        )
        return candidates

    def query_trace(self, product_sku: str, failure_mode: str, exemplar_count: int) -> Dict[str, Any]:
        """Record of the queries behind a case, stored for traceability."""
        return {
            "cluster_aggregation": {
                "index": self.index,
                "filter": {"product_sku": product_sku, "failure_mode": failure_mode},
                "aggs": "by_product > by_failure_mode > over_time + by_region + injury_mentions",
            },
            "exemplar_query": {
                "index": self.index,
                "filter": {"product_sku": product_sku, "failure_mode": failure_mode},
                "sort": "created_at desc",
                "size": exemplar_count,
            },
        }


class ComplaintSearch:
    """Search-by-key collaborator for exemplar sampling."""

    def __init__(self, client: Optional[ElasticsearchClient] = None, index: Optional[str] = None):
        self.client = client or ElasticsearchClient()
        self.index = index or get_config().es_index_complaints

    def recent_exemplars(self, product_sku: str, failure_mode: str, size: int = 5) -> List[Exemplar]:
        """
        Top-N most recent complaints for a cluster.

        Raises:
            AggregationFetchError: collaborator unreachable or payload malformed
        """
        raw = self.client.search(self.index, build_exemplar_query(product_sku, failure_mode, size))
        try:
            parsed = ComplaintSearchResponse.model_validate(raw)
        except ValidationError as e:
            raise AggregationFetchError(f"Malformed exemplar payload: {e}") from e

        return [
            Exemplar(
                complaint_id=hit.id,
                title=hit.source.title,
                summary=hit.source.summary,
                location=hit.source.location or "",
                injury=hit.source.injury_mentioned,
            )
            for hit in parsed.hits.hits
        ]
