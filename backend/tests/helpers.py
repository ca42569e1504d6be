"""Builders for cluster candidates and search payloads used across tests."""
from datetime import datetime, timezone
from unittest.mock import MagicMock

from verdictrace.models.signals import ClusterCandidate
from verdictrace.services.detection import score_cluster


SCAN_NOW = datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)
SCAN_START = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)


def make_candidate(
    product_sku="SKU-100",
    failure_mode="overheating",
    count=50,
    injury_count=10,
    regions=("NA", "EU", "APAC", "LATAM", "MEA"),
    counts=(2, 3, 5, 10, 30),
):
    trend = tuple((f"2024-0{i + 1}-01", c) for i, c in enumerate(counts))
    return ClusterCandidate(
        product_sku=product_sku,
        failure_mode=failure_mode,
        count=count,
        injury_count=injury_count,
        regions=tuple(regions),
        trend=trend,
    )


def make_scored(**kwargs):
    return score_cluster(make_candidate(**kwargs))


# =============================================================================
# SEARCH PAYLOAD BUILDERS
# =============================================================================

def failure_mode_bucket(key, count, injuries, regions, counts):
    return {
        "key": key,
        "doc_count": count,
        "over_time": {
            "buckets": [
                {
                    "key": 1704067200000 + i * 604800000,
                    "key_as_string": f"2024-W{i + 1:02d}",
                    "doc_count": c,
                }
                for i, c in enumerate(counts)
            ],
        },
        "by_region": {"buckets": [{"key": r, "doc_count": 1} for r in regions]},
        "injury_mentions": {"doc_count": injuries},
    }


def aggregation_payload(products):
    """products: {sku: [failure_mode_bucket, ...]}"""
    return {
        "took": 3,
        "hits": {"total": {"value": 0}, "hits": []},
        "aggregations": {
            "by_product": {
                "buckets": [
                    {
                        "key": sku,
                        "doc_count": sum(b["doc_count"] for b in buckets),
                        "by_failure_mode": {"buckets": buckets},
                    }
                    for sku, buckets in products.items()
                ],
            },
        },
    }


def hits_payload(n=2):
    return {
        "hits": {
            "hits": [
                {
                    "_id": f"complaint-{i}",
                    "_source": {
                        "title": f"Charger melted {i}",
                        "summary": "Unit overheated while charging",
                        "location": "Austin, TX",
                        "injury_mentioned": i == 0,
                    },
                }
                for i in range(n)
            ],
        },
    }


def fake_search_client(agg, hits=None):
    """MagicMock ElasticsearchClient answering aggregation and exemplar queries."""
    client = MagicMock()

    def search(index, body):
        if "aggs" in body:
            return agg
        return hits if hits is not None else hits_payload()

    client.search = MagicMock(side_effect=search)
    return client
