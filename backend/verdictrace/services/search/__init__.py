"""
Search Collaborator Adapters

- ElasticsearchClient: HTTP transport
- AggregationAdapter: cluster aggregation -> ClusterCandidates
- ComplaintSearch: exemplar sampling
"""
from .es_client import ElasticsearchClient
from .aggregation_adapter import (
    AggregationAdapter,
    ComplaintSearch,
    build_cluster_query,
    build_exemplar_query,
)

__all__ = [
    "ElasticsearchClient",
    "AggregationAdapter",
    "ComplaintSearch",
    "build_cluster_query",
    "build_exemplar_query",
]
