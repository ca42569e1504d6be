"""
Elasticsearch HTTP Client

Thin JSON-over-HTTP wrapper around the search cluster's REST API.
Every transport, status or decoding failure is raised as
AggregationFetchError; callers decide whether that is fatal.
"""
import logging
from typing import Any, Dict, Optional

import requests

from ...config import get_config
from ...exceptions import AggregationFetchError


logger = logging.getLogger(__name__)


class ElasticsearchClient:
    """
    Minimal search cluster client.

    Usage:
        client = ElasticsearchClient()
        result = client.search("complaints", {"size": 0, "aggs": {...}})
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        config = get_config()
        self.host = (host or config.es_host).rstrip("/")
        self.api_key = config.es_api_key if api_key is None else api_key
        self.timeout = timeout or config.es_timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"ApiKey {self.api_key}"
        return headers

    def request(self, method: str, endpoint: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send a request and return the decoded JSON body.

        Raises:
            AggregationFetchError: unreachable host, timeout, non-2xx status,
                or a body that is not a JSON object
        """
        url = f"{self.host}/{endpoint.lstrip('/')}"
        try:
            response = self.session.request(
                method.upper(),
                url,
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Search request {method} {endpoint} failed: {e}")
            raise AggregationFetchError(f"Search cluster unreachable: {e}") from e

        if not 200 <= response.status_code < 300:
            raise AggregationFetchError(
                f"Search request {method} {endpoint} returned HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AggregationFetchError(f"Invalid JSON from {endpoint}") from e

        if not isinstance(data, dict):
            raise AggregationFetchError(f"Unexpected response type from {endpoint}: {type(data).__name__}")

        return data

    def search(self, index: str, query: Dict[str, Any]) -> Dict[str, Any]:
        """Execute a search body (query, aggs, size, sort) against an index."""
        return self.request("POST", f"/{index}/_search", query)

