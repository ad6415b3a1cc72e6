"""
Shared HTTP plumbing for the upstream grant APIs.
"""

from typing import Any, Dict, Optional

import requests
import structlog
from prometheus_client import Counter

from fetchers.config import REQUEST_TIMEOUT, USER_AGENT
from fetchers.exceptions import UpstreamError

logger = structlog.get_logger()

UPSTREAM_REQUESTS = Counter(
    'upstream_requests_total',
    'Total upstream API requests',
    ['provider', 'outcome']
)


class BaseClient:
    """
    Thin JSON client around a `requests.Session`.

    Every call either returns the decoded JSON body or raises
    `UpstreamError`; there is no retry. Callers decide whether a failure
    skips a page, a record, or the whole job.
    """

    provider: str = "upstream"

    def __init__(self, session: Optional[requests.Session] = None, timeout: int = REQUEST_TIMEOUT):
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        })
        self.timeout = timeout

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Issue a request and decode the JSON response.

        Args:
            method: HTTP method
            url: Absolute URL
            params: Query string parameters
            payload: JSON body

        Returns:
            Decoded JSON

        Raises:
            UpstreamError: On transport failure, non-2xx status or malformed JSON
        """
        try:
            response = self.session.request(
                method, url, params=params, json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            UPSTREAM_REQUESTS.labels(provider=self.provider, outcome="transport_error").inc()
            logger.error("upstream_request_failed", provider=self.provider, url=url, error=str(e))
            raise UpstreamError(self.provider, str(e)) from e

        if not response.ok:
            UPSTREAM_REQUESTS.labels(provider=self.provider, outcome="http_error").inc()
            detail = (response.text or "")[:300]
            logger.error(
                "upstream_http_error",
                provider=self.provider,
                url=url,
                status=response.status_code,
                detail=detail,
            )
            raise UpstreamError(self.provider, detail or response.reason or "request failed", response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            UPSTREAM_REQUESTS.labels(provider=self.provider, outcome="malformed_json").inc()
            logger.error("upstream_malformed_json", provider=self.provider, url=url)
            raise UpstreamError(self.provider, "malformed JSON response", response.status_code) from e

        UPSTREAM_REQUESTS.labels(provider=self.provider, outcome="ok").inc()
        return data

    def _post(self, url: str, payload: Dict[str, Any]) -> Any:
        return self._request("POST", url, payload=payload)

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("GET", url, params=params)
