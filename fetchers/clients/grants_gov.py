"""
Grants.gov search2 API client.

No authentication required. search2 has no state filter; callers filter
client-side.
"""

from typing import Any, Dict, Optional

from fetchers.clients.base import BaseClient
from fetchers.config import GRANTS_GOV_OPEN_STATUSES, GRANTS_GOV_ROWS, GRANTS_GOV_SEARCH_URL
from fetchers.pagination import PageResult


class GrantsGovClient(BaseClient):
    """Client for Grants.gov opportunity search."""

    provider = "Grants.gov"

    def __init__(self, search_url: str = GRANTS_GOV_SEARCH_URL, **kwargs):
        super().__init__(**kwargs)
        self.search_url = search_url

    def search_page(
        self,
        page: int = 1,
        rows: int = GRANTS_GOV_ROWS,
        aln: Optional[str] = None,
        keyword: Optional[str] = None,
        statuses: str = GRANTS_GOV_OPEN_STATUSES,
    ) -> PageResult:
        """
        Fetch one page of opportunities.

        Args:
            page: 1-based page number, translated to `startRecordNum`
            rows: Page size
            aln: Restrict to opportunities carrying this ALN
            keyword: Free-text keyword
            statuses: Pipe-separated opportunity statuses

        Returns:
            PageResult of raw `oppHits`, with "more" derived from `hitCount`
        """
        body: Dict[str, Any] = {
            "rows": rows,
            "oppStatuses": statuses,
            "startRecordNum": (page - 1) * rows,
        }
        if aln:
            body["aln"] = aln
        if keyword:
            body["keyword"] = keyword

        data = self._post(self.search_url, body)

        hits, total = [], None
        if isinstance(data.get("data"), dict):
            hits = data["data"].get("oppHits") or []
            total = data["data"].get("hitCount")
        elif "oppHits" in data:
            hits = data.get("oppHits") or []
            total = data.get("hitCount")

        return PageResult.from_total(hits, page, rows, total)
