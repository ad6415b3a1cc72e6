"""
USAspending.gov API client.

Covers the three endpoints the dashboard needs:
- search/spending_by_award/ (prime view and `subawards: true` view)
- search/spending_by_award_count/
- subawards/ (sub-awards of one prime award)

API Documentation: https://api.usaspending.gov
"""

from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import structlog

from fetchers.clients.base import BaseClient
from fetchers.config import (
    ALL_STATES,
    GRANT_AWARD_TYPE_CODES,
    USASPENDING_BASE_URL,
    USASPENDING_PAGE_LIMIT,
)
from fetchers.models import PRIME_AWARD_FIELDS, SUB_AWARD_FIELDS
from fetchers.pagination import PageResult
from fetchers.utils import default_date_window, split_program_numbers

logger = structlog.get_logger()


def build_award_filters(
    aln: Optional[str] = None,
    keywords: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    state: Optional[str] = None,
    agencies: Optional[Sequence[str]] = None,
    use_recipient_location: bool = True,
    award_type_codes: Sequence[str] = GRANT_AWARD_TYPE_CODES,
) -> Dict[str, Any]:
    """
    Build the `filters` object shared by prime and sub-award searches.

    Provider rules that must be matched exactly:
    - `program_numbers` is always a list, even for one ALN
    - award type codes 02-05 select grants, not contracts or loans
    - prime awards filter on `recipient_locations`, sub-awards on
      `place_of_performance_locations`

    Args:
        aln: One ALN or a comma-separated list
        keywords: Free-text phrase, sent as a single keyword
        start_date: Window start (defaults to current federal FY start)
        end_date: Window end (defaults to current federal FY end)
        state: Two-letter state code; "ALL" or None means no location filter
        agencies: Awarding top-tier agency names
        use_recipient_location: True for prime awards, False for sub-awards
        award_type_codes: Award type codes to include

    Returns:
        Filters dict ready for the request body
    """
    start, end = default_date_window(start_date, end_date)

    filters: Dict[str, Any] = {
        "award_type_codes": list(award_type_codes),
        "time_period": [
            {"start_date": start.isoformat(), "end_date": end.isoformat()}
        ],
    }

    program_numbers = split_program_numbers(aln)
    if program_numbers:
        filters["program_numbers"] = program_numbers

    if keywords and keywords.strip():
        filters["keywords"] = [keywords.strip()]

    if state and state.strip() and state.strip().upper() != ALL_STATES:
        location = [{"country": "USA", "state": state.strip().upper()}]
        if use_recipient_location:
            filters["recipient_locations"] = location
        else:
            filters["place_of_performance_locations"] = location

    if agencies:
        filters["agencies"] = [
            {"type": "awarding", "tier": "toptier", "name": name}
            for name in agencies
        ]

    return filters


class UsaSpendingClient(BaseClient):
    """Client for USAspending.gov federal award data."""

    provider = "USAspending.gov"

    def __init__(self, base_url: str = USASPENDING_BASE_URL, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    def search_awards_page(
        self,
        filters: Dict[str, Any],
        page: int = 1,
        limit: int = USASPENDING_PAGE_LIMIT,
        subawards: bool = False,
        fields: Optional[List[str]] = None,
    ) -> PageResult:
        """
        Fetch one page of spending_by_award results.

        Args:
            filters: Output of `build_award_filters`
            page: 1-based page number
            limit: Page size
            subawards: Request the sub-award view (different field names)
            fields: Field list override

        Returns:
            PageResult with raw result dicts and the `hasNext` signal
        """
        payload: Dict[str, Any] = {
            "filters": filters,
            "fields": fields or (SUB_AWARD_FIELDS if subawards else PRIME_AWARD_FIELDS),
            "limit": limit,
            "page": page,
            "order": "desc",
            "sort": "Sub-Award Amount" if subawards else "Award Amount",
        }
        if subawards:
            payload["subawards"] = True

        data = self._post(f"{self.base_url}/search/spending_by_award/", payload)

        results = data.get("results") or []
        metadata = data.get("page_metadata") or {}

        return PageResult(
            results=results,
            has_next=bool(metadata.get("hasNext", False)),
            total=metadata.get("total"),
        )

    def count_awards(self, filters: Dict[str, Any], subawards: bool = False) -> int:
        """
        Total number of awards matching `filters`.

        The count endpoint groups totals by award category; with grant type
        codes already in the filter, the sum is the grant total.
        """
        payload: Dict[str, Any] = {"filters": filters}
        if subawards:
            payload["subawards"] = True

        data = self._post(f"{self.base_url}/search/spending_by_award_count/", payload)

        counts = data.get("results") or {}
        return sum(v for v in counts.values() if isinstance(v, int))

    def award_subawards(self, award_id: str, page: int = 1, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Fetch sub-awards reported against one prime award.

        Args:
            award_id: Generated internal id or FAIN of the prime award
            page: 1-based page number
            limit: Page size

        Returns:
            Raw sub-award dicts
        """
        data = self._post(
            f"{self.base_url}/subawards/",
            {
                "award_id": award_id,
                "page": page,
                "limit": limit,
                "order": "desc",
                "sort": "subaward_number",
            },
        )
        return data.get("results") or []
