"""
Sequential pagination driver for the upstream search APIs.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import structlog

from fetchers.exceptions import UpstreamError

logger = structlog.get_logger()


@dataclass
class PageResult:
    """One page returned by a provider, with its "more results" signal."""
    results: List[Any]
    has_next: bool
    total: Optional[int] = None

    @classmethod
    def from_total(cls, results: List[Any], page: int, limit: int, total: Optional[int]) -> "PageResult":
        """Build a page whose "more" signal comes from total-count arithmetic."""
        if total is None:
            return cls(results=results, has_next=len(results) >= limit, total=None)
        return cls(results=results, has_next=page * limit < total, total=total)


@dataclass
class PaginationOutcome:
    """Everything a pagination run produced."""
    results: List[Any] = field(default_factory=list)
    pages_fetched: int = 0
    failed_pages: List[int] = field(default_factory=list)
    planned_pages: int = 1
    errors: List[str] = field(default_factory=list)


def paginate(
    fetch_page: Callable[[int], PageResult],
    max_pages: int,
    on_page: Optional[Callable[[int, int, PageResult], None]] = None,
    label: str = "pagination",
) -> PaginationOutcome:
    """
    Fetch pages 1..N sequentially and concatenate their results.

    Page 1 is always requested and its failure propagates. Pages 2..N are
    requested only while the provider says more results exist; a failed page
    is logged and skipped (no retry) and pagination moves on to the next page
    number, so gaps are possible. Stops at the first successful page with no
    more results, or at `max_pages`.

    Args:
        fetch_page: Callable issuing the request for a 1-based page number
        max_pages: Page cap
        on_page: Optional callback `(page, planned_pages, page_result)` after each successful page
        label: Name used in log events

    Returns:
        PaginationOutcome with the accumulated results

    Raises:
        UpstreamError: If page 1 fails
    """
    outcome = PaginationOutcome()

    first = fetch_page(1)
    outcome.results.extend(first.results)
    outcome.pages_fetched = 1

    if first.has_next and first.results:
        if first.total is not None:
            per_page = len(first.results)
            needed = -(-first.total // per_page)
            outcome.planned_pages = max(1, min(max_pages, needed))
        else:
            outcome.planned_pages = max(1, max_pages)

    logger.info(
        "pagination_first_page",
        label=label,
        results=len(first.results),
        has_next=first.has_next,
        planned_pages=outcome.planned_pages,
    )

    if on_page:
        on_page(1, outcome.planned_pages, first)

    for page in range(2, outcome.planned_pages + 1):
        try:
            result = fetch_page(page)
        except UpstreamError as e:
            outcome.failed_pages.append(page)
            outcome.errors.append(f"Page {page}: {e}")
            logger.warning("pagination_page_dropped", label=label, page=page, error=str(e))
            continue

        outcome.results.extend(result.results)
        outcome.pages_fetched += 1

        logger.info("pagination_page_fetched", label=label, page=page, results=len(result.results))

        if on_page:
            on_page(page, outcome.planned_pages, result)

        if not result.results or not result.has_next:
            break

    return outcome
