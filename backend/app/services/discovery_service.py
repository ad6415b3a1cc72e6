"""
Money-trail discovery: ALN -> open opportunities -> prime awards -> sub-awards.

Nothing here writes to the database; every call goes straight to the
upstream APIs and returns normalized results.
"""

import asyncio
import threading
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog

from backend.app.metrics import DISCOVERY_STAGES
from fetchers.clients import (
    GrantsGovClient,
    NihReporterClient,
    NsfAwardsClient,
    SamGovClient,
    UsaSpendingClient,
    build_award_filters,
)
from fetchers.config import GRANTS_GOV_ROWS, SAM_LISTING_LIMIT, USASPENDING_PAGE_LIMIT
from fetchers.exceptions import UpstreamError
from fetchers.models import AssistanceListing, GrantOpportunity, PrimeAwardHit, SubAwardHit
from fetchers.utils import aln_prefix

logger = structlog.get_logger()

# Default look-back for listing discovery when no window is given
DISCOVERY_DEFAULT_DAYS = 30


@dataclass
class ListingDiscovery:
    """Assistance listings found in a window, before and after prefix filtering."""
    results: List[AssistanceListing]
    total_before_filter: int


@dataclass
class AwardTrack:
    """One page of awards plus the total upstream count."""
    results: List[Any]
    total_count: int
    page: int = 1
    has_next: bool = False


@dataclass
class StageOutcome:
    """Result of one money-trail stage; failures never hide the other stages."""
    ok: bool
    results: List[Any] = field(default_factory=list)
    total_count: Optional[int] = None
    error: Optional[str] = None


class DiscoveryService:
    """
    Live look-ups against the grant APIs for the discovery flow.

    One instance serves concurrent requests and money-trail stages. Clients
    passed in are used as given; otherwise each thread builds its own, so no
    `requests.Session` is shared between threads.
    """

    def __init__(
        self,
        usaspending: Optional[UsaSpendingClient] = None,
        grants_gov: Optional[GrantsGovClient] = None,
        sam_gov: Optional[SamGovClient] = None,
        nih: Optional[NihReporterClient] = None,
        nsf: Optional[NsfAwardsClient] = None,
    ):
        self._given: Dict[str, Any] = {
            "usaspending": usaspending,
            "grants_gov": grants_gov,
            "sam_gov": sam_gov,
            "nih": nih,
            "nsf": nsf,
        }
        self._local = threading.local()

    def _client(self, name: str, factory: Callable[[], Any]) -> Any:
        given = self._given[name]
        if given is not None:
            return given
        client = getattr(self._local, name, None)
        if client is None:
            client = factory()
            setattr(self._local, name, client)
        return client

    @property
    def usaspending(self) -> UsaSpendingClient:
        return self._client("usaspending", UsaSpendingClient)

    @property
    def grants_gov(self) -> GrantsGovClient:
        return self._client("grants_gov", GrantsGovClient)

    @property
    def sam_gov(self) -> SamGovClient:
        return self._client("sam_gov", SamGovClient)

    @property
    def nih(self) -> NihReporterClient:
        return self._client("nih", NihReporterClient)

    @property
    def nsf(self) -> NsfAwardsClient:
        return self._client("nsf", NsfAwardsClient)

    def discover_listings(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        aln_prefixes: Optional[List[str]] = None,
        limit: int = SAM_LISTING_LIMIT,
    ) -> ListingDiscovery:
        """
        Assistance listings published in a window, optionally restricted to ALN prefixes.

        Args:
            start_date: Window start (defaults to 30 days before end)
            end_date: Window end (defaults to today)
            aln_prefixes: Agency prefixes such as ["93", "84"]; empty means no filter
            limit: Maximum listings requested upstream

        Returns:
            ListingDiscovery with filtered results and the unfiltered count

        Raises:
            ConfigurationError: If SAM_API_KEY is not set
            UpstreamError: On SAM.gov failure
        """
        end = end_date or date.today()
        start = start_date or end - timedelta(days=DISCOVERY_DEFAULT_DAYS)

        raw = self.sam_gov.search_assistance_listings(start, end, limit=limit)
        listings = [AssistanceListing.from_api(item) for item in raw]
        total = len(listings)

        wanted = {p.strip() for p in (aln_prefixes or []) if p and p.strip()}
        if wanted:
            listings = [l for l in listings if aln_prefix(l.aln) in wanted]

        logger.info(
            "listings_discovered",
            total_before_filter=total,
            after_filter=len(listings),
            prefixes=sorted(wanted),
        )
        return ListingDiscovery(results=listings, total_before_filter=total)

    def track_opportunities(self, aln: str, rows: int = GRANTS_GOV_ROWS) -> List[GrantOpportunity]:
        """Forecasted and posted Grants.gov opportunities carrying an ALN."""
        page = self.grants_gov.search_page(page=1, rows=rows, aln=aln)
        opportunities = [GrantOpportunity.from_api(hit) for hit in page.results]
        logger.info("opportunities_tracked", aln=aln, count=len(opportunities))
        return opportunities

    def track_prime_awards(
        self,
        aln: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = USASPENDING_PAGE_LIMIT,
    ) -> AwardTrack:
        """First page of grant prime awards under an ALN, with the total count."""
        filters = build_award_filters(aln=aln, start_date=start_date, end_date=end_date)
        page = self.usaspending.search_awards_page(filters, page=1, limit=limit)
        results = [PrimeAwardHit.from_api(r) for r in page.results]
        total = self._count(filters, subawards=False, fallback=len(results))
        logger.info("prime_awards_tracked", aln=aln, count=len(results), total=total)
        return AwardTrack(results=results, total_count=total)

    def track_subawards(
        self,
        aln: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = USASPENDING_PAGE_LIMIT,
        keywords: Optional[str] = None,
        state: Optional[str] = None,
        agencies: Optional[Sequence[str]] = None,
        page: int = 1,
    ) -> AwardTrack:
        """
        One page of sub-awards matching an ALN, a keyword phrase, or both.

        Args:
            aln: One ALN or a comma-separated list; optional when keywords are given
            start_date: Window start
            end_date: Window end
            limit: Page size
            keywords: Free-text phrase
            state: Place-of-performance state; "ALL" means no location filter
            agencies: Awarding top-tier agency names
            page: 1-based page number

        Returns:
            AwardTrack with the page, its "more results" signal and the total count

        Raises:
            ValueError: If neither an ALN nor keywords are given
            UpstreamError: On USAspending failure
        """
        if not (aln and aln.strip()) and not (keywords and keywords.strip()):
            raise ValueError("ALN or keywords is required")

        filters = build_award_filters(
            aln=aln,
            keywords=keywords,
            start_date=start_date,
            end_date=end_date,
            state=state,
            agencies=agencies,
            use_recipient_location=False,
        )
        result_page = self.usaspending.search_awards_page(filters, page=page, limit=limit, subawards=True)
        results = [SubAwardHit.from_api(r) for r in result_page.results]
        if result_page.total is not None:
            total = result_page.total
        else:
            total = self._count(filters, subawards=True, fallback=(page - 1) * limit + len(results))
        logger.info(
            "subawards_tracked",
            aln=aln,
            keywords=keywords,
            state=state,
            page=page,
            count=len(results),
            total=total,
        )
        return AwardTrack(results=results, total_count=total, page=page, has_next=result_page.has_next)

    def track_nih(self, aln: str) -> List[Dict[str, Any]]:
        return self.nih.projects_for_aln(aln)

    def track_nsf(self, aln: str) -> List[Dict[str, Any]]:
        return self.nsf.awards_for_aln(aln)

    async def track_money_trail(
        self,
        aln: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, StageOutcome]:
        """
        Run the opportunity, prime-award and sub-award stages concurrently.

        Each stage runs in a worker thread; one stage failing is reported in
        its own outcome and does not affect the others.

        Returns:
            Mapping of stage name to StageOutcome
        """
        stages: Dict[str, Callable[[], Any]] = {
            "opportunities": lambda: self.track_opportunities(aln),
            "prime_awards": lambda: self.track_prime_awards(aln, start_date, end_date),
            "subawards": lambda: self.track_subawards(aln, start_date, end_date),
        }

        tasks = [asyncio.to_thread(fn) for fn in stages.values()]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        trail: Dict[str, StageOutcome] = {}
        for name, outcome in zip(stages, results):
            if isinstance(outcome, Exception):
                logger.warning("money_trail_stage_failed", stage=name, aln=aln, error=str(outcome))
                DISCOVERY_STAGES.labels(stage=name, outcome="error").inc()
                trail[name] = StageOutcome(ok=False, error=str(outcome))
                continue

            DISCOVERY_STAGES.labels(stage=name, outcome="ok").inc()
            if isinstance(outcome, AwardTrack):
                trail[name] = StageOutcome(ok=True, results=outcome.results, total_count=outcome.total_count)
            else:
                trail[name] = StageOutcome(ok=True, results=outcome, total_count=len(outcome))

        logger.info(
            "money_trail_completed",
            aln=aln,
            stages={name: stage.ok for name, stage in trail.items()},
        )
        return trail

    def _count(self, filters: Dict[str, Any], subawards: bool, fallback: int) -> int:
        try:
            return self.usaspending.count_awards(filters, subawards=subawards)
        except UpstreamError as e:
            logger.warning("award_count_failed", subawards=subawards, error=str(e))
            return fallback
