"""
Prime award ingestion from USAspending spending_by_award.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.models import FundingRecord
from backend.app.services.dedup import FundingRecordDeduper, OrganizationResolver
from backend.app.services.ingestion.base import (
    FetchRequest,
    IngestionJob,
    JobResult,
    ReferenceData,
)
from backend.app.services.ingestion.subawards import USASPENDING_SOURCE, SubAwardLoader
from fetchers.clients.usaspending import UsaSpendingClient, build_award_filters
from fetchers.config import USASPENDING_MAX_PAGES, USASPENDING_PAGE_LIMIT
from fetchers.exceptions import UpstreamError
from fetchers.models import PrimeAwardHit
from fetchers.pagination import PageResult, paginate
from fetchers.utils import default_date_window, to_federal_fiscal_year

logger = structlog.get_logger()


class PrimeAwardsJob(IngestionJob):
    """
    Fetch grant prime awards for a state and store them as funding records.

    Re-running over the same window inserts nothing new: existing records
    are kept and duplicates are detected by (organization, amount, fiscal
    year, source).
    """

    source = USASPENDING_SOURCE

    def __init__(
        self,
        client: Optional[UsaSpendingClient] = None,
        include_subawards: bool = True,
        max_pages: int = USASPENDING_MAX_PAGES,
        page_limit: int = USASPENDING_PAGE_LIMIT,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.client = client or UsaSpendingClient()
        self.include_subawards = include_subawards
        self.max_pages = max_pages
        self.page_limit = page_limit
        self.subaward_loader = SubAwardLoader(self, self.client)

    def execute(self, db: Session, request: FetchRequest) -> JobResult:
        reference = ReferenceData(db)
        resolver = OrganizationResolver(db)
        deduper = FundingRecordDeduper(db, self.source)
        states = request.states()
        result = JobResult()
        queued: List[Tuple[uuid.UUID, str, str]] = []

        for index, state in enumerate(states, start=1):
            single = len(states) == 1
            if not single:
                self.reporter.update(
                    current_page=index,
                    total_pages=len(states),
                    records_inserted=result.records_inserted,
                    message=f"Fetching prime awards for {state} ({index}/{len(states)})...",
                )

            try:
                raw_results = self._fetch_state(state, request, report_pages=single)
            except UpstreamError as e:
                if single:
                    raise
                logger.warning("prime_awards_state_failed", state=state, error=str(e))
                self.reporter.record_error(f"{state}: {e}")
                continue

            if single:
                self.reporter.update(
                    message=f"Fetched {len(raw_results)} results, processing records..."
                )

            for raw in raw_results:
                queued_award = self._process_record(
                    db, raw, state, request, reference, resolver, deduper, result
                )
                if queued_award:
                    queued.append(queued_award)

        if self.include_subawards and queued:
            self.reporter.update(
                message=f"Processing {result.records_inserted} prime awards, fetching subawards..."
            )
            for record_id, lookup_id, state in queued:
                result.subawards_inserted += self.subaward_loader.load(
                    db, resolver, record_id, lookup_id, state,
                    request.start_date, request.end_date,
                )

        result.message = (
            f"Completed! Inserted {result.records_inserted} prime awards "
            f"and {result.subawards_inserted} subawards."
        )
        return result

    def _fetch_state(self, state: str, request: FetchRequest, report_pages: bool) -> list:
        filters = build_award_filters(
            start_date=request.start_date,
            end_date=request.end_date,
            state=state,
            use_recipient_location=True,
        )

        def fetch_page(page: int) -> PageResult:
            return self.client.search_awards_page(filters, page=page, limit=self.page_limit)

        def on_page(page: int, planned: int, page_result: PageResult) -> None:
            logger.info("prime_awards_page_fetched", state=state, page=page, results=len(page_result.results))
            if report_pages:
                self.reporter.update(
                    current_page=page,
                    total_pages=planned,
                    message=f"Processing page {page} of {planned}",
                )

        outcome = paginate(fetch_page, self.max_pages, on_page=on_page, label=f"prime_awards:{state}")
        for error in outcome.errors:
            self.reporter.record_error(error)
        return outcome.results

    def _process_record(
        self,
        db: Session,
        raw: dict,
        state: str,
        request: FetchRequest,
        reference: ReferenceData,
        resolver: OrganizationResolver,
        deduper: FundingRecordDeduper,
        result: JobResult,
    ) -> Optional[Tuple[uuid.UUID, str, str]]:
        hit = PrimeAwardHit.from_api(raw)

        if not hit.recipient_name or hit.amount == 0:
            logger.debug("prime_award_skipped_incomplete", award_id=hit.award_id)
            result.skipped += 1
            self.count("skipped")
            return None

        vertical_name = self.classifier.classify_logged(
            hit.cfda_title, hit.description, hit.agency, hit.sub_agency, hit.recipient_name
        )
        vertical_id = reference.vertical_id(vertical_name)
        if vertical_id is None:
            logger.debug("prime_award_skipped_vertical", vertical=vertical_name, award_id=hit.award_id)
            result.skipped += 1
            self.count("skipped")
            return None

        reference_date = hit.action_date or hit.start_date
        if reference_date is None:
            reference_date, _ = default_date_window(request.start_date, request.end_date)
        fiscal_year = to_federal_fiscal_year(reference_date)

        try:
            org_id = resolver.get_or_create(hit.recipient_name, state)

            key = deduper.key(org_id, hit.amount, fiscal_year)
            if deduper.is_duplicate(key):
                logger.debug("prime_award_duplicate", recipient=hit.recipient_name, award_id=hit.award_id)
                result.duplicates += 1
                self.count("duplicate")
                return None

            record = FundingRecord(
                organization_id=org_id,
                vertical_id=vertical_id,
                grant_type_id=reference.grant_type_id(hit.cfda_number, hit.cfda_title),
                amount=hit.amount,
                status="Active",
                fiscal_year=fiscal_year,
                date_range_start=hit.start_date,
                date_range_end=hit.end_date,
                action_date=hit.action_date,
                cfda_code=hit.cfda_number,
                notes=f"From USAspending.gov - {hit.agency or 'Unknown'}",
                source=self.source,
                external_award_id=hit.award_id,
                external_internal_id=hit.internal_id,
                last_updated=datetime.now(timezone.utc),
            )
            db.add(record)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("prime_award_insert_failed", award_id=hit.award_id, error=str(e))
            self.reporter.record_error(f"Error processing record {hit.award_id}: {e}")
            return None

        deduper.mark(key)
        result.records_inserted += 1
        self.count("inserted")
        self.maybe_report_inserted(result.records_inserted)

        if hit.subaward_lookup_id:
            return record.id, hit.subaward_lookup_id, state
        return None
