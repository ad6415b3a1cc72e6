"""
Sub-award ingestion from USAspending.

Sub-awards are fetched per prime award already in the store, using the
upstream identifiers saved on the funding record.
"""

import uuid
from datetime import date
from typing import List, Optional, Tuple

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.models import FundingRecord, Organization, SubAward
from backend.app.services.dedup import OrganizationResolver
from backend.app.services.ingestion.base import FetchRequest, IngestionJob, JobResult
from fetchers.clients.usaspending import UsaSpendingClient
from fetchers.exceptions import UpstreamError
from fetchers.models import AwardSubAward

logger = structlog.get_logger()

USASPENDING_SOURCE = "USAspending.gov"


class SubAwardLoader:
    """Fetch and store the sub-awards of individual prime awards."""

    def __init__(self, job: IngestionJob, client: UsaSpendingClient):
        self.job = job
        self.client = client

    def load(
        self,
        db: Session,
        resolver: OrganizationResolver,
        funding_record_id: uuid.UUID,
        lookup_id: str,
        default_state: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> int:
        """
        Insert the sub-awards of one prime award.

        An upstream failure is recorded on the progress row and the award is
        skipped. Sub-awards dated outside the window, with no recipient, or
        with a zero amount are skipped.

        Args:
            db: Session
            resolver: Organization resolver for recipients
            funding_record_id: Prime funding record the sub-awards belong to
            lookup_id: Generated internal id or award id accepted by /subawards/
            default_state: State used when the sub-award reports none
            start_date: Optional window start
            end_date: Optional window end

        Returns:
            Number of sub-awards inserted
        """
        try:
            raw = self.client.award_subawards(lookup_id)
        except UpstreamError as e:
            logger.warning("subawards_fetch_failed", award_id=lookup_id, error=str(e))
            self.job.reporter.record_error(f"Sub-awards for {lookup_id}: {e}")
            self.job.count("upstream_error")
            return 0

        logger.info("subawards_fetched", award_id=lookup_id, results=len(raw))

        inserted = 0
        for record in raw:
            sub = AwardSubAward.from_api(record)

            if sub.action_date:
                if start_date and sub.action_date < start_date:
                    continue
                if end_date and sub.action_date > end_date:
                    continue

            if not sub.recipient_name or sub.amount == 0:
                logger.debug("subaward_skipped_incomplete", award_id=lookup_id)
                self.job.count("skipped")
                continue

            try:
                org_id = resolver.get_or_create(
                    sub.recipient_name,
                    sub.recipient_state or default_state,
                    city=sub.recipient_city,
                )
                db.add(SubAward(
                    funding_record_id=funding_record_id,
                    recipient_organization_id=org_id,
                    amount=sub.amount,
                    award_date=sub.action_date,
                    description=sub.description,
                ))
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("subaward_insert_failed", award_id=lookup_id, error=str(e))
                self.job.reporter.record_error(f"Sub-award insert for {lookup_id}: {e}")
                continue

            inserted += 1
            self.job.count("subaward_inserted")

        return inserted


class SubAwardsJob(IngestionJob):
    """Fetch sub-awards for the USAspending prime awards stored for a state."""

    source = "USAspending.gov-Subawards"
    started_message = "Subaward fetch started in background. Monitor progress via session ID."

    def __init__(self, client: Optional[UsaSpendingClient] = None, **kwargs):
        super().__init__(**kwargs)
        self.client = client or UsaSpendingClient()
        self.loader = SubAwardLoader(self, self.client)

    def execute(self, db: Session, request: FetchRequest) -> JobResult:
        resolver = OrganizationResolver(db)
        states = request.states()
        result = JobResult()

        for index, state in enumerate(states, start=1):
            if len(states) > 1:
                self.reporter.update(
                    current_page=index,
                    total_pages=len(states),
                    records_inserted=result.subawards_inserted,
                    message=f"Fetching subawards for {state} ({index}/{len(states)})...",
                )

            result.subawards_inserted += self._process_state(
                db, resolver, state, request, report_pages=len(states) == 1
            )
            result.records_inserted = result.subawards_inserted

        scope = "all states" if request.is_all_states else request.state.upper()
        result.message = f"Completed! Inserted {result.subawards_inserted} subawards for {scope}."
        return result

    def awards_for_state(
        self,
        db: Session,
        state: str,
        start_date: Optional[date],
        end_date: Optional[date],
    ) -> List[Tuple[uuid.UUID, str]]:
        """Prime awards of a state that carry an upstream id, as (record id, lookup id)."""
        query = (
            db.query(FundingRecord.id, FundingRecord.external_internal_id, FundingRecord.external_award_id)
            .join(Organization, FundingRecord.organization_id == Organization.id)
            .filter(
                FundingRecord.source == USASPENDING_SOURCE,
                Organization.state == state,
                or_(
                    FundingRecord.external_internal_id.isnot(None),
                    FundingRecord.external_award_id.isnot(None),
                ),
            )
        )
        if start_date:
            query = query.filter(FundingRecord.action_date >= start_date)
        if end_date:
            query = query.filter(FundingRecord.action_date <= end_date)

        return [
            (record_id, internal_id or award_id)
            for record_id, internal_id, award_id in query.all()
        ]

    def _process_state(
        self,
        db: Session,
        resolver: OrganizationResolver,
        state: str,
        request: FetchRequest,
        report_pages: bool,
    ) -> int:
        awards = self.awards_for_state(db, state, request.start_date, request.end_date)
        logger.info("subaward_candidates_found", state=state, awards=len(awards))

        if not awards:
            if report_pages:
                self.reporter.update(message=f"No funding records found for {state}. Fetch prime awards first.")
            return 0

        if report_pages:
            self.reporter.update(
                total_pages=len(awards),
                current_page=0,
                message=f"Processing {len(awards)} awards for subawards...",
            )

        inserted = 0
        for index, (record_id, lookup_id) in enumerate(awards, start=1):
            already = db.query(SubAward.id).filter(SubAward.funding_record_id == record_id).first()
            if already:
                logger.debug("subawards_already_loaded", award_id=lookup_id)
            else:
                inserted += self.loader.load(
                    db, resolver, record_id, lookup_id, state,
                    request.start_date, request.end_date,
                )

            if report_pages:
                self.reporter.update(
                    current_page=index,
                    records_inserted=inserted,
                    message=f"Processed {index}/{len(awards)} awards, {inserted} subawards inserted",
                )

        return inserted
