"""
Opportunity listing ingestion from Grants.gov.

Listings carry no award amount, so they are stored with amount 0 and
de-duplicated on their opportunity number.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.models import FundingRecord
from backend.app.services.dedup import OrganizationResolver, existing_opportunity_numbers
from backend.app.services.ingestion.base import FetchRequest, IngestionJob, JobResult, ReferenceData
from fetchers.clients.grants_gov import GrantsGovClient
from fetchers.config import GRANTS_GOV_MAX_PAGES, GRANTS_GOV_ROWS
from fetchers.models import GrantOpportunity
from fetchers.pagination import PageResult, paginate
from fetchers.utils import current_federal_fiscal_year, to_federal_fiscal_year

logger = structlog.get_logger()

# Organization state used for national listings
NATIONAL_STATE = "US"


class GrantsGovJob(IngestionJob):
    """Fetch forecasted and posted opportunities and store them as listings."""

    source = "Grants.gov"

    def __init__(
        self,
        client: Optional[GrantsGovClient] = None,
        max_pages: int = GRANTS_GOV_MAX_PAGES,
        rows: int = GRANTS_GOV_ROWS,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.client = client or GrantsGovClient()
        self.max_pages = max_pages
        self.rows = rows

    def execute(self, db: Session, request: FetchRequest) -> JobResult:
        reference = ReferenceData(db)
        resolver = OrganizationResolver(db)
        seen = existing_opportunity_numbers(db, self.source)
        org_state = NATIONAL_STATE if request.is_all_states else request.state.strip().upper()
        result = JobResult()

        def fetch_page(page: int) -> PageResult:
            return self.client.search_page(page=page, rows=self.rows)

        def on_page(page: int, planned: int, page_result: PageResult) -> None:
            self.reporter.update(
                current_page=page,
                total_pages=planned,
                message=f"Fetched page {page} of {planned} from Grants.gov",
            )

        outcome = paginate(fetch_page, self.max_pages, on_page=on_page, label="grants_gov")
        for error in outcome.errors:
            self.reporter.record_error(error)

        logger.info("grants_gov_opportunities_fetched", count=len(outcome.results))

        for hit in outcome.results:
            opportunity = GrantOpportunity.from_api(hit)
            if not opportunity.number:
                result.skipped += 1
                self.count("skipped")
                continue

            if opportunity.number in seen:
                result.duplicates += 1
                self.count("duplicate")
                continue

            if self._store(db, opportunity, org_state, reference, resolver):
                seen.add(opportunity.number)
                result.records_inserted += 1
                self.count("inserted")
                self.maybe_report_inserted(result.records_inserted)
            else:
                result.skipped += 1

        result.message = f"Successfully fetched {result.records_inserted} grant opportunities from Grants.gov"
        return result

    def _store(
        self,
        db: Session,
        opportunity: GrantOpportunity,
        org_state: str,
        reference: ReferenceData,
        resolver: OrganizationResolver,
    ) -> bool:
        vertical_name = self.classifier.classify_logged(opportunity.title, opportunity.agency)
        vertical_id = reference.vertical_id(vertical_name)
        if vertical_id is None:
            logger.debug("opportunity_skipped_vertical", vertical=vertical_name, number=opportunity.number)
            return False

        instrument = opportunity.funding_instruments[0] if opportunity.funding_instruments else "Grant"
        grant_type_id = (
            reference.grant_type_id(opportunity.primary_aln, instrument)
            or reference.grant_type_id(None, "grant")
        )

        posted: Optional[date] = opportunity.open_date
        fiscal_year = to_federal_fiscal_year(posted) if posted else current_federal_fiscal_year()

        try:
            org_id = resolver.get_or_create(
                opportunity.agency,
                org_state,
                description=f"Federal agency: {opportunity.agency}",
            )
            db.add(FundingRecord(
                organization_id=org_id,
                vertical_id=vertical_id,
                grant_type_id=grant_type_id,
                amount=Decimal("0"),
                status=opportunity.status.capitalize() if opportunity.status else "Posted",
                fiscal_year=fiscal_year,
                date_range_start=posted,
                date_range_end=opportunity.close_date,
                cfda_code=opportunity.primary_aln,
                notes=f"{opportunity.title} ({opportunity.number})",
                source=self.source,
                external_award_id=opportunity.number,
                external_internal_id=opportunity.id or None,
                last_updated=datetime.now(timezone.utc),
            ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("opportunity_insert_failed", number=opportunity.number, error=str(e))
            self.reporter.record_error(f"Error storing {opportunity.number}: {e}")
            return False

        return True
