"""
Tests for the ingestion jobs, with upstream clients mocked.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import Mock

import pytest

from backend.app.db.session import SessionLocal
from backend.app.models import FetchProgress, FundingRecord, Organization, SubAward, Vertical
from backend.app.services.admin_service import AdminService
from backend.app.services.ingestion import (
    FetchRequest,
    GrantsGovJob,
    NasboJob,
    PrimeAwardsJob,
    SubAwardsJob,
)
from backend.app.services.progress import COMPLETED, FAILED
from fetchers.clients import GrantsGovClient, UsaSpendingClient
from fetchers.config import US_STATE_CODES
from fetchers.exceptions import UpstreamError
from fetchers.pagination import PageResult


def prime_award(award_id, recipient, amount, title="Community Health Centers", action_date="2024-03-15"):
    return {
        "Award ID": award_id,
        "generated_internal_id": f"ASST_NON_{award_id}",
        "Recipient Name": recipient,
        "Award Amount": amount,
        "Awarding Agency": "Department of Health and Human Services",
        "Start Date": "2024-01-01",
        "End Date": "2025-12-31",
        "Action Date": action_date,
        "Description": "Operating support",
        "CFDA Number": "93.224",
        "CFDA Title": title,
    }


CA_AWARDS = [
    prime_award("H80CS001", "Valley Clinic", 250000),
    prime_award("H80CS002", "Coastal Health Partners", 125000.5),
    prime_award("H80CS003", "", 90000),
    prime_award("H80CS004", "Zero Dollar Org", 0),
]


@pytest.fixture
def usaspending():
    client = Mock(spec=UsaSpendingClient)
    client.search_awards_page.return_value = PageResult(results=CA_AWARDS, has_next=False)
    client.award_subawards.return_value = [
        {
            "sub_awardee_or_recipient_legal": "Fresno Outreach",
            "amount": 40000,
            "action_date": "2024-05-01",
            "description": "Outreach services",
        },
    ]
    return client


class TestPrimeAwardsJob:
    """Tests for PrimeAwardsJob."""

    def test_ca_end_to_end_then_rerun_inserts_nothing(self, db, usaspending):
        request = FetchRequest(state="CA", start_date=date(2023, 10, 1), end_date=date(2024, 9, 30))

        result = PrimeAwardsJob(client=usaspending).run(request)

        assert result.records_inserted == 2
        assert result.skipped == 2
        assert result.subawards_inserted == 2
        assert result.message == "Completed! Inserted 2 prime awards and 2 subawards."

        records = db.query(FundingRecord).all()
        assert len(records) == 2
        record = next(r for r in records if r.external_award_id == "H80CS001")
        assert record.amount == Decimal("250000.00")
        assert record.fiscal_year == 2024
        assert record.source == "USAspending.gov"
        assert record.external_internal_id == "ASST_NON_H80CS001"
        assert record.notes == "From USAspending.gov - Department of Health and Human Services"
        assert record.vertical.name == "Healthcare"

        progress = db.query(FetchProgress).filter(FetchProgress.session_id == request.session_id).one()
        assert progress.status == COMPLETED
        assert progress.records_inserted == 2

        rerun = PrimeAwardsJob(client=usaspending, include_subawards=False).run(
            FetchRequest(state="CA", start_date=date(2023, 10, 1), end_date=date(2024, 9, 30))
        )
        assert rerun.records_inserted == 0
        assert rerun.duplicates == 2
        assert db.query(FundingRecord).count() == 2

    def test_filters_use_recipient_location(self, usaspending):
        PrimeAwardsJob(client=usaspending, include_subawards=False).run(FetchRequest(state="ca"))

        filters = usaspending.search_awards_page.call_args[0][0]
        assert filters["recipient_locations"] == [{"country": "USA", "state": "CA"}]
        assert "place_of_performance_locations" not in filters

    def test_subawards_outside_window_are_skipped(self, db, usaspending):
        usaspending.award_subawards.return_value = [
            {"recipient_name": "Early Sub", "amount": 100, "action_date": "2022-01-01"},
            {"recipient_name": "In Window Sub", "amount": 200, "action_date": "2024-02-01"},
        ]
        request = FetchRequest(state="CA", start_date=date(2023, 10, 1), end_date=date(2024, 9, 30))

        result = PrimeAwardsJob(client=usaspending).run(request)

        assert result.subawards_inserted == 2
        names = {s.recipient_organization.name for s in db.query(SubAward).all()}
        assert names == {"In Window Sub"}

    def test_first_page_failure_fails_the_job(self, db, usaspending):
        usaspending.search_awards_page.side_effect = UpstreamError("USAspending.gov", "boom", 500)
        request = FetchRequest(state="CA")

        assert PrimeAwardsJob(client=usaspending).run(request) is None

        progress = db.query(FetchProgress).filter(FetchProgress.session_id == request.session_id).one()
        assert progress.status == FAILED
        assert "boom" in progress.message
        assert db.query(FundingRecord).count() == 0

    def test_unexpected_error_fails_the_job(self, db, usaspending):
        usaspending.search_awards_page.side_effect = RuntimeError("unexpected")
        request = FetchRequest(state="TX")

        assert PrimeAwardsJob(client=usaspending).run(request) is None

        progress = db.query(FetchProgress).filter(FetchProgress.session_id == request.session_id).one()
        assert progress.status == FAILED
        assert progress.message == "unexpected"

    def test_same_award_twice_in_one_page_is_stored_once(self, db, usaspending):
        usaspending.search_awards_page.return_value = PageResult(
            results=[
                prime_award("H80CS101", "Valley Clinic", 50000),
                prime_award("H80CS102", "Valley Clinic", 50000),
            ],
            has_next=False,
        )

        result = PrimeAwardsJob(client=usaspending, include_subawards=False).run(FetchRequest(state="CA"))

        assert result.records_inserted == 1
        assert result.duplicates == 1
        assert db.query(FundingRecord).count() == 1

    def test_all_states_records_a_failed_state_and_continues(self, db, usaspending):
        def search(filters, page=1, limit=None, **kwargs):
            state = filters["recipient_locations"][0]["state"]
            if state == "AK":
                raise UpstreamError("USAspending.gov", "boom", 503)
            if state == "CA":
                return PageResult(results=CA_AWARDS, has_next=False)
            return PageResult(results=[], has_next=False)

        usaspending.search_awards_page.side_effect = search
        request = FetchRequest(state="ALL")

        result = PrimeAwardsJob(client=usaspending, include_subawards=False).run(request)

        assert result.records_inserted == 2
        assert usaspending.search_awards_page.call_count == len(US_STATE_CODES)
        assert {o.state for o in db.query(Organization).all()} == {"CA"}

        progress = db.query(FetchProgress).filter(FetchProgress.session_id == request.session_id).one()
        assert progress.status == COMPLETED
        assert progress.state == "ALL"
        assert progress.total_pages == len(US_STATE_CODES)
        assert progress.errors == ["AK: USAspending.gov API error 503: boom"]

    def test_progress_row_deleted_mid_run_does_not_stop_the_job(self, db, usaspending):
        def wipe_progress_then_search(*args, **kwargs):
            with SessionLocal() as other:
                AdminService(other).clear_all_data("admin-user")
            return PageResult(results=CA_AWARDS, has_next=False)

        usaspending.search_awards_page.side_effect = wipe_progress_then_search
        request = FetchRequest(state="CA")

        result = PrimeAwardsJob(client=usaspending, include_subawards=False).run(request)

        assert result is not None
        assert result.records_inserted == 2
        assert db.query(FetchProgress).filter(FetchProgress.session_id == request.session_id).count() == 0

    def test_failure_after_progress_row_deleted_returns_none(self, db, usaspending):
        def wipe_progress_then_fail(*args, **kwargs):
            with SessionLocal() as other:
                other.query(FetchProgress).delete()
                other.commit()
            raise UpstreamError("USAspending.gov", "boom", 500)

        usaspending.search_awards_page.side_effect = wipe_progress_then_fail

        assert PrimeAwardsJob(client=usaspending).run(FetchRequest(state="CA")) is None


class TestSubAwardsJob:
    """Tests for SubAwardsJob."""

    def test_loads_subawards_for_stored_awards_once(self, db, usaspending):
        PrimeAwardsJob(client=usaspending, include_subawards=False).run(FetchRequest(state="CA"))
        assert db.query(SubAward).count() == 0

        job = SubAwardsJob(client=usaspending)
        result = job.run(FetchRequest(state="CA"))
        assert result.subawards_inserted == 2
        assert result.message == "Completed! Inserted 2 subawards for CA."
        assert usaspending.award_subawards.call_args_list[0][0][0].startswith("ASST_NON_")

        again = SubAwardsJob(client=usaspending).run(FetchRequest(state="CA"))
        assert again.subawards_inserted == 0
        assert db.query(SubAward).count() == 2

    def test_no_awards_completes_with_zero(self, db, usaspending):
        request = FetchRequest(state="WY")
        result = SubAwardsJob(client=usaspending).run(request)

        assert result.subawards_inserted == 0
        usaspending.award_subawards.assert_not_called()

    def test_upstream_failure_is_recorded_and_skipped(self, db, usaspending):
        PrimeAwardsJob(client=usaspending, include_subawards=False).run(FetchRequest(state="CA"))
        usaspending.award_subawards.side_effect = UpstreamError("USAspending.gov", "timeout")
        request = FetchRequest(state="CA")

        result = SubAwardsJob(client=usaspending).run(request)

        assert result.subawards_inserted == 0
        progress = db.query(FetchProgress).filter(FetchProgress.session_id == request.session_id).one()
        assert progress.status == COMPLETED
        assert len(progress.errors) == 2

    def test_all_states_loads_every_state_with_awards(self, db, usaspending):
        PrimeAwardsJob(client=usaspending, include_subawards=False).run(FetchRequest(state="CA"))
        request = FetchRequest(state="ALL")

        result = SubAwardsJob(client=usaspending).run(request)

        assert result.subawards_inserted == 2
        assert result.message == "Completed! Inserted 2 subawards for all states."
        progress = db.query(FetchProgress).filter(FetchProgress.session_id == request.session_id).one()
        assert progress.status == COMPLETED
        assert progress.total_pages == len(US_STATE_CODES)
        assert progress.current_page == len(US_STATE_CODES)


class TestGrantsGovJob:
    """Tests for GrantsGovJob."""

    @pytest.fixture
    def grants_gov(self):
        client = Mock(spec=GrantsGovClient)
        client.search_page.return_value = PageResult(
            results=[
                {
                    "id": "350001",
                    "number": "HRSA-25-001",
                    "title": "Rural Health Clinic Expansion",
                    "agencyName": "Health Resources and Services Administration",
                    "openDate": "11/15/2024",
                    "closeDate": "02/15/2025",
                    "oppStatus": "posted",
                    "alnist": ["93.224"],
                },
                {
                    "id": "350002",
                    "number": "ED-25-002",
                    "title": "School Literacy Program",
                    "agencyName": "Department of Education",
                    "oppStatus": "forecasted",
                },
            ],
            has_next=False,
            total=2,
        )
        return client

    def test_stores_opportunities_as_listings(self, db, grants_gov):
        result = GrantsGovJob(client=grants_gov).run(FetchRequest(state="ALL"))

        assert result.records_inserted == 2
        record = db.query(FundingRecord).filter(FundingRecord.external_award_id == "HRSA-25-001").one()
        assert record.amount == Decimal("0")
        assert record.status == "Posted"
        assert record.fiscal_year == 2025
        assert record.cfda_code == "93.224"
        assert record.notes == "Rural Health Clinic Expansion (HRSA-25-001)"
        assert record.organization.state == "US"
        assert record.organization.description == (
            "Federal agency: Health Resources and Services Administration"
        )

    def test_rerun_skips_known_opportunities(self, db, grants_gov):
        GrantsGovJob(client=grants_gov).run(FetchRequest(state="ALL"))
        rerun = GrantsGovJob(client=grants_gov).run(FetchRequest(state="ALL"))

        assert rerun.records_inserted == 0
        assert rerun.duplicates == 2


class TestNasboJob:
    """Tests for NasboJob."""

    def test_imports_sample_categories(self, db):
        request = FetchRequest(state="CA")
        result = NasboJob().run(request)

        assert result.records_inserted == 4
        assert result.message == "Successfully imported 4 NASBO budget records"

        org = db.query(Organization).filter(Organization.name == "CA State Government - Medicaid").one()
        assert org.industry == "Government"
        assert db.query(Vertical).filter(Vertical.name == "K-12 Education").count() == 1

        record = db.query(FundingRecord).filter(FundingRecord.organization_id == org.id).one()
        assert record.amount == Decimal("120000000000")
        assert record.date_range_start == date(2023, 10, 1)
        assert record.date_range_end == date(2024, 9, 30)

    def test_rerun_is_idempotent(self, db):
        NasboJob().run(FetchRequest(state="CA"))
        rerun = NasboJob().run(FetchRequest(state="CA"))

        assert rerun.records_inserted == 0
        assert rerun.duplicates == 4
        assert db.query(FundingRecord).count() == 4
