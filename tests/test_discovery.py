"""
Tests for money-trail discovery, with upstream clients mocked.
"""

import asyncio
import threading
from collections import defaultdict
from datetime import date
from unittest.mock import Mock, patch

import pytest

from backend.app.services.discovery_service import DiscoveryService
from fetchers.clients import (
    GrantsGovClient,
    NihReporterClient,
    NsfAwardsClient,
    SamGovClient,
    UsaSpendingClient,
)
from fetchers.exceptions import ConfigurationError, UpstreamError
from fetchers.pagination import PageResult

LISTINGS = [
    {"assistanceListingId": "93.044", "title": "Aging Supportive Services", "organizationName": "HHS"},
    {"assistanceListingId": "84.010", "title": "Title I Grants", "organizationName": "ED"},
    {"assistanceListingId": "93.558", "title": "TANF", "organizationName": "HHS"},
    {"assistanceListingId": "20.205", "title": "Highway Planning", "organizationName": "DOT"},
]


@pytest.fixture
def clients():
    usaspending = Mock(spec=UsaSpendingClient)
    usaspending.search_awards_page.return_value = PageResult(
        results=[{"Award ID": "90OI0001", "Recipient Name": "Area Agency on Aging", "Award Amount": 5000}],
        has_next=True,
    )
    usaspending.count_awards.return_value = 42

    grants_gov = Mock(spec=GrantsGovClient)
    grants_gov.search_page.return_value = PageResult(
        results=[{"id": "1", "number": "HHS-ACL-25-1", "title": "Aging Network", "oppStatus": "posted"}],
        has_next=False,
        total=1,
    )

    sam_gov = Mock(spec=SamGovClient)
    sam_gov.search_assistance_listings.return_value = LISTINGS

    return {
        "usaspending": usaspending,
        "grants_gov": grants_gov,
        "sam_gov": sam_gov,
        "nih": Mock(spec=NihReporterClient),
        "nsf": Mock(spec=NsfAwardsClient),
    }


@pytest.fixture
def service(clients):
    return DiscoveryService(**clients)


class TestDiscoverListings:
    """Tests for listing discovery and prefix filtering."""

    def test_prefix_filter_returns_subset(self, service):
        found = service.discover_listings(aln_prefixes=["93"])

        assert [l.aln for l in found.results] == ["93.044", "93.558"]
        assert found.total_before_filter == 4
        assert found.total_before_filter >= len(found.results)

    def test_no_prefixes_returns_everything(self, service):
        found = service.discover_listings(aln_prefixes=[])
        assert len(found.results) == 4
        assert found.total_before_filter == 4

    def test_default_window_is_thirty_days(self, service, clients):
        service.discover_listings(end_date=date(2025, 3, 31))
        start, end = clients["sam_gov"].search_assistance_listings.call_args[0][:2]
        assert start == date(2025, 3, 1)
        assert end == date(2025, 3, 31)

    def test_missing_api_key_raises(self, clients, monkeypatch):
        monkeypatch.delenv("SAM_API_KEY", raising=False)
        clients["sam_gov"] = SamGovClient(api_key="")
        with pytest.raises(ConfigurationError):
            DiscoveryService(**clients).discover_listings()


class TestTrackAwards:
    """Tests for the single-stage trackers."""

    def test_prime_awards_include_total_count(self, service, clients):
        track = service.track_prime_awards("93.044")

        assert track.total_count == 42
        assert track.results[0].recipient_name == "Area Agency on Aging"
        filters = clients["usaspending"].search_awards_page.call_args[0][0]
        assert filters["program_numbers"] == ["93.044"]

    def test_count_failure_falls_back_to_page_length(self, service, clients):
        clients["usaspending"].count_awards.side_effect = UpstreamError("USAspending.gov", "down")
        assert service.track_subawards("93.044").total_count == 1

    def test_subawards_filter_on_place_of_performance(self, service, clients):
        service.track_subawards("93.044", keywords="meals")
        call = clients["usaspending"].search_awards_page.call_args
        assert call.kwargs["subawards"] is True
        assert call[0][0]["keywords"] == ["meals"]

    def test_subawards_by_keywords_alone(self, service, clients):
        service.track_subawards(keywords="home delivered meals")
        filters = clients["usaspending"].search_awards_page.call_args[0][0]
        assert filters["keywords"] == ["home delivered meals"]
        assert "program_numbers" not in filters

    def test_subawards_need_aln_or_keywords(self, service, clients):
        with pytest.raises(ValueError):
            service.track_subawards(aln=" ", keywords="")
        clients["usaspending"].search_awards_page.assert_not_called()

    def test_subawards_state_filter(self, service, clients):
        service.track_subawards("93.044", state="ca")
        filters = clients["usaspending"].search_awards_page.call_args[0][0]
        assert filters["place_of_performance_locations"] == [{"country": "USA", "state": "CA"}]
        assert "recipient_locations" not in filters

    def test_subawards_all_states_sends_no_location(self, service, clients):
        service.track_subawards("93.044", state="ALL")
        filters = clients["usaspending"].search_awards_page.call_args[0][0]
        assert "place_of_performance_locations" not in filters

    def test_subawards_agency_filter(self, service, clients):
        service.track_subawards("93.044", agencies=["Department of Health and Human Services"])
        filters = clients["usaspending"].search_awards_page.call_args[0][0]
        assert filters["agencies"] == [
            {"type": "awarding", "tier": "toptier", "name": "Department of Health and Human Services"},
        ]

    def test_subawards_paging(self, service, clients):
        clients["usaspending"].search_awards_page.return_value = PageResult(
            results=[{"Sub-Award ID": "S-3", "Sub-Awardee Name": "Meals on Wheels", "Sub-Award Amount": 900}],
            has_next=True,
            total=250,
        )

        track = service.track_subawards("93.044", page=3, limit=25)

        call = clients["usaspending"].search_awards_page.call_args
        assert call.kwargs["page"] == 3
        assert call.kwargs["limit"] == 25
        assert track.page == 3
        assert track.has_next is True
        assert track.total_count == 250
        clients["usaspending"].count_awards.assert_not_called()


class TestMoneyTrail:
    """Tests for the concurrent money trail."""

    def test_one_failing_stage_does_not_hide_the_others(self, service, clients):
        clients["grants_gov"].search_page.side_effect = UpstreamError("Grants.gov", "bad gateway", 502)

        trail = asyncio.run(service.track_money_trail("93.044"))

        assert trail["opportunities"].ok is False
        assert "bad gateway" in trail["opportunities"].error
        assert trail["prime_awards"].ok is True
        assert trail["prime_awards"].total_count == 42
        assert trail["subawards"].ok is True

    def test_all_stages_succeed(self, service):
        trail = asyncio.run(service.track_money_trail("93.044", date(2024, 10, 1), date(2025, 9, 30)))

        assert set(trail) == {"opportunities", "prime_awards", "subawards"}
        assert all(stage.ok for stage in trail.values())
        assert trail["opportunities"].results[0].number == "HHS-ACL-25-1"


class TestClientsPerThread:
    """Tests for per-thread upstream clients."""

    def test_each_thread_gets_its_own_client(self):
        service = DiscoveryService()
        seen = []
        worker = threading.Thread(target=lambda: seen.append(service.usaspending))
        worker.start()
        worker.join()

        assert service.usaspending is service.usaspending
        assert seen[0] is not service.usaspending
        assert seen[0].session is not service.usaspending.session

    def test_given_client_is_used_everywhere(self, clients):
        service = DiscoveryService(**clients)
        seen = []
        worker = threading.Thread(target=lambda: seen.append(service.usaspending))
        worker.start()
        worker.join()

        assert seen[0] is clients["usaspending"]

    def test_money_trail_never_shares_a_client_between_threads(self, clients):
        threads_by_client = defaultdict(set)

        def make_client():
            client = Mock(spec=UsaSpendingClient)

            def search(*args, **kwargs):
                threads_by_client[id(client)].add(threading.get_ident())
                return PageResult(results=[], has_next=False)

            client.search_awards_page.side_effect = search
            client.count_awards.return_value = 0
            return client

        with patch("backend.app.services.discovery_service.UsaSpendingClient", side_effect=make_client):
            service = DiscoveryService(grants_gov=clients["grants_gov"])
            trail = asyncio.run(service.track_money_trail("93.044"))

        assert trail["prime_awards"].ok is True
        assert trail["subawards"].ok is True
        assert threads_by_client
        assert all(len(threads) == 1 for threads in threads_by_client.values())
