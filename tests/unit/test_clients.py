"""
Unit tests for the upstream API clients, with the HTTP session mocked.
"""

from datetime import date
from unittest.mock import Mock

import pytest
import requests

from fetchers.clients import GrantsGovClient, NihReporterClient, UsaSpendingClient, build_award_filters
from fetchers.config import ALL_STATES
from fetchers.exceptions import UpstreamError


def mock_session(json_data=None, status_code=200, exc=None):
    session = Mock(spec=requests.Session)
    session.headers = {}
    if exc is not None:
        session.request.side_effect = exc
        return session

    response = Mock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.text = "" if json_data is not None else "Server Error"
    response.reason = "Error"
    response.json.return_value = json_data
    session.request.return_value = response
    return session


class TestBuildAwardFilters:
    """Tests for build_award_filters."""

    def test_program_numbers_always_a_list(self):
        filters = build_award_filters(aln="93.044", start_date=date(2024, 1, 1), end_date=date(2024, 6, 30))
        assert filters["program_numbers"] == ["93.044"]
        assert filters["award_type_codes"] == ["02", "03", "04", "05"]
        assert filters["time_period"] == [{"start_date": "2024-01-01", "end_date": "2024-06-30"}]

    def test_sub_awards_use_place_of_performance(self):
        filters = build_award_filters(state="tx", use_recipient_location=False)
        assert filters["place_of_performance_locations"] == [{"country": "USA", "state": "TX"}]
        assert "recipient_locations" not in filters

    def test_all_states_has_no_location(self):
        filters = build_award_filters(state=ALL_STATES)
        assert "recipient_locations" not in filters
        assert "place_of_performance_locations" not in filters

    def test_keywords_and_agencies(self):
        filters = build_award_filters(keywords=" meals on wheels ", agencies=["Department of Labor"])
        assert filters["keywords"] == ["meals on wheels"]
        assert filters["agencies"] == [{"type": "awarding", "tier": "toptier", "name": "Department of Labor"}]


class TestUsaSpendingClient:
    """Tests for UsaSpendingClient."""

    def test_search_awards_page(self):
        session = mock_session({"results": [{"Award ID": "A1"}], "page_metadata": {"hasNext": True}})
        client = UsaSpendingClient(session=session)

        page = client.search_awards_page({"award_type_codes": ["02"]}, page=2, limit=10)

        assert page.results == [{"Award ID": "A1"}]
        assert page.has_next is True
        payload = session.request.call_args.kwargs["json"]
        assert payload["page"] == 2
        assert payload["sort"] == "Award Amount"
        assert "subawards" not in payload

    def test_subaward_view(self):
        session = mock_session({"results": [], "page_metadata": {"hasNext": False}})
        UsaSpendingClient(session=session).search_awards_page({}, subawards=True)

        payload = session.request.call_args.kwargs["json"]
        assert payload["subawards"] is True
        assert payload["sort"] == "Sub-Award Amount"

    def test_count_sums_categories(self):
        session = mock_session({"results": {"grants": 40, "loans": 2, "other": None}})
        assert UsaSpendingClient(session=session).count_awards({}) == 42

    def test_http_error_raises(self):
        session = mock_session(status_code=500)
        with pytest.raises(UpstreamError) as exc_info:
            UsaSpendingClient(session=session).award_subawards("ASST_NON_1")
        assert exc_info.value.status_code == 500

    def test_transport_error_raises(self):
        session = mock_session(exc=requests.ConnectionError("refused"))
        with pytest.raises(UpstreamError):
            UsaSpendingClient(session=session).award_subawards("ASST_NON_1")

    def test_malformed_json_raises(self):
        session = mock_session({})
        session.request.return_value.json.side_effect = ValueError("bad json")
        with pytest.raises(UpstreamError, match="malformed JSON"):
            UsaSpendingClient(session=session).count_awards({})


class TestGrantsGovClient:
    """Tests for GrantsGovClient."""

    def test_page_offset_and_more_signal(self):
        session = mock_session({"data": {"oppHits": [{"id": "1"}] * 50, "hitCount": 120}})
        page = GrantsGovClient(session=session).search_page(page=2, rows=50, aln="93.044")

        body = session.request.call_args.kwargs["json"]
        assert body["startRecordNum"] == 50
        assert body["aln"] == "93.044"
        assert page.has_next is True
        assert page.total == 120


class TestNihReporterClient:
    """Tests for NihReporterClient."""

    def test_aln_sent_without_dot(self):
        session = mock_session({"results": [{"project_num": "R01"}]})
        results = NihReporterClient(session=session).projects_for_aln("93.847")

        body = session.request.call_args.kwargs["json"]
        assert body["criteria"]["cfda_codes"] == ["93847"]
        assert results == [{"project_num": "R01"}]
