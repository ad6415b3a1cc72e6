"""
Unit tests for the pagination driver.
"""

from unittest.mock import Mock

import pytest

from fetchers.exceptions import UpstreamError
from fetchers.pagination import PageResult, paginate


def pages(*sizes, has_next_last=False):
    """Build consecutive PageResults of the given sizes."""
    results = []
    for i, size in enumerate(sizes):
        last = i == len(sizes) - 1
        results.append(PageResult(
            results=[f"r{i}-{j}" for j in range(size)],
            has_next=has_next_last if last else True,
        ))
    return results


class TestPaginate:
    """Tests for paginate."""

    def test_single_page(self):
        fetch = Mock(side_effect=pages(3))
        outcome = paginate(fetch, max_pages=10)

        assert len(outcome.results) == 3
        assert outcome.pages_fetched == 1
        assert outcome.planned_pages == 1
        fetch.assert_called_once_with(1)

    def test_stops_when_no_more_results(self):
        fetch = Mock(side_effect=pages(2, 2, 1))
        outcome = paginate(fetch, max_pages=10)

        assert outcome.pages_fetched == 3
        assert len(outcome.results) == 5
        assert [c.args[0] for c in fetch.call_args_list] == [1, 2, 3]

    def test_respects_max_pages(self):
        fetch = Mock(side_effect=pages(2, 2, 2, 2, has_next_last=True))
        outcome = paginate(fetch, max_pages=2)

        assert outcome.pages_fetched == 2
        assert fetch.call_count == 2

    def test_planned_pages_from_total(self):
        first = PageResult(results=["a", "b"], has_next=True, total=5)
        rest = [PageResult(results=["c", "d"], has_next=True), PageResult(results=["e"], has_next=False)]
        fetch = Mock(side_effect=[first] + rest)
        progress = []

        outcome = paginate(fetch, max_pages=10, on_page=lambda p, planned, r: progress.append((p, planned)))

        assert outcome.planned_pages == 3
        assert progress == [(1, 3), (2, 3), (3, 3)]

    def test_first_page_failure_propagates(self):
        fetch = Mock(side_effect=UpstreamError("USAspending.gov", "down", 500))
        with pytest.raises(UpstreamError):
            paginate(fetch, max_pages=5)

    def test_later_page_failure_is_skipped(self):
        first, _, third = pages(2, 2, 1)
        fetch = Mock(side_effect=[first, UpstreamError("USAspending.gov", "timeout"), third])

        outcome = paginate(fetch, max_pages=5)

        assert outcome.failed_pages == [2]
        assert len(outcome.results) == 3
        assert outcome.errors == ["Page 2: USAspending.gov API error: timeout"]


class TestPageResultFromTotal:
    """Tests for PageResult.from_total."""

    def test_more_when_total_exceeds_seen(self):
        assert PageResult.from_total(["x"] * 50, page=1, limit=50, total=120).has_next is True
        assert PageResult.from_total(["x"] * 20, page=3, limit=50, total=120).has_next is False

    def test_full_page_without_total(self):
        assert PageResult.from_total(["x"] * 50, page=1, limit=50, total=None).has_next is True
        assert PageResult.from_total(["x"] * 10, page=1, limit=50, total=None).has_next is False
