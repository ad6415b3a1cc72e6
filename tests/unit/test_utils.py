"""
Unit tests for fetcher utility functions.
"""

import pytest
from datetime import date
from decimal import Decimal
from fetchers.utils import (
    aln_prefix,
    default_date_window,
    federal_fiscal_year_bounds,
    first_present,
    normalize_name,
    parse_amount,
    parse_date,
    split_program_numbers,
    to_federal_fiscal_year,
)


class TestParseAmount:
    """Tests for parse_amount function."""

    def test_number(self):
        """Numbers are rounded to cents."""
        assert parse_amount(1234.567) == Decimal("1234.57")

    def test_formatted_string(self):
        """Currency symbols and thousands separators are stripped."""
        assert parse_amount("$1,234,567.50") == Decimal("1234567.50")

    def test_unreadable_is_zero(self):
        """Garbage and missing values become zero."""
        assert parse_amount("n/a") == Decimal("0")
        assert parse_amount(None) == Decimal("0")
        assert parse_amount("") == Decimal("0")


class TestParseDate:
    """Tests for parse_date function."""

    def test_iso_date(self):
        assert parse_date("2024-03-15") == date(2024, 3, 15)

    def test_iso_datetime(self):
        """Time part is ignored."""
        assert parse_date("2024-03-15T10:00:00Z") == date(2024, 3, 15)

    def test_us_format(self):
        """Grants.gov and NSF use MM/DD/YYYY."""
        assert parse_date("11/05/2024") == date(2024, 11, 5)

    def test_invalid_returns_none(self):
        assert parse_date("2024-13-45") is None
        assert parse_date("soon") is None
        assert parse_date(None) is None


class TestFederalFiscalYear:
    """Tests for federal fiscal year helpers."""

    @pytest.mark.parametrize("d,expected", [
        (date(2023, 9, 30), 2023),
        (date(2023, 10, 1), 2024),
        (date(2024, 3, 15), 2024),
        (date(2024, 12, 31), 2025),
    ])
    def test_to_federal_fiscal_year(self, d, expected):
        assert to_federal_fiscal_year(d) == expected

    def test_bounds(self):
        assert federal_fiscal_year_bounds(2024) == (date(2023, 10, 1), date(2024, 9, 30))

    def test_default_window_keeps_given_bounds(self):
        start, end = default_date_window(date(2020, 1, 1), None)
        assert start == date(2020, 1, 1)
        assert end.month == 9 and end.day == 30


class TestSplitProgramNumbers:
    """Tests for split_program_numbers function."""

    def test_single_value_is_a_list(self):
        assert split_program_numbers("93.044") == ["93.044"]

    def test_comma_separated(self):
        assert split_program_numbers(" 93.778, 16.034 ,") == ["93.778", "16.034"]

    def test_empty(self):
        assert split_program_numbers(None) == []


class TestMisc:
    """Tests for small helpers."""

    def test_aln_prefix(self):
        assert aln_prefix("93.044") == "93"
        assert aln_prefix("N/A") is None
        assert aln_prefix(None) is None

    def test_first_present_skips_empty_values(self):
        record = {"a": "", "b": None, "c": "value"}
        assert first_present(record, "a", "b", "c") == "value"
        assert first_present(record, "x") is None

    def test_normalize_name(self):
        assert normalize_name("  Valley   Clinic \n") == "Valley Clinic"
        assert normalize_name("   ") is None
