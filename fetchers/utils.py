"""
Utility functions for parsing upstream grant data.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Tuple

import structlog

logger = structlog.get_logger()


def first_present(record: dict, *keys: str) -> Any:
    """
    Return the first truthy value among several candidate keys.

    Upstream providers rename fields between endpoints and API versions,
    so most lookups try a list of aliases.

    Args:
        record: Provider JSON object
        *keys: Candidate field names, in priority order

    Returns:
        The first non-empty value, or None
    """
    for key in keys:
        value = record.get(key)
        if value not in (None, "", []):
            return value
    return None


def parse_amount(value: Any) -> Decimal:
    """
    Parse a monetary amount, returning zero when it cannot be read.

    Handles numbers, "1,234.50" and "$1,234" strings.

    Args:
        value: Raw amount from the provider

    Returns:
        Decimal amount rounded to cents
    """
    if value is None or value == "":
        return Decimal("0")

    cleaned = re.sub(r'[$,\s]', '', str(value))

    try:
        return Decimal(cleaned).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        logger.warning("amount_parse_failed", value=str(value))
        return Decimal("0")


def parse_date(value: Any) -> Optional[date]:
    """
    Parse the date formats returned by the grant APIs.

    Handles:
    - YYYY-MM-DD (optionally followed by a time part)
    - MM/DD/YYYY (Grants.gov, NSF)

    Args:
        value: Raw date string

    Returns:
        date or None if parsing fails
    """
    if not value:
        return None

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()

    match = re.match(r'(\d{4})-(\d{1,2})-(\d{1,2})', text)
    if match:
        year, month, day = match.groups()
    else:
        match = re.match(r'(\d{1,2})/(\d{1,2})/(\d{4})', text)
        if not match:
            logger.warning("date_parse_failed_no_match", value=text)
            return None
        month, day, year = match.groups()

    try:
        return date(int(year), int(month), int(day))
    except ValueError as e:
        logger.warning("date_parse_failed", value=text, error=str(e))
        return None


def to_federal_fiscal_year(d: date) -> int:
    """
    Convert a date to federal fiscal year.

    Federal FY runs October 1 through September 30.
    FY 2024 = Oct 1, 2023 through Sep 30, 2024
    """
    if d.month >= 10:
        return d.year + 1
    return d.year


def federal_fiscal_year_bounds(fiscal_year: int) -> Tuple[date, date]:
    """Get the start and end dates of a federal fiscal year."""
    return date(fiscal_year - 1, 10, 1), date(fiscal_year, 9, 30)


def current_federal_fiscal_year() -> int:
    """Get the current federal fiscal year."""
    return to_federal_fiscal_year(date.today())


def default_date_window(
    start_date: Optional[date],
    end_date: Optional[date],
) -> Tuple[date, date]:
    """
    Fill a missing date bound with the current federal fiscal year's bound.

    Args:
        start_date: Requested window start, or None
        end_date: Requested window end, or None

    Returns:
        (start, end) tuple with both bounds set
    """
    fy_start, fy_end = federal_fiscal_year_bounds(current_federal_fiscal_year())
    return start_date or fy_start, end_date or fy_end


def split_program_numbers(value: Optional[str]) -> List[str]:
    """
    Split a comma-separated ALN/CFDA string into a clean list.

    USAspending silently ignores `program_numbers` unless it is a list,
    even for a single value.

    Args:
        value: e.g. "93.778, 16.034"

    Returns:
        ["93.778", "16.034"]
    """
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def aln_prefix(aln: Optional[str]) -> Optional[str]:
    """Return the agency prefix of an ALN ("93.044" -> "93")."""
    if not aln:
        return None
    prefix = aln.strip().split(".", 1)[0]
    return prefix if prefix.isdigit() else None


def normalize_name(name: Optional[str]) -> Optional[str]:
    """Trim and collapse internal whitespace; casing is preserved."""
    if not name:
        return None
    collapsed = re.sub(r'\s+', ' ', str(name)).strip()
    return collapsed or None


def join_text(parts: Iterable[Optional[str]]) -> str:
    """Join the non-empty text fragments with single spaces."""
    return " ".join(str(p) for p in parts if p)
