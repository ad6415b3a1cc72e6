"""
Read-side queries over funding records for the dashboard.
"""

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Query, Session

from backend.app.models import FundingRecord, Organization, Vertical


@dataclass
class FundingFilters:
    """Dashboard filter set."""
    state: Optional[str] = None
    verticals: Optional[List[str]] = None
    source: Optional[str] = None
    organization_id: Optional[uuid.UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    strict_action_date: bool = False


def apply_award_date_filter(
    query: Query,
    start_date: Optional[date],
    end_date: Optional[date],
    strict_action_date: bool = False,
) -> Query:
    """
    Restrict a funding-record query to an award date window.

    The award date is `action_date` when present, otherwise `date_range_start`.
    In strict mode records without an `action_date` are excluded, even with
    no window.
    """
    action = FundingRecord.action_date
    fallback = FundingRecord.date_range_start

    if strict_action_date:
        conditions = [action.isnot(None)]
        if start_date:
            conditions.append(action >= start_date)
        if end_date:
            conditions.append(action <= end_date)
        return query.filter(and_(*conditions))

    if not start_date and not end_date:
        return query

    action_conditions = [action.isnot(None)]
    fallback_conditions = [action.is_(None)]
    if start_date:
        action_conditions.append(action >= start_date)
        fallback_conditions.append(fallback >= start_date)
    if end_date:
        action_conditions.append(action <= end_date)
        fallback_conditions.append(fallback <= end_date)

    return query.filter(or_(and_(*action_conditions), and_(*fallback_conditions)))


def apply_filters(query: Query, filters: FundingFilters) -> Query:
    """Apply every dashboard filter; the query must already join Organization and Vertical."""
    if filters.state:
        query = query.filter(Organization.state == filters.state.upper())
    if filters.verticals:
        query = query.filter(Vertical.name.in_(filters.verticals))
    if filters.source:
        query = query.filter(FundingRecord.source == filters.source)
    if filters.organization_id:
        query = query.filter(FundingRecord.organization_id == filters.organization_id)
    return apply_award_date_filter(
        query, filters.start_date, filters.end_date, filters.strict_action_date
    )


def funding_records_query(db: Session, filters: FundingFilters) -> Query:
    query = (
        db.query(FundingRecord)
        .join(Organization, FundingRecord.organization_id == Organization.id)
        .join(Vertical, FundingRecord.vertical_id == Vertical.id)
    )
    return apply_filters(query, filters)


def funding_metrics(db: Session, filters: FundingFilters) -> dict:
    """Organization count, total and average funding for a filter set."""
    query = (
        db.query(
            func.count(func.distinct(FundingRecord.organization_id)),
            func.coalesce(func.sum(FundingRecord.amount), 0),
            func.count(FundingRecord.id),
        )
        .select_from(FundingRecord)
        .join(Organization, FundingRecord.organization_id == Organization.id)
        .join(Vertical, FundingRecord.vertical_id == Vertical.id)
    )
    org_count, total, record_count = apply_filters(query, filters).one()

    total = Decimal(str(total)).quantize(Decimal("0.01"))
    avg = (total / org_count).quantize(Decimal("0.01")) if org_count else Decimal("0.00")
    return {
        "total_organizations": org_count,
        "total_funding": total,
        "avg_funding": avg,
        "total_records": record_count,
    }
