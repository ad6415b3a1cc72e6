"""
Organization get-or-create and funding-record duplicate detection.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, Optional, Set, Tuple

import structlog
from sqlalchemy.orm import Session

from backend.app.models import FundingRecord, Organization
from fetchers.utils import normalize_name

logger = structlog.get_logger()

FundingKey = Tuple[uuid.UUID, Decimal, int, str]

CENTS = Decimal("0.01")


class OrganizationResolver:
    """
    Resolve (name, state) to an organization id, creating the row if needed.

    Matching is exact after whitespace trimming; "ACME Inc" and "Acme, Inc."
    stay two organizations. Each creation is committed on its own so a later
    failure in the same job never loses it.
    """

    def __init__(self, db: Session):
        self.db = db
        self._cache: Dict[Tuple[str, str], uuid.UUID] = {}
        self.created = 0

    def get_or_create(self, name: str, state: str, **attrs) -> Optional[uuid.UUID]:
        """
        Return the id for (name, state), inserting a new organization if none exists.

        Args:
            name: Organization name as reported upstream
            state: Two-letter state code
            **attrs: Extra columns used only when creating (city, industry, ...)

        Returns:
            Organization id, or None if name or state is empty
        """
        clean_name = normalize_name(name)
        clean_state = (state or "").strip().upper()
        if not clean_name or not clean_state:
            return None

        key = (clean_name, clean_state)
        if key in self._cache:
            return self._cache[key]

        existing = (
            self.db.query(Organization.id)
            .filter(Organization.name == clean_name, Organization.state == clean_state)
            .order_by(Organization.created_at)
            .first()
        )
        if existing:
            self._cache[key] = existing[0]
            return existing[0]

        org = Organization(
            name=clean_name,
            state=clean_state,
            last_updated=date.today(),
            **{k: v for k, v in attrs.items() if v is not None},
        )
        self.db.add(org)
        self.db.commit()

        self.created += 1
        self._cache[key] = org.id
        logger.debug("organization_created", name=clean_name, state=clean_state)
        return org.id


class FundingRecordDeduper:
    """
    In-run seen-set of funding-record keys for one source.

    The key is (organization, amount to the cent, fiscal year, source). It
    is a heuristic: two distinct awards with the same amount in the same
    year collapse into one.
    """

    def __init__(self, db: Session, source: str):
        self.source = source
        self._seen: Set[FundingKey] = set()

        rows = (
            db.query(FundingRecord.organization_id, FundingRecord.amount, FundingRecord.fiscal_year)
            .filter(FundingRecord.source == source)
            .all()
        )
        for org_id, amount, fiscal_year in rows:
            self._seen.add(self.key(org_id, amount, fiscal_year))

        logger.debug("dedup_index_loaded", source=source, keys=len(self._seen))

    def key(self, organization_id: uuid.UUID, amount, fiscal_year: int) -> FundingKey:
        return (
            organization_id,
            Decimal(str(amount)).quantize(CENTS),
            int(fiscal_year),
            self.source,
        )

    def is_duplicate(self, key: FundingKey) -> bool:
        return key in self._seen

    def mark(self, key: FundingKey) -> None:
        self._seen.add(key)

    def __len__(self) -> int:
        return len(self._seen)


def existing_opportunity_numbers(db: Session, source: str) -> Set[str]:
    """Opportunity numbers already stored for a listing source."""
    rows = (
        db.query(FundingRecord.external_award_id)
        .filter(FundingRecord.source == source, FundingRecord.external_award_id.isnot(None))
        .all()
    )
    return {value for (value,) in rows}
