"""
Funding taxonomy, funding record and sub-award models.
"""

import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Text, Date, Integer, Numeric, TIMESTAMP, Index, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db.base import Base, utcnow


class Vertical(Base):
    """Business category a grant is classified into."""
    
    __tablename__ = "verticals"
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow
    )
    
    def __repr__(self) -> str:
        return f"<Vertical(name={self.name})>"


class GrantType(Base):
    """Named federal program, matched to awards by CFDA code, then by name."""
    
    __tablename__ = "grant_types"
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    federal_agency: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cfda_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    grant_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow
    )
    
    def __repr__(self) -> str:
        return f"<GrantType(name={self.name}, cfda_code={self.cfda_code})>"


class FundingRecord(Base):
    """One award (or opportunity listing) tied to an organization and a vertical."""
    
    __tablename__ = "funding_records"
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    vertical_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("verticals.id", ondelete="CASCADE"),
        nullable=False
    )
    grant_type_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("grant_types.id"),
        nullable=True
    )
    
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="Active")
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    
    # Dates
    date_range_start: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    date_range_end: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    action_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    
    cfda_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # Upstream references (award id / FAIN, generated internal id, opportunity number)
    external_award_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    external_internal_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # Timestamps
    last_updated: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )
    
    organization = relationship("Organization")
    vertical = relationship("Vertical")
    grant_type = relationship("GrantType")
    subawards: Mapped[List["SubAward"]] = relationship(
        "SubAward",
        back_populates="funding_record",
        foreign_keys="SubAward.funding_record_id"
    )
    
    __table_args__ = (
        Index("idx_funding_records_org", "organization_id"),
        Index("idx_funding_records_source_fy", "source", "fiscal_year"),
        Index("idx_funding_records_action_date", "action_date"),
        Index("idx_funding_records_external_award", "external_award_id"),
    )
    
    def __repr__(self) -> str:
        return f"<FundingRecord(id={self.id}, amount={self.amount}, fiscal_year={self.fiscal_year})>"


class SubAward(Base):
    """Pass-through award from a prime recipient to another organization."""
    
    __tablename__ = "subawards"
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    funding_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("funding_records.id", ondelete="CASCADE"),
        nullable=False
    )
    recipient_organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    award_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow
    )
    
    funding_record: Mapped["FundingRecord"] = relationship(
        "FundingRecord",
        back_populates="subawards"
    )
    recipient_organization = relationship("Organization")
    
    __table_args__ = (
        Index("idx_subawards_funding_record", "funding_record_id"),
    )
    
    def __repr__(self) -> str:
        return f"<SubAward(id={self.id}, amount={self.amount})>"
