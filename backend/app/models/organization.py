"""
Organization and rep assignment models.
"""

import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Text, Date, Integer, Numeric, TIMESTAMP, Index, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db.base import Base, utcnow


class Organization(Base):
    """
    A grant recipient (prime or sub).

    Identity is the exact (name, state) pair. Rows are never merged
    automatically, so spelling variants stay separate organizations.
    """
    
    __tablename__ = "organizations"
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    
    # Identity
    name: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    
    # Location
    city: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # Profile
    industry: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    annual_revenue: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    employee_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    last_updated: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow
    )
    
    assignment: Mapped[Optional["RepAssignment"]] = relationship(
        "RepAssignment",
        back_populates="organization",
        uselist=False
    )
    
    __table_args__ = (
        Index("idx_organizations_name_state", "name", "state"),
    )
    
    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name}, state={self.state})>"


class RepAssignment(Base):
    """Sales rep owning an organization; at most one per organization."""
    
    __tablename__ = "rep_assignments"
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    rep_id: Mapped[str] = mapped_column(Text, nullable=False)
    assigned_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow
    )
    
    organization: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="assignment"
    )
    
    def __repr__(self) -> str:
        return f"<RepAssignment(organization_id={self.organization_id}, rep_id={self.rep_id})>"
