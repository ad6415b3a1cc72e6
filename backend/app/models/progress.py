"""
Fetch progress model.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, Integer, TIMESTAMP, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.db.base import Base, JSONType, utcnow


class FetchProgress(Base):
    """Persisted snapshot of one ingestion job's progress."""
    
    __tablename__ = "fetch_progress"
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String,
        CheckConstraint("status IN ('running', 'completed', 'failed')"),
        nullable=False,
        default="running"
    )
    total_pages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_page: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_inserted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
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
    
    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "state": self.state,
            "source": self.source,
            "status": self.status,
            "total_pages": self.total_pages,
            "current_page": self.current_page,
            "records_inserted": self.records_inserted,
            "errors": list(self.errors or []),
            "message": self.message,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
    
    def __repr__(self) -> str:
        return f"<FetchProgress(session_id={self.session_id}, status={self.status})>"
