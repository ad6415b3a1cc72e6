"""Database package."""

from backend.app.db.base import Base
from backend.app.db.session import get_db, engine, SessionLocal

__all__ = ["Base", "get_db", "engine", "SessionLocal"]
