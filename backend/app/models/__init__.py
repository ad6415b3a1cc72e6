"""Database models."""

from backend.app.models.organization import Organization, RepAssignment
from backend.app.models.funding import Vertical, GrantType, FundingRecord, SubAward
from backend.app.models.progress import FetchProgress
from backend.app.models.admin import UserRole, SavedSearch, SavedSubawardSearch, AdminAuditLog

__all__ = [
    "Organization",
    "RepAssignment",
    "Vertical",
    "GrantType",
    "FundingRecord",
    "SubAward",
    "FetchProgress",
    "UserRole",
    "SavedSearch",
    "SavedSubawardSearch",
    "AdminAuditLog",
]
