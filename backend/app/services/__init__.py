"""Services package."""

from backend.app.services.admin_service import AdminService, BulkDeleteError
from backend.app.services.discovery_service import DiscoveryService
from backend.app.services.progress import InvalidProgressTransition, ProgressBroker, ProgressReporter

__all__ = [
    "AdminService",
    "BulkDeleteError",
    "DiscoveryService",
    "InvalidProgressTransition",
    "ProgressBroker",
    "ProgressReporter",
]
