"""
Privileged operations: role checks and the bulk data wipe.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, Type

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.db.base import Base
from backend.app.models import (
    AdminAuditLog,
    FetchProgress,
    FundingRecord,
    Organization,
    RepAssignment,
    SavedSearch,
    SavedSubawardSearch,
    SubAward,
    UserRole,
)

logger = structlog.get_logger()

ADMIN_ROLE = "admin"
CLEAR_ALL_ACTION = "BULK_DELETE_ALL_DATA"

# Children before parents so foreign keys never block a delete
CLEAR_ORDER: List[Tuple[str, Type[Base]]] = [
    ("subawards", SubAward),
    ("funding_records", FundingRecord),
    ("rep_assignments", RepAssignment),
    ("organizations", Organization),
    ("fetch_progress", FetchProgress),
    ("saved_searches", SavedSearch),
    ("saved_subaward_searches", SavedSubawardSearch),
]


class AdminRequired(Exception):
    """The caller does not hold the admin role."""


class BulkDeleteError(Exception):
    """
    A table could not be emptied.

    Tables earlier in the order are already empty; `deleted` holds their counts.
    """

    def __init__(self, table: str, deleted: Dict[str, int], detail: str):
        self.table = table
        self.deleted = deleted
        self.detail = detail
        super().__init__(f"Failed to delete {table}: {detail}")


class AdminService:
    """Admin-only operations. Roles come from `user_roles`, never from token claims."""

    def __init__(self, db: Session):
        self.db = db

    def has_role(self, user_id: str, role: str) -> bool:
        return (
            self.db.query(UserRole.id)
            .filter(UserRole.user_id == user_id, UserRole.role == role)
            .first()
            is not None
        )

    def is_admin(self, user_id: str) -> bool:
        return self.has_role(user_id, ADMIN_ROLE)

    def clear_all_data(self, user_id: str, client_ip: Optional[str] = None) -> Dict[str, int]:
        """
        Empty every data table, in dependency order.

        The audit entry is written first; if that fails the wipe still runs.
        Each table is deleted in its own transaction.

        Args:
            user_id: Id of the admin performing the wipe
            client_ip: Caller address for the audit trail

        Returns:
            Rows deleted per table

        Raises:
            AdminRequired: If the user is not an admin
            BulkDeleteError: If a table delete fails
        """
        if not self.is_admin(user_id):
            logger.warning("bulk_delete_forbidden", user_id=user_id)
            raise AdminRequired(f"User {user_id} is not an admin")

        self._write_audit(user_id, client_ip)

        deleted: Dict[str, int] = {}
        for table, model in CLEAR_ORDER:
            try:
                count = self.db.query(model).delete(synchronize_session=False)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error("bulk_delete_failed", table=table, deleted=deleted, error=str(e))
                raise BulkDeleteError(table, dict(deleted), str(e)) from e

            deleted[table] = count or 0
            logger.info("bulk_delete_table_cleared", table=table, rows=deleted[table])

        logger.warning("bulk_delete_completed", user_id=user_id, deleted=deleted)
        return deleted

    def _write_audit(self, user_id: str, client_ip: Optional[str]) -> None:
        try:
            self.db.add(AdminAuditLog(
                user_id=user_id,
                action=CLEAR_ALL_ACTION,
                details={
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "ip": client_ip or "unknown",
                },
            ))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("audit_log_failed", user_id=user_id, error=str(e))
