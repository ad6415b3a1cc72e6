"""
Progress reporting for background ingestion jobs.

Each mutation is persisted to `fetch_progress` (so late observers can read
the latest snapshot) and published to a `ProgressBroker`, which fans the
snapshot out to every live subscriber of that session.
"""

import queue
import threading
from collections import defaultdict
from typing import Callable, Dict, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.config import PROGRESS_MAX_ERRORS
from backend.app.db.session import SessionLocal
from backend.app.models import FetchProgress

logger = structlog.get_logger()

RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"
TERMINAL_STATUSES = (COMPLETED, FAILED)


class InvalidProgressTransition(Exception):
    """Raised when a progress change is not allowed from the current status."""


class ProgressRowMissing(InvalidProgressTransition):
    """The progress row was deleted while the job was still running."""


class ProgressBroker:
    """
    In-process fan-out of progress snapshots.

    Subscribers get their own unbounded queue; publishing never blocks and
    a subscriber going away has no effect on the publisher.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[queue.Queue]] = defaultdict(list)

    def subscribe(self, session_id: str) -> queue.Queue:
        q: queue.Queue = queue.Queue()
        with self._lock:
            self._subscribers[session_id].append(q)
        return q

    def unsubscribe(self, session_id: str, q: queue.Queue) -> None:
        with self._lock:
            subscribers = self._subscribers.get(session_id)
            if not subscribers:
                return
            if q in subscribers:
                subscribers.remove(q)
            if not subscribers:
                del self._subscribers[session_id]

    def publish(self, session_id: str, snapshot: dict) -> int:
        """Deliver a snapshot to current subscribers; returns how many received it."""
        with self._lock:
            subscribers = list(self._subscribers.get(session_id, []))
        for q in subscribers:
            q.put(snapshot)
        return len(subscribers)

    def subscriber_count(self, session_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(session_id, []))


progress_broker = ProgressBroker()


def get_snapshot(db: Session, session_id: str) -> Optional[dict]:
    """Latest persisted snapshot for a session, or None."""
    row = db.query(FetchProgress).filter(FetchProgress.session_id == session_id).first()
    return row.to_dict() if row else None


class ProgressReporter:
    """
    Mutates the progress row of one job session.

    Status moves running -> completed or running -> failed, nothing else;
    `current_page` never goes backwards.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        broker: Optional[ProgressBroker] = None,
        max_errors: int = PROGRESS_MAX_ERRORS,
    ):
        self.session_factory = session_factory
        self.broker = broker or progress_broker
        self.max_errors = max_errors
        self.session_id: Optional[str] = None

    def start(self, session_id: str, state: str, source: str, user_id: Optional[str] = None) -> dict:
        """
        Create (or replace) the progress row with status running.

        Args:
            session_id: Caller-supplied or generated job id
            state: State code or "ALL"
            source: Data source label
            user_id: Id of the user who triggered the job

        Returns:
            The initial snapshot
        """
        self.session_id = session_id

        with self.session_factory() as db:
            row = db.query(FetchProgress).filter(FetchProgress.session_id == session_id).first()
            if row is None:
                row = FetchProgress(session_id=session_id)
                db.add(row)

            row.state = state
            row.source = source
            row.status = RUNNING
            row.total_pages = 0
            row.current_page = 0
            row.records_inserted = 0
            row.errors = []
            row.message = "Starting fetch..."
            row.user_id = user_id

            return self._commit_and_publish(db, row)

    def update(
        self,
        current_page: Optional[int] = None,
        total_pages: Optional[int] = None,
        records_inserted: Optional[int] = None,
        message: Optional[str] = None,
    ) -> Optional[dict]:
        """
        Apply a partial update to a running job.

        Returns None without raising when the row is gone or the write fails;
        the job keeps going.
        """
        try:
            with self.session_factory() as db:
                row = self._load_running(db, "update")

                if total_pages is not None:
                    row.total_pages = total_pages
                if current_page is not None:
                    row.current_page = max(row.current_page or 0, current_page)
                if records_inserted is not None:
                    row.records_inserted = records_inserted
                if message is not None:
                    row.message = message

                return self._commit_and_publish(db, row)
        except (ProgressRowMissing, SQLAlchemyError) as e:
            logger.warning("progress_update_skipped", session_id=self.session_id, error=str(e))
            return None

    def record_error(self, error: str) -> Optional[dict]:
        """Append an error message, keeping only the most recent few."""
        try:
            with self.session_factory() as db:
                row = self._load_running(db, "record_error")

                errors = list(row.errors or [])
                errors.append(error)
                row.errors = errors[-self.max_errors:]

                return self._commit_and_publish(db, row)
        except (ProgressRowMissing, SQLAlchemyError) as e:
            logger.warning(
                "progress_error_not_recorded",
                session_id=self.session_id,
                error=error,
                reason=str(e),
            )
            return None

    def complete(self, message: str, records_inserted: Optional[int] = None) -> dict:
        with self.session_factory() as db:
            row = self._load_running(db, COMPLETED)
            row.status = COMPLETED
            row.message = message
            if records_inserted is not None:
                row.records_inserted = records_inserted
            return self._commit_and_publish(db, row)

    def fail(self, message: str) -> dict:
        with self.session_factory() as db:
            row = self._load_running(db, FAILED)
            row.status = FAILED
            row.message = message
            errors = list(row.errors or [])
            errors.append(message)
            row.errors = errors[-self.max_errors:]
            return self._commit_and_publish(db, row)

    def snapshot(self) -> Optional[dict]:
        if self.session_id is None:
            return None
        with self.session_factory() as db:
            return get_snapshot(db, self.session_id)

    def _load_running(self, db: Session, action: str) -> FetchProgress:
        if self.session_id is None:
            raise InvalidProgressTransition(f"Cannot {action}: progress was never started")

        row = db.query(FetchProgress).filter(FetchProgress.session_id == self.session_id).first()
        if row is None:
            raise ProgressRowMissing(f"Cannot {action}: no progress row for {self.session_id}")
        if row.status != RUNNING:
            raise InvalidProgressTransition(
                f"Cannot {action}: session {self.session_id} is already {row.status}"
            )
        return row

    def _commit_and_publish(self, db: Session, row: FetchProgress) -> dict:
        db.commit()
        db.refresh(row)
        snapshot = row.to_dict()
        self.broker.publish(row.session_id, snapshot)
        logger.debug(
            "progress_updated",
            session_id=row.session_id,
            status=row.status,
            current_page=row.current_page,
            total_pages=row.total_pages,
            records_inserted=row.records_inserted,
        )
        return snapshot
