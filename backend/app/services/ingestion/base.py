"""
Shared plumbing for background ingestion jobs.

A job runs in a worker thread after the HTTP response is sent. It owns its
database session, reports through a `ProgressReporter`, and is the only
place where unexpected exceptions are caught: they end the job as failed.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.config import PROGRESS_UPDATE_EVERY
from backend.app.db.session import SessionLocal
from backend.app.metrics import INGESTION_JOBS, INGESTION_RECORDS
from backend.app.models import GrantType, Vertical
from backend.app.services.progress import InvalidProgressTransition, ProgressReporter
from fetchers.classifier import VerticalClassifier
from fetchers.config import ALL_STATES, US_STATE_CODES

logger = structlog.get_logger()


@dataclass
class FetchRequest:
    """Parameters of one fetch trigger."""
    state: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_id: Optional[str] = None

    @property
    def is_all_states(self) -> bool:
        return self.state.strip().upper() == ALL_STATES

    def states(self) -> List[str]:
        """State codes to process; "ALL" expands to every U.S. state."""
        if self.is_all_states:
            return list(US_STATE_CODES)
        return [self.state.strip().upper()]


@dataclass
class JobResult:
    """Outcome counters of a finished job."""
    records_inserted: int = 0
    subawards_inserted: int = 0
    skipped: int = 0
    duplicates: int = 0
    message: str = ""


class ReferenceData:
    """Lookup tables loaded once per job: verticals and grant types."""

    def __init__(self, db: Session):
        self.verticals: Dict[str, uuid.UUID] = {
            name.lower(): vid for vid, name in db.query(Vertical.id, Vertical.name).all()
        }
        self.grant_types_by_cfda: Dict[str, uuid.UUID] = {}
        self.grant_types_by_name: Dict[str, uuid.UUID] = {}
        for gid, name, cfda_code in db.query(GrantType.id, GrantType.name, GrantType.cfda_code).all():
            if cfda_code:
                self.grant_types_by_cfda.setdefault(cfda_code, gid)
            self.grant_types_by_name.setdefault(name.lower(), gid)

    def vertical_id(self, name: str) -> Optional[uuid.UUID]:
        return self.verticals.get(name.lower())

    def grant_type_id(self, cfda_code: Optional[str], cfda_title: Optional[str]) -> Optional[uuid.UUID]:
        """Match by CFDA code first, then by program name."""
        if cfda_code and cfda_code in self.grant_types_by_cfda:
            return self.grant_types_by_cfda[cfda_code]
        if cfda_title:
            return self.grant_types_by_name.get(cfda_title.lower())
        return None


class IngestionJob:
    """
    Base class for the fetch jobs.

    Subclasses set `source` and implement `execute`.
    """

    source: str = "unknown"
    started_message: str = "Fetch started in background. Monitor progress via session ID."

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        reporter: Optional[ProgressReporter] = None,
        classifier: Optional[VerticalClassifier] = None,
    ):
        self.session_factory = session_factory
        self.reporter = reporter or ProgressReporter(session_factory=session_factory)
        self.classifier = classifier or VerticalClassifier()

    def begin(self, request: FetchRequest) -> dict:
        """Create the progress row; called before the job is scheduled."""
        return self.reporter.start(
            request.session_id,
            state=request.state.strip().upper(),
            source=self.source,
            user_id=request.user_id,
        )

    def run(self, request: FetchRequest) -> Optional[JobResult]:
        """
        Execute the job to completion, translating the outcome into progress.

        Returns:
            JobResult on success, None if the job failed
        """
        if self.reporter.session_id != request.session_id:
            self.begin(request)

        logger.info(
            "ingestion_job_started",
            source=self.source,
            state=request.state,
            session_id=request.session_id,
        )

        try:
            with self.session_factory() as db:
                result = self.execute(db, request)
        except Exception as e:
            logger.error(
                "ingestion_job_failed",
                source=self.source,
                session_id=request.session_id,
                error=str(e),
                exc_info=True,
            )
            INGESTION_JOBS.labels(source=self.source, status="failed").inc()
            self._finish_progress(self.reporter.fail, str(e) or e.__class__.__name__)
            return None

        INGESTION_JOBS.labels(source=self.source, status="completed").inc()
        self._finish_progress(
            self.reporter.complete, result.message, records_inserted=result.records_inserted
        )

        logger.info(
            "ingestion_job_completed",
            source=self.source,
            session_id=request.session_id,
            records_inserted=result.records_inserted,
            subawards_inserted=result.subawards_inserted,
            skipped=result.skipped,
            duplicates=result.duplicates,
        )
        return result

    def execute(self, db: Session, request: FetchRequest) -> JobResult:
        raise NotImplementedError

    def _finish_progress(self, transition: Callable[..., dict], *args, **kwargs) -> None:
        """Write the terminal progress status; a failed write is logged, never raised."""
        try:
            transition(*args, **kwargs)
        except (InvalidProgressTransition, SQLAlchemyError) as e:
            logger.error(
                "progress_finish_failed",
                source=self.source,
                session_id=self.reporter.session_id,
                error=str(e),
                exc_info=True,
            )

    # Helpers shared by subclasses

    def count(self, kind: str, amount: int = 1) -> None:
        INGESTION_RECORDS.labels(source=self.source, kind=kind).inc(amount)

    def maybe_report_inserted(self, inserted: int) -> None:
        """Push the running insert count every few records."""
        if inserted and inserted % PROGRESS_UPDATE_EVERY == 0:
            self.reporter.update(
                records_inserted=inserted,
                message=f"Inserted {inserted} records...",
            )
