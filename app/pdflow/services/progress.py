"""
Session progress tracking.

Progress records are a cache over the per-page completion markers, not the
source of truth. The in-memory store loses everything on restart; the next
processing request rebuilds the counters from the markers on disk.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import sessionmaker

# Handle both package imports and standalone imports
try:
    from ..config import get_settings
    from ..database import get_session_factory
    from ..models import ProcessStatus, ProgressRecord, utc_now
    from ..models_db import SessionProgress
except ImportError:
    from config import get_settings
    from database import get_session_factory
    from models import ProcessStatus, ProgressRecord, utc_now
    from models_db import SessionProgress

from .exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"total_pages", "processed_pages", "failed_pages", "status", "error"})


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update progress fields: {sorted(unknown)}")


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ProgressStore(ABC):
    """Storage interface for session progress records."""

    @abstractmethod
    def get(self, session_id: str) -> ProgressRecord | None:
        """Return the record of a session, or None if it has none."""

    @abstractmethod
    def get_or_init(self, session_id: str, total_pages: int) -> ProgressRecord:
        """
        Return the existing record unchanged, or create one.

        A new record starts in ``processing`` with no processed pages and the
        current time as start time.
        """

    @abstractmethod
    def update(self, session_id: str, **fields: Any) -> ProgressRecord:
        """
        Change fields of an existing record.

        Raises:
            NotFoundError: If the session has no record.
            ValidationError: If a field cannot be updated.
        """


class InMemoryProgressStore(ProgressStore):
    """Process-local store. Records are lost on restart."""

    def __init__(self) -> None:
        self._records: dict[str, ProgressRecord] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> ProgressRecord | None:
        with self._lock:
            record = self._records.get(session_id)
            return record.model_copy(deep=True) if record else None

    def get_or_init(self, session_id: str, total_pages: int) -> ProgressRecord:
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                record = ProgressRecord(session_id=session_id, total_pages=total_pages)
                self._records[session_id] = record
                logger.debug("Initialized progress for session %s (%d pages)", session_id, total_pages)
            return record.model_copy(deep=True)

    def update(self, session_id: str, **fields: Any) -> ProgressRecord:
        _check_fields(fields)
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                raise NotFoundError(f"No progress for session {session_id}")
            updated = ProgressRecord.model_validate({**record.model_dump(), **fields})
            self._records[session_id] = updated
            return updated.model_copy(deep=True)


class DatabaseProgressStore(ProgressStore):
    """Store backed by the ``session_progress`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @staticmethod
    def _to_record(row: SessionProgress) -> ProgressRecord:
        return ProgressRecord(
            session_id=row.session_id,
            total_pages=row.total_pages,
            processed_pages=row.processed_pages,
            failed_pages=list(row.failed_pages or []),
            status=ProcessStatus(row.status),
            error=row.error,
            start_time=_as_utc(row.start_time),
        )

    def get(self, session_id: str) -> ProgressRecord | None:
        with self._session_factory() as db:
            row = db.get(SessionProgress, session_id)
            return self._to_record(row) if row else None

    def get_or_init(self, session_id: str, total_pages: int) -> ProgressRecord:
        with self._session_factory() as db:
            row = db.get(SessionProgress, session_id)
            if row is None:
                row = SessionProgress(
                    session_id=session_id,
                    total_pages=total_pages,
                    processed_pages=0,
                    failed_pages=[],
                    status=ProcessStatus.PROCESSING.value,
                    start_time=utc_now(),
                )
                db.add(row)
                db.commit()
                db.refresh(row)
                logger.debug("Initialized progress for session %s (%d pages)", session_id, total_pages)
            return self._to_record(row)

    def update(self, session_id: str, **fields: Any) -> ProgressRecord:
        _check_fields(fields)
        with self._session_factory() as db:
            row = db.get(SessionProgress, session_id)
            if row is None:
                raise NotFoundError(f"No progress for session {session_id}")
            for name, value in fields.items():
                if isinstance(value, ProcessStatus):
                    value = value.value
                elif name == "failed_pages":
                    value = list(value)
                setattr(row, name, value)
            db.commit()
            db.refresh(row)
            return self._to_record(row)


# Singleton instance for convenience
_progress_store: ProgressStore | None = None


def get_progress_store() -> ProgressStore:
    """Get or create the configured progress store."""
    global _progress_store
    if _progress_store is None:
        settings = get_settings()
        if settings.progress_backend == "database":
            logger.info("Using database progress store")
            _progress_store = DatabaseProgressStore(
                get_session_factory(settings.database_url, settings.sql_debug)
            )
        else:
            _progress_store = InMemoryProgressStore()
    return _progress_store
