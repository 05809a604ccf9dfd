"""
SQLAlchemy database models.

``SessionProgress`` mirrors ``models.ProgressRecord`` for the database-backed
progress store.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

# Handle both package imports (FastAPI) and standalone imports
try:
    from .database import Base
    from .models import utc_now
except ImportError:
    from database import Base
    from models import utc_now


class SessionProgress(Base):
    """Cached processing counters of one session."""

    __tablename__ = "session_progress"

    session_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    total_pages: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    processed_pages: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    failed_pages: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default="processing",
        nullable=False,
    )
    error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SessionProgress(session_id='{self.session_id}', status='{self.status}')>"
