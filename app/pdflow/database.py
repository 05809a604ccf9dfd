"""
Database configuration and session management.

Only used by the database-backed progress store. The filesystem remains the
source of truth for page state; the database holds cached progress counters.
"""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Base class for declarative models
Base = declarative_base()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    SQLite connections are shared with the worker threads FastAPI runs sync
    code on, so the same-thread check is disabled for them.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=echo,
        connect_args=connect_args,
    )


def init_db(engine: Engine) -> None:
    """
    Create all tables.

    Note: In production, use Alembic migrations instead.
    """
    # Import models to ensure they are registered with Base
    from . import models_db  # noqa: F401

    Base.metadata.create_all(bind=engine)


@lru_cache
def get_session_factory(database_url: str, echo: bool = False) -> sessionmaker:
    """Build (once per URL) an initialized engine and its session factory."""
    engine = create_db_engine(database_url, echo=echo)
    init_db(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
