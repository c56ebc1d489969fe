"""
Persistence layer: engine, session helper and the analysis job table.

Responsibilities
----------------
- **Engine**: Build a SQLAlchemy engine from ``DATABASE_URL``. SQLite engines
  are shared across threads (the worker thread and the request thread touch
  the same rows); in-memory SQLite uses a single static connection so every
  session sees the same tables.
- **Schema**: Declare the ``analysis_queue`` table. Classroom tables live in
  :mod:`classlens.classroom` and register on the same metadata.
- **Sessions**: ``session_scope()`` commits on success and rolls back on error.

Timestamps are written as timezone-aware UTC into ``DateTime(timezone=True)``
columns. SQLite returns them without tzinfo, so readers treat naive values as
UTC; :func:`utcnow` is the only clock used for job rows.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Column, DateTime
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, Session, SQLModel, create_engine

from classlens.core.settings import get_logger, settings

logger = get_logger("classlens.db")


class JobStatus(str, Enum):
    """Lifecycle states of an analysis job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def utc_column(*, nullable: bool = True) -> Column[datetime]:
    """A fresh timezone-aware timestamp column (one per table field)."""
    return Column(DateTime(timezone=True), nullable=nullable)


def new_job_id() -> str:
    return str(uuid.uuid4())


class AnalysisJob(SQLModel, table=True):
    """One row per submitted analysis request."""

    __tablename__ = "analysis_queue"

    id: str = Field(default_factory=new_job_id, primary_key=True)
    class_id: str = Field(index=True)
    analysis_type: str
    request_data: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    status: str = Field(default=JobStatus.PENDING.value, index=True)

    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))
    started_at: datetime | None = Field(default=None, sa_column=utc_column())
    completed_at: datetime | None = Field(default=None, sa_column=utc_column())

    result: Any | None = Field(default=None, sa_column=Column(JSON))
    error_message: str | None = Field(default=None)


# --------------------------------------------------------------------------- #
# Engine management
# --------------------------------------------------------------------------- #


def make_engine(url: str) -> Engine:
    """Create an engine for ``url`` with the SQLite tweaks applied."""
    is_sqlite = url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    in_memory = is_sqlite and (":memory:" in url or url.rstrip("/") == "sqlite:")
    if in_memory:
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(url, connect_args=connect_args)


_engine: Engine | None = None


def get_engine() -> Engine:
    """Return the process-wide engine, creating it from settings on first use."""
    global _engine
    if _engine is None:
        _engine = make_engine(settings.database_url)
        logger.debug("Created engine for %s", _engine.url.render_as_string(hide_password=True))
    return _engine


def set_engine(engine: Engine | None) -> None:
    """Swap the process-wide engine; tests point it at an in-memory database."""
    global _engine
    _engine = engine


def init_db(engine: Engine | None = None) -> None:
    """Create every registered table that does not exist yet."""
    # Classroom tables register on SQLModel.metadata at import time.
    import classlens.classroom  # noqa: F401

    target = engine or get_engine()
    SQLModel.metadata.create_all(target)
    logger.info("Database schema ready (%s)", target.url.render_as_string(hide_password=True))


@contextmanager
def session_scope(engine: Engine | None = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session = Session(engine or get_engine(), expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "AnalysisJob",
    "JobStatus",
    "get_engine",
    "init_db",
    "make_engine",
    "new_job_id",
    "session_scope",
    "set_engine",
    "utc_column",
    "utcnow",
]
