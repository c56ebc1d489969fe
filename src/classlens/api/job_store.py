"""
Durable Job Store for background analysis jobs.

This module tracks the lifecycle of analysis jobs in the ``analysis_queue``
table.

Responsibilities
----------------
- **Create**: Generate UUIDs for new requests and insert them as PENDING.
- **Read**: Retrieve a job by id, optionally scoped to its owning class.
- **Transition**: Move jobs PENDING -> PROCESSING -> COMPLETED/FAILED.

Transitions
-----------
Every transition is a conditional UPDATE that only matches rows in the
expected source state, so two workers racing for the same job cannot both
claim it, and a job the watchdog already failed cannot be completed later.
A transition that matches no row changes nothing and reports ``False``.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, ClassVar

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlmodel import col, select

from classlens.core.settings import get_logger
from classlens.db import AnalysisJob, JobStatus, new_job_id, session_scope, utcnow

logger = get_logger("classlens.jobs")


class JobStore:
    """Database-backed store for :class:`AnalysisJob` rows."""

    # Singleton instance placeholder (initialized in app startup)
    _instance: ClassVar[JobStore | None] = None

    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    @classmethod
    def get_instance(cls) -> JobStore:
        """Accessor for the global singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    # ------------------------------------------------------------------ #
    # Create / read
    # ------------------------------------------------------------------ #
    def create_job(self, class_id: str, kind: str, request_data: dict[str, Any]) -> str:
        """
        Insert a new PENDING job.

        Returns
        -------
        str
            The generated UUID4 string for the new job.
        """
        job = AnalysisJob(
            id=new_job_id(),
            class_id=class_id,
            analysis_type=kind,
            request_data=dict(request_data),
            status=JobStatus.PENDING.value,
            created_at=utcnow(),
        )
        with session_scope(self._engine) as session:
            session.add(job)
        logger.info("Job %s created (kind=%s, class=%s)", job.id, kind, class_id)
        return job.id

    def get_job(self, job_id: str) -> AnalysisJob | None:
        """Retrieve a job, or None if not found."""
        with session_scope(self._engine) as session:
            return session.get(AnalysisJob, job_id)

    def get_job_for_class(self, job_id: str, class_id: str) -> AnalysisJob | None:
        """Retrieve a job only if it belongs to ``class_id``."""
        job = self.get_job(job_id)
        if job is None or job.class_id != class_id:
            return None
        return job

    def next_pending_id(self) -> str | None:
        """Return the id of the oldest PENDING job, if any."""
        with session_scope(self._engine) as session:
            stmt = (
                select(AnalysisJob.id)
                .where(col(AnalysisJob.status) == JobStatus.PENDING.value)
                .order_by(col(AnalysisJob.created_at))
                .limit(1)
            )
            return session.exec(stmt).first()

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #
    def _transition(self, job_id: str, source: JobStatus, **values: Any) -> bool:
        stmt = (
            update(AnalysisJob)
            .where(col(AnalysisJob.id) == job_id)
            .where(col(AnalysisJob.status) == source.value)
            .values(**values)
        )
        with session_scope(self._engine) as session:
            outcome = session.exec(stmt)  # type: ignore[call-overload]
            return bool(outcome.rowcount == 1)

    def claim(self, job_id: str) -> AnalysisJob | None:
        """Move a job from PENDING to PROCESSING.

        Returns the claimed job, or None when the job does not exist or was
        not PENDING (already claimed by another worker).
        """
        claimed = self._transition(
            job_id,
            JobStatus.PENDING,
            status=JobStatus.PROCESSING.value,
            started_at=utcnow(),
        )
        if not claimed:
            return None
        return self.get_job(job_id)

    def mark_completed(self, job_id: str, result: Any) -> bool:
        """Transition a PROCESSING job to COMPLETED and attach the result."""
        return self._transition(
            job_id,
            JobStatus.PROCESSING,
            status=JobStatus.COMPLETED.value,
            result=result,
            completed_at=utcnow(),
        )

    def mark_failed(self, job_id: str, error: str) -> bool:
        """Transition a PROCESSING job to FAILED and attach the error message."""
        return self._transition(
            job_id,
            JobStatus.PROCESSING,
            status=JobStatus.FAILED.value,
            error_message=error,
            completed_at=utcnow(),
        )

    def fail_stale_jobs(self, max_processing_seconds: float) -> list[str]:
        """Force-fail jobs stuck in PROCESSING longer than the budget.

        Returns
        -------
        list[str]
            Ids of the jobs this call moved to FAILED.
        """
        cutoff = utcnow() - timedelta(seconds=max_processing_seconds)
        with session_scope(self._engine) as session:
            stmt = (
                select(AnalysisJob.id)
                .where(col(AnalysisJob.status) == JobStatus.PROCESSING.value)
                .where(col(AnalysisJob.started_at) < cutoff)
            )
            stale_ids = list(session.exec(stmt).all())

        message = f"Analysis timed out after {max_processing_seconds:g} seconds"
        failed = [job_id for job_id in stale_ids if self.mark_failed(job_id, message)]
        for job_id in failed:
            logger.warning("Job %s force-failed by watchdog: %s", job_id, message)
        return failed


# Global accessor for convenience
def get_job_store() -> JobStore:
    return JobStore.get_instance()


__all__ = ["JobStore", "get_job_store"]
