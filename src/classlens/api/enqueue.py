"""
Job Enqueuer: turn an analysis request into a PENDING job.

The enqueue path runs synchronously inside the request. It authorizes the
caller, validates the payload, persists the job, and then hands the job id to
a ``dispatch`` callable that starts the worker without waiting for it.

Errors raised here (authorization, validation) surface to the caller
directly; nothing is persisted when they occur. Everything that goes wrong
after the job exists is recorded on the job itself.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from classlens.analysis.kinds import AnalysisKind, validate_payload
from classlens.api.job_store import JobStore, get_job_store
from classlens.classroom import ClassroomRepository
from classlens.core.errors import AuthorizationError
from classlens.core.settings import get_logger

logger = get_logger("classlens.enqueue")

Dispatch = Callable[[str], Any]

#: Owner context of diagnostic jobs; no real class uses this id.
DIAGNOSTIC_CLASS_ID = "00000000-0000-0000-0000-000000000000"


def no_dispatch(job_id: str) -> None:
    """Dispatcher that leaves the job for a standalone worker."""
    logger.debug("Job %s left for the worker loop", job_id)


def _dispatch_safely(dispatch: Dispatch, job_id: str) -> None:
    try:
        dispatch(job_id)
    except Exception:
        # The job is durable; a worker loop will still pick it up.
        logger.exception("Dispatch failed for job %s", job_id)


def enqueue_analysis(
    *,
    user_id: str,
    class_id: str,
    kind: str,
    payload: Mapping[str, Any] | None,
    dispatch: Dispatch = no_dispatch,
    store: JobStore | None = None,
    classroom: ClassroomRepository | None = None,
) -> str:
    """
    Create a PENDING analysis job and trigger its processing.

    Steps
    -----
    1. The class must exist and be owned by ``user_id``.
    2. The payload must satisfy the rules of ``kind``.
    3. The job is inserted with the normalized payload.
    4. ``dispatch(job_id)`` is called fire-and-forget.

    Returns
    -------
    str
        The new job id.

    Raises
    ------
    AuthorizationError
        The class does not exist or belongs to someone else.
    ValidationError
        Unknown kind or invalid payload.
    """
    store = store or get_job_store()
    classroom = classroom or ClassroomRepository()

    # 1. Authorize (a missing class is reported the same way as a foreign one)
    owner = classroom.owner_of(class_id)
    if owner is None or owner != user_id:
        logger.info("User %s denied analysis on class %s", user_id, class_id)
        raise AuthorizationError("You do not have access to this class.")

    # 2. Validate
    member, normalized = validate_payload(kind, payload)

    # 3. Persist
    job_id = store.create_job(class_id, member.value, normalized)

    # 4. Fire and forget
    _dispatch_safely(dispatch, job_id)
    return job_id


def enqueue_diagnostic(
    payload: Mapping[str, Any] | None,
    *,
    dispatch: Dispatch = no_dispatch,
    store: JobStore | None = None,
) -> str:
    """Enqueue a ``test`` job under the diagnostic class, without ownership checks."""
    store = store or get_job_store()
    member, normalized = validate_payload(AnalysisKind.TEST, payload)
    job_id = store.create_job(DIAGNOSTIC_CLASS_ID, member.value, normalized)
    _dispatch_safely(dispatch, job_id)
    return job_id


__all__ = [
    "DIAGNOSTIC_CLASS_ID",
    "Dispatch",
    "enqueue_analysis",
    "enqueue_diagnostic",
    "no_dispatch",
]
