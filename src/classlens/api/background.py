"""
Background Task Runner for analysis jobs.

This module provides the worker function used both by FastAPI's
`BackgroundTasks` (inline dispatch after the response is sent) and by the
durable worker loop in :mod:`classlens.worker`. It claims the job, runs the
runner registered for its kind, and records the outcome on the job row.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from classlens.analysis.kinds import AnalysisKind
from classlens.analysis.runners import RunnerContext, get_runner, normalize_result
from classlens.api.job_store import JobStore, get_job_store
from classlens.classroom import ClassroomRepository
from classlens.core.errors import ClassLensError
from classlens.core.settings import get_logger, settings
from classlens.llm.client import LLMClient

logger = get_logger("classlens.worker")


def _get_llm_client() -> LLMClient:
    """Return the LLM client used by runners.

    Separated into a tiny helper so tests can monkeypatch this function and
    inject a fake client.
    """
    return LLMClient.from_settings(settings)


def _record_failure(store: JobStore, job_id: str, exc: BaseException) -> None:
    message = str(exc) or type(exc).__name__
    try:
        recorded = store.mark_failed(job_id, message)
    except Exception:
        logger.exception("Could not record failure of job %s", job_id)
        return
    if recorded:
        logger.info("Job %s failed: %s", job_id, message)
    else:
        logger.warning("Job %s was already finalized; failure not recorded", job_id)


def run_analysis_job(
    job_id: str,
    *,
    store: JobStore | None = None,
    classroom: ClassroomRepository | None = None,
    llm: LLMClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Execute one analysis job and update the job store.

    It never raises exceptions to the caller; instead, it captures them and
    marks the job as FAILED. A job that is missing or no longer PENDING is
    left untouched.

    Parameters
    ----------
    job_id:
        The UUID of the job to run.
    store, classroom, llm:
        Collaborators; the process-wide defaults are used when omitted.
    sleep:
        Blocking sleep used for the simulated delay and diagnostic jobs.

    Returns
    -------
    bool
        True when this call claimed the job, whatever the outcome; False
        when nothing was claimed.
    """
    store = store or get_job_store()

    # 1. Claim (PENDING -> PROCESSING); losing the race is not an error
    try:
        job = store.claim(job_id)
    except Exception:
        logger.exception("Could not claim job %s", job_id)
        return False
    if job is None:
        logger.debug("Job %s is missing or already claimed; skipping", job_id)
        return False

    logger.info("Job %s started (kind=%s)", job_id, job.analysis_type)

    try:
        # 2. Optional simulated latency
        if settings.simulated_delay_seconds > 0:
            sleep(settings.simulated_delay_seconds)

        # 3. Resolve the runner; an unknown kind is fatal for this job
        runner = get_runner(job.analysis_type)

        # 4-6. Run: config check, data gathering, model call
        context = RunnerContext(
            job_id=job_id,
            class_id=job.class_id,
            kind=AnalysisKind(job.analysis_type),
            payload=job.request_data or {},
            classroom=classroom or ClassroomRepository(),
            llm=llm or _get_llm_client(),
            sleep=sleep,
        )
        result = normalize_result(runner(context))

        # 7. PROCESSING -> COMPLETED
        if store.mark_completed(job_id, result):
            logger.info("Job %s completed", job_id)
        else:
            logger.warning("Job %s was finalized elsewhere; result discarded", job_id)

    except ClassLensError as exc:
        _record_failure(store, job_id, exc)
    except Exception as exc:
        logger.exception("Job %s raised an unexpected error", job_id)
        _record_failure(store, job_id, exc)
    return True


__all__ = ["run_analysis_job"]
