"""
Durable worker loop for the analysis queue.

Inline dispatch (FastAPI `BackgroundTasks`) runs a job right after the
enqueue response, but it lives and dies with the API process. This loop is
the safety net: it picks up anything left PENDING (server restarts, inline
dispatch disabled, a failed dispatch) and runs the watchdog that force-fails
jobs stuck in PROCESSING.

It can run as its own process (``classlens worker``) or as a daemon thread
inside the API (``CLASSLENS_EMBEDDED_WORKER=true``). Several loops may run at
once; the conditional claim in the job store guarantees a job is processed
at most once.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from classlens.api.background import run_analysis_job
from classlens.api.job_store import JobStore, get_job_store
from classlens.core.settings import get_logger, settings

logger = get_logger("classlens.worker")


class AnalysisWorker:
    """Polls the job store and runs PENDING jobs one at a time."""

    def __init__(
        self,
        store: JobStore | None = None,
        *,
        poll_interval: float | None = None,
        max_processing_seconds: float | None = None,
        run_job: Callable[[str], bool] = run_analysis_job,
    ) -> None:
        self._store = store
        self.poll_interval = poll_interval or settings.worker_poll_interval
        self.max_processing_seconds = max_processing_seconds or settings.max_processing_seconds
        self._run_job = run_job

    @property
    def store(self) -> JobStore:
        return self._store or get_job_store()

    def run_once(self) -> bool:
        """Run the watchdog, then at most one PENDING job.

        Returns
        -------
        bool
            True when a job was claimed and run. A lost race or a failed
            claim returns False so the loop backs off before retrying.
        """
        self.store.fail_stale_jobs(self.max_processing_seconds)

        job_id = self.store.next_pending_id()
        if job_id is None:
            return False

        return bool(self._run_job(job_id))

    def run(self, stop_event: threading.Event) -> None:
        """Main worker loop; returns once ``stop_event`` is set."""
        logger.info(
            "Worker started (poll=%.1fs, max_processing=%.0fs)",
            self.poll_interval,
            self.max_processing_seconds,
        )
        while not stop_event.is_set():
            try:
                worked = self.run_once()
            except Exception:
                logger.exception("Worker iteration failed; backing off")
                worked = False

            if not worked:
                stop_event.wait(self.poll_interval)

        logger.info("Worker stopped")


def start_worker_thread(
    worker: AnalysisWorker | None = None,
) -> tuple[threading.Thread, threading.Event]:
    """Start a worker loop in a daemon thread.

    Returns the thread and the event that stops it.
    """
    worker = worker or AnalysisWorker()
    stop_event = threading.Event()
    thread = threading.Thread(
        target=worker.run,
        args=(stop_event,),
        name="classlens-worker",
        daemon=True,
    )
    thread.start()
    return thread, stop_event


__all__ = ["AnalysisWorker", "start_worker_thread"]
