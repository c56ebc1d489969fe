"""
Client-side poller for analysis jobs.

`AnalysisPoller.start_polling()` watches one job until it reaches a terminal
state and then reports the outcome through exactly one of two callbacks.

Rules
-----
- One asyncio task per job id. The poller instance owns its handles; starting
  a second poll for the same job id on the same poller cancels the first.
- A tick waits the interval, then performs one status request and awaits it
  before the next tick is scheduled, so requests for one job never overlap.
- ``pending`` / ``processing``: keep polling.
  ``completed``: stop, ``on_complete(result)``.
  ``failed``: stop, ``on_error(error)``.
  Any error while fetching the status: stop, ``on_error(GENERIC_POLL_ERROR)``.
- ``PollHandle.cancel()`` stops polling immediately. A response that arrives
  after cancellation is discarded and no callback runs.

Callbacks may be plain functions or coroutine functions.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from classlens.api.schemas import JobSnapshot
from classlens.core.errors import TransportFailure
from classlens.core.settings import get_logger, settings
from classlens.db import JobStatus

logger = get_logger("classlens.poller")

GENERIC_POLL_ERROR = "Failed to check analysis status."
DEFAULT_FAILURE_MESSAGE = "Analysis failed."

OnComplete = Callable[[Any], Any]
OnError = Callable[[str], Any]


class StatusSource(Protocol):
    async def get_status(self, job_id: str) -> JobSnapshot: ...

    async def start_analysis(
        self, kind: str, payload: Mapping[str, Any] | None = None
    ) -> str: ...


class PollHandle:
    """Handle to one running poll; returned by :meth:`AnalysisPoller.start_polling`."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        self._cancelled = False
        self._task: asyncio.Task[None] | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def cancel(self) -> None:
        """Stop polling; no callback will run after this returns."""
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until polling ended, either by a terminal state or by cancel()."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._cancelled:
                raise


async def _invoke(callback: Callable[[Any], Any], value: Any) -> None:
    outcome = callback(value)
    if inspect.isawaitable(outcome):
        await outcome


class AnalysisPoller:
    """Poll job status for one client.

    Parameters
    ----------
    client:
        Anything with an async ``get_status(job_id)`` (and ``start_analysis``
        for :meth:`run_analysis`), usually an
        :class:`~classlens.client.api.AnalysisClient`.
    interval:
        Seconds between ticks; defaults to ``CLASSLENS_POLL_INTERVAL``.
    """

    def __init__(self, client: StatusSource, *, interval: float | None = None) -> None:
        self._client = client
        self.interval = settings.poll_interval_seconds if interval is None else interval
        self._handles: dict[str, PollHandle] = {}

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def start_polling(self, job_id: str, on_complete: OnComplete, on_error: OnError) -> PollHandle:
        """Begin polling ``job_id``. Must be called from a running event loop."""
        previous = self._handles.get(job_id)
        if previous is not None:
            logger.debug("Restarting poll for job %s", job_id)
            previous.cancel()

        handle = PollHandle(job_id)
        task = asyncio.get_running_loop().create_task(
            self._poll(handle, on_complete, on_error), name=f"poll-{job_id}"
        )
        handle._task = task
        self._handles[job_id] = handle
        task.add_done_callback(lambda _t: self._forget(handle))
        return handle

    def is_polling(self, job_id: str) -> bool:
        handle = self._handles.get(job_id)
        return handle is not None and not handle.done and not handle.cancelled

    def stop_polling(self, job_id: str) -> None:
        handle = self._handles.pop(job_id, None)
        if handle is not None:
            handle.cancel()

    def stop_all(self) -> None:
        for job_id in list(self._handles):
            self.stop_polling(job_id)

    async def run_analysis(
        self,
        kind: str,
        payload: Mapping[str, Any] | None,
        on_complete: OnComplete,
        on_error: OnError,
    ) -> PollHandle | None:
        """Submit an analysis and poll it.

        A failed submission is reported through ``on_error`` and returns None.
        """
        try:
            job_id = await self._client.start_analysis(kind, payload)
        except TransportFailure as exc:
            logger.warning("Could not start %s analysis: %s", kind, exc)
            await _invoke(on_error, str(exc) or GENERIC_POLL_ERROR)
            return None
        return self.start_polling(job_id, on_complete, on_error)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _forget(self, handle: PollHandle) -> None:
        if self._handles.get(handle.job_id) is handle:
            del self._handles[handle.job_id]

    async def _poll(self, handle: PollHandle, on_complete: OnComplete, on_error: OnError) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if handle.cancelled:
                return

            try:
                snapshot = await self._client.get_status(handle.job_id)
            except TransportFailure as exc:
                if handle.cancelled:
                    return
                logger.warning("Status check for job %s failed: %s", handle.job_id, exc)
                await _invoke(on_error, GENERIC_POLL_ERROR)
                return
            except Exception:
                if handle.cancelled:
                    return
                logger.exception("Status check for job %s raised", handle.job_id)
                await _invoke(on_error, GENERIC_POLL_ERROR)
                return

            if handle.cancelled:
                return

            if snapshot.status is JobStatus.COMPLETED:
                await _invoke(on_complete, snapshot.result)
                return
            if snapshot.status is JobStatus.FAILED:
                await _invoke(on_error, snapshot.error or DEFAULT_FAILURE_MESSAGE)
                return


__all__ = [
    "DEFAULT_FAILURE_MESSAGE",
    "GENERIC_POLL_ERROR",
    "AnalysisPoller",
    "PollHandle",
    "StatusSource",
]
