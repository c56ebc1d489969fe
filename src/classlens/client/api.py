"""
Async HTTP client for the ClassLens analysis API.

The client is bound to one class and one caller identity, mirroring how the
web frontend talks to the API from a class page. Every failure to obtain a
usable response (network error, non-2xx status, undecodable body) is raised
as :class:`~classlens.core.errors.TransportFailure`.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import TracebackType
from typing import Any

import httpx
import pydantic

from classlens.api.schemas import JobSnapshot
from classlens.core.errors import TransportFailure
from classlens.core.settings import get_logger

logger = get_logger("classlens.client")


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, Mapping):
        detail = body.get("detail") or body.get("error")
        if detail:
            return str(detail)
    return response.reason_phrase


class AnalysisClient:
    """Talk to the queue and status endpoints of one class.

    Parameters
    ----------
    base_url:
        API root, e.g. ``http://localhost:8000``.
    class_id:
        Owner context of every job submitted through this client.
    user_id:
        Sent as ``X-User-Id``; the API expects the upstream auth layer to set it.
    transport:
        Optional httpx transport (tests pass an ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        class_id: str,
        user_id: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.class_id = class_id
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"X-User-Id": user_id},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> AnalysisClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #
    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportFailure(f"Request to {path} failed: {exc}") from exc

        if response.is_error:
            raise TransportFailure(_error_detail(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise TransportFailure(
                f"Response from {path} is not valid JSON", status_code=response.status_code
            ) from exc

    async def start_analysis(self, kind: str, payload: Mapping[str, Any] | None = None) -> str:
        """Submit an analysis job and return its id."""
        body = await self._request(
            "POST",
            f"/classes/{self.class_id}/analysis/queue",
            json={"kind": kind, "payload": dict(payload or {})},
        )
        job_id = body.get("jobId") if isinstance(body, Mapping) else None
        if not isinstance(job_id, str) or not job_id:
            raise TransportFailure("Queue response did not include a job id")
        logger.debug("Submitted %s job %s", kind, job_id)
        return job_id

    async def get_status(self, job_id: str) -> JobSnapshot:
        """Fetch the current snapshot of a job."""
        body = await self._request("GET", f"/classes/{self.class_id}/analysis/status/{job_id}")
        try:
            return JobSnapshot.model_validate(body)
        except pydantic.ValidationError as exc:
            raise TransportFailure(f"Unexpected status payload for job {job_id}") from exc


__all__ = ["AnalysisClient"]
