"""
Diagnostic routes for exercising the background pipeline end to end.

`POST /diagnostics/background` enqueues a ``test`` job that sleeps and then
succeeds or fails on request; `GET /diagnostics/background/{job_id}` reads it
back. Both are hidden (404) when running in production.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from classlens.api.deps import get_dispatch, get_store
from classlens.api.enqueue import DIAGNOSTIC_CLASS_ID, Dispatch, enqueue_diagnostic
from classlens.api.job_store import JobStore
from classlens.api.schemas import DiagnosticRequest, EnqueueResponse, JobSnapshot
from classlens.core.errors import NotFoundError
from classlens.core.settings import settings


def _require_non_prod() -> None:
    if settings.is_prod:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Diagnostics are disabled in production.",
        )


router = APIRouter(
    prefix="/diagnostics",
    tags=["Diagnostics"],
    dependencies=[Depends(_require_non_prod)],
)


@router.post(
    "/background",
    response_model=EnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Enqueue a diagnostic job",
)
def start_diagnostic(
    store: Annotated[JobStore, Depends(get_store)],
    dispatch: Annotated[Dispatch, Depends(get_dispatch)],
    request: DiagnosticRequest | None = None,
) -> EnqueueResponse:
    payload = request.to_payload() if request else {}
    job_id = enqueue_diagnostic(payload, dispatch=dispatch, store=store)
    return EnqueueResponse(job_id=job_id, message="Diagnostic job started in the background.")


@router.get(
    "/background/{job_id}",
    response_model=JobSnapshot,
    response_model_exclude_none=True,
    summary="Get diagnostic job status",
)
def get_diagnostic_status(
    job_id: str,
    store: Annotated[JobStore, Depends(get_store)],
) -> JobSnapshot:
    job = store.get_job_for_class(job_id, DIAGNOSTIC_CLASS_ID)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found")
    return JobSnapshot.from_job(job)


__all__ = ["router"]
