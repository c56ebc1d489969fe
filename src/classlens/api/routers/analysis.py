"""
API Routes for classroom analysis jobs.

Endpoints
---------
- `POST /classes/{class_id}/analysis/queue`: Submit an analysis (async).
- `GET /classes/{class_id}/analysis/status/{job_id}`: Poll status and result.

Design Decisions
----------------
- **Asynchronous Handoff**: The POST endpoint returns 202 Accepted as soon as
  the job is persisted; the worker runs after the response is sent.
- **Scoped Lookup**: A job is only visible through the class it was created
  for, and only to the owner of that class. Anything else is a 404, so the
  endpoint does not reveal which job ids exist.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from classlens.api.deps import get_classroom, get_current_user_id, get_dispatch, get_store
from classlens.api.enqueue import Dispatch, enqueue_analysis
from classlens.api.job_store import JobStore
from classlens.api.schemas import AnalysisRequest, EnqueueResponse, JobSnapshot
from classlens.classroom import ClassroomRepository
from classlens.core.errors import NotFoundError

router = APIRouter(prefix="/classes/{class_id}/analysis", tags=["Analysis"])


def read_job_status(
    *,
    store: JobStore,
    classroom: ClassroomRepository,
    user_id: str,
    class_id: str,
    job_id: str,
) -> JobSnapshot:
    """Return the snapshot of a job the caller is allowed to see.

    Raises
    ------
    NotFoundError
        If the caller does not own ``class_id`` or the job is not part of it.
    """
    if classroom.owner_of(class_id) != user_id:
        raise NotFoundError(f"Job {job_id} not found")
    job = store.get_job_for_class(job_id, class_id)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found")
    return JobSnapshot.from_job(job)


@router.post(
    "/queue",
    response_model=EnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a new analysis job",
)
def queue_analysis(
    class_id: str,
    request: AnalysisRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    store: Annotated[JobStore, Depends(get_store)],
    classroom: Annotated[ClassroomRepository, Depends(get_classroom)],
    dispatch: Annotated[Dispatch, Depends(get_dispatch)],
) -> EnqueueResponse:
    """
    Create a PENDING job and schedule it.

    Client Workflow
    ---------------
    1. Receive `jobId` from this response.
    2. Poll `GET .../analysis/status/{jobId}` until the status is terminal.
    """
    job_id = enqueue_analysis(
        user_id=user_id,
        class_id=class_id,
        kind=request.kind,
        payload=request.payload,
        dispatch=dispatch,
        store=store,
        classroom=classroom,
    )
    return EnqueueResponse(job_id=job_id)


@router.get(
    "/status/{job_id}",
    response_model=JobSnapshot,
    response_model_exclude_none=True,
    summary="Get job status and result",
)
def get_analysis_status(
    class_id: str,
    job_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    store: Annotated[JobStore, Depends(get_store)],
    classroom: Annotated[ClassroomRepository, Depends(get_classroom)],
) -> JobSnapshot:
    return read_job_status(
        store=store,
        classroom=classroom,
        user_id=user_id,
        class_id=class_id,
        job_id=job_id,
    )


__all__ = ["read_job_status", "router"]
