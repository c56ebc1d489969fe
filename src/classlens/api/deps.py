"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from typing import Annotated

from fastapi import BackgroundTasks, Header, HTTPException, status

from classlens.api.background import run_analysis_job
from classlens.api.enqueue import Dispatch, no_dispatch
from classlens.api.job_store import JobStore, get_job_store
from classlens.classroom import ClassroomRepository
from classlens.core.settings import settings


def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> str:
    """Return the caller identity set by the upstream auth layer."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return x_user_id.strip()


def get_store() -> JobStore:
    return get_job_store()


def get_classroom() -> ClassroomRepository:
    return ClassroomRepository()


def get_dispatch(background_tasks: BackgroundTasks) -> Dispatch:
    """Schedule the worker after the response, unless inline dispatch is off."""
    if not settings.inline_dispatch:
        return no_dispatch

    def dispatch(job_id: str) -> None:
        background_tasks.add_task(run_analysis_job, job_id)

    return dispatch


__all__ = ["get_classroom", "get_current_user_id", "get_dispatch", "get_store"]
