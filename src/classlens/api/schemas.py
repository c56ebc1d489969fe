"""
Request / response models of the HTTP API.

All wire models use camelCase field names (``jobId``, ``createdAt``) and
accept snake_case on input as well. Timestamps are rendered as ISO-8601 with
an explicit UTC offset.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from classlens.db import AnalysisJob, JobStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class AnalysisRequest(_CamelModel):
    """Body of ``POST /classes/{class_id}/analysis/queue``."""

    kind: str = Field(..., min_length=1, examples=["basic"])
    payload: dict[str, Any] = Field(default_factory=dict)


class EnqueueResponse(_CamelModel):
    job_id: str
    status: str = "started"
    message: str = "Analysis started in the background."


class DiagnosticRequest(_CamelModel):
    """Body of ``POST /diagnostics/background``; omitted fields use the defaults."""

    delay: int | None = None
    should_fail: bool | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class JobSnapshot(_CamelModel):
    """Public view of one job.

    ``result`` is only set for completed jobs and ``error`` only for failed
    ones; ``None`` fields are dropped from responses.
    """

    job_id: str
    status: JobStatus
    kind: str
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: Any | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_job(cls, job: AnalysisJob) -> JobSnapshot:
        status = JobStatus(job.status)
        return cls(
            job_id=job.id,
            status=status,
            kind=job.analysis_type,
            created_at=_as_utc(job.created_at) or job.created_at,
            started_at=_as_utc(job.started_at),
            completed_at=_as_utc(job.completed_at),
            result=job.result if status is JobStatus.COMPLETED else None,
            error=job.error_message if status is JobStatus.FAILED else None,
        )


class ErrorBody(BaseModel):
    error: str
    detail: Any


class HealthResponse(BaseModel):
    status: str
    environment: str
    version: str


__all__ = [
    "AnalysisRequest",
    "DiagnosticRequest",
    "EnqueueResponse",
    "ErrorBody",
    "HealthResponse",
    "JobSnapshot",
    "JobStatus",
]
