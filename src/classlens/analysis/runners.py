"""
Analysis runners: one callable per kind, looked up by the worker.

A runner receives a :class:`RunnerContext` and returns the raw result. The
worker normalizes that value with :func:`normalize_result` before persisting
it. Runners that call the LLM check credentials before touching any data so
a misconfigured deployment fails fast with a clear message.
"""

from __future__ import annotations

import json
import random
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, cast

from pydantic import BaseModel

from classlens.classroom import ClassroomRepository
from classlens.core.errors import WorkerFailure
from classlens.core.settings import get_logger
from classlens.llm.client import LLMClient

from . import prompts
from .context import gather_context
from .kinds import (
    AnalysisKind,
    AnnouncementPayload,
    DiagnosticPayload,
    SafetyNoticePayload,
    SchoolRecordPayload,
    StudentGroupPayload,
    parse_payload,
)

logger = get_logger("classlens.analysis")

#: Message recorded on a diagnostic job asked to fail.
INTENTIONAL_FAILURE_MESSAGE = "Intentional failure for diagnostics"


@dataclass(slots=True)
class RunnerContext:
    job_id: str
    class_id: str
    kind: AnalysisKind
    payload: Mapping[str, Any]
    classroom: ClassroomRepository
    llm: LLMClient
    sleep: Callable[[float], None] = field(default=time.sleep)


Runner = Callable[[RunnerContext], Any]


# --------------------------------------------------------------------------- #
# LLM-backed runners
# --------------------------------------------------------------------------- #


def run_basic(ctx: RunnerContext) -> str:
    ctx.llm.ensure_configured()
    data = gather_context(ctx.classroom, ctx.class_id)
    return ctx.llm.generate(prompts.build_basic_messages(data))


def run_overview(ctx: RunnerContext) -> str:
    ctx.llm.ensure_configured()
    data = gather_context(ctx.classroom, ctx.class_id)
    return ctx.llm.generate(prompts.build_overview_messages(data))


def run_student_group(ctx: RunnerContext) -> str:
    payload = cast(StudentGroupPayload, parse_payload(ctx.kind, ctx.payload))
    ctx.llm.ensure_configured()
    data = gather_context(ctx.classroom, ctx.class_id, student_ids=payload.student_ids)
    return ctx.llm.generate(prompts.build_student_group_messages(data, payload.student_ids))


def run_school_record(ctx: RunnerContext) -> str:
    payload = cast(SchoolRecordPayload, parse_payload(ctx.kind, ctx.payload))
    ctx.llm.ensure_configured()
    data = gather_context(ctx.classroom, ctx.class_id, student_ids=payload.student_ids)
    return ctx.llm.generate(prompts.build_school_record_messages(data))


def run_announcement(ctx: RunnerContext) -> dict[str, str]:
    payload = cast(AnnouncementPayload, parse_payload(ctx.kind, ctx.payload))
    ctx.llm.ensure_configured()
    messages = prompts.build_announcement_messages(
        keywords=payload.keywords,
        details=payload.details,
        class_name=payload.class_name,
        date=payload.date,
    )
    return {"content": ctx.llm.generate(messages)}


def run_safety_notice(ctx: RunnerContext) -> dict[str, str]:
    payload = cast(SafetyNoticePayload, parse_payload(ctx.kind, ctx.payload))
    ctx.llm.ensure_configured()
    messages = prompts.build_safety_notice_messages(
        category=payload.category, content=payload.content
    )
    return {"content": ctx.llm.generate(messages)}


# --------------------------------------------------------------------------- #
# Diagnostics
# --------------------------------------------------------------------------- #


def run_diagnostic(ctx: RunnerContext) -> dict[str, Any]:
    """Sleep for ``delay`` ms, then succeed or fail on request."""
    payload = cast(DiagnosticPayload, parse_payload(ctx.kind, ctx.payload))

    logger.info("Diagnostic job %s sleeping %d ms", ctx.job_id, payload.delay)
    ctx.sleep(payload.delay / 1000.0)

    if payload.should_fail:
        raise WorkerFailure(INTENTIONAL_FAILURE_MESSAGE)

    return {
        "message": "Test completed",
        "timestamp": datetime.now(UTC).isoformat(),
        "delay": payload.delay,
        "randomNumber": random.random(),
    }


RUNNERS: dict[AnalysisKind, Runner] = {
    AnalysisKind.BASIC: run_basic,
    AnalysisKind.OVERVIEW: run_overview,
    AnalysisKind.STUDENTS: run_student_group,
    AnalysisKind.SCHOOL_RECORD: run_school_record,
    AnalysisKind.ANNOUNCEMENT: run_announcement,
    AnalysisKind.SAFETY_NOTICE: run_safety_notice,
    AnalysisKind.TEST: run_diagnostic,
}


def get_runner(kind: str) -> Runner:
    """Return the runner registered for ``kind``.

    Raises
    ------
    WorkerFailure
        If no runner handles ``kind``.
    """
    try:
        return RUNNERS[AnalysisKind(kind)]
    except (ValueError, KeyError):
        raise WorkerFailure(f"Unknown analysis kind: {kind}") from None


def normalize_result(value: Any) -> Any:
    """Turn a runner's return value into something the JSON column accepts.

    JSON-serializable mappings and lists are kept as-is, pydantic models are
    dumped, strings are kept, anything else is stringified.

    Raises
    ------
    WorkerFailure
        If the runner returned ``None``.
    """
    if value is None:
        raise WorkerFailure("Analysis produced no result")
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, str):
        return value
    if isinstance(value, (Mapping, list)):
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            return str(value)
        return dict(value) if isinstance(value, Mapping) else value
    return str(value)


__all__ = [
    "INTENTIONAL_FAILURE_MESSAGE",
    "RUNNERS",
    "Runner",
    "RunnerContext",
    "get_runner",
    "normalize_result",
    "run_diagnostic",
]
