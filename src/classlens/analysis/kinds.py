"""
Analysis kinds and their request payload rules.

Every job carries a ``kind`` and a ``request_data`` mapping. The mapping is
validated here, at enqueue time, so a malformed request never becomes a job.
The normalized payload (camelCase keys, defaults filled in) is what gets
persisted and what the runner later re-parses.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from classlens.core.errors import ValidationError

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class AnalysisKind(str, Enum):
    BASIC = "basic"
    OVERVIEW = "overview"
    STUDENTS = "students"
    SCHOOL_RECORD = "school_record"
    ANNOUNCEMENT = "announcement"
    SAFETY_NOTICE = "safety_notice"
    TEST = "test"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS: dict[AnalysisKind, str] = {
    AnalysisKind.BASIC: "basic relationship analysis",
    AnalysisKind.OVERVIEW: "classroom overview",
    AnalysisKind.STUDENTS: "student-group analysis",
    AnalysisKind.SCHOOL_RECORD: "school-record remarks",
    AnalysisKind.ANNOUNCEMENT: "journal announcement",
    AnalysisKind.SAFETY_NOTICE: "safety notice",
    AnalysisKind.TEST: "diagnostic job",
}


# --------------------------------------------------------------------------- #
# Payload models
# --------------------------------------------------------------------------- #


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class EmptyPayload(_Payload):
    """Kinds that read everything they need from the classroom records."""


class StudentGroupPayload(_Payload):
    student_ids: list[NonEmptyStr] = Field(alias="studentIds", min_length=1)


class SchoolRecordPayload(_Payload):
    student_ids: list[NonEmptyStr] | None = Field(default=None, alias="studentIds")


class AnnouncementPayload(_Payload):
    keywords: NonEmptyStr
    details: NonEmptyStr
    class_name: NonEmptyStr = Field(alias="className")
    date: NonEmptyStr


class SafetyNoticePayload(_Payload):
    category: NonEmptyStr
    content: NonEmptyStr


class DiagnosticPayload(_Payload):
    delay: int = Field(default=5000, ge=0, le=60000, description="Sleep in milliseconds.")
    should_fail: bool = Field(default=False, alias="shouldFail")


PAYLOAD_MODELS: dict[AnalysisKind, type[_Payload]] = {
    AnalysisKind.BASIC: EmptyPayload,
    AnalysisKind.OVERVIEW: EmptyPayload,
    AnalysisKind.STUDENTS: StudentGroupPayload,
    AnalysisKind.SCHOOL_RECORD: SchoolRecordPayload,
    AnalysisKind.ANNOUNCEMENT: AnnouncementPayload,
    AnalysisKind.SAFETY_NOTICE: SafetyNoticePayload,
    AnalysisKind.TEST: DiagnosticPayload,
}


def parse_kind(kind: str | AnalysisKind) -> AnalysisKind:
    """Return the enum member for ``kind`` or raise :class:`ValidationError`."""
    try:
        return AnalysisKind(kind)
    except ValueError:
        known = ", ".join(k.value for k in AnalysisKind)
        raise ValidationError(
            f"Unknown analysis kind '{kind}'. Expected one of: {known}."
        ) from None


def _describe(exc: pydantic.ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ())) or "payload"
        parts.append(f"{loc}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


def parse_payload(kind: str | AnalysisKind, payload: Mapping[str, Any] | None) -> _Payload:
    """Validate ``payload`` against the model registered for ``kind``."""
    member = parse_kind(kind)
    model = PAYLOAD_MODELS[member]
    if payload is not None and not isinstance(payload, Mapping):
        raise ValidationError(f"Payload for '{member.value}' must be an object.")
    try:
        return model.model_validate(dict(payload or {}))
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid payload for '{member.value}': {_describe(exc)}") from exc


def validate_payload(
    kind: str | AnalysisKind, payload: Mapping[str, Any] | None
) -> tuple[AnalysisKind, dict[str, Any]]:
    """Validate and normalize a request.

    Returns
    -------
    tuple
        ``(kind, normalized_payload)`` where the payload is JSON-ready with
        camelCase keys and defaults filled in.

    Raises
    ------
    ValidationError
        On an unknown kind or a payload that does not fit the kind.
    """
    member = parse_kind(kind)
    model = parse_payload(member, payload)
    return member, model.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = [
    "PAYLOAD_MODELS",
    "AnalysisKind",
    "AnnouncementPayload",
    "EmptyPayload",
    "SafetyNoticePayload",
    "SchoolRecordPayload",
    "StudentGroupPayload",
    "DiagnosticPayload",
    "parse_kind",
    "parse_payload",
    "validate_payload",
]
