# tests/test_analysis.py
"""
Tests for the analysis building blocks: request validation, classroom
context loading and result normalization.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest
from conftest import CLASS_ID
from pydantic import BaseModel

from classlens.analysis.context import gather_context
from classlens.analysis.kinds import (
    PAYLOAD_MODELS,
    AnalysisKind,
    parse_kind,
    parse_payload,
    validate_payload,
)
from classlens.analysis.prompts import RELATION_LABELS, build_basic_messages
from classlens.analysis.runners import get_runner, normalize_result
from classlens.classroom import ClassroomRepository, DailyRecord
from classlens.core.errors import NotFoundError, ValidationError, WorkerFailure
from classlens.db import session_scope

# --------------------------------------------------------------------------- #
# Kinds and payloads
# --------------------------------------------------------------------------- #


def test_every_kind_has_a_label_and_runner() -> None:
    for kind in AnalysisKind:
        assert kind.label
        assert callable(get_runner(kind.value))


def test_unknown_kind_lists_known_kinds() -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_kind("horoscope")

    message = str(excinfo.value)
    assert "horoscope" in message
    assert "school_record" in message


def test_unknown_kind_has_no_runner() -> None:
    with pytest.raises(WorkerFailure, match="Unknown analysis kind: horoscope"):
        get_runner("horoscope")


@pytest.mark.parametrize(  # type: ignore[misc]
    ("kind", "payload", "expected"),
    [
        ("basic", None, {}),
        ("overview", {"stray": 1}, {}),
        ("students", {"student_ids": ["s1"]}, {"studentIds": ["s1"]}),
        ("school_record", {}, {}),
        (
            "safety_notice",
            {"category": " fire ", "content": "drill"},
            {"category": "fire", "content": "drill"},
        ),
        ("test", {"delay": 0}, {"delay": 0, "shouldFail": False}),
    ],
)
def test_validate_payload_normalizes(
    kind: str, payload: dict[str, Any] | None, expected: dict[str, Any]
) -> None:
    member, normalized = validate_payload(kind, payload)

    assert member.value == kind
    assert normalized == expected


def test_payload_must_be_an_object() -> None:
    with pytest.raises(ValidationError, match="must be an object"):
        validate_payload("students", ["s1"])  # type: ignore[arg-type]


def test_invalid_payload_names_the_field() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_payload("announcement", {"keywords": "trip", "details": "lunch"})

    assert "className" in str(excinfo.value)


# --------------------------------------------------------------------------- #
# Classroom context
# --------------------------------------------------------------------------- #


def test_prompt_data_uses_names_and_groups_surveys(
    classroom: ClassroomRepository, seeded_class: str
) -> None:
    data = gather_context(classroom, seeded_class).to_prompt_data()

    assert data["class"]["schoolName"] == "Hanbit Elementary"
    assert {s["name"] for s in data["students"]} == {"Minji", "Jisoo", "Hyun"}
    assert {"from": "Minji", "to": "Jisoo", "type": "friendly"} in data["baseRelationships"]
    assert len(data["baseRelationships"]) == 2

    (survey,) = data["surveyDetails"]
    assert survey["survey"]["name"] == "March survey"
    assert survey["relationships"] == [{"from": "Jisoo", "to": "Hyun", "type": "wanna_be_close"}]
    assert survey["answers"][0]["student"] == "Jisoo"
    assert data["dailyRecords"] == [{"date": "2025-03-11", "content": "Quiet morning."}]


def test_student_filter_narrows_roster_and_relations(
    classroom: ClassroomRepository, seeded_class: str
) -> None:
    ctx = gather_context(classroom, seeded_class, student_ids=["s1", "s2"])

    assert {s.id for s in ctx.students} == {"s1", "s2"}
    assert [(r.from_student_id, r.to_student_id) for r in ctx.relationships] == [("s1", "s2")]
    assert [a.student_id for a in ctx.answers] == ["s2"]


def test_missing_class_is_not_found(classroom: ClassroomRepository) -> None:
    with pytest.raises(NotFoundError, match="ghost"):
        gather_context(classroom, "ghost")


def test_failing_auxiliary_read_degrades_to_empty(
    monkeypatch: Any, classroom: ClassroomRepository, seeded_class: str
) -> None:
    def broken(*_: Any, **__: Any) -> Any:
        raise RuntimeError("daily_records is locked")

    monkeypatch.setattr(classroom, "list_daily_records", broken)

    ctx = gather_context(classroom, seeded_class)

    assert ctx.daily_records == []
    assert len(ctx.students) == 3


def test_daily_records_are_newest_first_and_capped(
    classroom: ClassroomRepository, seeded_class: str
) -> None:
    with session_scope() as session:
        for day in range(1, 4):
            session.add(
                DailyRecord(class_id=CLASS_ID, record_date=date(2025, 4, day), content=f"day {day}")
            )

    records = classroom.list_daily_records(CLASS_ID, limit=2)

    assert [r.content for r in records] == ["day 3", "day 2"]


def test_basic_prompt_explains_relation_codes(
    classroom: ClassroomRepository, seeded_class: str
) -> None:
    system, user = build_basic_messages(gather_context(classroom, seeded_class))

    assert system["role"] == "system"
    for label in RELATION_LABELS.values():
        assert label in system["content"]
    assert "Hanbit Elementary" in user["content"]


# --------------------------------------------------------------------------- #
# Result normalization
# --------------------------------------------------------------------------- #


class _Report(BaseModel):
    title: str


def test_normalize_result_variants() -> None:
    assert normalize_result("# Report") == "# Report"
    assert normalize_result({"content": "x"}) == {"content": "x"}
    assert normalize_result([1, 2]) == [1, 2]
    assert normalize_result(_Report(title="t")) == {"title": "t"}
    assert normalize_result(42) == "42"
    assert normalize_result({"when": date(2025, 1, 1)}) == "{'when': datetime.date(2025, 1, 1)}"


def test_normalize_result_rejects_none() -> None:
    with pytest.raises(WorkerFailure, match="no result"):
        normalize_result(None)


@pytest.mark.parametrize(  # type: ignore[misc]
    ("kind", "payload"),
    [
        ("basic", {}),
        ("students", {"studentIds": ["s1"]}),
        ("school_record", {"studentIds": ["s2"]}),
        ("announcement", {"keywords": "k", "details": "d", "className": "3-2", "date": "today"}),
        ("safety_notice", {"category": "fire", "content": "drill"}),
        ("test", {}),
    ],
)
def test_parse_payload_returns_the_registered_model(kind: str, payload: dict[str, Any]) -> None:
    member = parse_kind(kind)
    assert isinstance(parse_payload(kind, payload), PAYLOAD_MODELS[member])
