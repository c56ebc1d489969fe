# tests/conftest.py
"""
Shared fixtures for the ClassLens test suite.

Every test runs against a fresh in-memory SQLite database: the process-wide
engine and the JobStore singleton are swapped for the duration of the test,
so the API, the worker and the repositories all see the same isolated data.
"""

from __future__ import annotations

import os

# Configure the environment before any `classlens` module reads settings.
os.environ["CLASSLENS_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CLASSLENS_SIMULATED_DELAY_SECONDS"] = "0"
os.environ["CLASSLENS_EMBEDDED_WORKER"] = "false"
os.environ.pop("GEMINI_API_KEY", None)
os.environ.pop("OPENAI_API_KEY", None)

from collections.abc import Generator, Mapping, Sequence  # noqa: E402
from datetime import UTC, date, datetime  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from classlens.api.job_store import JobStore  # noqa: E402
from classlens.classroom import (  # noqa: E402
    ClassRecord,
    ClassroomRepository,
    DailyRecord,
    Relationship,
    Student,
    Survey,
    SurveyAnswer,
)
from classlens.db import init_db, make_engine, session_scope, set_engine  # noqa: E402
from classlens.llm.models import ModelConfig, get_model  # noqa: E402

OWNER_ID = "teacher-1"
OTHER_USER_ID = "teacher-2"
CLASS_ID = "class-1"


class FakeLLM:
    """Stand-in for LLMClient that records prompts and returns canned text."""

    def __init__(self, reply: str = "# Report\n\nAll good.") -> None:
        self.reply = reply
        self.calls: list[list[Mapping[str, str]]] = []

    def ensure_configured(self, model: str | None = None) -> ModelConfig:
        return get_model(model or "flash")

    def generate(self, messages: Sequence[Mapping[str, str]], **_: Any) -> str:
        self.calls.append(list(messages))
        return self.reply


@pytest.fixture(autouse=True)  # type: ignore[misc]
def engine() -> Generator[Engine, None, None]:
    """Isolated in-memory database wired into the process-wide singletons."""
    eng = make_engine("sqlite://")
    set_engine(eng)
    init_db(eng)
    JobStore._instance = JobStore(eng)
    yield eng
    JobStore._instance = None
    set_engine(None)
    eng.dispose()


@pytest.fixture  # type: ignore[misc]
def store(engine: Engine) -> JobStore:
    return JobStore(engine)


@pytest.fixture  # type: ignore[misc]
def classroom(engine: Engine) -> ClassroomRepository:
    return ClassroomRepository(engine)


@pytest.fixture  # type: ignore[misc]
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture  # type: ignore[misc]
def seeded_class(engine: Engine) -> str:
    """A class owned by OWNER_ID with a roster, relations, a survey and notes."""
    with session_scope(engine) as session:
        session.add(
            ClassRecord(
                id=CLASS_ID,
                owner_id=OWNER_ID,
                name="3-2",
                school_name="Hanbit Elementary",
                grade="3",
                class_number="2",
            )
        )
        session.add(Student(id="s1", class_id=CLASS_ID, name="Minji", gender="F"))
        session.add(Student(id="s2", class_id=CLASS_ID, name="Jisoo", gender="F"))
        session.add(Student(id="s3", class_id=CLASS_ID, name="Hyun", gender="M"))
        session.add(
            Relationship(
                class_id=CLASS_ID,
                from_student_id="s1",
                to_student_id="s2",
                relation_type="friendly",
            )
        )
        session.add(
            Relationship(
                class_id=CLASS_ID,
                from_student_id="s3",
                to_student_id="s1",
                relation_type="awkward",
            )
        )
        session.add(
            Survey(
                id="survey-1",
                class_id=CLASS_ID,
                name="March survey",
                description="First survey of the year",
                created_at=datetime(2025, 3, 10, 9, 0, tzinfo=UTC),
            )
        )
        session.add(
            Relationship(
                class_id=CLASS_ID,
                from_student_id="s2",
                to_student_id="s3",
                relation_type="wanna_be_close",
                survey_id="survey-1",
            )
        )
        session.add(
            SurveyAnswer(
                survey_id="survey-1",
                student_id="s2",
                question="Who do you sit with at lunch?",
                answer="Minji",
            )
        )
        session.add(
            DailyRecord(class_id=CLASS_ID, record_date=date(2025, 3, 11), content="Quiet morning.")
        )
    return CLASS_ID
