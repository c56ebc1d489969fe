"""
Classroom read gateway.

The analysis worker reads classroom records but never writes them. Only the
columns the prompts need are modelled here; the tables are owned by the wider
classroom application.

Tables
------
- ``classes``        : owner and naming information of a class.
- ``students``       : roster of a class.
- ``relationships``  : directed peer relations (``survey_id`` is null for the
                       base relationship map, set for survey-specific maps).
- ``surveys`` / ``survey_answers`` : free-form survey questions and answers.
- ``daily_records``  : teacher's daily notes, newest first.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from enum import Enum

from sqlalchemy.engine import Engine
from sqlmodel import Field, SQLModel, select

from classlens.db import session_scope, utc_column, utcnow

#: How many daily records the worker feeds into a prompt.
DAILY_RECORD_LIMIT = 50


class RelationType(str, Enum):
    FRIENDLY = "friendly"
    WANNA_BE_CLOSE = "wanna_be_close"
    NEUTRAL = "neutral"
    AWKWARD = "awkward"


class ClassRecord(SQLModel, table=True):
    __tablename__ = "classes"

    id: str = Field(primary_key=True)
    owner_id: str = Field(index=True)
    name: str
    school_name: str | None = None
    grade: str | None = None
    class_number: str | None = None


class Student(SQLModel, table=True):
    __tablename__ = "students"

    id: str = Field(primary_key=True)
    class_id: str = Field(index=True)
    name: str
    gender: str | None = None


class Relationship(SQLModel, table=True):
    __tablename__ = "relationships"

    id: int | None = Field(default=None, primary_key=True)
    class_id: str = Field(index=True)
    from_student_id: str
    to_student_id: str
    relation_type: str = RelationType.NEUTRAL.value
    survey_id: str | None = Field(default=None, index=True)


class Survey(SQLModel, table=True):
    __tablename__ = "surveys"

    id: str = Field(primary_key=True)
    class_id: str = Field(index=True)
    name: str
    description: str | None = None
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))


class SurveyAnswer(SQLModel, table=True):
    __tablename__ = "survey_answers"

    id: int | None = Field(default=None, primary_key=True)
    survey_id: str = Field(index=True)
    student_id: str
    question: str
    answer: str


class DailyRecord(SQLModel, table=True):
    __tablename__ = "daily_records"

    id: int | None = Field(default=None, primary_key=True)
    class_id: str = Field(index=True)
    record_date: date
    content: str


class ClassroomRepository:
    """Read-only access to classroom records for one engine.

    Every method opens its own short session so a failure in one read does
    not poison the others; the worker relies on that to treat auxiliary reads
    as best-effort.
    """

    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    def get_class(self, class_id: str) -> ClassRecord | None:
        with session_scope(self._engine) as session:
            return session.get(ClassRecord, class_id)

    def owner_of(self, class_id: str) -> str | None:
        """Return the owning user id, or None when the class does not exist."""
        record = self.get_class(class_id)
        return record.owner_id if record else None

    def list_students(self, class_id: str) -> list[Student]:
        with session_scope(self._engine) as session:
            stmt = select(Student).where(Student.class_id == class_id).order_by(Student.name)
            return list(session.exec(stmt).all())

    def list_relationships(self, class_id: str) -> list[Relationship]:
        with session_scope(self._engine) as session:
            stmt = select(Relationship).where(Relationship.class_id == class_id)
            return list(session.exec(stmt).all())

    def list_surveys(self, class_id: str) -> list[Survey]:
        with session_scope(self._engine) as session:
            stmt = (
                select(Survey)
                .where(Survey.class_id == class_id)
                .order_by(Survey.created_at.desc())  # type: ignore[attr-defined]
            )
            return list(session.exec(stmt).all())

    def list_survey_answers(self, survey_ids: Sequence[str]) -> list[SurveyAnswer]:
        if not survey_ids:
            return []
        with session_scope(self._engine) as session:
            stmt = select(SurveyAnswer).where(
                SurveyAnswer.survey_id.in_(list(survey_ids))  # type: ignore[attr-defined]
            )
            return list(session.exec(stmt).all())

    def list_daily_records(
        self, class_id: str, limit: int = DAILY_RECORD_LIMIT
    ) -> list[DailyRecord]:
        """Return the most recent daily records, newest first."""
        with session_scope(self._engine) as session:
            stmt = (
                select(DailyRecord)
                .where(DailyRecord.class_id == class_id)
                .order_by(DailyRecord.record_date.desc())  # type: ignore[attr-defined]
                .limit(limit)
            )
            return list(session.exec(stmt).all())


__all__ = [
    "DAILY_RECORD_LIMIT",
    "ClassRecord",
    "ClassroomRepository",
    "DailyRecord",
    "RelationType",
    "Relationship",
    "Student",
    "Survey",
    "SurveyAnswer",
]
