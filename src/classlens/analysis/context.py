"""Gather the classroom data an analysis prompt is built from.

The class record is the only required read: without it there is nothing to
analyse and the job fails. Every other read is best-effort; a failing query
is logged and replaced by an empty list so that, for example, a broken survey
table still yields a relationship report.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from classlens.classroom import (
    ClassRecord,
    ClassroomRepository,
    DailyRecord,
    Relationship,
    Student,
    Survey,
    SurveyAnswer,
)
from classlens.core.errors import NotFoundError
from classlens.core.settings import get_logger

logger = get_logger("classlens.analysis")

T = TypeVar("T")


@dataclass(slots=True)
class ClassroomContext:
    class_record: ClassRecord
    students: list[Student] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)
    surveys: list[Survey] = field(default_factory=list)
    answers: list[SurveyAnswer] = field(default_factory=list)
    daily_records: list[DailyRecord] = field(default_factory=list)

    def student_name(self, student_id: str) -> str:
        for student in self.students:
            if student.id == student_id:
                return student.name
        return student_id

    def _relations(self, rels: Sequence[Relationship]) -> list[dict[str, str]]:
        return [
            {
                "from": self.student_name(r.from_student_id),
                "to": self.student_name(r.to_student_id),
                "type": r.relation_type,
            }
            for r in rels
        ]

    def to_prompt_data(self) -> dict[str, Any]:
        """Shape the records into the JSON document embedded in prompts.

        Student ids are replaced by names; survey-specific relationships and
        answers are grouped under their survey.
        """
        cls = self.class_record
        base = [r for r in self.relationships if r.survey_id is None]
        survey_details = []
        for survey in self.surveys:
            survey_details.append(
                {
                    "survey": {
                        "id": survey.id,
                        "name": survey.name,
                        "description": survey.description,
                        "createdAt": survey.created_at.isoformat(),
                    },
                    "relationships": self._relations(
                        [r for r in self.relationships if r.survey_id == survey.id]
                    ),
                    "answers": [
                        {
                            "student": self.student_name(a.student_id),
                            "question": a.question,
                            "answer": a.answer,
                        }
                        for a in self.answers
                        if a.survey_id == survey.id
                    ],
                }
            )

        return {
            "class": {
                "id": cls.id,
                "name": cls.name,
                "schoolName": cls.school_name,
                "grade": cls.grade,
                "classNumber": cls.class_number,
            },
            "students": [{"id": s.id, "name": s.name, "gender": s.gender} for s in self.students],
            "baseRelationships": self._relations(base),
            "surveyDetails": survey_details,
            "dailyRecords": [
                {"date": d.record_date.isoformat(), "content": d.content}
                for d in self.daily_records
            ],
        }


def _best_effort(label: str, class_id: str, read: Callable[[], list[T]]) -> list[T]:
    try:
        return read()
    except Exception as exc:
        logger.warning("Could not read %s for class %s: %s", label, class_id, exc)
        return []


def gather_context(
    repo: ClassroomRepository,
    class_id: str,
    *,
    student_ids: Sequence[str] | None = None,
) -> ClassroomContext:
    """Load the class and its auxiliary records.

    Parameters
    ----------
    student_ids:
        When given, the roster is narrowed to these students and only
        relationships among them are kept.

    Raises
    ------
    NotFoundError
        If the class record does not exist.
    """
    record = repo.get_class(class_id)
    if record is None:
        raise NotFoundError(f"Class {class_id} not found")

    students = _best_effort("students", class_id, lambda: repo.list_students(class_id))
    relationships = _best_effort(
        "relationships", class_id, lambda: repo.list_relationships(class_id)
    )
    surveys = _best_effort("surveys", class_id, lambda: repo.list_surveys(class_id))
    answers = _best_effort(
        "survey answers", class_id, lambda: repo.list_survey_answers([s.id for s in surveys])
    )
    daily_records = _best_effort(
        "daily records", class_id, lambda: repo.list_daily_records(class_id)
    )

    if student_ids:
        wanted = set(student_ids)
        students = [s for s in students if s.id in wanted]
        relationships = [
            r for r in relationships if r.from_student_id in wanted and r.to_student_id in wanted
        ]
        answers = [a for a in answers if a.student_id in wanted]

    return ClassroomContext(
        class_record=record,
        students=students,
        relationships=relationships,
        surveys=surveys,
        answers=answers,
        daily_records=daily_records,
    )


__all__ = ["ClassroomContext", "gather_context"]
