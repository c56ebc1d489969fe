"""Prompt builders for each analysis kind.

Each builder returns chat messages in the OpenAI / Gemini style:
``[{"role": "system", ...}, {"role": "user", ...}]``. Reports are written for
Korean elementary-school teachers, so every system prompt asks for Korean
Markdown output.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from .context import ClassroomContext

ChatMessages = list[Mapping[str, str]]

#: Relation codes as stored, mapped to the wording teachers and students use.
RELATION_LABELS: dict[str, str] = {
    "friendly": "친해",
    "wanna_be_close": "친해질래",
    "neutral": "괜찮아",
    "awkward": "불편해",
}

_RELATION_RULES = "\n".join(
    f'- "{code}" must be written as "{label}"' for code, label in RELATION_LABELS.items()
)

_MARKDOWN_RULES = """Formatting:
- Write the whole report in Korean, structured as Markdown.
- Use clear headers (#, ##, ###) for every section and blank lines between blocks.
- Write lists with "- ".
- Use **bold** for the key points.
"""

_ANALYST_ROLE = """You are an expert in classroom relationships and child psychology,
grounded in educational, developmental and relational psychology.

Relation types in the data are codes. Never print the English codes;
always use the Korean wording:
""" + _RELATION_RULES


def _data_block(data: Mapping[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


def _report_title_hint() -> str:
    return (
        f"Title the report with the current year ({datetime.now(UTC).year}), the school "
        "name, the grade and the class number taken from the class data."
    )


def build_basic_messages(ctx: ClassroomContext) -> ChatMessages:
    system_content = f"""{_ANALYST_ROLE}

Write a structured relationship and psychology report for the class:

1. Whole-class analysis: atmosphere, strengths, weaknesses, group dynamics.
2. Peer relationships: patterns, key issues, recommended improvements.
3. Social dynamics: leaders and followers, strong ties, isolated students.
4. Survey findings: per-survey highlights and answer trends.
5. Change over time: how relationships evolved between survey dates.
6. Concrete actions for the teacher: short, medium and long term, each
   with purpose, materials, steps, duration and expected effect.

{_report_title_hint()}

{_MARKDOWN_RULES}"""

    user_content = (
        "Analyse the class relationships from the following data:\n"
        f"{_data_block(ctx.to_prompt_data())}"
    )
    return [
        {"role": "system", "content": system_content},
        {"role": "user", "content": user_content},
    ]


def build_overview_messages(ctx: ClassroomContext) -> ChatMessages:
    system_content = f"""{_ANALYST_ROLE}

Write a classroom overview for the teacher:

1. Class profile: size, gender balance, overall climate.
2. Relationship network summary: clusters, bridges, isolated students.
3. Notable events from the daily records and what they suggest.
4. Students who need attention this month, with reasons.
5. A one-week action plan for the teacher.

{_report_title_hint()}

{_MARKDOWN_RULES}"""

    user_content = (
        "Summarise this class from the following data:\n"
        f"{_data_block(ctx.to_prompt_data())}"
    )
    return [
        {"role": "system", "content": system_content},
        {"role": "user", "content": user_content},
    ]


def build_student_group_messages(
    ctx: ClassroomContext, student_ids: Sequence[str]
) -> ChatMessages:
    names = [ctx.student_name(sid) for sid in student_ids]
    system_content = f"""{_ANALYST_ROLE}

Analyse only the selected group of students. For each student give their
position in the group, their relationships with the others, strengths and
concerns. Then describe the group as a whole and suggest activities the
teacher can run with this group.

{_MARKDOWN_RULES}"""

    user_content = (
        f"Selected students: {', '.join(names)}\n\n"
        "Data restricted to the selected students:\n"
        f"{_data_block(ctx.to_prompt_data())}"
    )
    return [
        {"role": "system", "content": system_content},
        {"role": "user", "content": user_content},
    ]


def build_school_record_messages(ctx: ClassroomContext) -> ChatMessages:
    system_content = f"""{_ANALYST_ROLE}

Draft the behavioural remarks section of the school record for every
student in the data. For each student write 3 to 5 sentences in the formal
register used in Korean school records, grounded only in the relationships,
survey answers and daily records provided. Do not invent events.

Output one "## <student name>" section per student.

{_MARKDOWN_RULES}"""

    user_content = (
        "Draft school-record remarks from the following data:\n"
        f"{_data_block(ctx.to_prompt_data())}"
    )
    return [
        {"role": "system", "content": system_content},
        {"role": "user", "content": user_content},
    ]


def build_announcement_messages(
    *, keywords: str, details: str, class_name: str, date: str
) -> ChatMessages:
    system_content = """You write the daily announcement that an elementary-school
teacher sends home to parents.

Guidelines:
- Write in warm, polite Korean addressed to parents.
- Open with a short greeting, then cover every keyword as its own item.
- Keep it under 15 lines; no Markdown headers, plain numbered items only.
- Do not add events or dates that are not in the input.
"""
    user_content = (
        f"Class: {class_name}\n"
        f"Date: {date}\n"
        f"Keywords: {keywords}\n"
        f"Details: {details}\n\n"
        "Write today's announcement."
    )
    return [
        {"role": "system", "content": system_content},
        {"role": "user", "content": user_content},
    ]


def build_safety_notice_messages(*, category: str, content: str) -> ChatMessages:
    system_content = """You write short safety-education notices for elementary-school
students and their parents.

Guidelines:
- Write in simple Korean a ten-year-old can follow.
- Give 3 to 5 concrete rules, each one sentence.
- End with one sentence for parents on how to reinforce the rules at home.
"""
    user_content = f"Category: {category}\nTopic: {content}\n\nWrite the safety notice."
    return [
        {"role": "system", "content": system_content},
        {"role": "user", "content": user_content},
    ]


__all__ = [
    "RELATION_LABELS",
    "ChatMessages",
    "build_announcement_messages",
    "build_basic_messages",
    "build_overview_messages",
    "build_safety_notice_messages",
    "build_school_record_messages",
    "build_student_group_messages",
]
