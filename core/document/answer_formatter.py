"""
Flattens a ResultMap into the placeholder map consumed by the document
template: one string per ``{unitCode}_{questionKey}`` plus ``Student_Name``.

The master schema is the source of truth for which placeholders exist;
questions without a result are simply left out so the template keeps its
own placeholder text.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional

from core.generation.enumerator import question_keys
from core.generation.models import QuestionMode, StudentProfile


STUDENT_NAME_KEY = "Student_Name"

_STUDENT_NAME_RE = re.compile(r"\(student name\)", re.IGNORECASE)
_FIRST_NAME_RE = re.compile(r"\{firstName\}", re.IGNORECASE)


def personalize(text: str, student: StudentProfile) -> str:
    """Replace name and pronoun placeholders left in generated text.

    "(student name)" takes the full name and "{firstName}" the first name.
    Pronoun placeholders always resolve; unknown gender gives they/them/their.
    """
    text = _STUDENT_NAME_RE.sub(lambda _: student.full_name, text)
    text = _FIRST_NAME_RE.sub(lambda _: student.first_name, text)
    pronouns = student.pronouns
    return (
        text.replace("{PRONOUN_SUBJECT}", pronouns.subject)
        .replace("{PRONOUN_OBJECT}", pronouns.object)
        .replace("{PRONOUN_POSSESSIVE}", pronouns.possessive)
    )


def _format_criteria(result: Mapping[str, Any], student: StudentProfile) -> Optional[str]:
    evaluation = result.get("evaluation")
    if not isinstance(evaluation, Mapping):
        return None

    lines = []
    for key, benchmark in evaluation.items():
        benchmark = benchmark if isinstance(benchmark, Mapping) else {}
        question = benchmark.get("question") or ""
        performance = personalize(benchmark.get("performance_observed") or "N/A", student)
        action = personalize(benchmark.get("example_action") or "N/A", student)
        lines.append(f"{key}. {question}\n\n")
        lines.append(f"Performance to Observe: {performance}\n")
        lines.append(f"Example Action: {action}\n\n")

    conclusion = personalize(result.get("conclusion") or "N/A", student)
    lines.append(f"Conclusion\n{conclusion}")
    return "".join(lines)


def _format_benchmark(result: Mapping[str, Any], student: StudentProfile) -> Optional[str]:
    answer = result.get("generatedAnswer")
    if not answer:
        return None
    return personalize(str(answer), student)


def format_answers(
    answers: Mapping[str, Any],
    student_name: str,
    master_schema: Mapping[str, Any],
    mode: QuestionMode,
    gender: Optional[str] = None,
) -> Dict[str, str]:
    """Build the flat ``{unitCode}_{questionKey} -> text`` template data."""
    student = StudentProfile.from_request(student_name, gender)
    formatter = _format_criteria if mode is QuestionMode.CRITERIA else _format_benchmark

    data: Dict[str, str] = {}
    for unit_code, unit_data in master_schema.items():
        if not isinstance(unit_data, Mapping):
            continue
        unit_answers = answers.get(unit_code)
        if not isinstance(unit_answers, Mapping):
            continue
        for question_key in question_keys(unit_data):
            result = unit_answers.get(question_key)
            if not isinstance(result, Mapping):
                continue
            text = formatter(result, student)
            if text is not None:
                data[f"{unit_code}_{question_key}"] = text

    data[STUDENT_NAME_KEY] = student_name
    return data
