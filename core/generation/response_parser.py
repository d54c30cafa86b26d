"""
Turns raw model text into a QuestionResult.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping

from exceptions.exceptions import ResponseParseError

from .models import CriterionEvaluation, QuestionMode, QuestionResult, WorkItem
from .request_builder import (
    CONCLUSION_FIELD,
    GENERATED_ANSWER_FIELD,
    criteria_for,
    numbered_keys,
)


NO_OBSERVATION = "No observation generated."
NO_EXAMPLE_ACTION = "No example action found."
NO_CONCLUSION = "No conclusion generated."
NO_ANSWER = "No answer generated."


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the span between the first '{' and the last '}' of ``text``.

    Surrounding prose and Markdown fences are ignored.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise ResponseParseError(text)

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise ResponseParseError(text, f"Failed to parse JSON: {e}") from e

    if not isinstance(data, dict):
        raise ResponseParseError(text, "Response JSON is not an object.")
    return data


def _text(data: Mapping[str, Any], key: str, placeholder: str) -> str:
    value = data.get(key)
    if value is None or value == "":
        return placeholder
    return value if isinstance(value, str) else str(value)


def build_question_result(
    item: WorkItem,
    mode: QuestionMode,
    data: Mapping[str, Any],
) -> QuestionResult:
    """Map parsed model fields back onto the question's original criteria."""
    main_question = str(item.question_spec.get("question") or "")

    if mode is QuestionMode.BENCHMARK_ANSWER:
        return QuestionResult(
            main_question=main_question,
            generatedAnswer=_text(data, GENERATED_ANSWER_FIELD, NO_ANSWER),
        )

    criteria = criteria_for(item)
    evaluation: Dict[str, CriterionEvaluation] = {}
    for key in numbered_keys(criteria):
        criterion = criteria.get(key)
        question = criterion.get("question", "") if isinstance(criterion, Mapping) else ""
        evaluation[key] = CriterionEvaluation(
            question=str(question or ""),
            performance_observed=_text(data, f"performance_observed_{key}", NO_OBSERVATION),
            example_action=_text(data, f"example_action_{key}", NO_EXAMPLE_ACTION),
        )

    return QuestionResult(
        main_question=main_question,
        evaluation=evaluation,
        conclusion=_text(data, CONCLUSION_FIELD, NO_CONCLUSION),
    )
