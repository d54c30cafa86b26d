"""
Builds the model request (prompt + response JSON schema) for one WorkItem.

Two question modes are supported:

  criteria          numbered benchmark criteria under
                    spec["rolePlayScenerio"]["instruction for roleplay"];
                    the model returns performance_observed_<n> and
                    example_action_<n> per criterion plus a conclusion.

  benchmark_answer  a single spec["benchMarkAns"] example; the model
                    returns one generatedAnswer.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from exceptions.exceptions import MissingQuestionDataError, SchemaBuildError

from . import prompts
from .models import QuestionMode, StudentProfile, WorkItem


# Key path used by the curriculum schema files (spelling included).
CRITERIA_PATH = ("rolePlayScenerio", "instruction for roleplay")
BENCHMARK_ANSWER_KEY = "benchMarkAns"
GENERATED_ANSWER_FIELD = "generatedAnswer"
CONCLUSION_FIELD = "conclusion"


@dataclass(frozen=True)
class QuestionRequest:
    prompt: str
    response_schema: Dict[str, Any]


def _is_number(key: Any) -> bool:
    try:
        value = float(str(key))
    except ValueError:
        return False
    return math.isfinite(value)


def numbered_keys(mapping: Mapping[str, Any]) -> List[str]:
    """Numeric keys of ``mapping`` in ascending numeric order."""
    keys = [str(k) for k in mapping.keys() if _is_number(k)]
    return sorted(keys, key=float)


def criteria_for(item: WorkItem) -> Mapping[str, Any]:
    """Return the numbered criteria mapping of a criteria-mode question."""
    node: Any = item.question_spec
    for part in CRITERIA_PATH:
        node = node.get(part) if isinstance(node, Mapping) else None
    if not node or not isinstance(node, Mapping):
        raise MissingQuestionDataError(item.unit_code, item.question_key, "instructions")
    return node


def require_question_data(item: WorkItem, mode: QuestionMode) -> None:
    """Raise MissingQuestionDataError if ``item`` cannot be turned into a request."""
    if mode is QuestionMode.CRITERIA:
        criteria_for(item)
    elif not item.question_spec.get(BENCHMARK_ANSWER_KEY):
        raise MissingQuestionDataError(item.unit_code, item.question_key, BENCHMARK_ANSWER_KEY)


def build_response_schema(item: WorkItem, mode: QuestionMode) -> Dict[str, Any]:
    """JSON schema listing exactly the fields the model must return."""
    properties: Dict[str, Any] = {}
    required: List[str] = []

    if mode is QuestionMode.BENCHMARK_ANSWER:
        require_question_data(item, mode)
        properties[GENERATED_ANSWER_FIELD] = {
            "type": "string",
            "description": (
                "A comprehensive answer for the question based on the student's "
                "transcript, using benchMarkAns as a style and format guide."
            ),
        }
        required.append(GENERATED_ANSWER_FIELD)
    else:
        keys = numbered_keys(criteria_for(item))
        if not keys:
            raise SchemaBuildError(
                item.unit_code,
                item.question_key,
                "No numbered benchmark criteria found.",
            )
        for key in keys:
            perf_key = f"performance_observed_{key}"
            action_key = f"example_action_{key}"
            properties[perf_key] = {
                "type": "string",
                "description": f"Evaluate the student's performance for benchmark criterion {key} based on the transcript.",
            }
            properties[action_key] = {
                "type": "string",
                "description": f"Quote the transcript as evidence for criterion {key}.",
            }
            required.extend([perf_key, action_key])
        properties[CONCLUSION_FIELD] = {
            "type": "string",
            "description": "A final summary conclusion on the overall performance in the transcript.",
        }
        required.append(CONCLUSION_FIELD)

    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


def build_system_prompt(
    student: StudentProfile,
    mode: QuestionMode,
    qualification: str,
    override: Optional[str] = None,
) -> str:
    if override:
        base = override.replace("{firstName}", student.first_name)
    else:
        base = prompts.ASSESSOR_ROLE_PROMPT.format(
            qualification=qualification,
            first_name=student.first_name,
            full_name=student.full_name,
        )

    if mode is QuestionMode.CRITERIA:
        return base.rstrip() + "\n" + prompts.PRONOUN_PLACEHOLDER_RULES
    pronouns = student.pronouns
    return base.rstrip() + "\n" + prompts.DIRECT_PRONOUN_RULES.format(
        subject=pronouns.subject,
        object=pronouns.object,
        possessive=pronouns.possessive,
    )


def build_question_request(
    item: WorkItem,
    *,
    mode: QuestionMode,
    transcript: str,
    system_prompt: str,
    assessment_guide: Optional[str] = None,
) -> QuestionRequest:
    """Assemble the prompt and response schema for one WorkItem."""
    response_schema = build_response_schema(item, mode)

    question_guide = json.dumps(
        {item.unit_code: {item.question_key: item.question_spec}},
        indent=2,
        ensure_ascii=False,
    )
    guide_section = ""
    if assessment_guide:
        guide_section = prompts.ASSESSMENT_GUIDE_SECTION.format(
            assessment_guide=assessment_guide
        )

    prompt = prompts.REQUEST_TEMPLATE.format(
        system_prompt=system_prompt.strip(),
        transcript=transcript,
        question_guide=question_guide,
        assessment_guide=guide_section,
        task=prompts.CRITERIA_TASK if mode is QuestionMode.CRITERIA else prompts.BENCHMARK_TASK,
        response_schema=json.dumps(response_schema, indent=2),
    )
    return QuestionRequest(prompt=prompt, response_schema=response_schema)
