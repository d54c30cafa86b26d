"""Flatten a nested question schema into schedulable WorkItems."""

from __future__ import annotations

from typing import Any, List, Mapping, Tuple

from .models import WorkItem


# Unit-level guide text lives next to the questions but is not one.
ASSESSMENT_GUIDE_KEY = "assessment_guide"


def question_keys(unit_data: Mapping[str, Any]) -> List[str]:
    """Return the question keys of one unit, in schema order."""
    return [key for key in unit_data.keys() if key != ASSESSMENT_GUIDE_KEY]


def enumerate_work_items(schema: Mapping[str, Any]) -> Tuple[List[WorkItem], int]:
    """
    Walk ``unit_code -> {question_key -> spec}`` and return the ordered
    WorkItems together with their count.

    Units whose value is not a mapping are ignored. Question specs are
    passed through untouched, even if they are malformed; the question
    task reports those individually.
    """
    items: List[WorkItem] = []
    for unit_code, unit_data in schema.items():
        if not isinstance(unit_data, Mapping):
            continue
        for key in question_keys(unit_data):
            spec = unit_data[key]
            items.append(
                WorkItem(
                    unit_code=str(unit_code),
                    question_key=str(key),
                    question_spec=spec if isinstance(spec, Mapping) else {},
                )
            )
    return items, len(items)
