"""
Curriculum registry for Assess-Gen.

Each curriculum names the question schema and document template it uses
and how its questions are sent to the model (see QuestionMode). Paths
are resolved against the schemas/templates directories from settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from configs.settings import settings
from core.generation.models import QuestionMode
from exceptions.exceptions import CurriculumNotFoundError


CHC30121_PROMPT = """You are a highly experienced and qualified Vocational Education and Training (VET) Assessor specializing in the Australian Early Childhood Education and Care sector. Your area of expertise is the CHC30121 Certificate III in Early Childhood Education and Care qualification.

The Assessment Guide contains the official questions and a "benchMarkAns" (benchmark answer) for each question, which serves as the style guide for tone, structure, and level of detail. Based solely on the evidence in the Student Transcript, write a new answer for each question in that style.

Tone: strictly professional and formal.
Student Name: use the student's first name, "{firstName}", when referring to the student.
"""


class Curriculum(BaseModel):
    id: str
    name: str
    schema_file: str
    template_file: str
    mode: QuestionMode = QuestionMode.CRITERIA
    system_prompt_override: Optional[str] = None
    concurrency_limit: Optional[int] = None

    @property
    def schema_path(self) -> Path:
        return settings.schemas_dir / self.schema_file

    @property
    def template_path(self) -> Path:
        return settings.templates_dir / self.template_file


DEFAULT_CURRICULA: List[Curriculum] = [
    Curriculum(
        id="CHC33021",
        name="CHC33021 Certificate III in Individual Support (Disability)",
        schema_file="CHC33021.json",
        template_file="blank_form-CHC33021.docx",
        mode=QuestionMode.CRITERIA,
        concurrency_limit=5,
    ),
    Curriculum(
        id="CHC30121",
        name="CHC30121 Certificate III in Early Childhood Education and Care",
        schema_file="CHC30121.json",
        template_file="blank_form-CHC30121.docx",
        mode=QuestionMode.BENCHMARK_ANSWER,
        system_prompt_override=CHC30121_PROMPT,
    ),
    Curriculum(
        id="CHC43121",
        name="CHC43121 Certificate IV in Disability",
        schema_file="CHC43121.json",
        template_file="blank_form-CHC43121.docx",
        mode=QuestionMode.BENCHMARK_ANSWER,
        concurrency_limit=10,
    ),
]


class CurriculumRegistry:
    """Lookup of curricula by id."""

    def __init__(self, curricula: Optional[Iterable[Curriculum]] = None) -> None:
        entries = DEFAULT_CURRICULA if curricula is None else curricula
        self._by_id: Dict[str, Curriculum] = {c.id: c for c in entries}

    def get(self, curriculum_id: str) -> Curriculum:
        curriculum = self._by_id.get(curriculum_id)
        if curriculum is None:
            raise CurriculumNotFoundError(curriculum_id)
        return curriculum

    def all(self) -> List[Curriculum]:
        return list(self._by_id.values())
