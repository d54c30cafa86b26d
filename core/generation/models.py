from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel


class QuestionMode(str, Enum):
    """How a curriculum's questions are turned into model requests."""

    CRITERIA = "criteria"
    BENCHMARK_ANSWER = "benchmark_answer"


@dataclass(frozen=True)
class WorkItem:
    """One (unit, question) pair requiring one model call."""

    unit_code: str
    question_key: str
    question_spec: Mapping[str, Any]

    @property
    def label(self) -> str:
        return f"{self.unit_code}:{self.question_key}"


@dataclass(frozen=True)
class Pronouns:
    subject: str
    object: str
    possessive: str

    @classmethod
    def for_gender(cls, gender: Optional[str]) -> "Pronouns":
        value = (gender or "").strip().lower()
        if value == "female":
            return cls("she", "her", "her")
        if value == "male":
            return cls("he", "him", "his")
        return cls("they", "them", "their")


@dataclass(frozen=True)
class StudentProfile:
    full_name: str
    pronouns: Pronouns

    @classmethod
    def from_request(cls, student_name: Optional[str], gender: Optional[str]) -> "StudentProfile":
        return cls(full_name=(student_name or "").strip(), pronouns=Pronouns.for_gender(gender))

    @property
    def first_name(self) -> str:
        parts = self.full_name.split()
        return parts[0] if parts else self.full_name


class GenerationRequest(BaseModel):
    """Everything needed to start one generation."""

    student_name: str
    transcript: str
    curriculum_id: str
    gender: Optional[str] = None
    generation_id: Optional[str] = None

    @property
    def student(self) -> StudentProfile:
        return StudentProfile.from_request(self.student_name, self.gender)


class CriterionEvaluation(BaseModel):
    question: str = ""
    performance_observed: str
    example_action: str


class QuestionResult(BaseModel):
    """
    Result of one successful question task.

    Criteria-mode results carry ``evaluation`` + ``conclusion``;
    benchmark-answer results carry ``generatedAnswer``.
    """

    main_question: str = ""
    evaluation: Optional[Dict[str, CriterionEvaluation]] = None
    conclusion: Optional[str] = None
    generatedAnswer: Optional[str] = None

    def to_dict(self) -> dict:
        return self.model_dump(exclude_none=True)
