"""
HTTP request/response models for the Assess-Gen runtime API.

Field names on the wire are camelCase to match the web form.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateRequest(_CamelModel):
    student_name: str = Field("", alias="studentName")
    gender: Optional[str] = None
    transcript: Optional[str] = None
    generation_id: Optional[str] = Field(None, alias="generationId")


class CancelRequest(_CamelModel):
    generation_id: Optional[str] = Field(None, alias="generationId")


class CancelResponse(BaseModel):
    ok: bool
    message: str


class FillDocRequest(_CamelModel):
    student_name: str = Field(..., alias="studentName")
    curriculum_id: str = Field(..., alias="curriculumId")
    answers: Dict[str, Any]
    gender: Optional[str] = None


class FillDocResponse(_CamelModel):
    ok: bool
    filename: str
    saved_path: str = Field(..., alias="savedPath")
    base64_docx: str = Field(..., alias="base64Docx")


class CurriculumInfo(BaseModel):
    id: str
    name: str
    mode: str


class CurriculaResponse(BaseModel):
    curricula: List[CurriculumInfo]
