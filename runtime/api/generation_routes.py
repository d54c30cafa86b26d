"""HTTP routes for interacting with the Assess-Gen runtime.

Exposes endpoints like:

- POST   /generate/{curriculum_id} -> Server-Sent Events stream of progress
                                      events ending in `done` (or not, on
                                      cancellation / fatal error)
- DELETE /generate                 -> cancel a running generation by id
- POST   /fill-doc                 -> render generated answers into the
                                      curriculum's .docx template
- GET    /curricula                -> list known curricula
"""

import asyncio
import base64
import logging

from fastapi import APIRouter, Header, HTTPException
from fastapi.responses import StreamingResponse
from typing import AsyncIterator, Optional

from configs.curricula import CurriculumRegistry
from configs.settings import settings
from core.document.answer_formatter import format_answers
from core.document.docx_filler import fill_template, sanitize_filename
from core.generation.events import ProgressEvent
from core.generation.models import GenerationRequest
from exceptions.exceptions import (
    CurriculumNotFoundError,
    SchemaSourceError,
    TemplateNotFoundError,
)

from ..agents.generation_agent import GenerationAgent
from ..models.api_models import (
    CancelRequest,
    CancelResponse,
    CurriculaResponse,
    CurriculumInfo,
    FillDocRequest,
    FillDocResponse,
    GenerateRequest,
)
from ..store.schema_store import SchemaStore


logger = logging.getLogger(__name__)

# Router for all generation-related endpoints
router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
}


# Module-level references, to be initialized by the server.
_GENERATION_AGENT: Optional[GenerationAgent] = None
_CURRICULA: Optional[CurriculumRegistry] = None
_SCHEMA_STORE: Optional[SchemaStore] = None


def init_routes(
    generation_agent: GenerationAgent,
    curricula: CurriculumRegistry,
    schema_store: SchemaStore,
) -> None:
    """Initialize module-level references used by the route handlers."""
    global _GENERATION_AGENT, _CURRICULA, _SCHEMA_STORE
    _GENERATION_AGENT = generation_agent
    _CURRICULA = curricula
    _SCHEMA_STORE = schema_store


def _require_generation_agent() -> GenerationAgent:
    if _GENERATION_AGENT is None:
        raise HTTPException(
            status_code=500,
            detail="GenerationAgent is not configured on the server.",
        )
    return _GENERATION_AGENT


def _require_curricula() -> CurriculumRegistry:
    if _CURRICULA is None:
        raise HTTPException(
            status_code=500,
            detail="CurriculumRegistry is not configured on the server.",
        )
    return _CURRICULA


def _require_schema_store() -> SchemaStore:
    if _SCHEMA_STORE is None:
        raise HTTPException(
            status_code=500,
            detail="SchemaStore is not configured on the server.",
        )
    return _SCHEMA_STORE


async def _sse_body(events: AsyncIterator[ProgressEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield event.to_sse()


# --------------------------------------------------------
# Endpoint: POST /generate/{curriculum_id}
# --------------------------------------------------------
@router.post("/generate/{curriculum_id}")
async def start_generation(
    curriculum_id: str,
    request: GenerateRequest,
    x_generation_id: Optional[str] = Header(None),
) -> StreamingResponse:
    """Start a generation and stream its progress as Server-Sent Events.

    The generation id comes from the `x-generation-id` header, then the
    body, and is generated otherwise. The stream is the only channel for
    both results and errors.
    """
    agent = _require_generation_agent()
    curricula = _require_curricula()

    try:
        curricula.get(curriculum_id)
    except CurriculumNotFoundError as e:
        logger.warning("[GENERATE] HTTP 404 for curriculum_id=%s", curriculum_id)
        raise HTTPException(status_code=404, detail=str(e))

    if not request.transcript:
        logger.warning("[GENERATE] HTTP 400 for curriculum_id=%s: missing transcript", curriculum_id)
        raise HTTPException(
            status_code=400,
            detail="Missing 'transcript' in request body.",
        )

    generation_request = GenerationRequest(
        student_name=request.student_name,
        gender=request.gender,
        transcript=request.transcript,
        curriculum_id=curriculum_id,
        generation_id=x_generation_id or request.generation_id,
    )
    # Registered before the response starts so an early DELETE finds it.
    events = agent.stream(generation_request)
    return StreamingResponse(
        _sse_body(events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# --------------------------------------------------------
# Endpoint: DELETE /generate
# --------------------------------------------------------
@router.delete("/generate", response_model=CancelResponse)
async def cancel_generation(
    request: Optional[CancelRequest] = None,
    x_generation_id: Optional[str] = Header(None),
) -> CancelResponse:
    """Cancel a generation. Idempotent; unknown ids are acknowledged too."""
    agent = _require_generation_agent()

    generation_id = (request.generation_id if request else None) or x_generation_id
    if not generation_id:
        raise HTTPException(status_code=400, detail="generationId is required")

    known = agent.cancel(generation_id)
    logger.info("[GENERATE] cancel requested GenID=%s known=%s", generation_id, known)
    return CancelResponse(ok=True, message="Canceled")


# --------------------------------------------------------
# Endpoint: POST /fill-doc
# --------------------------------------------------------
@router.post("/fill-doc", response_model=FillDocResponse, response_model_by_alias=True)
async def fill_doc(request: FillDocRequest) -> FillDocResponse:
    """Render generated answers into the curriculum's document template."""
    curricula = _require_curricula()
    schema_store = _require_schema_store()

    try:
        curriculum = curricula.get(request.curriculum_id)
        master_schema = schema_store.load(curriculum.schema_path)
        data = format_answers(
            request.answers,
            request.student_name,
            master_schema,
            curriculum.mode,
            gender=request.gender,
        )
        rendered = await asyncio.to_thread(fill_template, curriculum.template_path, data)

    except (CurriculumNotFoundError, TemplateNotFoundError) as e:
        logger.warning(
            "[FILL-DOC] HTTP 404 for curriculum_id=%s student=%r reason=%s",
            request.curriculum_id,
            request.student_name,
            e,
        )
        raise HTTPException(status_code=404, detail=str(e))

    except SchemaSourceError as e:
        logger.error("[FILL-DOC] schema unavailable for curriculum_id=%s: %s", request.curriculum_id, e)
        raise HTTPException(status_code=500, detail=str(e))

    except Exception:
        logger.exception(
            "[FILL-DOC] Unexpected error for curriculum_id=%s student=%r",
            request.curriculum_id,
            request.student_name,
        )
        raise

    filename = f"{sanitize_filename(request.student_name)}_{curriculum.id}.docx"
    out_dir = settings.output_dir
    out_dir.mkdir(parents=True, exist_ok=True)
    (out_dir / filename).write_bytes(rendered)

    return FillDocResponse(
        ok=True,
        filename=filename,
        saved_path=str(out_dir / filename),
        base64_docx=base64.b64encode(rendered).decode("ascii"),
    )


# --------------------------------------------------------
# Endpoint: GET /curricula
# --------------------------------------------------------
@router.get("/curricula", response_model=CurriculaResponse)
def list_curricula() -> CurriculaResponse:
    curricula = _require_curricula()
    return CurriculaResponse(
        curricula=[
            CurriculumInfo(id=c.id, name=c.name, mode=c.mode.value)
            for c in curricula.all()
        ]
    )


# --------------------------------------------------------
# Endpoint: GET /healthz
# --------------------------------------------------------
@router.get("/healthz")
def health_check():
    """
    Simple health check endpoint for uptime monitoring.
    """
    return {"status": "ok"}
