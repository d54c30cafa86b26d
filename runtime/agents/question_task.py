"""Per-question task: one WorkItem -> one model call -> one QuestionResult.

Event order for a single WorkItem is always:

    processing -> retry* -> [token_usage] -> completed | error

A canceled task ends silently. A rate-limit failure is reported once as a
fatal error, after which the event channel is closed, the generation is
canceled and FatalGenerationError is raised to the scheduler.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Optional

from core.api.model_client import ModelClient, iter_text_chunks
from core.generation.events import EventChannel, ProgressEvent
from core.generation.models import QuestionMode, WorkItem
from core.generation.request_builder import QuestionRequest, build_question_request
from core.generation.response_parser import build_question_result, extract_json_object
from core.generation.retry import RetryPolicy, with_retry
from exceptions.exceptions import (
    FatalGenerationError,
    GenerationCanceled,
    ModelRateLimitError,
    QuestionSkipError,
    ResponseParseError,
)

from ..store.generation_store import CallHandle, GenerationStore
from ..store.result_store import ResultAccumulator


logger = logging.getLogger(__name__)


@dataclass
class GenerationContext:
    """Shared, read-mostly state for every task of one generation."""

    generation_id: str
    store: GenerationStore
    channel: EventChannel
    accumulator: ResultAccumulator
    client: ModelClient
    policy: RetryPolicy
    mode: QuestionMode
    transcript: str
    system_prompt: str
    temperature: float = 0.2
    assessment_guides: Dict[str, str] = field(default_factory=dict)

    @property
    def canceled(self) -> bool:
        return self.store.is_canceled(self.generation_id)


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


async def _call_model(ctx: GenerationContext, request: QuestionRequest, handle: CallHandle) -> str:
    """One attempt: stream the whole response, polling the cancel flag per chunk."""
    parts = []
    response = ctx.client.generate(
        request.prompt,
        request.response_schema,
        temperature=ctx.temperature,
        cancel=handle,
    )
    async for text in iter_text_chunks(response):
        if ctx.canceled:
            raise GenerationCanceled(ctx.generation_id)
        parts.append(text)
    return "".join(parts)


async def run_question_task(item: WorkItem, ctx: GenerationContext) -> None:
    gen_id = ctx.generation_id
    if ctx.canceled:
        return

    logger.info("[TASK] Processing %s GenID=%s", item.label, gen_id)
    ctx.channel.emit(ProgressEvent.processing(item.unit_code, item.question_key))

    try:
        request = build_question_request(
            item,
            mode=ctx.mode,
            transcript=ctx.transcript,
            system_prompt=ctx.system_prompt,
            assessment_guide=ctx.assessment_guides.get(item.unit_code),
        )
    except QuestionSkipError as e:
        logger.warning("[TASK] Skipping %s: %s", item.label, e.details)
        ctx.channel.emit(ProgressEvent.error(e.details, item.unit_code, item.question_key))
        return

    handle = CallHandle(item.label)
    ctx.store.add_handle(gen_id, handle)
    try:
        if ctx.canceled:
            handle.abort()
            return

        def on_retry(attempt: int) -> None:
            logger.info("[TASK] Retry %d for %s GenID=%s", attempt, item.label, gen_id)
            ctx.channel.emit(ProgressEvent.retry(item.unit_code, item.question_key, attempt))

        response_text = await with_retry(
            lambda: _call_model(ctx, request, handle),
            ctx.policy,
            on_retry=on_retry,
            is_canceled=lambda: ctx.canceled,
            handle=handle,
        )
        if ctx.canceled:
            raise GenerationCanceled(gen_id)

        ctx.channel.emit(
            ProgressEvent.token_usage(
                f"{item.unit_code}-{item.question_key}",
                estimate_tokens(request.prompt),
                estimate_tokens(response_text),
            )
        )

        if not response_text:
            ctx.channel.emit(
                ProgressEvent.error(
                    "No valid response content from AI.", item.unit_code, item.question_key
                )
            )
            return

        try:
            data = extract_json_object(response_text)
        except ResponseParseError as e:
            logger.error("[TASK] Failed to parse JSON for %s: %s", item.label, e.details)
            ctx.channel.emit(
                ProgressEvent.error(
                    "Failed to parse JSON response from AI.", item.unit_code, item.question_key
                )
            )
            return

        result = build_question_result(item, ctx.mode, data).to_dict()
        if ctx.accumulator.add(item.unit_code, item.question_key, result):
            ctx.channel.emit(ProgressEvent.completed(item.unit_code, item.question_key, result))

    except GenerationCanceled:
        logger.debug("[TASK] %s stopped, GenID=%s canceled", item.label, gen_id)

    except ModelRateLimitError as e:
        if ctx.canceled:
            return
        logger.error("[TASK] Rate limited on %s GenID=%s: %s", item.label, gen_id, e)
        ctx.channel.emit(
            ProgressEvent.error(str(e), item.unit_code, item.question_key, fatal=True)
        )
        ctx.channel.close()
        ctx.store.cancel(gen_id)
        raise FatalGenerationError(item.unit_code, item.question_key, e) from e

    except Exception as e:
        if ctx.canceled:
            return
        logger.warning("[TASK] API call failed for %s: %s", item.label, e, exc_info=True)
        ctx.channel.emit(
            ProgressEvent.error(
                f"API call failed: {str(e) or type(e).__name__}",
                item.unit_code,
                item.question_key,
            )
        )

    finally:
        ctx.store.remove_handle(gen_id, handle)
