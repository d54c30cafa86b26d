"""GenerationAgent implementation.

Responsible for:
- resolving the curriculum and loading its question schema
- enumerating WorkItems and fanning them out through the BoundedScheduler
- streaming progress events to the caller
- finalizing the ResultMap and tearing the session down

Terminal behaviour:
- normal completion   -> `done` event with the ResultMap, then close
- cancellation        -> close without `done`
- fatal (rate limit)  -> the failing task reports it and closes; no `done`
- top-level failure   -> one `error` event, then close without `done`
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Dict, List, Optional, Set

from configs.curricula import CurriculumRegistry
from configs.settings import settings
from core.api.model_client import ModelClient
from core.generation.enumerator import ASSESSMENT_GUIDE_KEY, enumerate_work_items
from core.generation.events import EventChannel, ProgressEvent
from core.generation.request_builder import build_system_prompt
from core.generation.retry import RetryPolicy
from core.generation.models import GenerationRequest
from exceptions.exceptions import FatalGenerationError

from ..store.generation_store import GenerationStore
from ..store.result_store import ResultAccumulator
from ..store.schema_store import SchemaStore
from .question_task import GenerationContext, run_question_task
from .scheduler import BoundedScheduler


logger = logging.getLogger(__name__)


class GenerationAgent:
    """Fan-out generation orchestrator for Assess-Gen.

    Parameters
    ----------
    model_client:
        Backend used for every question's model call.
    curricula:
        Registry used to resolve ``GenerationRequest.curriculum_id``.
    schema_store:
        Store used to read each curriculum's question schema.
    store:
        Cancellation registry. Owned by this agent unless injected.
    policy:
        Retry/timeout policy for every model call.
    concurrency_limit:
        Default cap on concurrent model calls; a curriculum may override it.
    """

    def __init__(
        self,
        model_client: ModelClient,
        *,
        curricula: Optional[CurriculumRegistry] = None,
        schema_store: Optional[SchemaStore] = None,
        store: Optional[GenerationStore] = None,
        policy: Optional[RetryPolicy] = None,
        concurrency_limit: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> None:
        self.model_client = model_client
        self.curricula = curricula or CurriculumRegistry()
        self.schema_store = schema_store or SchemaStore()
        self.store = store or GenerationStore()
        self.policy = policy or RetryPolicy.from_settings()
        self.concurrency_limit = concurrency_limit or settings.concurrency_limit
        self.temperature = settings.temperature if temperature is None else temperature

        # Producers outlive an abandoned stream until their tasks unwind.
        self._producers: Set[asyncio.Task] = set()

    def cancel(self, generation_id: str) -> bool:
        """Cancel a running generation. Unknown or finished ids are a no-op."""
        return self.store.cancel(generation_id)

    def stream(self, request: GenerationRequest) -> AsyncIterator[ProgressEvent]:
        """Start a generation and return an iterator over its events.

        The id is registered and the producer started before this returns,
        so a cancel issued before the first event is read still applies.
        Must be called from a running event loop. If the consumer stops
        iterating early (e.g. the HTTP client went away), the generation
        is canceled.
        """
        generation_id = request.generation_id or self.store.new_generation_id()
        self.store.register(generation_id)
        logger.info(
            "[GENERATE] Transcript length: %d chars. GenID=%s",
            len(request.transcript),
            generation_id,
        )

        channel = EventChannel()
        producer = asyncio.create_task(self._produce(generation_id, request, channel))
        self._producers.add(producer)
        producer.add_done_callback(self._producers.discard)
        return self._events(generation_id, channel, producer)

    async def collect(self, request: GenerationRequest) -> List[ProgressEvent]:
        return [event async for event in self.stream(request)]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _events(
        self,
        generation_id: str,
        channel: EventChannel,
        producer: asyncio.Task,
    ) -> AsyncIterator[ProgressEvent]:
        finished = False
        try:
            async for event in channel:
                yield event
            finished = True
        finally:
            if not finished:
                self.store.cancel(generation_id)

        # Channel closed: wait for teardown so the session is gone on return.
        await producer

    async def _produce(
        self,
        generation_id: str,
        request: GenerationRequest,
        channel: EventChannel,
    ) -> None:
        accumulator = ResultAccumulator()
        try:
            curriculum = self.curricula.get(request.curriculum_id)
            schema = await asyncio.to_thread(self.schema_store.load, curriculum.schema_path)

            items, total = enumerate_work_items(schema)
            logger.info(
                "[GENERATE] Generation starting. Calls planned: %d. GenID=%s",
                total,
                generation_id,
            )

            ctx = GenerationContext(
                generation_id=generation_id,
                store=self.store,
                channel=channel,
                accumulator=accumulator,
                client=self.model_client,
                policy=self.policy,
                mode=curriculum.mode,
                transcript=request.transcript,
                system_prompt=build_system_prompt(
                    request.student,
                    curriculum.mode,
                    curriculum.name,
                    curriculum.system_prompt_override,
                ),
                temperature=self.temperature,
                assessment_guides=_assessment_guides(schema),
            )
            scheduler = BoundedScheduler(curriculum.concurrency_limit or self.concurrency_limit)
            await scheduler.run(
                items,
                lambda item: run_question_task(item, ctx),
                should_admit=lambda: not self.store.is_canceled(generation_id),
            )
            accumulator.seal()

            if self.store.is_canceled(generation_id):
                logger.info("[GENERATE] Generation canceled. GenID=%s", generation_id)
                return

            channel.emit(ProgressEvent.done(accumulator.snapshot()))
            logger.info(
                "[GENERATE] Generation completed (%d/%d). GenID=%s",
                len(accumulator),
                total,
                generation_id,
            )

        except FatalGenerationError as e:
            accumulator.seal()
            logger.error(
                "[GENERATE] Generation stopped by fatal error on %s:%s. GenID=%s",
                e.unit_code,
                e.question_key,
                generation_id,
            )

        except Exception as e:
            accumulator.seal()
            logger.exception("[GENERATE] Unexpected error. GenID=%s", generation_id)
            if not self.store.is_canceled(generation_id):
                channel.emit(ProgressEvent.error(str(e) or "An unexpected error occurred."))

        finally:
            channel.close()
            self.store.clear(generation_id)


def _assessment_guides(schema: Dict) -> Dict[str, str]:
    guides: Dict[str, str] = {}
    for unit_code, unit_data in schema.items():
        if isinstance(unit_data, dict):
            guide = unit_data.get(ASSESSMENT_GUIDE_KEY)
            if isinstance(guide, str) and guide.strip():
                guides[str(unit_code)] = guide
    return guides
