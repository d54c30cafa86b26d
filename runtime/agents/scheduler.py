"""Concurrency-bounded fan-out of question tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence

from core.generation.models import WorkItem
from exceptions.exceptions import FatalGenerationError


logger = logging.getLogger(__name__)


class BoundedScheduler:
    """Run one worker per WorkItem with at most ``limit`` running at once.

    - Every item is admitted exactly once, unless ``should_admit`` turns
      False (cancellation) or a fatal error stops admissions.
    - Non-fatal worker failures never fail the overall wait.
    - A FatalGenerationError stops further admissions; tasks already
      admitted unwind on their own, then the error is re-raised.
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError("Concurrency limit must be at least 1")
        self.limit = limit

    async def run(
        self,
        items: Sequence[WorkItem],
        worker: Callable[[WorkItem], Awaitable[None]],
        *,
        should_admit: Callable[[], bool] = lambda: True,
    ) -> None:
        semaphore = asyncio.Semaphore(self.limit)
        stopped = asyncio.Event()
        fatal: List[FatalGenerationError] = []

        async def admit(item: WorkItem) -> None:
            async with semaphore:
                if stopped.is_set() or not should_admit():
                    return
                try:
                    await worker(item)
                except FatalGenerationError as e:
                    if not fatal:
                        fatal.append(e)
                    stopped.set()

        tasks = [asyncio.create_task(admit(item)) for item in items]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        for item, outcome in zip(items, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "[SCHEDULER] task %s ended with unexpected %s: %s",
                    item.label,
                    type(outcome).__name__,
                    outcome,
                )

        if fatal:
            raise fatal[0]
