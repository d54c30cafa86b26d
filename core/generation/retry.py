"""
Retry + per-attempt timeout for a single model call.

``with_retry`` is stateless: every call gets its own attempt counter, and
the behaviour is fully described by a ``RetryPolicy``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from configs.settings import settings
from exceptions.exceptions import (
    GenerationCanceled,
    ModelRateLimitError,
    ModelTimeoutError,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

FIXED = "fixed"
EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    timeout: Optional[float] = 120.0
    delay: float = 2.0
    backoff: str = FIXED
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff not in (FIXED, EXPONENTIAL):
            raise ValueError(f"Unknown backoff strategy: {self.backoff!r}")

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        if self.backoff == EXPONENTIAL:
            return min(self.delay * (2 ** (attempt - 1)), self.max_delay)
        return self.delay

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            timeout=settings.call_timeout,
            delay=settings.retry_delay,
            backoff=settings.retry_backoff,
        )


async def with_retry(
    attempt: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    on_retry: Optional[Callable[[int], Any]] = None,
    is_canceled: Callable[[], bool] = lambda: False,
    handle: Optional[Any] = None,
) -> T:
    """
    Run ``attempt`` up to ``policy.max_attempts`` times.

    - Attempt N > 1 first calls ``on_retry(N)``.
    - Each attempt runs in its own task, bound to ``handle`` so that an
      abort cancels the in-flight call; the timeout cancels it likewise.
    - Rate-limit failures and cancellation are never retried.
    - When every attempt fails, the last error propagates.
    """
    for number in range(1, policy.max_attempts + 1):
        if is_canceled():
            raise GenerationCanceled()

        if number > 1 and on_retry is not None:
            outcome = on_retry(number)
            if inspect.isawaitable(outcome):
                await outcome

        try:
            return await _run_attempt(attempt, policy.timeout, handle)
        except (GenerationCanceled, ModelRateLimitError):
            raise
        except Exception as exc:
            if is_canceled():
                raise GenerationCanceled() from exc
            if number == policy.max_attempts:
                raise
            wait = policy.delay_after(number)
            logger.warning(
                "[RETRY] attempt %d/%d failed (%s), retrying in %.1fs",
                number,
                policy.max_attempts,
                exc,
                wait,
            )
            await asyncio.sleep(wait)

    # range() above always runs at least once and either returns or raises.
    raise RuntimeError("Max retries reached")


async def _run_attempt(
    attempt: Callable[[], Awaitable[T]],
    timeout: Optional[float],
    handle: Optional[Any],
) -> T:
    task = asyncio.ensure_future(attempt())
    if handle is not None:
        handle.bind(task)
    try:
        if timeout is None:
            return await task
        return await asyncio.wait_for(task, timeout)
    except asyncio.TimeoutError as exc:
        raise ModelTimeoutError(timeout) from exc
    except asyncio.CancelledError:
        current = asyncio.current_task()
        outer_cancelled = current is not None and current.cancelling() > 0
        if handle is not None and handle.aborted and not outer_cancelled:
            raise GenerationCanceled() from None
        raise
    finally:
        if handle is not None:
            handle.unbind(task)
