"""
Tests for with_retry and RetryPolicy.
"""

import asyncio

import pytest

from core.generation.retry import EXPONENTIAL, RetryPolicy, with_retry
from exceptions.exceptions import (
    GenerationCanceled,
    ModelCallError,
    ModelRateLimitError,
    ModelTimeoutError,
)
from runtime.store.generation_store import CallHandle


def _scripted(outcomes):
    """Attempt factory returning each outcome in turn (raising exceptions)."""
    calls = []

    async def attempt():
        calls.append(len(calls) + 1)
        outcome = outcomes[min(len(calls) - 1, len(outcomes) - 1)]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    return attempt, calls


NO_DELAY = RetryPolicy(max_attempts=3, timeout=1.0, delay=0.0)


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.timeout == 120.0
        assert policy.delay_after(1) == 2.0
        assert policy.delay_after(2) == 2.0

    def test_exponential_is_capped(self):
        policy = RetryPolicy(delay=1.0, backoff=EXPONENTIAL, max_delay=5.0)
        assert [policy.delay_after(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    @pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"backoff": "random"}])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_succeeds_after_two_failures(self):
        attempt, calls = _scripted([ModelCallError("a"), ModelCallError("b"), "ok"])
        retries = []

        result = await with_retry(attempt, NO_DELAY, on_retry=retries.append)

        assert result == "ok"
        assert calls == [1, 2, 3]
        assert retries == [2, 3]

    @pytest.mark.asyncio
    async def test_last_error_propagates(self):
        attempt, calls = _scripted([ModelCallError("first"), ModelCallError("last")])

        with pytest.raises(ModelCallError, match="last"):
            await with_retry(attempt, NO_DELAY)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self):
        attempt, calls = _scripted([ModelCallError("boom"), "never"])
        retries = []

        with pytest.raises(ModelCallError):
            await with_retry(
                attempt,
                RetryPolicy(max_attempts=1, timeout=None, delay=0.0),
                on_retry=retries.append,
            )
        assert calls == [1]
        assert retries == []

    @pytest.mark.asyncio
    async def test_rate_limit_not_retried(self):
        attempt, calls = _scripted([ModelRateLimitError("quota"), "ok"])

        with pytest.raises(ModelRateLimitError):
            await with_retry(attempt, NO_DELAY)
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_async_on_retry_is_awaited(self):
        attempt, _ = _scripted([ModelCallError("x"), "ok"])
        seen = []

        async def on_retry(n):
            await asyncio.sleep(0)
            seen.append(n)

        assert await with_retry(attempt, NO_DELAY, on_retry=on_retry) == "ok"
        assert seen == [2]

    @pytest.mark.asyncio
    async def test_timeout_then_success(self):
        calls = []

        async def attempt():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(10)
            return "late but fine"

        policy = RetryPolicy(max_attempts=2, timeout=0.05, delay=0.0)
        assert await with_retry(attempt, policy) == "late but fine"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_on_every_attempt(self):
        async def attempt():
            await asyncio.sleep(10)

        policy = RetryPolicy(max_attempts=2, timeout=0.02, delay=0.0)
        with pytest.raises(ModelTimeoutError) as exc_info:
            await with_retry(attempt, policy)
        assert "Timeout after 0.02s" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_canceled_before_start(self):
        attempt, calls = _scripted(["ok"])

        with pytest.raises(GenerationCanceled):
            await with_retry(attempt, NO_DELAY, is_canceled=lambda: True)
        assert calls == []

    @pytest.mark.asyncio
    async def test_failure_after_cancel_is_not_retried(self):
        canceled = False

        async def attempt():
            nonlocal canceled
            canceled = True
            raise ModelCallError("connection dropped")

        with pytest.raises(GenerationCanceled):
            await with_retry(attempt, NO_DELAY, is_canceled=lambda: canceled)

    @pytest.mark.asyncio
    async def test_handle_abort_stops_in_flight_attempt(self):
        handle = CallHandle("U:1")
        started = asyncio.Event()

        async def attempt():
            started.set()
            await asyncio.sleep(10)

        runner = asyncio.create_task(
            with_retry(
                attempt,
                RetryPolicy(max_attempts=3, timeout=None, delay=0.0),
                is_canceled=lambda: handle.aborted,
                handle=handle,
            )
        )
        await started.wait()
        handle.abort()

        with pytest.raises(GenerationCanceled):
            await runner

    @pytest.mark.asyncio
    async def test_outer_cancellation_propagates(self):
        handle = CallHandle("U:1")
        started = asyncio.Event()

        async def attempt():
            started.set()
            await asyncio.sleep(10)

        runner = asyncio.create_task(with_retry(attempt, NO_DELAY, handle=handle))
        await started.wait()
        runner.cancel()

        with pytest.raises(asyncio.CancelledError):
            await runner
