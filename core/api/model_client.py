"""
core.api.model_client

The contract Assess-Gen expects from an LLM backend, plus the normalizer
that turns whatever a backend returns into a plain sequence of text chunks.

Used by:
  - runtime/agents/question_task.py
  - core/api/openai_client.py (the production backend)
"""

from __future__ import annotations

import inspect
from typing import Any, AsyncIterator, Mapping, Optional, Protocol

from exceptions.exceptions import ModelCallError


class CancelToken(Protocol):
    """Anything exposing an ``aborted`` flag; see runtime.store.generation_store.CallHandle."""

    @property
    def aborted(self) -> bool:
        ...


class ModelClient(Protocol):
    """
    Abstract backend interface for structured generation.

    ``generate`` returns a response that is either an async iterable of
    chunks, an awaitable resolving to one, or an object exposing such an
    iterable under ``.stream``. Callers never touch it directly; they go
    through :func:`iter_text_chunks`.

    Implementations raise ``ModelRateLimitError`` for quota failures and
    ``ModelCallError`` for everything else. ``cancel`` is best effort: a
    backend may ignore it, since callers also poll the cancel flag between
    chunks.
    """

    def generate(
        self,
        prompt: str,
        response_schema: Mapping[str, Any],
        *,
        temperature: float,
        cancel: Optional[CancelToken] = None,
    ) -> Any:
        ...


def chunk_text(chunk: Any) -> str:
    """Extract the text carried by one streamed chunk (empty if none)."""
    if chunk is None:
        return ""
    if isinstance(chunk, str):
        return chunk
    if isinstance(chunk, (bytes, bytearray)):
        return bytes(chunk).decode("utf-8", errors="replace")
    if isinstance(chunk, Mapping):
        text = chunk.get("text")
        return text if isinstance(text, str) else ""

    text = getattr(chunk, "text", None)
    if isinstance(text, str):
        return text

    # OpenAI ChatCompletionChunk: choices[0].delta.content
    choices = getattr(chunk, "choices", None)
    if choices:
        delta = getattr(choices[0], "delta", None)
        content = getattr(delta, "content", None)
        if isinstance(content, str):
            return content
    return ""


async def iter_text_chunks(response: Any) -> AsyncIterator[str]:
    """
    Normalize a model response into a lazy, finite, non-restartable
    sequence of non-empty text chunks.
    """
    if inspect.isawaitable(response):
        response = await response

    if isinstance(response, str):
        if response:
            yield response
        return

    source = response
    if not hasattr(source, "__aiter__") and not _is_sync_iterable(source):
        source = getattr(response, "stream", None)

    if source is not None and hasattr(source, "__aiter__"):
        async for chunk in source:
            text = chunk_text(chunk)
            if text:
                yield text
        return

    if source is not None and _is_sync_iterable(source):
        for chunk in source:
            text = chunk_text(chunk)
            if text:
                yield text
        return

    raise ModelCallError(
        f"Model response of type {type(response).__name__} is not a text stream."
    )


def _is_sync_iterable(obj: Any) -> bool:
    return hasattr(obj, "__iter__") and not isinstance(obj, (str, bytes, Mapping))
