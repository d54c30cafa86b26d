"""
core.api.openai_client

Thin async wrapper around the OpenAI Chat Completions streaming API for
Assess-Gen.

Used by:
  - runtime/api/server.py (wired into the GenerationAgent)
  - cli/main.py (local generation)
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Mapping, Optional

from openai import APIStatusError, AsyncOpenAI, OpenAIError, RateLimitError

from configs.settings import settings
from exceptions.exceptions import ModelCallError, ModelRateLimitError

from .model_client import CancelToken, chunk_text


logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Internal helpers
# -------------------------------------------------------------------


def _retry_after(exc: APIStatusError) -> Optional[float]:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None) or {}
    value = headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


def translate_openai_error(exc: OpenAIError) -> ModelCallError:
    """
    Map an OpenAI SDK error onto the Assess-Gen model-call taxonomy.

    Rate limits become ``ModelRateLimitError`` so callers never need to
    inspect status codes or message text.
    """
    if isinstance(exc, RateLimitError):
        return ModelRateLimitError(str(exc), retry_after=_retry_after(exc))
    if isinstance(exc, APIStatusError):
        if exc.status_code == 429:
            return ModelRateLimitError(str(exc), retry_after=_retry_after(exc))
        return ModelCallError(str(exc), status_code=exc.status_code)
    return ModelCallError(str(exc) or type(exc).__name__)


# -------------------------------------------------------------------
# Client
# -------------------------------------------------------------------


class OpenAIModelClient:
    """
    Streaming structured-output backend built on ``AsyncOpenAI``.

    The SDK client is created lazily so that importing this module (or
    running the test suite) does not require OPENAI_API_KEY.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        self.model = model or settings.openai_model
        self._api_key = api_key
        self._base_url = base_url
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key or settings.openai_api_key,
                base_url=self._base_url or settings.openai_base_url,
            )
        return self._client

    async def generate(
        self,
        prompt: str,
        response_schema: Mapping[str, Any],
        *,
        temperature: float,
        cancel: Optional[CancelToken] = None,
    ) -> AsyncIterator[str]:
        """
        Send one prompt and yield response text as it streams in.

        Raises
        ------
        ModelRateLimitError
            If the provider rejects the call with HTTP 429.
        ModelCallError
            For any other API failure.
        """
        try:
            stream = await self._get_client().chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                stream=True,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "question_result",
                        "schema": dict(response_schema),
                    },
                },
            )
        except OpenAIError as e:
            raise translate_openai_error(e) from e

        try:
            async for chunk in stream:
                if cancel is not None and cancel.aborted:
                    logger.debug("[OPENAI] stream abandoned after abort")
                    break
                text = chunk_text(chunk)
                if text:
                    yield text
        except OpenAIError as e:
            raise translate_openai_error(e) from e
        finally:
            await stream.close()
