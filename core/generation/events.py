"""
Progress events for a generation and the channel that carries them.

Wire format is Server-Sent Events:

    event: completed
    data: {"unitCode": "CHCCCS038", "questionKey": "1", "result": {...}}

Every event belongs to one of these types:

- processing   {unitCode, questionKey}
- retry        {unitCode, questionKey, attempt}
- token_usage  {section, inputTokens, outputTokens}
- completed    {unitCode, questionKey, result}
- error        {unitCode?, questionKey?, message, fatal?}
- done         ResultMap
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Tuple


logger = logging.getLogger(__name__)

PROCESSING = "processing"
RETRY = "retry"
TOKEN_USAGE = "token_usage"
COMPLETED = "completed"
ERROR = "error"
DONE = "done"

EVENT_TYPES = (PROCESSING, RETRY, TOKEN_USAGE, COMPLETED, ERROR, DONE)


@dataclass
class ProgressEvent:
    event: str
    data: Dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def processing(cls, unit_code: str, question_key: str) -> "ProgressEvent":
        return cls(PROCESSING, {"unitCode": unit_code, "questionKey": question_key})

    @classmethod
    def retry(cls, unit_code: str, question_key: str, attempt: int) -> "ProgressEvent":
        return cls(
            RETRY,
            {"unitCode": unit_code, "questionKey": question_key, "attempt": attempt},
        )

    @classmethod
    def token_usage(cls, section: str, input_tokens: int, output_tokens: int) -> "ProgressEvent":
        return cls(
            TOKEN_USAGE,
            {"section": section, "inputTokens": input_tokens, "outputTokens": output_tokens},
        )

    @classmethod
    def completed(cls, unit_code: str, question_key: str, result: Dict[str, Any]) -> "ProgressEvent":
        return cls(
            COMPLETED,
            {"unitCode": unit_code, "questionKey": question_key, "result": result},
        )

    @classmethod
    def error(
        cls,
        message: str,
        unit_code: Optional[str] = None,
        question_key: Optional[str] = None,
        fatal: bool = False,
    ) -> "ProgressEvent":
        data: Dict[str, Any] = {}
        if unit_code is not None:
            data["unitCode"] = unit_code
        if question_key is not None:
            data["questionKey"] = question_key
        data["message"] = message
        if fatal:
            data["fatal"] = True
        return cls(ERROR, data)

    @classmethod
    def done(cls, results: Dict[str, Any]) -> "ProgressEvent":
        return cls(DONE, results)

    # ------------------------------------------------------------------

    @property
    def is_fatal(self) -> bool:
        return self.event == ERROR and bool(self.data.get("fatal"))

    def to_sse(self) -> str:
        payload = json.dumps(self.data, ensure_ascii=False)
        return f"event: {self.event}\ndata: {payload}\n\n"


_CLOSED = object()


class EventChannel:
    """
    Append-only, strictly ordered event channel for one generation.

    All producers run on the same event loop, so ``emit`` is a plain
    ``put_nowait``; events from one task keep their relative order.
    Anything emitted after ``close()`` is dropped.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: ProgressEvent) -> bool:
        if self._closed:
            logger.debug("[EVENTS] dropped %s after close", event.event)
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._drain()

    async def _drain(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


class SseDecoder:
    """
    Incremental SSE frame decoder for consumers of the generation stream.

    Bytes or text can be fed in arbitrary pieces; only complete frames
    (terminated by a blank line) are returned. Frames with unparsable JSON
    are logged and skipped rather than raised.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, data) -> List[Tuple[str, Any]]:
        if isinstance(data, (bytes, bytearray)):
            data = self._decoder.decode(bytes(data))
        self._buffer += data.replace("\r\n", "\n")

        frames = self._buffer.split("\n\n")
        self._buffer = frames.pop()
        return list(self._parse_frames(frames))

    def _parse_frames(self, frames: List[str]) -> Iterator[Tuple[str, Any]]:
        for frame in frames:
            if not frame.strip():
                continue
            event_type = "message"
            data_lines: List[str] = []
            for line in frame.split("\n"):
                if line.startswith("event:"):
                    event_type = line[len("event:"):].strip()
                elif line.startswith("data:"):
                    data_lines.append(line[len("data:"):].lstrip())
            if not data_lines:
                continue
            try:
                payload = json.loads("\n".join(data_lines))
            except json.JSONDecodeError:
                logger.warning("[EVENTS] skipping malformed %s frame", event_type)
                continue
            yield event_type, payload
