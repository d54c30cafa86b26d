"""Cancellation registry for running generations.

An in-memory dict of generation_id -> GenerationSession. Each session
holds a monotonic ``canceled`` flag and the CallHandles of its in-flight
model calls.

The store is owned by a GenerationAgent and injected wherever it is
needed; there is no module-level instance.

Lifecycle:
- a session is created on first reference (``register`` or ``add_handle``)
- ``cancel`` flips the flag and aborts every handle tracked at that moment
- ``clear`` drops the session once all of its tasks have stopped
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional
from uuid import uuid4

from ..models.session_models import GenerationSession


logger = logging.getLogger(__name__)


class CallHandle:
    """Best-effort abort token for one question's model call.

    The retry wrapper binds the task running the current attempt; ``abort``
    cancels it. Tasks bound after an abort are cancelled straight away.
    """

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._aborted = False
        self._task: Optional[asyncio.Future] = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    def bind(self, task: asyncio.Future) -> None:
        self._task = task
        if self._aborted and not task.done():
            task.cancel()

    def unbind(self, task: asyncio.Future) -> None:
        if self._task is task:
            self._task = None

    def abort(self) -> None:
        self._aborted = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()

    def __repr__(self) -> str:
        return f"CallHandle({self.label!r}, aborted={self._aborted})"


class GenerationStore:
    """In-memory, session-keyed cancellation store."""

    def __init__(self) -> None:
        self._sessions: Dict[str, GenerationSession] = {}

    @staticmethod
    def new_generation_id() -> str:
        return uuid4().hex

    def __contains__(self, generation_id: str) -> bool:
        return generation_id in self._sessions

    def get(self, generation_id: str) -> Optional[GenerationSession]:
        return self._sessions.get(generation_id)

    def register(self, generation_id: str) -> GenerationSession:
        """Create session state for ``generation_id`` if absent (idempotent)."""
        session = self._sessions.get(generation_id)
        if session is None:
            session = GenerationSession(generation_id=generation_id)
            self._sessions[generation_id] = session
        return session

    def add_handle(self, generation_id: str, handle: CallHandle) -> None:
        session = self.register(generation_id)
        session.active_calls.add(handle)
        if session.canceled:
            # Added after cancel(): never let it start.
            handle.abort()

    def remove_handle(self, generation_id: str, handle: CallHandle) -> None:
        session = self._sessions.get(generation_id)
        if session is not None:
            session.active_calls.discard(handle)

    def cancel(self, generation_id: str) -> bool:
        """Mark the session canceled and abort its live calls.

        Returns False (and does nothing) for unknown ids.
        """
        session = self._sessions.get(generation_id)
        if session is None:
            return False
        session.canceled = True
        for handle in list(session.active_calls):
            handle.abort()
        logger.info(
            "[GENERATE] canceled GenID=%s (%d call(s) aborted)",
            generation_id,
            len(session.active_calls),
        )
        return True

    def is_canceled(self, generation_id: str) -> bool:
        session = self._sessions.get(generation_id)
        return bool(session and session.canceled)

    def clear(self, generation_id: str) -> None:
        """Drop all state for the session; a no-op if already cleared."""
        session = self._sessions.pop(generation_id, None)
        if session is not None and session.active_calls:
            logger.warning(
                "[GENERATE] cleared GenID=%s with %d call(s) still tracked",
                generation_id,
                len(session.active_calls),
            )
            session.active_calls.clear()
