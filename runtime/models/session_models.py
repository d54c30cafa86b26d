"""
Generation-session models for the Assess-Gen runtime.

These describe:
- SessionStatus enum (RUNNING, CANCELED)
- GenerationSession: cancel flag + live call handles for one generation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Set

if TYPE_CHECKING:
    from ..store.generation_store import CallHandle


class SessionStatus(str, Enum):
    RUNNING = "RUNNING"
    CANCELED = "CANCELED"


@dataclass
class GenerationSession:
    generation_id: str
    canceled: bool = False
    active_calls: Set["CallHandle"] = field(default_factory=set)
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def status(self) -> SessionStatus:
        return SessionStatus.CANCELED if self.canceled else SessionStatus.RUNNING
