from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


class Settings:
    """
    Central configuration for Assess-Gen.

    Values are loaded once from environment variables (with sensible defaults)
    and then exposed via typed properties.
    """

    def __init__(self) -> None:
        # OpenAI / model configuration
        self._openai_api_key = os.getenv("OPENAI_API_KEY")
        self._openai_base_url = os.getenv("OPENAI_BASE_URL") or None
        self._openai_model = os.getenv("ASSESS_GEN_OPENAI_MODEL", "gpt-4.1-mini")
        self._temperature = _env_float("ASSESS_GEN_TEMPERATURE", 0.2)

        # Fan-out / retry behaviour
        self._concurrency_limit = _env_int("ASSESS_GEN_CONCURRENCY_LIMIT", 5)
        self._max_attempts = _env_int("ASSESS_GEN_MAX_ATTEMPTS", 3)
        self._call_timeout = _env_float("ASSESS_GEN_CALL_TIMEOUT", 120.0)
        self._retry_delay = _env_float("ASSESS_GEN_RETRY_DELAY", 2.0)
        self._retry_backoff = os.getenv("ASSESS_GEN_RETRY_BACKOFF", "fixed")

        # Schema, template and output paths
        self._schemas_dir = Path(os.getenv("ASSESS_GEN_SCHEMAS_DIR", "schemas"))
        self._templates_dir = Path(
            os.getenv("ASSESS_GEN_TEMPLATES_DIR", "templates")
        )
        self._output_dir = Path(os.getenv("ASSESS_GEN_OUTPUT_DIR", "output"))

        self._log_level = os.getenv("ASSESS_GEN_LOG_LEVEL", "INFO").upper()

    # ------------------------------------------------------------------
    # OpenAI / model settings
    # ------------------------------------------------------------------

    @property
    def openai_api_key(self) -> str:
        if not self._openai_api_key:
            raise RuntimeError(
                "OPENAI_API_KEY is not set. Please export it in your environment "
                "or define it in a .env file."
            )
        return self._openai_api_key

    @property
    def openai_base_url(self) -> Optional[str]:
        return self._openai_base_url

    @property
    def openai_model(self) -> str:
        return self._openai_model

    @property
    def temperature(self) -> float:
        return self._temperature

    # ------------------------------------------------------------------
    # Generation settings
    # ------------------------------------------------------------------

    @property
    def concurrency_limit(self) -> int:
        return self._concurrency_limit

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def call_timeout(self) -> Optional[float]:
        # A non-positive timeout disables the per-attempt deadline.
        return self._call_timeout if self._call_timeout > 0 else None

    @property
    def retry_delay(self) -> float:
        return self._retry_delay

    @property
    def retry_backoff(self) -> str:
        return self._retry_backoff

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def schemas_dir(self) -> Path:
        return self._schemas_dir

    @property
    def templates_dir(self) -> Path:
        return self._templates_dir

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    @property
    def log_level(self) -> str:
        return self._log_level


settings = Settings()
