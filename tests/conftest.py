"""
Pytest configuration and fixtures for Assess-Gen.

Provides a scripted fake model client and helpers that build question
schemas and a GenerationAgent wired to them.
"""

import asyncio
import json
import sys
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from configs.curricula import Curriculum, CurriculumRegistry  # noqa: E402
from core.generation.models import GenerationRequest, QuestionMode  # noqa: E402
from core.generation.retry import RetryPolicy  # noqa: E402
from runtime.agents.generation_agent import GenerationAgent  # noqa: E402
from runtime.store.generation_store import GenerationStore  # noqa: E402
from runtime.store.schema_store import SchemaStore  # noqa: E402


HANG = object()

_GUIDE_START = "--- JSON GUIDE START ---"
_GUIDE_END = "--- JSON GUIDE END ---"


def item_key_from_prompt(prompt: str) -> Tuple[str, str]:
    """Recover (unit_code, question_key) from the JSON guide in a prompt."""
    start = prompt.index(_GUIDE_START) + len(_GUIDE_START)
    end = prompt.index(_GUIDE_END)
    guide = json.loads(prompt[start:end])
    unit_code = next(iter(guide))
    question_key = next(iter(guide[unit_code]))
    return unit_code, question_key


def default_response(schema: Mapping[str, Any]) -> str:
    fields = {name: f"{name} text" for name in schema.get("properties", {})}
    return "```json\n" + json.dumps(fields) + "\n```"


class FakeModelClient:
    """
    Scripted ModelClient.

    ``script`` maps (unit_code, question_key) to a list of per-attempt
    outcomes: a response string, an exception instance to raise, or HANG
    to block until cancelled. Missing entries answer with every schema
    field filled in.
    """

    def __init__(
        self,
        script: Optional[Dict[Tuple[str, str], List[Any]]] = None,
        delay: float = 0.01,
        chunk_size: int = 16,
    ) -> None:
        self.script = script or {}
        self.delay = delay
        self.chunk_size = chunk_size
        self.in_flight = 0
        self.peak_in_flight = 0
        self.calls: Dict[Tuple[str, str], int] = defaultdict(int)
        self.started: List[Tuple[str, str]] = []

    def generate(self, prompt, response_schema, *, temperature, cancel=None):
        return self._stream(prompt, response_schema)

    async def _stream(self, prompt, response_schema):
        key = item_key_from_prompt(prompt)
        attempt = self.calls[key]
        self.calls[key] += 1
        self.started.append(key)

        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            outcomes = self.script.get(key)
            outcome = None
            if outcomes:
                outcome = outcomes[min(attempt, len(outcomes) - 1)]

            if outcome is HANG:
                await asyncio.sleep(3600)
            if isinstance(outcome, BaseException):
                raise outcome
            text = outcome if isinstance(outcome, str) else default_response(response_schema)

            for i in range(0, len(text), self.chunk_size):
                yield text[i : i + self.chunk_size]
                await asyncio.sleep(0)
        finally:
            self.in_flight -= 1


def criteria_question(number: int, criteria: int = 2) -> Dict[str, Any]:
    return {
        "question": f"Question {number}",
        "rolePlayScenerio": {
            "instruction for roleplay": {
                str(i): {"question": f"Criterion {i} of question {number}"}
                for i in range(1, criteria + 1)
            }
        },
    }


def criteria_schema(units: Mapping[str, int]) -> Dict[str, Any]:
    """Build ``{unit: {"assessment_guide": ..., "1": spec, ...}}``."""
    schema: Dict[str, Any] = {}
    for unit_code, count in units.items():
        unit: Dict[str, Any] = {"assessment_guide": f"Guide for {unit_code}"}
        for n in range(1, count + 1):
            unit[str(n)] = criteria_question(n)
        schema[unit_code] = unit
    return schema


def benchmark_schema(units: Mapping[str, int]) -> Dict[str, Any]:
    schema: Dict[str, Any] = {}
    for unit_code, count in units.items():
        schema[unit_code] = {
            str(n): {"question": f"Question {n}", "benchMarkAns": "[He/She] explained..."}
            for n in range(1, count + 1)
        }
    return schema


FAST_POLICY = RetryPolicy(max_attempts=3, timeout=1.0, delay=0.0)


def make_agent(
    tmp_path: Path,
    schema: Mapping[str, Any],
    client: FakeModelClient,
    *,
    mode: QuestionMode = QuestionMode.CRITERIA,
    limit: int = 3,
    policy: RetryPolicy = FAST_POLICY,
    curriculum_id: str = "TEST01",
) -> GenerationAgent:
    schema_path = tmp_path / f"{curriculum_id}.json"
    schema_path.write_text(json.dumps(schema), encoding="utf-8")
    curriculum = Curriculum(
        id=curriculum_id,
        name=f"{curriculum_id} Test Qualification",
        schema_file=str(schema_path),
        template_file=str(tmp_path / f"{curriculum_id}.docx"),
        mode=mode,
    )
    return GenerationAgent(
        client,
        curricula=CurriculumRegistry([curriculum]),
        schema_store=SchemaStore(cache=False),
        store=GenerationStore(),
        policy=policy,
        concurrency_limit=limit,
        temperature=0.2,
    )


def make_request(curriculum_id: str = "TEST01", generation_id: str = "gen-1") -> GenerationRequest:
    return GenerationRequest(
        student_name="Alex Morgan",
        gender="female",
        transcript="Assessor: How would you support the client?\nStudent: I would ask...",
        curriculum_id=curriculum_id,
        generation_id=generation_id,
    )


@pytest.fixture
def fake_client() -> FakeModelClient:
    return FakeModelClient()
