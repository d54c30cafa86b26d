#!/usr/bin/env python3
"""
Assess-Gen CLI

Command-line access to the generation workflow, either in-process or
against a running runtime server.

Commands:

1) generate
   - Run a generation locally (OpenAI backend) for one transcript file and
     write the ResultMap to JSON. Optionally fill the curriculum template.

2) stream
   - Start a generation on a running server and follow its SSE stream.

3) cancel
   - Cancel a generation on a running server by generation id.

4) fill-doc
   - Render a previously saved ResultMap into the curriculum's .docx template.

5) curricula
   - List the known curricula.

The runtime server is started separately, e.g.:

    uvicorn runtime.api.server:app --reload
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Ensure project root is on sys.path when running as a script
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import httpx

from configs.curricula import CurriculumRegistry
from configs.settings import settings
from core.generation.events import COMPLETED, DONE, ERROR, PROCESSING, RETRY, TOKEN_USAGE, SseDecoder


def _write_json(data: Dict, out_path: str) -> None:
    """Write JSON to a file with UTF-8 encoding and pretty formatting."""
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")


def _read_text(path: str) -> str:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Transcript file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _print_event(event_type: str, data: Dict[str, Any]) -> None:
    where = f"{data.get('unitCode', '')}:{data.get('questionKey', '')}"
    if event_type == PROCESSING:
        print(f"[Assess-Gen] … {where}")
    elif event_type == RETRY:
        print(f"[Assess-Gen] ↻ {where} attempt {data.get('attempt')}")
    elif event_type == TOKEN_USAGE:
        print(
            f"[Assess-Gen]   {data.get('section')} tokens in={data.get('inputTokens')} "
            f"out={data.get('outputTokens')}"
        )
    elif event_type == COMPLETED:
        print(f"[Assess-Gen] ✓ {where}")
    elif event_type == ERROR:
        prefix = "✗ FATAL" if data.get("fatal") else "✗"
        print(f"[Assess-Gen] {prefix} {where} {data.get('message')}")
    elif event_type == DONE:
        count = sum(len(unit) for unit in data.values() if isinstance(unit, dict))
        print(f"[Assess-Gen] Done: {count} question(s) generated")


def _finish(results: Optional[Dict[str, Any]], out_path: str) -> int:
    if results is None:
        print("[Assess-Gen] Generation ended without results")
        return 1
    _write_json(results, out_path)
    print(f"[Assess-Gen] ✓ results written → {out_path}")
    return 0


# ---------------------------------------------------------------------------
# generate – in-process generation
# ---------------------------------------------------------------------------


async def _generate_local(request) -> Optional[Dict[str, Any]]:
    # Lazy import so the remote commands work without OPENAI_API_KEY.
    from core.api.openai_client import OpenAIModelClient
    from runtime.agents.generation_agent import GenerationAgent

    agent = GenerationAgent(OpenAIModelClient())
    results: Optional[Dict[str, Any]] = None
    async for event in agent.stream(request):
        _print_event(event.event, event.data)
        if event.event == DONE:
            results = event.data
    return results


def cmd_generate(
    curriculum_id: str,
    student_name: str,
    gender: Optional[str],
    transcript_path: str,
    out_path: str,
    fill: bool,
) -> int:
    from core.generation.models import GenerationRequest

    request = GenerationRequest(
        student_name=student_name,
        gender=gender,
        transcript=_read_text(transcript_path),
        curriculum_id=curriculum_id,
    )
    print(f"[Assess-Gen] Generating {curriculum_id} evaluation for {student_name}...")
    results = asyncio.run(_generate_local(request))
    code = _finish(results, out_path)
    if code == 0 and fill:
        cmd_fill_doc(curriculum_id, student_name, gender, out_path)
    return code


# ---------------------------------------------------------------------------
# stream / cancel – remote generation
# ---------------------------------------------------------------------------


def cmd_stream(
    base_url: str,
    curriculum_id: str,
    student_name: str,
    gender: Optional[str],
    transcript_path: str,
    out_path: str,
    generation_id: Optional[str],
) -> int:
    body = {
        "studentName": student_name,
        "gender": gender,
        "transcript": _read_text(transcript_path),
        "generationId": generation_id,
    }
    url = f"{base_url.rstrip('/')}/api/generate/{curriculum_id}"
    decoder = SseDecoder()
    results: Optional[Dict[str, Any]] = None

    print(f"[Assess-Gen] Streaming generation from {url}")
    with httpx.stream("POST", url, json=body, timeout=None) as response:
        if response.status_code != 200:
            response.read()
            print(f"[Assess-Gen] ✗ HTTP {response.status_code}: {response.text}")
            return 1
        for chunk in response.iter_bytes():
            for event_type, data in decoder.feed(chunk):
                _print_event(event_type, data)
                if event_type == DONE:
                    results = data

    return _finish(results, out_path)


def cmd_cancel(base_url: str, generation_id: str) -> int:
    url = f"{base_url.rstrip('/')}/api/generate"
    response = httpx.request("DELETE", url, json={"generationId": generation_id})
    print(f"[Assess-Gen] Cancel {generation_id}: HTTP {response.status_code} {response.text}")
    return 0 if response.status_code == 200 else 1


# ---------------------------------------------------------------------------
# fill-doc / curricula
# ---------------------------------------------------------------------------


def cmd_fill_doc(
    curriculum_id: str,
    student_name: str,
    gender: Optional[str],
    answers_path: str,
) -> int:
    from core.document.answer_formatter import format_answers
    from core.document.docx_filler import fill_template, sanitize_filename
    from runtime.store.schema_store import SchemaStore

    curriculum = CurriculumRegistry().get(curriculum_id)
    with open(answers_path, "r", encoding="utf-8") as f:
        answers = json.load(f)

    master_schema = SchemaStore().load(curriculum.schema_path)
    data = format_answers(answers, student_name, master_schema, curriculum.mode, gender=gender)
    rendered = fill_template(curriculum.template_path, data)

    out_dir = settings.output_dir
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{sanitize_filename(student_name)}_{curriculum.id}.docx"
    out_path.write_bytes(rendered)
    print(f"[Assess-Gen] ✓ document written → {out_path}")
    return 0


def cmd_curricula() -> int:
    for curriculum in CurriculumRegistry().all():
        print(f"{curriculum.id:10} {curriculum.mode.value:17} {curriculum.name}")
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _add_student_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("curriculum_id", help="Curriculum ID (e.g., CHC33021)")
    parser.add_argument("--student", required=True, help="Student full name")
    parser.add_argument("--gender", default=None, help="female / male / other")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Assess-Gen CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # generate
    p_generate = subparsers.add_parser(
        "generate", help="Run a generation in-process for a transcript file"
    )
    _add_student_args(p_generate)
    p_generate.add_argument("transcript", help="Path to the transcript text file")
    p_generate.add_argument(
        "--out", default="results.json", help="Where to write the ResultMap JSON"
    )
    p_generate.add_argument(
        "--fill", action="store_true", help="Also fill the curriculum's .docx template"
    )

    # stream
    p_stream = subparsers.add_parser(
        "stream", help="Run a generation on a running server and follow its events"
    )
    _add_student_args(p_stream)
    p_stream.add_argument("transcript", help="Path to the transcript text file")
    p_stream.add_argument("--url", default="http://127.0.0.1:8000", help="Server base URL")
    p_stream.add_argument("--out", default="results.json", help="Where to write the ResultMap JSON")
    p_stream.add_argument("--generation-id", default=None, help="Generation id to use")

    # cancel
    p_cancel = subparsers.add_parser("cancel", help="Cancel a generation on a running server")
    p_cancel.add_argument("generation_id", help="Generation id to cancel")
    p_cancel.add_argument("--url", default="http://127.0.0.1:8000", help="Server base URL")

    # fill-doc
    p_fill = subparsers.add_parser(
        "fill-doc", help="Render a saved ResultMap into the curriculum template"
    )
    _add_student_args(p_fill)
    p_fill.add_argument("answers", help="Path to the ResultMap JSON")

    # curricula
    subparsers.add_parser("curricula", help="List known curricula")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    command: str = args.command

    if command == "generate":
        return cmd_generate(
            curriculum_id=args.curriculum_id,
            student_name=args.student,
            gender=args.gender,
            transcript_path=args.transcript,
            out_path=args.out,
            fill=args.fill,
        )
    elif command == "stream":
        return cmd_stream(
            base_url=args.url,
            curriculum_id=args.curriculum_id,
            student_name=args.student,
            gender=args.gender,
            transcript_path=args.transcript,
            out_path=args.out,
            generation_id=args.generation_id,
        )
    elif command == "cancel":
        return cmd_cancel(base_url=args.url, generation_id=args.generation_id)
    elif command == "fill-doc":
        return cmd_fill_doc(
            curriculum_id=args.curriculum_id,
            student_name=args.student,
            gender=args.gender,
            answers_path=args.answers,
        )
    elif command == "curricula":
        return cmd_curricula()
    else:
        parser.error(f"Unknown command: {command}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
