"""
Runtime package for the Assess-Gen local server.

This package contains:
- API layer (FastAPI server + routes)
- Agents (generation orchestrator, scheduler, per-question tasks)
- Stores (cancellation registry, results, question schemas)
- Models (Pydantic / dataclasses for requests and sessions)
"""
