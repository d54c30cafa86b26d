"""
FastAPI application entry point for the Assess-Gen runtime.

Responsibilities:
- configure logging
- construct shared singletons (CurriculumRegistry, SchemaStore, GenerationAgent)
- include generation routes

Start with:

    uvicorn runtime.api.server:app --reload
"""

import logging

from fastapi import FastAPI

from configs.curricula import CurriculumRegistry
from configs.settings import settings
from core.api.openai_client import OpenAIModelClient
from runtime.agents.generation_agent import GenerationAgent
from runtime.store.schema_store import SchemaStore
from . import generation_routes


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# ---------------------------------------------------------------------------
# Shared singletons
# ---------------------------------------------------------------------------

curricula = CurriculumRegistry()

# Question schemas: schemas/<curriculum_id>.json, cached after first read.
schema_store = SchemaStore()

# The OpenAI client is created lazily on the first model call.
model_client = OpenAIModelClient(model=settings.openai_model)

# Fan-out orchestrator; owns the cancellation registry.
generation_agent = GenerationAgent(
    model_client,
    curricula=curricula,
    schema_store=schema_store,
)

# ---------------------------------------------------------------------------
# FastAPI app + route registration
# ---------------------------------------------------------------------------

app = FastAPI(title="Assess-Gen Runtime")

generation_routes.init_routes(
    generation_agent=generation_agent,
    curricula=curricula,
    schema_store=schema_store,
)
app.include_router(generation_routes.router, prefix="/api")
