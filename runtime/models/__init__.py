"""
Pydantic / datamodels used by the Assess-Gen runtime.

Split into:
- session_models: GenerationSession + SessionStatus
- api_models: HTTP request/response schemas
"""
