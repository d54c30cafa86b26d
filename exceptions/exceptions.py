"""
Custom exceptions for Assess-Gen generation, model calls and documents.

These exceptions are intentionally simple and descriptive.
They are used across:

  - core/api/
  - core/generation/
  - runtime/agents/ and runtime/api/

Placing them at the project root (exceptions/) avoids circular imports
and keeps exception types consistent across modules.
"""

from typing import Optional


class QuestionSkipError(Exception):
    """
    Base class for per-question problems that skip one WorkItem
    without affecting the rest of the generation.
    """

    def __init__(self, unit_code, question_key, details):
        self.unit_code = unit_code
        self.question_key = question_key
        self.details = details
        super().__init__(details)


class MissingQuestionDataError(QuestionSkipError):
    """
    Raised when a question spec lacks the sub-structure needed to build a
    model request (numbered benchmark criteria or a benchmark answer).
    """

    def __init__(self, unit_code, question_key, field_name):
        self.field_name = field_name
        super().__init__(unit_code, question_key, f"Missing {field_name}.")


class SchemaBuildError(QuestionSkipError):
    """Raised when a per-question response schema cannot be constructed."""

    def __init__(self, unit_code, question_key, details=None):
        super().__init__(
            unit_code, question_key, details or "Schema generation failed."
        )


class ResponseParseError(Exception):
    """
    Raised when model output cannot be recovered as a JSON object.

    Example:
        'Sure! {"conclusion": "..."}'   ← recoverable
        'I cannot help with that.'      ← raises this exception
    """

    def __init__(self, raw_text, details=None):
        self.raw_text = raw_text
        self.details = details or "Could not find a valid JSON object in the response."
        super().__init__(self.details)


class ModelCallError(Exception):
    """Raised when a model call fails for a transient or unknown reason."""

    def __init__(self, message, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ModelTimeoutError(ModelCallError):
    """Raised when a single model call attempt exceeds its deadline."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Timeout after {timeout:g}s")


class ModelRateLimitError(ModelCallError):
    """
    Raised at the model-call boundary when the provider reports a rate-limit
    or quota failure (HTTP 429). Treated as fatal for the whole generation.
    """

    def __init__(self, message, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(message, status_code=429)


class GenerationCanceled(Exception):
    """Raised inside a task once its generation has been canceled."""

    def __init__(self, generation_id=None):
        self.generation_id = generation_id
        super().__init__(f"Generation canceled: {generation_id}")


class FatalGenerationError(Exception):
    """
    Raised by a question task after a rate-limit failure has been reported,
    to stop the scheduler from admitting further work.
    """

    def __init__(self, unit_code, question_key, cause):
        self.unit_code = unit_code
        self.question_key = question_key
        self.cause = cause
        super().__init__(f"Fatal error on {unit_code}:{question_key}: {cause}")


class CurriculumNotFoundError(Exception):
    """Raised when a curriculum id is not present in the registry."""

    def __init__(self, curriculum_id):
        self.curriculum_id = curriculum_id
        super().__init__(f"Curriculum with ID {curriculum_id} not found.")


class SchemaSourceError(Exception):
    """Raised when a curriculum's question schema cannot be read or parsed."""

    def __init__(self, path, details=None):
        self.path = path
        self.details = details or "could not be read."
        super().__init__(f"{path} {self.details}")


class TemplateNotFoundError(Exception):
    """Raised when a curriculum's document template is missing on disk."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"{path} not found.")
