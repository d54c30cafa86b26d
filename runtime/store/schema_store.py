"""SchemaStore: loads curriculum question schemas from disk.

Expected layout (by convention):

    schemas/<curriculum_id>.json

The JSON structure is assumed to look like:

    {
      "CHCCCS038": {
        "assessment_guide": "...",
        "1": { "question": "...", "rolePlayScenerio": { ... } },
        "2": { ... }
      },
      ...
    }

This store provides a simple API:

    load(path) -> dict

and hides the details of reading and validating the JSON files.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from exceptions.exceptions import SchemaSourceError


logger = logging.getLogger(__name__)


class SchemaStore:
    """Read-only access to question schema JSON files.

    Parameters
    ----------
    cache:
        When True, a parsed schema is kept in memory after the first read
        and served from there afterwards.
    """

    def __init__(self, cache: bool = True) -> None:
        self._cache_enabled = cache
        self._cache: Dict[Path, Dict[str, Any]] = {}

    def load(self, path: Union[str, Path]) -> Dict[str, Any]:
        """Load and return the schema stored at ``path``.

        Raises
        ------
        SchemaSourceError
            If the file is missing, unreadable, not valid JSON, or not a
            JSON object.
        """
        path = Path(path)
        if self._cache_enabled and path in self._cache:
            return self._cache[path]

        if not path.is_file():
            raise SchemaSourceError(path, "could not be read.")

        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise SchemaSourceError(path, f"could not be read: {e}") from e
        except json.JSONDecodeError as e:
            raise SchemaSourceError(path, f"is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise SchemaSourceError(path, "must contain a JSON object at the top level.")

        logger.info("[SCHEMA] loaded %s (%d unit(s))", path, len(data))
        if self._cache_enabled:
            self._cache[path] = data
        return data
