"""ResultAccumulator: write-once nested map of question results.

Layout mirrors the input schema:

    {
      "CHCCCS038": {
        "1": {"main_question": "...", "evaluation": {...}, "conclusion": "..."},
        "2": {...}
      }
    }

Entries are only ever added, never overwritten, and nothing is added once
the accumulator has been sealed at the end of a generation.
"""

import copy
import logging
from typing import Any, Dict


logger = logging.getLogger(__name__)


class ResultAccumulator:
    def __init__(self) -> None:
        self._results: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __len__(self) -> int:
        return sum(len(unit) for unit in self._results.values())

    def add(self, unit_code: str, question_key: str, result: Dict[str, Any]) -> bool:
        """Record ``result`` under [unit_code][question_key].

        Returns False without writing if the accumulator is sealed or the
        slot is already taken.
        """
        if self._sealed:
            logger.warning(
                "[RESULTS] ignoring %s:%s, accumulator already sealed",
                unit_code,
                question_key,
            )
            return False

        unit = self._results.setdefault(unit_code, {})
        if question_key in unit:
            logger.warning(
                "[RESULTS] ignoring duplicate result for %s:%s", unit_code, question_key
            )
            return False

        unit[question_key] = result
        return True

    def seal(self) -> None:
        self._sealed = True

    def snapshot(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        return copy.deepcopy(self._results)
