"""
Saved analysis history.

Analyses are kept newest first and bounded to a fixed number of entries.
The session depends on the AnalysisRepository interface; two
implementations are provided: in-memory and a JSON file.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Union

from cas_analyzer.config import HISTORY_LIMIT, STORAGE_KEY
from cas_analyzer.models import Analysis

logger = logging.getLogger(__name__)


class AnalysisRepository(ABC):
    """Bounded, newest-first store of analyses."""

    def __init__(self, history_limit: int = HISTORY_LIMIT):
        self.history_limit = history_limit

    @abstractmethod
    def list(self) -> List[Analysis]:
        """Return saved analyses, newest first."""

    @abstractmethod
    def _replace_all(self, analyses: List[Analysis]) -> None:
        """Persist the complete history."""

    def get(self, analysis_id: str) -> Optional[Analysis]:
        for analysis in self.list():
            if analysis.id == analysis_id:
                return analysis
        return None

    def save(self, analysis: Analysis) -> List[Analysis]:
        """
        Store an analysis at the head of the history.

        An analysis with the same id is replaced, and the oldest entries
        beyond the history limit are discarded.

        Returns:
            The history after saving.
        """
        existing = [a for a in self.list() if a.id != analysis.id]
        history = ([analysis] + existing)[: self.history_limit]
        dropped = len(existing) + 1 - len(history)
        if dropped > 0:
            logger.debug(f"History limit reached, dropping {dropped} oldest analyses")
        self._replace_all(history)
        return history

    def delete(self, analysis_id: str) -> bool:
        """Remove an analysis; returns False if it was not saved."""
        analyses = self.list()
        remaining = [a for a in analyses if a.id != analysis_id]
        if len(remaining) == len(analyses):
            return False
        self._replace_all(remaining)
        return True

    def clear(self) -> None:
        """Remove every saved analysis."""
        self._replace_all([])


class InMemoryAnalysisRepository(AnalysisRepository):
    """History held in process memory."""

    def __init__(self, history_limit: int = HISTORY_LIMIT):
        super().__init__(history_limit)
        self._analyses: List[Analysis] = []

    def list(self) -> List[Analysis]:
        return list(self._analyses)

    def _replace_all(self, analyses: List[Analysis]) -> None:
        self._analyses = list(analyses)


class JsonFileAnalysisRepository(AnalysisRepository):
    """
    History persisted as a JSON document.

    The file holds a single object keyed by STORAGE_KEY whose value is the
    list of serialized analyses.
    """

    def __init__(self, path: Union[str, Path], history_limit: int = HISTORY_LIMIT):
        super().__init__(history_limit)
        self.path = Path(path)

    def list(self) -> List[Analysis]:
        if not self.path.exists():
            return []
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable history file {self.path}: {e}")
            return []
        if not isinstance(document, dict):
            logger.warning(f"Ignoring history file {self.path}: not a JSON object")
            return []

        analyses = []
        for index, item in enumerate(document.get(STORAGE_KEY, [])):
            try:
                analyses.append(Analysis.from_dict(item))
            except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                logger.warning(f"Skipping malformed history entry {index} in {self.path}: {e!r}")
        return analyses

    def _replace_all(self, analyses: List[Analysis]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {STORAGE_KEY: [a.to_dict() for a in analyses]}
        self.path.write_text(
            json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8"
        )
        logger.debug(f"Wrote {len(analyses)} analyses to {self.path}")
