"""
Finite State Machine for CAS section detection.

This module identifies the portfolio summary block and the transaction
tables of a CAS statement using semantic markers rather than fixed
positions. The summary reconciler uses it to find the declared totals.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Sequence, Union

from cas_analyzer.models import ReconstructedLine

logger = logging.getLogger(__name__)


class SectionState(Enum):
    """States of the section detection FSM."""
    INITIAL = auto()
    PORTFOLIO_SUMMARY = auto()
    TRANSACTION_DETAILS = auto()


@dataclass
class Section:
    """
    Represents a detected section in the CAS document.

    Attributes:
        section_type: Type of section (from SectionState)
        start_line: Index of the first line of this section (its header)
        end_line: Index one past the last line of this section
        lines: Text lines in this section, header included
    """
    section_type: SectionState
    start_line: int
    end_line: int
    lines: List[str] = field(default_factory=list)


class SectionPatterns:
    """Regex markers for the sections of a CAS statement."""

    SUMMARY_MARKERS = [
        r"(?i)portfolio\s*summary",
    ]

    # Column header of the per-scheme transaction tables
    TRANSACTION_MARKERS = [
        r"(?i)date\s+transaction",
    ]


class SectionDetector:
    """
    Finite State Machine splitting statement lines into sections.

    INITIAL -> PORTFOLIO_SUMMARY on a summary marker, then
    -> TRANSACTION_DETAILS on the first transaction table header. A later
    summary marker opens a new summary section.
    """

    def __init__(self):
        """Initialize the section detector with default state."""
        self.current_state = SectionState.INITIAL
        self.summary_re = [re.compile(p) for p in SectionPatterns.SUMMARY_MARKERS]
        self.transaction_re = [re.compile(p) for p in SectionPatterns.TRANSACTION_MARKERS]

    def detect_sections(self, lines: Sequence[Union[ReconstructedLine, str]]) -> List[Section]:
        """
        Detect all sections in the given lines.

        Args:
            lines: Reconstructed lines or plain strings, top to bottom.

        Returns:
            List of Section objects with detected boundaries.
        """
        texts = [line.text if isinstance(line, ReconstructedLine) else str(line) for line in lines]
        self.current_state = SectionState.INITIAL
        sections: List[Section] = []
        start: Optional[int] = None

        for i, text in enumerate(texts):
            new_state = self._check_transition(text)
            if new_state == self.current_state and not self._reopens_summary(new_state, text):
                continue

            if start is not None:
                sections.append(self._close(self.current_state, start, i, texts))
            start = i
            self.current_state = new_state
            logger.debug(f"Started {new_state.name} section at line {i}")

        if start is not None:
            sections.append(self._close(self.current_state, start, len(texts), texts))

        logger.debug(f"Detected {len(sections)} sections")
        return sections

    def _check_transition(self, text: str) -> SectionState:
        if self._matches_any(text, self.summary_re):
            return SectionState.PORTFOLIO_SUMMARY
        if self.current_state != SectionState.INITIAL and self._matches_any(text, self.transaction_re):
            return SectionState.TRANSACTION_DETAILS
        return self.current_state

    def _reopens_summary(self, new_state: SectionState, text: str) -> bool:
        return new_state == SectionState.PORTFOLIO_SUMMARY and self._matches_any(text, self.summary_re)

    @staticmethod
    def _close(state: SectionState, start: int, end: int, texts: List[str]) -> Section:
        return Section(section_type=state, start_line=start, end_line=end, lines=texts[start:end])

    @staticmethod
    def _matches_any(line: str, patterns: List[re.Pattern]) -> bool:
        return any(p.search(line) for p in patterns)


def detect_sections(lines: Sequence[Union[ReconstructedLine, str]]) -> List[Section]:
    """
    Convenience function to detect sections in statement lines.

    Args:
        lines: Reconstructed lines or plain strings.

    Returns:
        List of Section objects with detected boundaries.
    """
    return SectionDetector().detect_sections(lines)


def get_section_by_type(
    sections: List[Section], section_type: SectionState
) -> Optional[Section]:
    """
    Get the first section of a specific type.

    Args:
        sections: List of detected sections.
        section_type: Type of section to find.

    Returns:
        First matching section or None.
    """
    for section in sections:
        if section.section_type == section_type:
            return section
    return None
