"""
Line reconstruction from positioned text fragments.

PDF text comes out as loose tokens with coordinates. This module groups
tokens that share a vertical band into logical lines and joins them left
to right, approximating the statement's tabular layout.
"""

import logging
import math
import re
from typing import Dict, Iterable, List, Optional

from cas_analyzer.config import X_GAP_THRESHOLD, Y_TOLERANCE
from cas_analyzer.models import ReconstructedLine, TextFragment

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def line_key(y: float, y_tolerance: float = Y_TOLERANCE) -> int:
    """Bucket index for a vertical position (rounds half up)."""
    return math.floor(y / y_tolerance + 0.5)


def join_fragments(
    fragments: List[TextFragment], x_gap_threshold: float = X_GAP_THRESHOLD
) -> str:
    """
    Join x-ordered fragments into line text.

    A space is inserted only where the gap between the end of one fragment
    and the start of the next exceeds the threshold; tighter fragments are
    parts of the same word.
    """
    parts: List[str] = []
    prev_right: Optional[float] = None
    for fragment in fragments:
        if prev_right is not None and fragment.x - prev_right > x_gap_threshold:
            parts.append(" ")
        parts.append(fragment.text)
        prev_right = fragment.x + (fragment.width or 0)
    return _WHITESPACE.sub(" ", "".join(parts)).strip()


def _bucket_page(
    fragments: Iterable[TextFragment], y_tolerance: float
) -> List[ReconstructedLine]:
    buckets: Dict[int, ReconstructedLine] = {}
    for fragment in fragments:
        if not fragment.text or not fragment.text.strip():
            continue
        key = line_key(fragment.y, y_tolerance)
        bucket = buckets.get(key)
        if bucket is None:
            buckets[key] = ReconstructedLine(y=fragment.y, fragments=[fragment])
        else:
            bucket.fragments.append(fragment)
    return list(buckets.values())


def reconstruct_page_lines(
    pages: Iterable[Iterable[TextFragment]],
    y_tolerance: float = Y_TOLERANCE,
    x_gap_threshold: float = X_GAP_THRESHOLD,
) -> List[ReconstructedLine]:
    """
    Rebuild logical lines from fragments grouped per page.

    Each page is bucketed on its own, in page order, and the resulting
    lines are appended before a single stable sort by descending y. The
    page number is not part of the sort key.

    Args:
        pages: Fragments of each page, in ascending page order.
        y_tolerance: Height of a line bucket.
        x_gap_threshold: Gap that separates two words.

    Returns:
        Non-empty lines ordered top of page first.
    """
    raw_lines: List[ReconstructedLine] = []
    for page_fragments in pages:
        raw_lines.extend(_bucket_page(page_fragments, y_tolerance))

    lines: List[ReconstructedLine] = []
    for raw in raw_lines:
        ordered = sorted(raw.fragments, key=lambda f: f.x)
        text = join_fragments(ordered, x_gap_threshold)
        if text:
            lines.append(ReconstructedLine(y=raw.y, fragments=ordered, text=text))

    lines.sort(key=lambda line: -line.y)
    logger.debug(f"Reconstructed {len(lines)} lines")
    return lines


def reconstruct_lines(
    fragments: Iterable[TextFragment],
    y_tolerance: float = Y_TOLERANCE,
    x_gap_threshold: float = X_GAP_THRESHOLD,
) -> List[ReconstructedLine]:
    """
    Rebuild logical lines from the fragments of a single page.

    Args:
        fragments: Positioned fragments in any order.
        y_tolerance: Height of a line bucket.
        x_gap_threshold: Gap that separates two words.

    Returns:
        Non-empty lines ordered top of page first.
    """
    return reconstruct_page_lines([fragments], y_tolerance, x_gap_threshold)
