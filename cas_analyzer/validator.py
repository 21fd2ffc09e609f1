"""
Summary reconciliation for parsed CAS statements.

Statements print a portfolio summary with total cost and market value.
This module locates those declared totals and compares them against the
totals computed from the extracted holdings. Discrepancies are reported as
warnings only; holdings are never dropped or corrected here.
"""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence, Union

from cas_analyzer.config import RECONCILIATION_TOLERANCE
from cas_analyzer.metrics import summarize_holdings
from cas_analyzer.models import DeclaredTotals, Holding, ReconstructedLine
from cas_analyzer.section_detector import SectionState, detect_sections, get_section_by_type
from cas_analyzer.statement_parser import parse_amount

logger = logging.getLogger(__name__)

TOTAL_PATTERN = re.compile(r"^Total\s+([\d,().-]+)\s+([\d,().-]+)$", re.IGNORECASE)

MISSING_SUMMARY_WARNING = "Unable to parse portfolio summary totals for validation."


def find_declared_totals(
    lines: Sequence[Union[ReconstructedLine, str]],
) -> Optional[DeclaredTotals]:
    """
    Find the totals declared in the statement's portfolio summary.

    Scans the lines after the first "Portfolio Summary" marker up to the
    first transaction table header for a "Total <cost> <market value>" row.

    Args:
        lines: Reconstructed statement lines.

    Returns:
        DeclaredTotals, or None if no summary or no total row was found.
    """
    sections = detect_sections(lines)
    summary = get_section_by_type(sections, SectionState.PORTFOLIO_SUMMARY)
    if summary is None:
        logger.debug("No portfolio summary section found")
        return None

    # Continuation headers split the summary into several sections
    summary_lines: List[str] = []
    for section in sections[sections.index(summary):]:
        if section.section_type == SectionState.TRANSACTION_DETAILS:
            break
        summary_lines.extend(section.lines)

    for text in summary_lines[1:]:
        match = TOTAL_PATTERN.match(text.strip())
        if match:
            totals = DeclaredTotals(
                cost_value=parse_amount(match.group(1)),
                market_value=parse_amount(match.group(2)),
            )
            logger.info(
                f"Declared totals: cost={totals.cost_value}, market={totals.market_value}"
            )
            return totals

    logger.debug("Portfolio summary section has no total row")
    return None


def format_inr(value: Decimal) -> str:
    """
    Format an amount as whole rupees with Indian digit grouping.

    Example: Decimal("1234567.8") -> "₹12,34,568".
    """
    amount = abs(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    digits = str(int(amount))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    sign = "-" if value < 0 and amount else ""
    return f"{sign}₹{digits}"


def format_difference(value: Decimal) -> str:
    """Describe a computed-minus-declared difference."""
    return f"{format_inr(abs(value))} ({'+' if value > 0 else '-'} vs CAS)"


class SummaryReconciler:
    """
    Cross-checks extracted holdings against the declared summary totals.

    A total is flagged when its relative difference from the declared
    figure exceeds the tolerance.
    """

    def __init__(self, tolerance: Decimal = RECONCILIATION_TOLERANCE):
        """
        Initialize the reconciler.

        Args:
            tolerance: Allowed relative difference (0.02 = 2%).
        """
        self.tolerance = tolerance

    def reconcile(
        self, declared: Optional[DeclaredTotals], holdings: Sequence[Holding]
    ) -> List[str]:
        """
        Compare declared totals with totals computed from holdings.

        Args:
            declared: Totals from the statement, or None if not found.
            holdings: Extracted holdings.

        Returns:
            Warnings describing any discrepancies.
        """
        if declared is None:
            return [MISSING_SUMMARY_WARNING]

        computed = summarize_holdings(holdings)
        warnings: List[str] = []

        if self._exceeds(declared.market_value, computed.total_market_value):
            warnings.append(
                f"Market value differs from CAS summary by "
                f"{format_difference(computed.total_market_value - declared.market_value)}."
            )

        if self._exceeds(declared.cost_value, computed.total_cost_value):
            warnings.append(
                f"Invested amount differs from CAS summary by "
                f"{format_difference(computed.total_cost_value - declared.cost_value)}."
            )

        logger.info(f"Reconciliation produced {len(warnings)} warnings")
        return warnings

    def _exceeds(self, declared: Optional[Decimal], computed: Decimal) -> bool:
        if not declared:
            return False
        return abs(declared - computed) / abs(declared) > self.tolerance


def reconcile_totals(
    declared: Optional[DeclaredTotals],
    holdings: Sequence[Holding],
    tolerance: Decimal = RECONCILIATION_TOLERANCE,
) -> List[str]:
    """
    Convenience function to reconcile declared totals with holdings.

    Args:
        declared: Totals from the statement, or None.
        holdings: Extracted holdings.
        tolerance: Allowed relative difference.

    Returns:
        Reconciliation warnings.
    """
    return SummaryReconciler(tolerance=tolerance).reconcile(declared, holdings)
