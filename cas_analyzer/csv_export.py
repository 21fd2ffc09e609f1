"""
CSV export of an analysis.

The export lists every enriched holding followed by a totals row. Without
the totals row the file can be re-imported through the CSV parser.
"""

import csv
import io
import logging
import re
from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Sequence, Union

from cas_analyzer.models import Analysis, HoldingView

logger = logging.getLogger(__name__)

EXPORT_HEADERS = [
    "Fund Family",
    "Folio",
    "Scheme Name",
    "Category",
    "Units",
    "NAV",
    "Market Value",
    "Cost Value",
    "Gain/Loss",
    "Return %",
    "Allocation %",
]


def _cell(value: Union[str, Decimal, int, float, None]) -> str:
    if value is None:
        return ""
    return str(value)


def holding_row(holding: HoldingView) -> List[str]:
    return [
        _cell(holding.fund_family),
        _cell(holding.folio),
        _cell(holding.scheme_name),
        holding.category.value if holding.category else "",
        _cell(holding.units),
        _cell(holding.nav),
        _cell(holding.market_value),
        _cell(holding.cost_value),
        _cell(holding.gain_loss),
        _cell(holding.return_percent),
        _cell(holding.allocation_percent),
    ]


def analysis_to_csv(
    analysis: Analysis,
    holdings: Sequence[HoldingView],
    include_totals: bool = True,
) -> str:
    """
    Render an analysis as CSV text.

    Args:
        analysis: The analysis being exported (supplies the totals).
        holdings: Enriched holdings to list.
        include_totals: Append a blank row and a "Total" row.

    Returns:
        CSV text with LF line endings.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for holding in holdings:
        writer.writerow(holding_row(holding))

    if include_totals:
        metrics = analysis.metrics
        writer.writerow([])
        writer.writerow([
            "Total", "", "", "", "", "",
            _cell(metrics.total_market_value),
            _cell(metrics.total_cost_value),
            _cell(metrics.gain_loss_value),
            _cell(metrics.gain_loss_percent),
            "100",
        ])

    return buffer.getvalue()


def export_file_name(analysis: Analysis) -> str:
    """File name for an export: the label with whitespace runs as dashes."""
    base = re.sub(r"\s+", "-", analysis.label.strip())
    return f"{base}.csv"


def write_analysis_csv(
    analysis: Analysis,
    holdings: Sequence[HoldingView],
    output: Optional[Union[str, Path]] = None,
    include_totals: bool = True,
) -> Path:
    """
    Write an analysis export to disk.

    Args:
        analysis: Analysis to export.
        holdings: Enriched holdings to list.
        output: Target file or directory; defaults to the working directory.
        include_totals: Append the totals row.

    Returns:
        Path of the written file.
    """
    target = Path(output) if output else Path.cwd()
    if target.is_dir():
        target = target / export_file_name(analysis)

    target.write_text(analysis_to_csv(analysis, holdings, include_totals), encoding="utf-8")
    logger.info(f"Exported CSV to: {target}")
    return target
