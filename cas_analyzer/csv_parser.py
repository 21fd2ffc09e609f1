"""
Holdings import from manually supplied CSV text.

The CSV path mirrors the statement parser's output but is strict about
structure: a missing column or a row without a scheme name fails the whole
import. Missing numbers are simply zero and no warnings are produced.
"""

import csv
import io
import logging
import re
from typing import Dict, List, Sequence, Tuple

from cas_analyzer.categories import classify_category
from cas_analyzer.exceptions import CSVFormatError, InvalidRowError, MissingColumnError
from cas_analyzer.models import DeclaredTotals, Holding, ParseResult
from cas_analyzer.statement_parser import parse_amount, scrub_holdings

logger = logging.getLogger(__name__)

# Canonical field -> accepted header spellings (lowercase, whitespace removed)
CSV_COLUMNS: List[Tuple[str, Tuple[str, ...]]] = [
    ("fund_family", ("fundfamily",)),
    ("folio", ("folio",)),
    ("scheme_name", ("schemename",)),
    ("category", ("category",)),
    ("units", ("units",)),
    ("nav", ("nav",)),
    ("market_value", ("marketvalue", "market_value")),
    ("cost_value", ("costvalue", "cost_value")),
]

BOM = "\ufeff"
TOTALS_LABEL = "total"


def normalize_header(name: str) -> str:
    """Lowercase a header cell and drop its whitespace ("Market Value" -> "marketvalue")."""
    return re.sub(r"\s+", "", name).lower()


def resolve_columns(header: Sequence[str]) -> Dict[str, int]:
    """
    Map each canonical field to its column index.

    Args:
        header: Raw header cells.

    Returns:
        Field name -> column index.

    Raises:
        MissingColumnError: For the first required column that is absent.
    """
    normalized = [normalize_header(cell) for cell in header]
    columns: Dict[str, int] = {}
    for field_name, spellings in CSV_COLUMNS:
        for spelling in spellings:
            if spelling in normalized:
                columns[field_name] = normalized.index(spelling)
                break
        else:
            raise MissingColumnError(spellings[0])
    return columns


def is_totals_row(cells: Sequence[str]) -> bool:
    """Whether a row is the "Total" summary row appended by the CSV export."""
    return bool(cells) and cells[0].lower() == TOTALS_LABEL


def parse_holdings_csv(text: str) -> ParseResult:
    """
    Parse holdings from CSV text.

    Expected header (case-insensitive):
    fundFamily, folio, schemeName, category, units, nav, marketValue, costValue
    where market_value / cost_value spellings are accepted as well.

    Args:
        text: Raw CSV text, LF or CRLF line endings, optionally with a
            UTF-8 byte order mark. An export "Total" row ends the data.

    Returns:
        ParseResult with scrubbed holdings and no warnings.

    Raises:
        CSVFormatError: If there is no data row.
        MissingColumnError: If a required column is absent.
        InvalidRowError: If a row has no scheme name.
    """
    rows = [
        (line_number, row)
        for line_number, row in enumerate(csv.reader(io.StringIO(text.lstrip(BOM))), start=1)
        if any(cell.strip() for cell in row)
    ]
    if len(rows) < 2:
        raise CSVFormatError("CSV input must include a header and at least one row.")

    columns = resolve_columns(rows[0][1])

    holdings: List[Holding] = []
    for row_index, (line_number, row) in enumerate(rows[1:]):
        cells = [cell.strip() for cell in row]

        def get(field_name: str) -> str:
            index = columns[field_name]
            return cells[index] if index < len(cells) else ""

        scheme_name = get("scheme_name")
        if not scheme_name and is_totals_row(cells):
            logger.debug(f"Stopping at totals row {line_number}")
            break
        if not scheme_name:
            raise InvalidRowError(line_number, "Scheme name is required.")

        fund_family = get("fund_family")
        folio = get("folio")
        holdings.append(
            Holding(
                id=f"{fund_family}-{folio}-{scheme_name}-{row_index}",
                fund_family=fund_family or "Unknown Family",
                folio=folio or "N/A",
                scheme_name=scheme_name,
                category=classify_category(get("category")),
                units=parse_amount(get("units")) or 0,
                nav=parse_amount(get("nav")) or 0,
                market_value=parse_amount(get("market_value")) or 0,
                cost_value=parse_amount(get("cost_value")) or 0,
            )
        )

    scrubbed = scrub_holdings(holdings)
    logger.info(f"Parsed {len(scrubbed)} holdings from {len(holdings)} CSV rows")
    return ParseResult(holdings=scrubbed, summary=DeclaredTotals(), warnings=[])
