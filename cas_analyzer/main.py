"""
Main entry point for the CAS Portfolio Analyzer.

This module provides the CLI interface and orchestrates the import
pipeline: PDF extraction, line reconstruction, holdings extraction,
summary reconciliation, metrics and JSON export.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from cas_analyzer.config import LARGE_PORTFOLIO_THRESHOLD, AnalyzerConfig
from cas_analyzer.csv_parser import parse_holdings_csv
from cas_analyzer.extractor import PDFExtractor
from cas_analyzer.history import JsonFileAnalysisRepository
from cas_analyzer.line_reconstructor import reconstruct_page_lines
from cas_analyzer.metrics import CONCENTRATION_WARNING
from cas_analyzer.models import DeclaredTotals, ParseResult, ReconstructedLine
from cas_analyzer.statement_parser import parse_statement_holdings
from cas_analyzer.validator import SummaryReconciler, find_declared_totals

logger = logging.getLogger(__name__)

LARGE_PORTFOLIO_WARNING = (
    "Large portfolio detected. Table pagination is enabled for better performance."
)


class CASAnalyzer:
    """
    Import pipeline for CAS statements and manual CSV data.

    Statement imports go through:
    1. Extract positioned text from the PDF, page by page
    2. Reconstruct logical lines
    3. Extract holdings
    4. Reconcile against the declared portfolio summary
    """

    def __init__(
        self,
        password: Optional[str] = None,
        continuation_lines: int = 0,
        reconciler: Optional[SummaryReconciler] = None,
    ):
        """
        Initialize the analyzer.

        Args:
            password: Optional password for encrypted PDFs.
            continuation_lines: Closing balance continuation fallback, see
                StatementParser.
            reconciler: Summary reconciler (default tolerance if omitted).
        """
        self.extractor = PDFExtractor(password=password)
        self.continuation_lines = continuation_lines
        self.reconciler = reconciler or SummaryReconciler()

    def parse_pdf(self, pdf_path: Union[str, Path]) -> ParseResult:
        """
        Parse a CAS PDF file.

        Args:
            pdf_path: Path to the CAS PDF file.

        Returns:
            ParseResult with holdings, declared totals and warnings.

        Raises:
            FileNotFoundError: If PDF file doesn't exist.
            ValueError: If the file is not a PDF.
            NoHoldingsDetectedError: If no holdings could be found.
        """
        logger.info(f"Starting CAS parsing: {pdf_path}")

        document = self.extractor.extract(pdf_path)
        lines = reconstruct_page_lines(document.get_page_fragments())
        logger.info(f"Reconstructed {len(lines)} lines from {document.total_pages} pages")

        return self.parse_lines(lines, file_name=Path(pdf_path).name)

    def parse_lines(
        self,
        lines: Sequence[Union[ReconstructedLine, str]],
        file_name: Optional[str] = None,
    ) -> ParseResult:
        """
        Parse reconstructed statement lines.

        Args:
            lines: Lines in top-to-bottom order.
            file_name: Source file name; enables the large portfolio advisory.

        Returns:
            ParseResult with holdings, declared totals and warnings.

        Raises:
            NoHoldingsDetectedError: If no holdings could be found.
        """
        holdings, warnings = parse_statement_holdings(
            lines, continuation_lines=self.continuation_lines
        )

        declared = find_declared_totals(lines)
        warnings.extend(self.reconciler.reconcile(declared, holdings))

        if file_name and len(holdings) > LARGE_PORTFOLIO_THRESHOLD:
            warnings.append(LARGE_PORTFOLIO_WARNING)

        logger.info(f"Parsing complete: {len(holdings)} holdings, {len(warnings)} warnings")

        return ParseResult(
            holdings=holdings,
            summary=declared if declared is not None else DeclaredTotals(),
            warnings=warnings,
        )

    def parse_csv(self, text: str) -> ParseResult:
        """Parse manually supplied CSV holdings."""
        return parse_holdings_csv(text)


def parse_cas_pdf(
    pdf_path: Union[str, Path],
    password: Optional[str] = None,
    continuation_lines: int = 0,
) -> ParseResult:
    """
    Parse a CAS PDF file.

    This is the main entry point for programmatic use.

    Args:
        pdf_path: Path to the CAS PDF file.
        password: Optional password for encrypted PDFs.
        continuation_lines: Closing balance continuation fallback.

    Returns:
        ParseResult with all parsed data.
    """
    analyzer = CASAnalyzer(password=password, continuation_lines=continuation_lines)
    return analyzer.parse_pdf(pdf_path)


def parse_cas_csv(text: str) -> ParseResult:
    """Parse CSV holdings text into a ParseResult."""
    return parse_holdings_csv(text)


def analysis_report(session: Any) -> Dict[str, Any]:
    """Build the JSON-ready report for the session's current analysis."""
    analysis = session.current_analysis
    return {
        "analysis": analysis.to_dict(),
        "holdings": [h.to_dict() for h in session.holdings_view],
        "fund_families": [
            {
                "fund_family": s.fund_family,
                "market_value": str(s.market_value),
                "allocation_percent": str(s.allocation_percent),
                "concentrated": s.concentrated,
                "note": CONCENTRATION_WARNING if s.concentrated else None,
            }
            for s in session.fund_family_slices
        ],
        "top_holdings": [h.to_dict() for h in session.top_holdings],
        "categories": [
            {
                "category": s.category.value,
                "market_value": str(s.market_value),
                "allocation_percent": str(s.allocation_percent),
            }
            for s in session.category_slices
        ],
    }


def main(argv: Optional[Sequence[str]] = None):
    """CLI entry point."""
    # Imported here: the session module depends on this module's pipeline.
    from cas_analyzer.history import InMemoryAnalysisRepository
    from cas_analyzer.session import PortfolioSession

    parser = argparse.ArgumentParser(
        description="Analyze mutual fund holdings from a CAS PDF or CSV file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s statement.pdf
  %(prog)s statement.pdf -o analysis.json --save
  %(prog)s holdings.csv --csv --export-csv holdings-export.csv
        """,
    )
    parser.add_argument("input_file", help="Path to the CAS PDF (or CSV with --csv)")
    parser.add_argument("-o", "--output", help="Output JSON file path (default: stdout)")
    parser.add_argument("-p", "--password", help="Password for encrypted PDF")
    parser.add_argument("--csv", action="store_true", help="Treat the input as CSV holdings")
    parser.add_argument("--export-csv", metavar="PATH", help="Also write the holdings as CSV")
    parser.add_argument(
        "--save", action="store_true", help="Save the analysis to the history file"
    )
    parser.add_argument(
        "--warnings-only", action="store_true", help="Only print parse warnings"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Suppress all output except errors"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    config = AnalyzerConfig.from_env()
    if args.save:
        repository = JsonFileAnalysisRepository(config.history_path, config.history_limit)
    else:
        repository = InMemoryAnalysisRepository(config.history_limit)

    session = PortfolioSession(
        repository,
        analyzer=CASAnalyzer(
            password=args.password, continuation_lines=config.continuation_lines
        ),
        restore=False,
    )

    if args.csv:
        try:
            text = Path(args.input_file).read_text(encoding="utf-8")
        except FileNotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        session.import_csv(text)
    else:
        session.import_pdf(args.input_file)

    if session.status != "ready":
        print(f"Error: {session.error}", file=sys.stderr)
        sys.exit(1)

    if args.warnings_only:
        for warning in session.warnings:
            print(f"  - {warning}")
        sys.exit(0)

    json_str = json.dumps(analysis_report(session), indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(json_str, encoding="utf-8")
        logger.info(f"Exported JSON to: {args.output}")
    else:
        print(json_str)

    if args.export_csv:
        session.export_csv(args.export_csv)

    if not args.quiet:
        metrics = session.current_analysis.metrics
        print(
            f"\nParsed: {metrics.holdings_count} holdings, "
            f"market value {metrics.total_market_value}",
            file=sys.stderr,
        )
        if session.warnings:
            print(f"Warnings: {len(session.warnings)}", file=sys.stderr)
        for family in session.concentrated_fund_families():
            print(
                f"{family.fund_family} ({family.allocation_percent:.2f}%): {CONCENTRATION_WARNING}",
                file=sys.stderr,
            )


if __name__ == "__main__":
    main()
