"""
Application state around the analyzer.

PortfolioSession owns the "current analysis" and its derived views, and
keeps the analysis history through an injected repository. A failed
import only flips the status to "error"; the current analysis and the
history are left as they were.
"""

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Union

from cas_analyzer.csv_export import write_analysis_csv
from cas_analyzer.exceptions import CASAnalyzerError
from cas_analyzer.history import AnalysisRepository
from cas_analyzer.main import CASAnalyzer
from cas_analyzer.metrics import (
    build_category_slices,
    build_fund_family_slices,
    calculate_metrics,
    concentrated_fund_families,
    enrich_holdings,
    top_holdings,
)
from cas_analyzer.models import (
    Analysis,
    AssetCategory,
    CategorySlice,
    FundFamilySlice,
    HoldingView,
    ParseResult,
)

logger = logging.getLogger(__name__)

STATUS_IDLE = "idle"
STATUS_PARSING = "parsing"
STATUS_READY = "ready"
STATUS_ERROR = "error"

ALL_CATEGORIES = "All"

CategoryFilter = Union[AssetCategory, str]


def friendly_label(file_name: Optional[str], now: datetime) -> str:
    """History label for an imported statement."""
    if not file_name:
        return f"CAS import ({now:%Y-%m-%d %H:%M})"
    return f"{Path(file_name).stem} • {now:%Y-%m-%d}"


class PortfolioSession:
    """
    Current analysis, its derived views and the saved history.

    Attributes:
        status: One of idle, parsing, ready, error
        status_message: Progress text while parsing
        error: Message of the last failed import
        current_analysis: Analysis being viewed
        holdings_view: Enriched holdings of the current analysis
        fund_family_slices: Fund family breakdown of the current analysis
        top_holdings: Largest enriched holdings of the current analysis
        category_slices: Category breakdown of the current analysis
        warnings: Warnings of the current analysis
        category_filter: "All" or an AssetCategory
    """

    def __init__(
        self,
        repository: AnalysisRepository,
        analyzer: Optional[CASAnalyzer] = None,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        restore: bool = True,
    ):
        """
        Initialize the session.

        Args:
            repository: History storage.
            analyzer: Import pipeline.
            id_factory: Produces ids for new analyses (uuid4 by default).
            clock: Produces creation timestamps (datetime.now by default).
            restore: Make the most recent saved analysis current.
        """
        self.repository = repository
        self.analyzer = analyzer or CASAnalyzer()
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self.clock = clock or datetime.now

        self.status = STATUS_IDLE
        self.status_message: Optional[str] = None
        self.error: Optional[str] = None
        self.category_filter: CategoryFilter = ALL_CATEGORIES
        self.selected_history_id: Optional[str] = None
        self._clear_current()

        if restore:
            saved = self.repository.list()
            if saved:
                self._show(saved[0])

    @property
    def saved_analyses(self) -> List[Analysis]:
        return self.repository.list()

    def import_pdf(self, pdf_path: Union[str, Path]) -> Optional[Analysis]:
        """
        Import a CAS PDF and make it the current analysis.

        Returns:
            The new analysis, or None if the import failed.
        """
        name = Path(pdf_path).name
        self._start(f"Reading {name}...")
        try:
            result = self.analyzer.parse_pdf(pdf_path)
        except Exception as e:
            self._fail(e, "Unable to parse the uploaded CAS PDF.")
            return None
        return self._consume(result, friendly_label(name, self.clock()), file_name=name)

    def import_csv(self, text: str) -> Optional[Analysis]:
        """
        Import CSV holdings and make them the current analysis.

        Returns:
            The new analysis, or None if the import failed.
        """
        self._start("Parsing CSV input...")
        try:
            result = self.analyzer.parse_csv(text)
        except Exception as e:
            self._fail(e, "Unable to parse the provided CSV.")
            return None
        label = f"Manual CSV ({self.clock():%Y-%m-%d %H:%M:%S})"
        return self._consume(result, label)

    def load_analysis(self, analysis_id: str) -> bool:
        """Make a saved analysis current; False if it does not exist."""
        analysis = self.repository.get(analysis_id)
        if analysis is None:
            return False
        self._show(analysis)
        return True

    def delete_analysis(self, analysis_id: str) -> None:
        """Delete a saved analysis, clearing the view if it was current."""
        self.repository.delete(analysis_id)
        if self.current_analysis is not None and self.current_analysis.id == analysis_id:
            self._clear_current()

    def clear_history(self) -> None:
        self.repository.clear()
        self._clear_current()
        self.status = STATUS_IDLE

    def set_category_filter(self, category_filter: CategoryFilter) -> None:
        if isinstance(category_filter, str) and category_filter != ALL_CATEGORIES:
            category_filter = AssetCategory(category_filter)
        self.category_filter = category_filter

    def concentrated_fund_families(self) -> List[FundFamilySlice]:
        """Fund families of the current analysis above the concentration threshold."""
        return concentrated_fund_families(self.fund_family_slices)

    def filtered_holdings(self) -> List[HoldingView]:
        """Enriched holdings matching the category filter."""
        if self.category_filter == ALL_CATEGORIES:
            return list(self.holdings_view)
        return [h for h in self.holdings_view if h.category == self.category_filter]

    def export_csv(self, output: Optional[Union[str, Path]] = None) -> Optional[Path]:
        """Write the current analysis as CSV; None when nothing is loaded."""
        if self.current_analysis is None:
            return None
        return write_analysis_csv(self.current_analysis, self.holdings_view, output)

    def reset_error(self) -> None:
        self.error = None
        self.status = STATUS_IDLE

    def _start(self, message: str) -> None:
        self.status = STATUS_PARSING
        self.status_message = message
        self.error = None

    def _fail(self, error: Exception, fallback: str) -> None:
        if isinstance(error, CASAnalyzerError):
            logger.warning(f"Import failed: {error.message}")
        else:
            logger.exception("Import failed")
        self.status = STATUS_ERROR
        self.status_message = None
        self.error = str(error) or fallback

    def _consume(
        self, result: ParseResult, label: str, file_name: Optional[str] = None
    ) -> Analysis:
        analysis = Analysis(
            id=self.id_factory(),
            label=label,
            file_name=file_name,
            created_at=self.clock(),
            holdings=list(result.holdings),
            metrics=calculate_metrics(result.holdings),
            warnings=list(result.warnings),
        )
        self.repository.save(analysis)
        self._show(analysis)
        self.status_message = None
        logger.info(f"Saved analysis {analysis.id} ({analysis.label})")
        return analysis

    def _show(self, analysis: Analysis) -> None:
        total = analysis.metrics.total_market_value
        self.current_analysis = analysis
        self.holdings_view = enrich_holdings(analysis.holdings, total)
        self.fund_family_slices = build_fund_family_slices(analysis.holdings, total)
        self.top_holdings = top_holdings(self.holdings_view)
        self.category_slices = build_category_slices(analysis.holdings, total)
        self.warnings = list(analysis.warnings)
        self.selected_history_id = analysis.id
        self.status = STATUS_READY
        self.error = None

    def _clear_current(self) -> None:
        self.current_analysis: Optional[Analysis] = None
        self.holdings_view: List[HoldingView] = []
        self.fund_family_slices: List[FundFamilySlice] = []
        self.top_holdings: List[HoldingView] = []
        self.category_slices: List[CategorySlice] = []
        self.warnings: List[str] = []
        self.selected_history_id = None
