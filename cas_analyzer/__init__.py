"""
Mutual fund Consolidated Account Statement (CAS) Portfolio Analyzer.

Extracts mutual fund holdings from CAS PDFs or manually supplied CSV data,
cross-checks them against the statement's portfolio summary and derives
allocation, gain/loss and concentration metrics.
"""

from cas_analyzer.exceptions import (
    CASAnalyzerError,
    CSVFormatError,
    InvalidRowError,
    MissingColumnError,
    NoHoldingsDetectedError,
)
from cas_analyzer.main import CASAnalyzer, parse_cas_csv, parse_cas_pdf
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
    DeclaredTotals,
    Holding,
    HoldingView,
    ParseResult,
    PortfolioMetrics,
)

__version__ = "1.0.0"
__all__ = [
    "Analysis",
    "AssetCategory",
    "CASAnalyzer",
    "CASAnalyzerError",
    "CSVFormatError",
    "DeclaredTotals",
    "Holding",
    "HoldingView",
    "InvalidRowError",
    "MissingColumnError",
    "NoHoldingsDetectedError",
    "ParseResult",
    "PortfolioMetrics",
    "build_category_slices",
    "build_fund_family_slices",
    "calculate_metrics",
    "concentrated_fund_families",
    "enrich_holdings",
    "parse_cas_csv",
    "parse_cas_pdf",
    "top_holdings",
]
