"""
Data models for the CAS Portfolio Analyzer.

This module defines the core data structures using dataclasses for:
- Positioned text fragments and reconstructed lines
- Mutual fund holdings and their derived views
- Parse results, portfolio metrics and allocation slices
- Saved analyses
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser


class AssetCategory(Enum):
    """Closed set of asset categories a scheme is classified into."""
    EQUITY = "Equity"
    DEBT = "Debt"
    HYBRID = "Hybrid"
    GOLD = "Gold"
    OTHER = "Other"


# Display order for category breakdowns
ASSET_CATEGORIES: List[AssetCategory] = [
    AssetCategory.EQUITY,
    AssetCategory.DEBT,
    AssetCategory.HYBRID,
    AssetCategory.GOLD,
    AssetCategory.OTHER,
]


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a number-like value to Decimal, keeping None as None."""
    if value is None or isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


@dataclass
class TextFragment:
    """
    A positioned text token from one PDF page.

    Coordinates use the PDF convention: origin at the bottom-left, so a
    larger y is higher on the page.
    """
    text: str
    x: float
    y: float
    width: float = 0.0


@dataclass
class ReconstructedLine:
    """
    A logical line rebuilt from fragments sharing a vertical band.

    Attributes:
        y: Vertical position of the line (from its first fragment)
        fragments: Fragments of the line ordered left to right
        text: Concatenated, whitespace-normalized line text
    """
    y: float
    fragments: List[TextFragment] = field(default_factory=list)
    text: str = ""


@dataclass
class Holding:
    """
    Represents a mutual fund holding extracted from a statement or CSV.

    Numeric fields may be None straight out of an extractor; scrubbing
    replaces them with zero.

    Attributes:
        id: Deterministic key built from fund family, folio and scheme
        fund_family: Fund house name without the "Mutual Fund" suffix
        folio: Folio number
        scheme_name: Scheme name
        category: Asset category of the scheme
        units: Closing unit balance
        nav: Net Asset Value per unit
        market_value: Market value on the statement date
        cost_value: Total cost value (amount invested)
    """
    id: str
    fund_family: str
    folio: str
    scheme_name: str
    category: Optional[AssetCategory] = AssetCategory.OTHER
    units: Optional[Decimal] = None
    nav: Optional[Decimal] = None
    market_value: Optional[Decimal] = None
    cost_value: Optional[Decimal] = None

    def __post_init__(self):
        """Ensure Decimal types for numeric fields."""
        self.units = to_decimal(self.units)
        self.nav = to_decimal(self.nav)
        self.market_value = to_decimal(self.market_value)
        self.cost_value = to_decimal(self.cost_value)
        if isinstance(self.category, str):
            self.category = AssetCategory(self.category)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fund_family": self.fund_family,
            "folio": self.folio,
            "scheme_name": self.scheme_name,
            "category": self.category.value if self.category else None,
            "units": _str_or_none(self.units),
            "nav": _str_or_none(self.nav),
            "market_value": _str_or_none(self.market_value),
            "cost_value": _str_or_none(self.cost_value),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Holding":
        return cls(
            id=data["id"],
            fund_family=data.get("fund_family", ""),
            folio=data.get("folio", ""),
            scheme_name=data.get("scheme_name", ""),
            category=data.get("category") or AssetCategory.OTHER,
            units=data.get("units"),
            nav=data.get("nav"),
            market_value=data.get("market_value"),
            cost_value=data.get("cost_value"),
        )


@dataclass
class HoldingView(Holding):
    """
    A holding enriched with per-holding derived figures.

    Attributes:
        gain_loss: market_value - cost_value
        return_percent: Gain/loss as a percentage of cost
        allocation_percent: Share of the portfolio market value
    """
    gain_loss: Decimal = Decimal("0")
    return_percent: Decimal = Decimal("0")
    allocation_percent: Decimal = Decimal("0")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "gain_loss": str(self.gain_loss),
            "return_percent": str(self.return_percent),
            "allocation_percent": str(self.allocation_percent),
        })
        return data


@dataclass
class DeclaredTotals:
    """Totals printed in the statement's portfolio summary block."""
    market_value: Optional[Decimal] = None
    cost_value: Optional[Decimal] = None

    def __post_init__(self):
        self.market_value = to_decimal(self.market_value)
        self.cost_value = to_decimal(self.cost_value)


@dataclass(frozen=True)
class ParseResult:
    """
    Outcome of a single import.

    Attributes:
        holdings: Scrubbed holdings
        summary: Totals declared by the statement (empty for CSV input)
        warnings: Non-fatal issues found while parsing
    """
    holdings: List[Holding] = field(default_factory=list)
    summary: DeclaredTotals = field(default_factory=DeclaredTotals)
    warnings: List[str] = field(default_factory=list)


@dataclass
class PortfolioMetrics:
    """
    Portfolio-level totals.

    average_return is the unweighted mean of per-holding returns over
    holdings with a positive cost value. It ignores cash-flow dates and is
    not a money- or time-weighted return; None when no holding has cost.
    """
    total_market_value: Decimal = Decimal("0")
    total_cost_value: Decimal = Decimal("0")
    gain_loss_value: Decimal = Decimal("0")
    gain_loss_percent: Decimal = Decimal("0")
    holdings_count: int = 0
    average_return: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_market_value": str(self.total_market_value),
            "total_cost_value": str(self.total_cost_value),
            "gain_loss_value": str(self.gain_loss_value),
            "gain_loss_percent": str(self.gain_loss_percent),
            "holdings_count": self.holdings_count,
            "average_return": _str_or_none(self.average_return),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PortfolioMetrics":
        return cls(
            total_market_value=Decimal(data.get("total_market_value", "0")),
            total_cost_value=Decimal(data.get("total_cost_value", "0")),
            gain_loss_value=Decimal(data.get("gain_loss_value", "0")),
            gain_loss_percent=Decimal(data.get("gain_loss_percent", "0")),
            holdings_count=int(data.get("holdings_count", 0)),
            average_return=to_decimal(data.get("average_return")),
        )


@dataclass
class FundFamilySlice:
    """
    Market value subtotal for one fund family.

    concentrated marks a family whose allocation exceeds the concentration
    threshold.
    """
    fund_family: str
    market_value: Decimal
    allocation_percent: Decimal
    concentrated: bool = False


@dataclass
class CategorySlice:
    """Market value subtotal for one asset category."""
    category: AssetCategory
    market_value: Decimal
    allocation_percent: Decimal


@dataclass
class Analysis:
    """
    A saved import: holdings, their metrics and parse warnings.

    Attributes:
        id: Caller-supplied identifier
        label: Human readable label shown in history
        created_at: Caller-supplied creation timestamp
        holdings: Scrubbed holdings
        metrics: Metrics computed from the holdings
        warnings: Warnings produced by the import
        file_name: Source file name, if any
    """
    id: str
    label: str
    created_at: datetime
    holdings: List[Holding] = field(default_factory=list)
    metrics: PortfolioMetrics = field(default_factory=PortfolioMetrics)
    warnings: List[str] = field(default_factory=list)
    file_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the analysis to a dictionary for JSON serialization.

        Returns:
            Dictionary representation of the analysis.
        """
        return {
            "id": self.id,
            "label": self.label,
            "file_name": self.file_name,
            "created_at": self.created_at.isoformat(),
            "holdings": [h.to_dict() for h in self.holdings],
            "metrics": self.metrics.to_dict(),
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Analysis":
        """
        Rebuild an analysis from its dictionary form.

        Args:
            data: Output of to_dict(), typically loaded from JSON.

        Returns:
            The reconstructed Analysis.
        """
        return cls(
            id=data["id"],
            label=data.get("label", ""),
            file_name=data.get("file_name"),
            created_at=date_parser.isoparse(data["created_at"]),
            holdings=[Holding.from_dict(h) for h in data.get("holdings", [])],
            metrics=PortfolioMetrics.from_dict(data.get("metrics", {})),
            warnings=list(data.get("warnings", [])),
        )


def _str_or_none(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None
