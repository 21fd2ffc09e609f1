"""
Portfolio metrics derived from a list of holdings.

All functions are pure: they take holdings and return fresh objects.
"""

import logging
from collections import OrderedDict
from dataclasses import fields
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from cas_analyzer.config import CONCENTRATION_THRESHOLD, TOP_HOLDINGS_LIMIT
from cas_analyzer.models import (
    ASSET_CATEGORIES,
    AssetCategory,
    CategorySlice,
    FundFamilySlice,
    Holding,
    HoldingView,
    PortfolioMetrics,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

CONCENTRATION_WARNING = "Concentration warning: consider trimming exposure."


def _value(amount: Optional[Decimal]) -> Decimal:
    return amount if amount is not None else ZERO


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    return part / whole * HUNDRED if whole else ZERO


def holding_return_percent(holding: Holding) -> Decimal:
    """
    Percent return of a single holding.

    With no cost value a holding that still has market value counts as a
    100% return, and an empty one as 0%.
    """
    market_value = _value(holding.market_value)
    cost_value = _value(holding.cost_value)
    if cost_value > ZERO:
        return (market_value - cost_value) / cost_value * HUNDRED
    return HUNDRED if market_value > ZERO else ZERO


def enrich_holdings(
    holdings: Sequence[Holding], total_market_value: Optional[Decimal]
) -> List[HoldingView]:
    """
    Add gain/loss, return and allocation to each holding.

    Args:
        holdings: Scrubbed holdings.
        total_market_value: Portfolio market value; when zero or None it is
            recomputed from the holdings so allocations add up to 100%.

    Returns:
        One HoldingView per holding, in the same order.
    """
    if not total_market_value:
        total_market_value = sum((_value(h.market_value) for h in holdings), ZERO)

    views = []
    for holding in holdings:
        base = {f.name: getattr(holding, f.name) for f in fields(Holding)}
        views.append(
            HoldingView(
                **base,
                gain_loss=_value(holding.market_value) - _value(holding.cost_value),
                return_percent=holding_return_percent(holding),
                allocation_percent=_percent(_value(holding.market_value), total_market_value),
            )
        )
    return views


def summarize_holdings(holdings: Sequence[Holding]) -> PortfolioMetrics:
    """
    Compute portfolio totals without the average return.

    Args:
        holdings: Holdings to total.

    Returns:
        PortfolioMetrics with average_return left as None.
    """
    total_market_value = sum((_value(h.market_value) for h in holdings), ZERO)
    total_cost_value = sum((_value(h.cost_value) for h in holdings), ZERO)
    gain_loss_value = total_market_value - total_cost_value
    return PortfolioMetrics(
        total_market_value=total_market_value,
        total_cost_value=total_cost_value,
        gain_loss_value=gain_loss_value,
        gain_loss_percent=_percent(gain_loss_value, total_cost_value),
        holdings_count=len(holdings),
    )


def calculate_metrics(holdings: Sequence[Holding]) -> PortfolioMetrics:
    """
    Compute portfolio metrics for a list of holdings.

    average_return is the plain mean of each holding's percent return,
    taken over holdings with a positive cost value. It is a quick
    directional signal and deliberately not an XIRR: statements do not
    give reliable cash-flow dates.

    Args:
        holdings: Scrubbed holdings.

    Returns:
        PortfolioMetrics for the holdings.
    """
    metrics = summarize_holdings(holdings)

    returns = [
        holding_return_percent(h) for h in holdings if _value(h.cost_value) > ZERO
    ]
    if returns:
        metrics.average_return = sum(returns, ZERO) / len(returns)

    logger.debug(
        f"Metrics: market={metrics.total_market_value}, cost={metrics.total_cost_value}, "
        f"holdings={metrics.holdings_count}"
    )
    return metrics


def build_fund_family_slices(
    holdings: Sequence[Holding],
    total_market_value: Optional[Decimal],
    concentration_threshold: Decimal = CONCENTRATION_THRESHOLD,
) -> List[FundFamilySlice]:
    """
    Group market value by fund family.

    Args:
        holdings: Holdings to group.
        total_market_value: Total used for allocation percentages.
        concentration_threshold: Allocation percent above which a family is
            flagged as concentrated.

    Returns:
        Slices sorted by descending market value.
    """
    totals: Dict[str, Decimal] = OrderedDict()
    for holding in holdings:
        totals[holding.fund_family] = totals.get(holding.fund_family, ZERO) + _value(
            holding.market_value
        )

    total = total_market_value or ZERO
    slices = []
    for fund_family, market_value in totals.items():
        allocation = _percent(market_value, total)
        slices.append(
            FundFamilySlice(
                fund_family=fund_family,
                market_value=market_value,
                allocation_percent=allocation,
                concentrated=allocation > concentration_threshold,
            )
        )
    slices.sort(key=lambda s: s.market_value, reverse=True)
    return slices


def build_category_slices(
    holdings: Sequence[Holding], total_market_value: Optional[Decimal]
) -> List[CategorySlice]:
    """
    Group market value by asset category.

    Args:
        holdings: Holdings to group.
        total_market_value: Total used for allocation percentages.

    Returns:
        Slices in display order (Equity, Debt, Hybrid, Gold, Other),
        limited to categories present in the holdings.
    """
    totals: Dict[AssetCategory, Decimal] = {}
    for holding in holdings:
        category = holding.category or AssetCategory.OTHER
        totals[category] = totals.get(category, ZERO) + _value(holding.market_value)

    total = total_market_value or ZERO
    return [
        CategorySlice(
            category=category,
            market_value=totals[category],
            allocation_percent=_percent(totals[category], total),
        )
        for category in ASSET_CATEGORIES
        if category in totals
    ]


def concentrated_fund_families(slices: Sequence[FundFamilySlice]) -> List[FundFamilySlice]:
    """Fund family slices flagged as concentrated, largest first."""
    return [s for s in slices if s.concentrated]


def top_holdings(
    holdings: Sequence[HoldingView], limit: int = TOP_HOLDINGS_LIMIT
) -> List[HoldingView]:
    """
    Largest holdings by market value.

    Ties keep their input order.

    Args:
        holdings: Enriched holdings.
        limit: Number of holdings returned.

    Returns:
        Up to `limit` holdings, largest first.
    """
    ranked = sorted(holdings, key=lambda h: _value(h.market_value), reverse=True)
    return ranked[: max(0, limit)]
