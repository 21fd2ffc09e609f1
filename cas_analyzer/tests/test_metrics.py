"""Tests for portfolio metrics."""

from decimal import Decimal

from cas_analyzer.metrics import (
    build_category_slices,
    build_fund_family_slices,
    calculate_metrics,
    concentrated_fund_families,
    enrich_holdings,
    holding_return_percent,
    top_holdings,
)
from cas_analyzer.models import AssetCategory, Holding


def make_holding(
    scheme, market_value, cost_value, fund_family="HDFC", category=AssetCategory.EQUITY
):
    return Holding(
        id=scheme,
        fund_family=fund_family,
        folio="1",
        scheme_name=scheme,
        category=category,
        units=Decimal("1"),
        nav=Decimal(market_value),
        market_value=Decimal(market_value),
        cost_value=Decimal(cost_value),
    )


HOLDINGS = [
    make_holding("Flexi Cap", "6000", "5000"),
    make_holding("Liquid", "3000", "3000", fund_family="ICICI", category=AssetCategory.DEBT),
    make_holding("Gold ETF", "1000", "1250", fund_family="Nippon", category=AssetCategory.GOLD),
]


class TestHoldingReturn:
    """Tests for per-holding return."""

    def test_gain(self):
        assert holding_return_percent(make_holding("A", "1100", "1000")) == Decimal("10")

    def test_loss(self):
        assert holding_return_percent(make_holding("A", "1000", "1250")) == Decimal("-20")

    def test_no_cost_with_value(self):
        """Test a holding without cost but with value counts as 100%."""
        assert holding_return_percent(make_holding("A", "50", "0")) == Decimal("100")

    def test_empty_holding(self):
        assert holding_return_percent(make_holding("A", "0", "0")) == Decimal("0")

    def test_negative_cost_treated_as_no_cost(self):
        """Test a negative cost never divides, whatever the market value."""
        assert holding_return_percent(make_holding("A", "50", "-10")) == Decimal("100")
        assert holding_return_percent(make_holding("A", "0", "-10")) == Decimal("0")

    def test_negative_value_without_cost(self):
        assert holding_return_percent(make_holding("A", "-5", "0")) == Decimal("0")


class TestEnrichHoldings:
    """Tests for derived per-holding fields."""

    def test_allocations_sum_to_hundred(self):
        """Test allocation percentages add up to 100."""
        views = enrich_holdings(HOLDINGS, Decimal("10000"))

        assert sum(v.allocation_percent for v in views) == Decimal("100")
        assert views[0].allocation_percent == Decimal("60")

    def test_allocations_uneven_split(self):
        holdings = [make_holding(str(i), "1", "1") for i in range(3)]

        views = enrich_holdings(holdings, None)

        total = sum(v.allocation_percent for v in views)
        assert abs(total - Decimal("100")) < Decimal("0.0001")

    def test_zero_total_recomputed(self):
        """Test a missing total is recomputed from the holdings."""
        views = enrich_holdings(HOLDINGS, Decimal("0"))

        assert views[1].allocation_percent == Decimal("30")

    def test_all_zero_market_value(self):
        """Test an empty portfolio gives zero allocations."""
        holdings = [make_holding("A", "0", "0"), make_holding("B", "0", "10")]

        views = enrich_holdings(holdings, None)

        assert [v.allocation_percent for v in views] == [0, 0]

    def test_gain_loss_and_return(self):
        views = enrich_holdings(HOLDINGS, None)

        assert views[0].gain_loss == Decimal("1000")
        assert views[0].return_percent == Decimal("20")
        assert views[2].gain_loss == Decimal("-250")

    def test_views_keep_holding_fields(self):
        view = enrich_holdings(HOLDINGS, None)[1]

        assert view.id == "Liquid"
        assert view.fund_family == "ICICI"
        assert view.category == AssetCategory.DEBT


class TestCalculateMetrics:
    """Tests for portfolio totals."""

    def test_totals(self):
        metrics = calculate_metrics(HOLDINGS)

        assert metrics.total_market_value == Decimal("10000")
        assert metrics.total_cost_value == Decimal("9250")
        assert metrics.gain_loss_value == Decimal("750")
        assert metrics.holdings_count == 3

    def test_gain_loss_is_difference(self):
        """Test gain/loss equals market minus cost exactly."""
        holdings = [make_holding("A", "1234.56", "1000.01"), make_holding("B", "0.07", "0.03")]

        metrics = calculate_metrics(holdings)

        assert metrics.gain_loss_value == metrics.total_market_value - metrics.total_cost_value
        assert metrics.gain_loss_value == Decimal("234.59")

    def test_gain_loss_percent(self):
        metrics = calculate_metrics([make_holding("A", "1100", "1000")])

        assert metrics.gain_loss_percent == Decimal("10")

    def test_average_return_is_simple_mean(self):
        """Test the average is the unweighted mean of holding returns."""
        metrics = calculate_metrics(HOLDINGS)

        # (20 + 0 - 20) / 3
        assert metrics.average_return == Decimal("0")

    def test_average_return_skips_zero_cost(self):
        holdings = [make_holding("A", "1100", "1000"), make_holding("B", "500", "0")]

        assert calculate_metrics(holdings).average_return == Decimal("10")

    def test_average_return_none_without_cost(self):
        metrics = calculate_metrics([make_holding("A", "500", "0")])

        assert metrics.average_return is None
        assert metrics.gain_loss_percent == 0

    def test_empty_portfolio(self):
        metrics = calculate_metrics([])

        assert metrics.total_market_value == 0
        assert metrics.holdings_count == 0
        assert metrics.average_return is None


class TestSlices:
    """Tests for fund family and category breakdowns."""

    def test_fund_family_slices_sorted(self):
        """Test fund families are grouped and sorted by value."""
        holdings = HOLDINGS + [make_holding("Liquid 2", "4000", "4000", fund_family="ICICI")]

        slices = build_fund_family_slices(holdings, Decimal("14000"))

        assert [s.fund_family for s in slices] == ["ICICI", "HDFC", "Nippon"]
        assert slices[0].market_value == Decimal("7000")
        assert slices[0].allocation_percent == Decimal("50")

    def test_category_slices_display_order(self):
        """Test categories follow display order rather than value."""
        holdings = [
            make_holding("Gold", "5000", "5000", category=AssetCategory.GOLD),
            make_holding("Equity", "1000", "900", category=AssetCategory.EQUITY),
        ]

        slices = build_category_slices(holdings, Decimal("6000"))

        assert [s.category for s in slices] == [AssetCategory.EQUITY, AssetCategory.GOLD]

    def test_category_slices_only_present(self):
        slices = build_category_slices(HOLDINGS, Decimal("10000"))

        assert [s.category for s in slices] == [
            AssetCategory.EQUITY,
            AssetCategory.DEBT,
            AssetCategory.GOLD,
        ]
        assert slices[1].allocation_percent == Decimal("30")

    def test_zero_total_gives_zero_allocation(self):
        slices = build_fund_family_slices(HOLDINGS, Decimal("0"))

        assert all(s.allocation_percent == 0 for s in slices)


class TestConcentration:
    """Tests for fund family concentration and top holdings."""

    def test_concentrated_flag(self):
        """Test families above 20% of the portfolio are flagged."""
        slices = build_fund_family_slices(HOLDINGS, Decimal("10000"))

        assert [(s.fund_family, s.concentrated) for s in slices] == [
            ("HDFC", True),
            ("ICICI", True),
            ("Nippon", False),
        ]

    def test_threshold_is_exclusive(self):
        holdings = [
            make_holding("A", "2000", "2000", fund_family="Acme"),
            make_holding("B", "8000", "8000", fund_family="Other"),
        ]

        slices = build_fund_family_slices(holdings, Decimal("10000"))

        assert slices[1].fund_family == "Acme"
        assert slices[1].allocation_percent == Decimal("20")
        assert slices[1].concentrated is False

    def test_custom_threshold(self):
        slices = build_fund_family_slices(
            HOLDINGS, Decimal("10000"), concentration_threshold=Decimal("50")
        )

        assert [s.fund_family for s in concentrated_fund_families(slices)] == ["HDFC"]

    def test_concentrated_fund_families(self):
        slices = build_fund_family_slices(HOLDINGS, Decimal("10000"))

        assert [s.fund_family for s in concentrated_fund_families(slices)] == ["HDFC", "ICICI"]

    def test_zero_total_not_concentrated(self):
        slices = build_fund_family_slices(HOLDINGS, Decimal("0"))

        assert concentrated_fund_families(slices) == []

    def test_top_holdings_by_market_value(self):
        views = enrich_holdings(HOLDINGS, None)

        top = top_holdings(views, limit=2)

        assert [v.scheme_name for v in top] == ["Flexi Cap", "Liquid"]

    def test_top_holdings_default_limit(self):
        """Test at most five holdings are kept, ties in input order."""
        holdings = [make_holding(f"Fund {i}", "100", "100") for i in range(7)]
        holdings.append(make_holding("Largest", "500", "100"))

        top = top_holdings(enrich_holdings(holdings, None))

        assert [v.scheme_name for v in top] == ["Largest", "Fund 0", "Fund 1", "Fund 2", "Fund 3"]

    def test_top_holdings_empty(self):
        assert top_holdings([]) == []
