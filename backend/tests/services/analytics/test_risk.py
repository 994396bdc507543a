# backend/tests/services/analytics/test_risk.py
"""
Unit tests for risk calculations.

These tests verify the pure calculation logic over valuations built by the
PortfolioValuator. All tests use known values that can be verified by hand.

Test Coverage:
- population_stdev / decimal_mean
- Ratio helpers: sharpe-like, beta, alpha, VaR, win rate, max drawdown
- Sector resolution, allocation and diversification score
- RiskAnalyzer.analyze: combined metrics
"""

from decimal import Decimal

import pytest

from portfolio_engine.services.analytics.risk import (
    RiskAnalyzer,
    calculate_alpha,
    calculate_beta,
    calculate_diversification_score,
    calculate_max_drawdown,
    calculate_sector_allocation,
    calculate_var_95,
    calculate_win_rate,
    decimal_mean,
    population_stdev,
    resolve_sector,
)
from portfolio_engine.services.analytics.types import RiskMetrics
from portfolio_engine.services.valuation.calculators import PortfolioValuator
from tests.conftest import make_holding, make_quote

D = Decimal


def valuate(*positions: tuple[str, str, str, str], quotes: dict | None = None, sector: str | None = None):
    """positions: (code, quantity, average_cost, current_price)."""
    holdings = [make_holding(code, qty, cost, sector=sector) for code, qty, cost, _ in positions]
    if quotes is None:
        quotes = {code: make_quote(code, price, price) for code, _, _, price in positions}
    return PortfolioValuator().valuate(holdings, quotes, D("1350")).valuations


# =============================================================================
# BASIC STATISTICS
# =============================================================================

class TestBasicStatistics:
    """Tests for decimal_mean and population_stdev."""

    def test_mean(self):
        assert decimal_mean([D("10"), D("-10"), D("30")]) == D("10")

    def test_mean_empty(self):
        assert decimal_mean([]) == D("0")

    def test_population_stdev(self):
        """Divides by n: [10, -10] has σ = 10."""
        assert population_stdev([D("10"), D("-10")]) == D("10")

    def test_stdev_single_value(self):
        assert population_stdev([D("7")]) == D("0")


# =============================================================================
# RATIOS
# =============================================================================

class TestRatios:
    """Tests for the ratio helpers."""

    def test_beta_scales_volatility(self):
        assert calculate_beta(D("10")) == D("0.5")

    def test_beta_defaults_to_one_without_volatility(self):
        assert calculate_beta(D("0")) == D("1")

    def test_alpha(self):
        # 5 - 0.5 × 8
        assert calculate_alpha(D("5"), D("0.5")) == D("1.0")

    def test_max_drawdown_capped_at_zero(self):
        assert calculate_max_drawdown([D("3"), D("12")]) == D("0")
        assert calculate_max_drawdown([D("3"), D("-12")]) == D("-12")

    def test_var_95(self):
        # 2000 × 0.05 × sqrt(0.25)
        assert calculate_var_95(D("2000"), D("25")) == D("50")

    @pytest.mark.parametrize("total_value, volatility", [(D("0"), D("10")), (D("2000"), D("0"))])
    def test_var_95_zero_inputs(self, total_value, volatility):
        assert calculate_var_95(total_value, volatility) == D("0")

    def test_win_rate_counts_strict_gains(self):
        assert calculate_win_rate([D("5"), D("0"), D("-1"), D("2")]) == D("50")

    def test_win_rate_empty(self):
        assert calculate_win_rate([]) == D("0")


# =============================================================================
# SECTORS
# =============================================================================

class TestSectors:
    """Tests for sector helpers."""

    def test_explicit_sector_wins(self):
        assert resolve_sector(make_holding("005930", "1", "1", sector="Tech")) == "Tech"

    def test_known_code_mapping(self):
        assert resolve_sector(make_holding("005930", "1", "1")) == "Semiconductors"

    def test_unknown_code_is_other(self):
        assert resolve_sector(make_holding("AAPL", "1", "1")) == "Other"

    def test_allocation(self):
        allocation = calculate_sector_allocation({"A": D("750000"), "B": D("250000")})

        assert allocation == {"A": D("75.00"), "B": D("25.00")}

    def test_allocation_without_value(self):
        assert calculate_sector_allocation({"A": D("0")}) == {"A": D("0")}

    def test_diversification_score(self):
        # 2 × 10 + 100 × (1 - 0.75)
        assert calculate_diversification_score(2, {"A": D("750000"), "B": D("250000")}) == D("45.00")

    def test_diversification_score_is_capped(self):
        sectors = {f"S{i}": D("100") for i in range(12)}

        assert calculate_diversification_score(12, sectors) == D("100")

    def test_diversification_without_value_uses_count_only(self):
        assert calculate_diversification_score(3, {"Other": D("0")}) == D("30")


# =============================================================================
# ANALYZER
# =============================================================================

class TestRiskAnalyzer:
    """Tests for RiskAnalyzer.analyze."""

    def test_empty_portfolio_is_neutral(self):
        assert RiskAnalyzer.analyze([]) == RiskMetrics()

    def test_symmetric_returns(self):
        """One holding +10%, one -10%."""
        valuations = valuate(
            ("111111", "10", "100", "110"),
            ("222222", "10", "100", "90"),
        )

        metrics = RiskAnalyzer.analyze(valuations)

        assert metrics.volatility == D("10.00")
        assert metrics.sharpe_like == D("0.00")
        assert metrics.beta == D("0.50")
        assert metrics.alpha == D("-4.00")
        assert metrics.max_drawdown == D("-10.00")
        assert metrics.win_rate == D("50.00")
        # 2000 × 0.05 × sqrt(0.1)
        assert metrics.var_95 == D("31.62")
        # Both map to "Other": 2 × 10 + 100 × (1 - 1)
        assert metrics.diversification_score == D("20.00")
        assert metrics.sector_allocation == {"Other": D("100.00")}
        assert metrics.total_value == D("2000")
        assert metrics.total_return == D("0")
        assert metrics.total_return_percent == D("0.00")
        assert metrics.holding_count == 2
        assert metrics.priced_count == 2

    def test_single_holding_has_no_volatility(self):
        metrics = RiskAnalyzer.analyze(valuate(("005930", "10", "70000", "75000")))

        assert metrics.volatility == D("0.00")
        assert metrics.beta == D("1.00")
        assert metrics.sharpe_like == D("0.00")
        assert metrics.var_95 == D("0.00")
        assert metrics.win_rate == D("100.00")
        assert metrics.total_return_percent == D("7.14")

    def test_unpriced_holdings_excluded_from_returns(self):
        quotes = {"111111": make_quote("111111", "110", "110")}
        valuations = valuate(
            ("111111", "10", "100", "110"),
            ("222222", "10", "100", "0"),
            quotes=quotes,
        )

        metrics = RiskAnalyzer.analyze(valuations)

        assert metrics.priced_count == 1
        assert metrics.holding_count == 2
        assert metrics.max_drawdown == D("0.00")
        assert metrics.win_rate == D("100.00")
        assert metrics.total_cost == D("2000")
        assert metrics.total_value == D("1100")

    def test_sector_allocation_uses_reporting_values(self):
        valuations = valuate(
            ("005930", "10", "70000", "75000"),
            ("035420", "1", "200000", "250000"),
        )

        metrics = RiskAnalyzer.analyze(valuations)

        assert metrics.sector_allocation == {
            "Semiconductors": D("75.00"),
            "IT Services": D("25.00"),
        }
        assert metrics.diversification_score == D("45.00")
