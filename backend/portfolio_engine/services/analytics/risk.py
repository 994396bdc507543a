# backend/portfolio_engine/services/analytics/risk.py
"""
Risk/performance statistics derived from valued holdings.

This module contains pure functions over one snapshot of valuations:
- Volatility: population stdev of per-holding P/L %
- Sharpe-like ratio: mean P/L % / volatility
- Diversification score: holding count blended with sector concentration
- Max drawdown: worst single-position P/L % (capped at 0)
- Beta / alpha: heuristic proxies from volatility
- VaR 95%: parametric approximation from total value and volatility
- Win rate: share of holdings in profit
- Sector allocation: % of total value per sector

Every statistic here is cross-sectional. There is no price history behind
a snapshot, so none of these are the textbook time-series measures of the
same name; the formulas are kept exactly as listed above.

Formulas:
    volatility     = sqrt(Σ(r - μ)² / n)
    sharpe_like    = μ / volatility                  (0 if volatility = 0)
    diversification = min(100, n × 10 + 100 × (1 - max_sector_weight))
    max_drawdown   = min(0, min(r))
    beta           = volatility / 20                  (1 if volatility = 0)
    alpha          = μ - beta × 8
    var_95         = total_value × 0.05 × sqrt(volatility / 100)

All functions use Decimal and never raise for well-formed input.
"""

import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal

from portfolio_engine.services.analytics.types import RiskMetrics
from portfolio_engine.services.constants import (
    ASSUMED_MARKET_RETURN_PERCENT,
    BETA_VOLATILITY_DIVISOR,
    DEFAULT_SECTOR,
    DIVERSIFICATION_POINTS_PER_HOLDING,
    PERCENT,
    SECTOR_BY_CODE,
    VAR_TAIL,
)
from portfolio_engine.services.valuation.types import Holding, Valuation

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
RATIO_QUANTIZE = Decimal("0.01")
MAX_SCORE = Decimal("100")


def _round(value: Decimal) -> Decimal:
    return value.quantize(RATIO_QUANTIZE)


# =============================================================================
# BASIC STATISTICS
# =============================================================================

def decimal_mean(values: Sequence[Decimal]) -> Decimal:
    """Arithmetic mean; 0 for an empty sequence."""
    if not values:
        return ZERO
    return sum(values, ZERO) / Decimal(len(values))


def population_stdev(values: Sequence[Decimal]) -> Decimal:
    """
    Population standard deviation using Decimal arithmetic.

    Formula: σ = sqrt(Σ(x - μ)² / n)

    Divides by n, not n - 1: the holdings are the whole population being
    described, not a sample of it.
    """
    if not values:
        return ZERO
    mean = decimal_mean(values)
    variance = sum(((x - mean) ** 2 for x in values), ZERO) / Decimal(len(values))
    return variance.sqrt()


# =============================================================================
# RATIOS
# =============================================================================

def calculate_sharpe_like(mean_return: Decimal, volatility: Decimal) -> Decimal:
    if volatility <= 0:
        return ZERO
    return mean_return / volatility


def calculate_beta(volatility: Decimal) -> Decimal:
    if volatility <= 0:
        return Decimal("1")
    return volatility / BETA_VOLATILITY_DIVISOR


def calculate_alpha(mean_return: Decimal, beta: Decimal) -> Decimal:
    return mean_return - beta * ASSUMED_MARKET_RETURN_PERCENT


def calculate_max_drawdown(returns: Sequence[Decimal]) -> Decimal:
    return min([ZERO, *returns])


def calculate_var_95(total_value: Decimal, volatility: Decimal) -> Decimal:
    if total_value <= 0 or volatility <= 0:
        return ZERO
    return total_value * VAR_TAIL * (volatility / PERCENT).sqrt()


def calculate_win_rate(returns: Sequence[Decimal]) -> Decimal:
    """Percentage of returns strictly above zero."""
    if not returns:
        return ZERO
    winners = sum(1 for r in returns if r > 0)
    return Decimal(winners) / Decimal(len(returns)) * PERCENT


# =============================================================================
# SECTORS
# =============================================================================

def resolve_sector(holding: Holding) -> str:
    """Holding's own sector label, else the known code mapping, else "Other"."""
    if holding.sector:
        return holding.sector
    return SECTOR_BY_CODE.get(holding.symbol.strip().upper(), DEFAULT_SECTOR)


def calculate_sector_values(valuations: Iterable[Valuation]) -> dict[str, Decimal]:
    """Sum of reporting-currency value per sector."""
    values: dict[str, Decimal] = {}
    for v in valuations:
        sector = resolve_sector(v.holding)
        values[sector] = values.get(sector, ZERO) + v.total_value_reporting_ccy
    return values


def calculate_sector_allocation(sector_values: dict[str, Decimal]) -> dict[str, Decimal]:
    """
    Sector values as percentages of their total.

    Returns 0% for every sector when the total value is not positive.
    """
    total = sum(sector_values.values(), ZERO)
    if total <= 0:
        return {sector: ZERO for sector in sector_values}
    return {
        sector: _round(value / total * PERCENT)
        for sector, value in sector_values.items()
    }


def calculate_diversification_score(
        holding_count: int,
        sector_values: dict[str, Decimal],
) -> Decimal:
    """
    min(100, holding_count × 10 + 100 × (1 - max_sector_weight))

    The concentration term is dropped when there is no positive total
    value to weigh sectors by.
    """
    score = Decimal(holding_count * DIVERSIFICATION_POINTS_PER_HOLDING)
    total = sum(sector_values.values(), ZERO)
    if total > 0:
        max_weight = max(sector_values.values()) / total
        score += MAX_SCORE * (1 - max_weight)
    return min(MAX_SCORE, score)


# =============================================================================
# ANALYZER
# =============================================================================

class RiskAnalyzer:
    """
    Computes RiskMetrics for a list of valuations.

    Holdings without a price (price_available=False) still count toward
    value, cost, sector weights and diversification, but their -100% P/L
    is left out of the return statistics.
    """

    @staticmethod
    def analyze(valuations: Iterable[Valuation]) -> RiskMetrics:
        valuations = list(valuations)
        if not valuations:
            return RiskMetrics()

        returns = [v.profit_loss_percent for v in valuations if v.price_available]
        skipped = len(valuations) - len(returns)
        if skipped:
            logger.warning(f"{skipped} holding(s) without a price left out of return statistics")

        total_value = sum((v.total_value_reporting_ccy for v in valuations), ZERO)
        total_cost = sum((v.total_cost_reporting_ccy for v in valuations), ZERO)
        total_return = total_value - total_cost

        mean_return = decimal_mean(returns)
        volatility = population_stdev(returns)
        beta = calculate_beta(volatility)
        sector_values = calculate_sector_values(valuations)

        return RiskMetrics(
            volatility=_round(volatility),
            sharpe_like=_round(calculate_sharpe_like(mean_return, volatility)),
            diversification_score=_round(
                calculate_diversification_score(len(valuations), sector_values)
            ),
            max_drawdown=_round(calculate_max_drawdown(returns)),
            beta=_round(beta),
            alpha=_round(calculate_alpha(mean_return, beta)),
            var_95=_round(calculate_var_95(total_value, volatility)),
            win_rate=_round(calculate_win_rate(returns)),
            sector_allocation=calculate_sector_allocation(sector_values),
            total_value=total_value,
            total_cost=total_cost,
            total_return=total_return,
            total_return_percent=(
                _round(total_return / total_cost * PERCENT) if total_cost > 0 else ZERO
            ),
            holding_count=len(valuations),
            priced_count=len(returns),
        )
