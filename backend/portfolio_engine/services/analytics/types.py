# backend/portfolio_engine/services/analytics/types.py
"""
Data types for the risk/performance analyzer.

All ratios and percentages are Decimal rounded to 2 places.
"""

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class RiskMetrics:
    """
    Cross-sectional risk statistics over the valued holdings.

    These are proxies computed from one snapshot of per-holding P/L
    percentages, not time-series statistics.

    Attributes:
        volatility: Population stdev of holdings' profit_loss_percent
        sharpe_like: mean(P/L%) / volatility (no risk-free rate), 0 if volatility is 0
        diversification_score: min(100, holdings × 10 + 100 × (1 - max sector weight))
        max_drawdown: min(0, worst holding P/L%)
        beta: volatility / 20, or 1 when volatility is 0 (heuristic, not a regression beta)
        alpha: mean(P/L%) - beta × 8 (assumed 8% market return)
        var_95: total_value × 0.05 × sqrt(volatility / 100)
        win_rate: % of priced holdings with positive P/L
        sector_allocation: sector -> % of total value
        total_return: total_value - total_cost (reporting currency)
        total_return_percent: total_return / total_cost × 100
        holding_count: Valuations analyzed
        priced_count: Valuations that had a price (the return statistics use these)
    """
    volatility: Decimal = Decimal("0")
    sharpe_like: Decimal = Decimal("0")
    diversification_score: Decimal = Decimal("0")
    max_drawdown: Decimal = Decimal("0")
    beta: Decimal = Decimal("1")
    alpha: Decimal = Decimal("0")
    var_95: Decimal = Decimal("0")
    win_rate: Decimal = Decimal("0")
    sector_allocation: dict[str, Decimal] = field(default_factory=dict)
    total_value: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    total_return: Decimal = Decimal("0")
    total_return_percent: Decimal = Decimal("0")
    holding_count: int = 0
    priced_count: int = 0
