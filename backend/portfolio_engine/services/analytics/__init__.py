# backend/portfolio_engine/services/analytics/__init__.py
"""
Risk/performance analytics over valued holdings.

Usage:
    from portfolio_engine.services.analytics import RiskAnalyzer
    metrics = RiskAnalyzer.analyze(result.valuations)
"""

from portfolio_engine.services.analytics.risk import (
    RiskAnalyzer,
    calculate_sector_allocation,
    population_stdev,
    resolve_sector,
)
from portfolio_engine.services.analytics.types import RiskMetrics

__all__ = [
    "RiskAnalyzer",
    "RiskMetrics",
    "calculate_sector_allocation",
    "population_stdev",
    "resolve_sector",
]
