# backend/portfolio_engine/services/valuation/__init__.py
"""
Portfolio valuation: holdings × quotes × exchange rate -> valuations + summary.

Usage:
    from portfolio_engine.services.valuation import PortfolioValuator, Holding
"""

from portfolio_engine.services.valuation.calculators import PortfolioValuator, percent_of
from portfolio_engine.services.valuation.types import (
    Holding,
    PortfolioSummary,
    Valuation,
    ValuationResult,
)

__all__ = [
    "PortfolioValuator",
    "percent_of",
    "Holding",
    "Valuation",
    "PortfolioSummary",
    "ValuationResult",
]
