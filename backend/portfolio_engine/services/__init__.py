# backend/portfolio_engine/services/__init__.py
"""
Service layer.

Services have no knowledge of HTTP: they raise domain exceptions and are
wired together in dependencies.py.

Usage:
    from portfolio_engine.services import QuoteService, PortfolioService

Architecture:
    services/
    ├── __init__.py            # This file - main exports
    ├── exceptions.py          # Domain exceptions
    ├── constants.py           # Fixed tables and tuning values
    ├── circuit_breaker.py     # Circuit breaker per quote source
    ├── fx_rate_service.py     # USD/KRW rate provider
    ├── quote_service.py       # Quote resolution entry point
    ├── portfolio_service.py   # Valuation + risk entry point
    ├── market_data/           # Classifier, calendar, adapters, resolver, cache
    ├── valuation/             # Portfolio valuator
    └── analytics/             # Risk/performance analyzer
"""

from portfolio_engine.services.analytics import RiskAnalyzer, RiskMetrics
from portfolio_engine.services.circuit_breaker import CircuitBreaker, CircuitState
from portfolio_engine.services.fx_rate_service import FXRate, FXRateService
from portfolio_engine.services.portfolio_service import PortfolioService
from portfolio_engine.services.quote_service import QuoteService
from portfolio_engine.services.valuation import (
    Holding,
    PortfolioSummary,
    PortfolioValuator,
    Valuation,
    ValuationResult,
)

__all__ = [
    # Entry points
    "QuoteService",
    "PortfolioService",
    "FXRateService",
    "FXRate",
    # Core
    "PortfolioValuator",
    "Holding",
    "Valuation",
    "PortfolioSummary",
    "ValuationResult",
    "RiskAnalyzer",
    "RiskMetrics",
    "CircuitBreaker",
    "CircuitState",
]
