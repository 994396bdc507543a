# backend/portfolio_engine/schemas/__init__.py
"""Request/response models for the HTTP API."""

from portfolio_engine.schemas.errors import ErrorDetail, ValidationErrorDetail
from portfolio_engine.schemas.portfolio import (
    ExchangeRateResponse,
    HoldingInput,
    PortfolioRequest,
    PortfolioRiskResponse,
    PortfolioSummaryResponse,
    PortfolioValuationResponse,
    RiskMetricsResponse,
    ValuationResponse,
)
from portfolio_engine.schemas.quotes import (
    CacheStatsResponse,
    QuoteResponse,
    QuotesResponse,
    RefreshRequest,
)

__all__ = [
    "ErrorDetail",
    "ValidationErrorDetail",
    "QuoteResponse",
    "QuotesResponse",
    "RefreshRequest",
    "CacheStatsResponse",
    "HoldingInput",
    "PortfolioRequest",
    "ValuationResponse",
    "PortfolioSummaryResponse",
    "PortfolioValuationResponse",
    "RiskMetricsResponse",
    "PortfolioRiskResponse",
    "ExchangeRateResponse",
]
