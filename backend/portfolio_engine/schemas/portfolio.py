# backend/portfolio_engine/schemas/portfolio.py
"""
Pydantic schemas for portfolio valuation and risk endpoints.

These schemas handle:
- Holdings snapshots sent by the caller
- Per-holding valuations and the portfolio summary
- Risk/performance metrics
- The USD/KRW exchange rate
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from portfolio_engine.models import Currency


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class HoldingInput(BaseModel):
    """One position of the snapshot."""

    symbol: str = Field(..., min_length=1, max_length=20, description="Instrument code")
    quantity: Decimal = Field(..., ge=0)
    average_cost: Decimal = Field(..., ge=0, description="Average cost per unit, in currency")
    currency: Currency
    account_id: str | None = None
    name: str | None = None
    sector: str | None = None

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return v.strip().upper()


class PortfolioRequest(BaseModel):
    """
    Holdings to value.

    exchange_rate converts the non-reporting currency into the reporting
    currency; when omitted the live USD/KRW rate is used.
    """

    holdings: list[HoldingInput] = Field(default_factory=list, max_length=500)
    exchange_rate: Decimal | None = Field(
        default=None,
        gt=0,
        description="Reporting-currency units per foreign-currency unit"
    )


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class ValuationResponse(BaseModel):
    symbol: str
    name: str | None = None
    account_id: str | None = None
    currency: Currency
    quantity: Decimal
    average_cost: Decimal
    current_price: Decimal
    total_value: Decimal
    total_cost: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal
    day_change: Decimal
    total_value_reporting_ccy: Decimal
    profit_loss_reporting_ccy: Decimal
    day_change_reporting_ccy: Decimal
    price_available: bool = Field(
        ...,
        description="False when no source returned a price; values are then unknown"
    )


class PortfolioSummaryResponse(BaseModel):
    reporting_currency: Currency
    total_value: Decimal
    total_cost: Decimal
    total_profit_loss: Decimal
    total_profit_loss_percent: Decimal
    day_change: Decimal
    day_change_percent: Decimal
    holding_count: int
    unavailable_count: int
    exchange_rate: Decimal


class PortfolioValuationResponse(BaseModel):
    valuations: list[ValuationResponse]
    summary: PortfolioSummaryResponse


class RiskMetricsResponse(BaseModel):
    """
    Cross-sectional risk proxies.

    beta and sharpe_like are heuristics derived from the dispersion of
    holding returns; they are not regression or textbook values.
    """

    volatility: Decimal
    sharpe_like: Decimal
    diversification_score: Decimal
    max_drawdown: Decimal
    beta: Decimal
    alpha: Decimal
    var_95: Decimal
    win_rate: Decimal
    sector_allocation: dict[str, Decimal]
    total_value: Decimal
    total_cost: Decimal
    total_return: Decimal
    total_return_percent: Decimal
    holding_count: int
    priced_count: int


class PortfolioRiskResponse(PortfolioValuationResponse):
    risk: RiskMetricsResponse


class ExchangeRateResponse(BaseModel):
    """USD/KRW rate and its provenance."""

    base_currency: str = "USD"
    quote_currency: str = "KRW"
    rate: Decimal = Field(..., description="KRW per 1 USD")
    source: str = Field(..., description="Provider URL or 'fallback'")
    fetched_at: dt.datetime
    is_fallback: bool
