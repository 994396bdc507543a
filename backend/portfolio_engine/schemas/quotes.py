# backend/portfolio_engine/schemas/quotes.py
"""
Pydantic schemas for quote endpoints.

These schemas handle:
- Quote payloads (with stale / availability flags)
- Forced refresh requests
- Cache statistics for health checks
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from portfolio_engine.models import MarketClass, QuoteSource


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class QuoteResponse(BaseModel):
    """
    One resolved quote.

    price_available=False means every source failed: the zero prices are
    "unknown", not "unchanged". is_stale=True means the value is an older
    cached quote served because a fresh one could not be obtained.
    """

    symbol: str = Field(..., description="Instrument code (e.g., 005930)")
    market_class: MarketClass | None = None
    name: str | None = None
    current_price: Decimal
    previous_close: Decimal
    change: Decimal = Field(..., description="current_price - previous_close")
    change_percent: Decimal = Field(..., description="change / previous_close × 100")
    as_of: dt.datetime = Field(..., description="Resolution instant")
    market_was_closed: bool
    source_used: QuoteSource
    price_available: bool
    is_stale: bool = False


class QuotesResponse(BaseModel):
    """Quotes keyed by "CODE:CURRENCY"."""

    quotes: dict[str, QuoteResponse]
    total: int = Field(..., description="Number of distinct symbols")
    unavailable: list[str] = Field(
        default_factory=list,
        description="Keys whose price could not be resolved"
    )


class CacheStatsResponse(BaseModel):
    hits: int
    misses: int
    coalesced: int
    stale_served: int
    evicted: int
    entries: int
    in_flight: int


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class RefreshRequest(BaseModel):
    """Symbols to refetch regardless of cache age."""

    symbols: list[str] = Field(
        ...,
        min_length=1,
        max_length=100,
        description='Tokens of the form "CODE" or "CODE:CURRENCY"'
    )

    @field_validator("symbols")
    @classmethod
    def strip_symbols(cls, v: list[str]) -> list[str]:
        """Strip and upper-case tokens, dropping blanks."""
        cleaned = [s.strip().upper() for s in v if s and s.strip()]
        if not cleaned:
            raise ValueError("At least one non-blank symbol is required")
        return cleaned
