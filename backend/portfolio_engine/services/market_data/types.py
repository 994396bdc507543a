# backend/portfolio_engine/services/market_data/types.py
"""
Data types for quote resolution.

All prices use Decimal. Every type that crosses a component boundary is
frozen, so a Quote handed out by the cache can never be half-updated by
a concurrent refresh.

Architecture:
    - Symbol / Classification: output of the symbol classifier
    - RawQuote / SessionBar: what an adapter reads from its upstream
    - SourceError / SourceResult: the adapter boundary (no exceptions cross it)
    - Quote: the resolved quote with change fields derived from prices
    - CachedQuote: a Quote plus cache provenance (fetched_at, is_stale)
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Generic, TypeVar

from portfolio_engine.models import Currency, MarketClass, QuoteSource, SourceErrorReason
from portfolio_engine.services.constants import MONEY_QUANTIZE, PERCENT

T = TypeVar("T")

_ZERO = Decimal("0")


# =============================================================================
# CLASSIFICATION
# =============================================================================

@dataclass(frozen=True)
class Symbol:
    """
    An instrument code with the currency it is declared in.

    Attributes:
        code: Normalized code (stripped, upper-case), e.g. "005930", "AAPL", "M04020000"
        declared_currency: Currency the holding/request declares
        market_class: Derived by the classifier, never by network state
    """
    code: str
    declared_currency: Currency
    market_class: MarketClass

    @property
    def key(self) -> str:
        """Cache/lookup key, e.g. "005930:KRW"."""
        return f"{self.code}:{self.declared_currency.value}"


@dataclass(frozen=True)
class Classification:
    """
    Result of classifying a code.

    Attributes:
        symbol: The classified symbol
        source_priority: Quote sources to try, in order
        matched: False when no pattern matched and the default
            (foreign equity via Yahoo) was applied
    """
    symbol: Symbol
    source_priority: tuple[QuoteSource, ...]
    matched: bool = True

    @property
    def market_class(self) -> MarketClass:
        return self.symbol.market_class


# =============================================================================
# ADAPTER PAYLOADS
# =============================================================================

@dataclass(frozen=True)
class RawQuote:
    """
    A current quote as reported by one upstream.

    previous_close, change and change_percent are whatever the upstream
    reported; the resolver re-derives change fields from prices.
    """
    symbol: str
    price: Decimal
    as_of: datetime
    previous_close: Decimal | None = None
    change: Decimal | None = None
    change_percent: Decimal | None = None
    volume: int | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if self.price <= 0:
            raise ValueError(f"price must be positive, got {self.price}")


@dataclass(frozen=True)
class SessionBar:
    """
    Close of one completed daily session.

    Attributes:
        date: Session date in the exchange's local calendar
        close: Closing price
        timestamp: Bar timestamp as reported by the upstream (tz-aware);
            used to pick the latest of duplicate bars
    """
    date: date
    close: Decimal
    timestamp: datetime

    def __post_init__(self) -> None:
        if self.close <= 0:
            raise ValueError(f"close must be positive, got {self.close}")


# =============================================================================
# ADAPTER BOUNDARY
# =============================================================================

@dataclass(frozen=True)
class SourceError:
    """A failed adapter call, reported as data."""
    source: QuoteSource
    reason: SourceErrorReason
    message: str = ""

    def __str__(self) -> str:
        return f"{self.source.value}:{self.reason.value} {self.message}".rstrip()


@dataclass(frozen=True)
class SourceResult(Generic[T]):
    """
    Either a value or a SourceError, never both.

    Example:
        result = await adapter.fetch_current(symbol)
        if result.ok:
            price = result.value.price
        else:
            logger.warning(f"Fallback: {result.error}")
    """
    value: T | None = None
    error: SourceError | None = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("SourceResult needs exactly one of value or error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "SourceResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: SourceError) -> "SourceResult[T]":
        return cls(error=error)


# =============================================================================
# RESOLVED QUOTES
# =============================================================================

def compute_change(current_price: Decimal, previous_close: Decimal) -> tuple[Decimal, Decimal]:
    """
    Daily change and change percent from two prices.

    Returns:
        (change, change_percent); change_percent is 0 when previous_close <= 0
    """
    change = current_price - previous_close
    if previous_close > 0:
        change_percent = (change / previous_close * PERCENT).quantize(MONEY_QUANTIZE)
    else:
        change_percent = _ZERO
    return change, change_percent


@dataclass(frozen=True)
class Quote:
    """
    A resolved quote.

    Invariants:
        change == current_price - previous_close
        change_percent == change / previous_close * 100 (0 if previous_close <= 0)

    A quote with source_used == QuoteSource.NONE is "unknown": all prices
    are zero and must not be read as "unchanged".

    Attributes:
        symbol: Instrument code
        current_price: Latest price
        previous_close: Close of the last completed session before as_of's session
        change: current_price - previous_close
        change_percent: Percent change vs previous_close
        as_of: Resolution instant (tz-aware)
        market_was_closed: True when resolved outside trading hours, or when
            the after-hours lookup failed and the source's own previous close
            was used instead, or when no previous close was known at all
            (previous_close == current_price, change == 0)
        source_used: Upstream that produced current_price
        market_class: Classification of the symbol
        name: Display name if the upstream reported one
    """
    symbol: str
    current_price: Decimal
    previous_close: Decimal
    change: Decimal
    change_percent: Decimal
    as_of: datetime
    market_was_closed: bool
    source_used: QuoteSource
    market_class: MarketClass | None = None
    name: str | None = None

    @property
    def is_available(self) -> bool:
        return self.source_used != QuoteSource.NONE

    @classmethod
    def from_prices(
            cls,
            symbol: str,
            current_price: Decimal,
            previous_close: Decimal,
            as_of: datetime,
            market_was_closed: bool,
            source_used: QuoteSource,
            market_class: MarketClass | None = None,
            name: str | None = None,
    ) -> "Quote":
        """Build a quote whose change fields satisfy the invariants."""
        change, change_percent = compute_change(current_price, previous_close)
        return cls(
            symbol=symbol,
            current_price=current_price,
            previous_close=previous_close,
            change=change,
            change_percent=change_percent,
            as_of=as_of,
            market_was_closed=market_was_closed,
            source_used=source_used,
            market_class=market_class,
            name=name,
        )

    @classmethod
    def unavailable(
            cls,
            symbol: str,
            as_of: datetime,
            market_was_closed: bool = False,
            market_class: MarketClass | None = None,
    ) -> "Quote":
        """The zero-valued quote returned when every source failed."""
        return cls(
            symbol=symbol,
            current_price=_ZERO,
            previous_close=_ZERO,
            change=_ZERO,
            change_percent=_ZERO,
            as_of=as_of,
            market_was_closed=market_was_closed,
            source_used=QuoteSource.NONE,
            market_class=market_class,
        )


@dataclass(frozen=True)
class CachedQuote:
    """
    A quote as served by the cache.

    Attributes:
        quote: The quote
        fetched_at: Clock reading (seconds) when the quote was resolved
        is_stale: True when served past its TTL because a refresh failed,
            or because the batch deadline passed before the refresh finished
    """
    quote: Quote
    fetched_at: float
    is_stale: bool = False


@dataclass
class CacheStats:
    """Counters for the health endpoint."""
    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    stale_served: int = 0
    evicted: int = 0
    entries: int = 0
    in_flight: int = 0
