# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- A manual clock for TTL / circuit breaker timing
- A scripted quote source adapter (no network)
- Sample quotes and holdings
"""

import os

# Settings are read at import time; keep tests independent of a local .env
os.environ.setdefault("ENVIRONMENT", "test")

from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from portfolio_engine.models import Currency, QuoteSource, SourceErrorReason
from portfolio_engine.services.circuit_breaker import CircuitBreaker
from portfolio_engine.services.fx_rate_service import FXRate
from portfolio_engine.services.market_data.classifier import classify
from portfolio_engine.services.market_data.types import (
    Quote,
    RawQuote,
    SessionBar,
    SourceError,
    SourceResult,
    Symbol,
)
from portfolio_engine.services.valuation.types import Holding

KST = ZoneInfo("Asia/Seoul")
NEW_YORK = ZoneInfo("America/New_York")


# =============================================================================
# CLOCK
# =============================================================================

class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


# =============================================================================
# SCRIPTED ADAPTER
# =============================================================================

class ScriptedAdapter:
    """
    Stand-in for a QuoteSourceAdapter.

    Returns configured RawQuotes / bars per symbol code, or a SourceError
    for anything not configured. Records every call for ordering asserts.
    The breaker is only read for health reporting.
    """

    def __init__(self, source: QuoteSource) -> None:
        self.source = source
        self.name = source.value.lower()
        self.breaker = CircuitBreaker(name=self.name)
        self.quotes: dict[str, RawQuote] = {}
        self.bars: dict[tuple[str, date], list[SessionBar]] = {}
        self.current_errors: dict[str, SourceErrorReason] = {}
        self.calls: list[tuple[str, str, date | None]] = []
        self.on_fetch: Callable[[], None] | None = None

    def set_quote(
            self,
            code: str,
            price: str,
            previous_close: str | None = None,
            name: str | None = None,
    ) -> None:
        self.quotes[code] = RawQuote(
            symbol=code,
            price=Decimal(price),
            previous_close=Decimal(previous_close) if previous_close is not None else None,
            name=name,
            as_of=datetime(2024, 6, 10, tzinfo=KST),
        )

    def set_bars(self, code: str, session_date: date, *bars: tuple[date, str, datetime]) -> None:
        self.bars[(code, session_date)] = [
            SessionBar(date=d, close=Decimal(close), timestamp=ts) for d, close, ts in bars
        ]

    def fail_current(self, code: str, reason: SourceErrorReason = SourceErrorReason.UNAVAILABLE) -> None:
        self.current_errors[code] = reason

    async def fetch_current(self, symbol: Symbol) -> SourceResult[RawQuote]:
        self.calls.append(("current", symbol.code, None))
        if self.on_fetch is not None:
            self.on_fetch()
        if symbol.code in self.current_errors:
            return SourceResult.failure(
                SourceError(self.source, self.current_errors[symbol.code], "scripted failure")
            )
        raw = self.quotes.get(symbol.code)
        if raw is None:
            return SourceResult.failure(SourceError(self.source, SourceErrorReason.NOT_FOUND, "unknown"))
        return SourceResult.success(raw)

    async def fetch_session_bar(self, symbol: Symbol, session_date: date) -> SourceResult[tuple[SessionBar, ...]]:
        self.calls.append(("bar", symbol.code, session_date))
        bars = self.bars.get((symbol.code, session_date))
        if not bars:
            return SourceResult.failure(SourceError(self.source, SourceErrorReason.NOT_FOUND, "no bar"))
        return SourceResult.success(tuple(bars))

    def bar_requests(self) -> list[date]:
        return [d for kind, _, d in self.calls if kind == "bar"]


@pytest.fixture
def naver() -> ScriptedAdapter:
    return ScriptedAdapter(QuoteSource.NAVER_STOCK)


@pytest.fixture
def yahoo() -> ScriptedAdapter:
    return ScriptedAdapter(QuoteSource.YAHOO)


@pytest.fixture
def metals() -> ScriptedAdapter:
    return ScriptedAdapter(QuoteSource.NAVER_METALS)


class StubFX:
    """FX service returning a fixed USD/KRW rate and counting calls."""

    def __init__(self, rate: str = "1350", is_fallback: bool = False) -> None:
        self.rate = Decimal(rate)
        self.is_fallback = is_fallback
        self.calls = 0

    async def get_usd_krw(self) -> FXRate:
        self.calls += 1
        return FXRate(
            rate=self.rate,
            source="fallback" if self.is_fallback else "stub",
            fetched_at=datetime(2024, 6, 10, 1, 0, tzinfo=timezone.utc),
            is_fallback=self.is_fallback,
        )


@pytest.fixture
def fx() -> StubFX:
    return StubFX()


# =============================================================================
# SAMPLE DATA
# =============================================================================

@pytest.fixture
def samsung() -> Symbol:
    return classify("005930", Currency.KRW).symbol


@pytest.fixture
def apple() -> Symbol:
    return classify("AAPL", Currency.USD).symbol


def make_quote(
        code: str,
        price: str,
        previous_close: str,
        source: QuoteSource = QuoteSource.NAVER_STOCK,
) -> Quote:
    return Quote.from_prices(
        symbol=code,
        current_price=Decimal(price),
        previous_close=Decimal(previous_close),
        as_of=datetime(2024, 6, 10, 10, 0, tzinfo=KST),
        market_was_closed=False,
        source_used=source,
    )


def make_holding(
        code: str,
        quantity: str,
        average_cost: str,
        currency: Currency = Currency.KRW,
        sector: str | None = None,
) -> Holding:
    return Holding(
        symbol=code,
        quantity=Decimal(quantity),
        average_cost=Decimal(average_cost),
        currency=currency,
        sector=sector,
    )
