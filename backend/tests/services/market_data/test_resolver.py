# backend/tests/services/market_data/test_resolver.py
"""
Tests for the QuoteResolver.

Adapters are scripted (tests/conftest.py), so every scenario pins the
exact calls made and the previous close picked.

Dates used (2024):
    Thu 06-06, Fri 06-07, Mon 06-10, Tue 06-11
"""

from datetime import date, datetime
from decimal import Decimal

import httpx
import pytest

from portfolio_engine.models import Currency, MarketClass, QuoteSource, SourceErrorReason
from portfolio_engine.services.market_data.classifier import classify
from portfolio_engine.services.market_data.naver import NaverMetalsAdapter
from portfolio_engine.services.market_data.resolver import QuoteResolver, select_session_bar
from portfolio_engine.services.market_data.types import SessionBar
from portfolio_engine.services.valuation.calculators import PortfolioValuator
from tests.conftest import KST, NEW_YORK, make_holding

THU = date(2024, 6, 6)
FRI = date(2024, 6, 7)
MON = date(2024, 6, 10)
TUE = date(2024, 6, 11)

MONDAY_0200 = datetime(2024, 6, 10, 2, 0, tzinfo=KST)
MONDAY_1000 = datetime(2024, 6, 10, 10, 0, tzinfo=KST)
TUESDAY_1600 = datetime(2024, 6, 11, 16, 0, tzinfo=KST)


def close_at(day: date, hour: int = 15, minute: int = 30) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=KST)


@pytest.fixture
def resolver(naver, yahoo, metals) -> QuoteResolver:
    return QuoteResolver({
        QuoteSource.NAVER_STOCK: naver,
        QuoteSource.YAHOO: yahoo,
        QuoteSource.NAVER_METALS: metals,
    })


# =============================================================================
# MARKET OPEN
# =============================================================================

class TestMarketOpen:
    """During trading hours the adapter's own previous close is used."""

    @pytest.mark.asyncio
    async def test_uses_reported_previous_close(self, resolver, naver, samsung):
        naver.set_quote("005930", "75000", "74000", name="Samsung Electronics")

        quote = await resolver.resolve(samsung, MONDAY_1000)

        assert quote.current_price == Decimal("75000")
        assert quote.previous_close == Decimal("74000")
        assert quote.change == Decimal("1000")
        assert quote.change_percent == Decimal("1.35135135")
        assert quote.market_was_closed is False
        assert quote.source_used == QuoteSource.NAVER_STOCK
        assert quote.market_class == MarketClass.KR_KOSPI
        assert quote.name == "Samsung Electronics"
        assert naver.bar_requests() == []

    @pytest.mark.asyncio
    async def test_missing_reported_close_reads_session_bar(self, resolver, naver, yahoo, samsung):
        naver.set_quote("005930", "75000")
        yahoo.set_bars("005930", FRI, (FRI, "74500", close_at(FRI)))

        quote = await resolver.resolve(samsung, MONDAY_1000)

        assert quote.previous_close == Decimal("74500")
        assert quote.market_was_closed is False

    @pytest.mark.asyncio
    async def test_no_previous_close_anywhere_reports_no_change(self, resolver, naver, samsung):
        naver.set_quote("005930", "75000")

        quote = await resolver.resolve(samsung, MONDAY_1000)

        assert quote.previous_close == Decimal("75000")
        assert quote.change == Decimal("0")
        assert quote.market_was_closed is True


# =============================================================================
# AFTER HOURS
# =============================================================================

class TestAfterHours:
    """Outside trading hours the previous close comes from a session bar."""

    @pytest.mark.asyncio
    async def test_monday_early_morning_uses_friday_close(self, resolver, naver, yahoo, samsung):
        naver.set_quote("005930", "75000", "74000")
        yahoo.set_bars("005930", FRI, (FRI, "73000", close_at(FRI)))

        quote = await resolver.resolve(samsung, MONDAY_0200)

        assert quote.previous_close == Decimal("73000")
        assert quote.change == Decimal("2000")
        assert quote.market_was_closed is True
        assert quote.source_used == QuoteSource.NAVER_STOCK
        assert yahoo.bar_requests() == [FRI]

    @pytest.mark.asyncio
    async def test_serving_adapter_asked_for_bar_first(self, resolver, naver, yahoo, samsung):
        naver.set_quote("005930", "75000", "74000")
        naver.set_bars("005930", FRI, (FRI, "72000", close_at(FRI)))
        yahoo.set_bars("005930", FRI, (FRI, "73000", close_at(FRI)))

        quote = await resolver.resolve(samsung, MONDAY_0200)

        assert quote.previous_close == Decimal("72000")
        assert yahoo.bar_requests() == []

    @pytest.mark.asyncio
    async def test_steps_back_when_bar_is_current_session(self, resolver, naver, yahoo, samsung):
        """Tuesday after close: a bar labelled Tuesday is not a previous close."""
        naver.set_quote("005930", "75000", "74000")
        yahoo.set_bars("005930", MON, (TUE, "75000", close_at(TUE)))
        yahoo.set_bars("005930", FRI, (FRI, "71000", close_at(FRI)))

        quote = await resolver.resolve(samsung, TUESDAY_1600)

        assert quote.previous_close == Decimal("71000")
        assert yahoo.bar_requests() == [MON, FRI]

    @pytest.mark.asyncio
    async def test_steps_back_only_once(self, resolver, naver, yahoo, samsung):
        naver.set_quote("005930", "75000", "74000")
        yahoo.set_bars("005930", MON, (TUE, "75000", close_at(TUE)))
        yahoo.set_bars("005930", FRI, (TUE, "75000", close_at(TUE)))

        quote = await resolver.resolve(samsung, TUESDAY_1600)

        assert yahoo.bar_requests() == [MON, FRI]
        assert quote.previous_close == Decimal("74000")

    @pytest.mark.asyncio
    async def test_degrades_to_reported_close_when_no_bar(self, resolver, naver, samsung):
        naver.set_quote("005930", "75000", "74000")

        quote = await resolver.resolve(samsung, MONDAY_0200)

        assert quote.previous_close == Decimal("74000")
        assert quote.market_was_closed is True
        assert quote.source_used == QuoteSource.NAVER_STOCK

    @pytest.mark.asyncio
    async def test_unknown_previous_close_reports_no_change(self, resolver, metals):
        """No bar and no reported close: zero change, never a full-price move."""
        gold = classify("M04020000", Currency.KRW).symbol
        metals.set_quote("M04020000", "140000")

        quote = await resolver.resolve(gold, TUESDAY_1600)

        assert quote.current_price == Decimal("140000")
        assert quote.previous_close == Decimal("140000")
        assert quote.change == Decimal("0")
        assert quote.change_percent == Decimal("0")
        assert quote.market_was_closed is True
        assert quote.source_used == QuoteSource.NAVER_METALS

    @pytest.mark.asyncio
    async def test_metal_page_without_change_values_with_no_day_change(self):
        gold = classify("M04020000", Currency.KRW).symbol
        page = '<strong class="DetailInfo_price__I_VJn">140,000<span class="unit">원/g</span></strong>'
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=page))

        async with httpx.AsyncClient(transport=transport) as client:
            metals = NaverMetalsAdapter(client=client, retry_attempts=1)
            quote = await QuoteResolver({QuoteSource.NAVER_METALS: metals}).resolve(gold, TUESDAY_1600)

        result = PortfolioValuator(reporting_currency=Currency.KRW).valuate(
            [make_holding("M04020000", "10", "130000")],
            {"M04020000:KRW": quote},
            Decimal("1350"),
        )

        assert quote.change == Decimal("0")
        assert result.summary.total_value == Decimal("1400000")
        assert result.summary.day_change == Decimal("0")

    @pytest.mark.asyncio
    async def test_us_equity_uses_new_york_sessions(self, resolver, yahoo, apple):
        """Sat 10:00 New York: current session Fri, previous close Thu."""
        now = datetime(2024, 6, 8, 10, 0, tzinfo=NEW_YORK)
        yahoo.set_quote("AAPL", "196.89", "196.70")
        yahoo.set_bars("AAPL", THU, (THU, "194.48", datetime(2024, 6, 6, 16, 0, tzinfo=NEW_YORK)))

        quote = await resolver.resolve(apple, now)

        assert quote.previous_close == Decimal("194.48")
        assert quote.change == Decimal("2.41")
        assert yahoo.bar_requests() == [THU]


# =============================================================================
# FALLBACK ORDER
# =============================================================================

class TestFallback:
    """Sources are tried strictly in priority order."""

    @pytest.mark.asyncio
    async def test_second_source_only_after_first_fails(self, resolver, naver, yahoo, samsung):
        order: list[str] = []
        naver.on_fetch = lambda: order.append("naver")
        yahoo.on_fetch = lambda: order.append("yahoo")
        naver.fail_current("005930", SourceErrorReason.TIMEOUT)
        yahoo.set_quote("005930", "75100", "74000")

        quote = await resolver.resolve(samsung, MONDAY_1000)

        assert order == ["naver", "yahoo"]
        assert quote.source_used == QuoteSource.YAHOO
        assert quote.current_price == Decimal("75100")

    @pytest.mark.asyncio
    async def test_first_success_stops_the_walk(self, resolver, naver, yahoo, samsung):
        naver.set_quote("005930", "75000", "74000")
        yahoo.set_quote("005930", "1", "1")

        await resolver.resolve(samsung, MONDAY_1000)

        assert yahoo.calls == []

    @pytest.mark.asyncio
    async def test_all_sources_fail_gives_none_quote(self, resolver, naver, yahoo, samsung):
        naver.fail_current("005930")
        yahoo.fail_current("005930", SourceErrorReason.MALFORMED)

        quote = await resolver.resolve(samsung, MONDAY_0200)

        assert quote.source_used == QuoteSource.NONE
        assert not quote.is_available
        assert quote.current_price == Decimal("0")
        assert quote.change == Decimal("0")
        assert quote.market_was_closed is True

    @pytest.mark.asyncio
    async def test_metals_use_only_metals_source(self, resolver, naver, yahoo, metals):
        gold = classify("M04020000", Currency.KRW).symbol
        metals.set_quote("M04020000", "98000.5", "97500")

        quote = await resolver.resolve(gold, MONDAY_1000)

        assert quote.source_used == QuoteSource.NAVER_METALS
        assert naver.calls == []
        assert yahoo.calls == []

    @pytest.mark.asyncio
    async def test_missing_adapter_is_skipped(self, naver, samsung):
        resolver = QuoteResolver({QuoteSource.NAVER_STOCK: naver})
        naver.fail_current("005930")

        quote = await resolver.resolve(samsung, MONDAY_1000)

        assert quote.source_used == QuoteSource.NONE


# =============================================================================
# BAR SELECTION
# =============================================================================

class TestSelectSessionBar:
    """Tests for select_session_bar()."""

    def test_latest_timestamp_wins(self):
        early = SessionBar(date=FRI, close=Decimal("100"), timestamp=close_at(FRI, 9, 0))
        late = SessionBar(date=FRI, close=Decimal("101"), timestamp=close_at(FRI))

        assert select_session_bar([late, early], MONDAY_0200) is late

    def test_ignores_bars_at_or_after_now(self):
        past = SessionBar(date=FRI, close=Decimal("100"), timestamp=close_at(FRI))
        future = SessionBar(date=MON, close=Decimal("101"), timestamp=MONDAY_0200)

        assert select_session_bar([past, future], MONDAY_0200) is past

    def test_none_when_no_candidates(self):
        future = SessionBar(date=MON, close=Decimal("101"), timestamp=MONDAY_1000)

        assert select_session_bar([future], MONDAY_0200) is None
        assert select_session_bar([], MONDAY_0200) is None
