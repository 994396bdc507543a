# backend/tests/services/market_data/test_calendar.py
"""
Tests for the market calendar.

Dates used (2024):
    Thu 06-06, Fri 06-07, Sat 06-08, Sun 06-09, Mon 06-10, Tue 06-11
"""

from datetime import date, datetime, timezone

import pytest

from portfolio_engine.models import MarketClass
from portfolio_engine.services.market_data.calendar import MarketCalendar
from tests.conftest import KST, NEW_YORK

THU = date(2024, 6, 6)
FRI = date(2024, 6, 7)
MON = date(2024, 6, 10)
TUE = date(2024, 6, 11)


@pytest.fixture
def calendar() -> MarketCalendar:
    return MarketCalendar()


# =============================================================================
# MARKET OPEN / CLOSED
# =============================================================================

class TestIsMarketClosed:
    """Tests for is_market_closed()."""

    def test_kr_open_during_session(self, calendar):
        assert not calendar.is_market_closed(MarketClass.KR_KOSPI, datetime(2024, 6, 10, 10, 0, tzinfo=KST))

    def test_kr_closed_before_open(self, calendar):
        assert calendar.is_market_closed(MarketClass.KR_KOSPI, datetime(2024, 6, 10, 8, 59, tzinfo=KST))

    def test_kr_closed_at_close(self, calendar):
        """The window is [09:00, 15:30)."""
        assert calendar.is_market_closed(MarketClass.KR_KOSDAQ, datetime(2024, 6, 10, 15, 30, tzinfo=KST))

    def test_close_instant_is_closed_and_completed(self, calendar):
        """At exactly 15:30 the market is closed and today is the completed session."""
        now = datetime(2024, 6, 11, 15, 30, tzinfo=KST)

        assert calendar.is_market_closed(MarketClass.KR_KOSPI, now)
        assert calendar.last_completed_session(MarketClass.KR_KOSPI, now) == TUE
        assert not calendar.is_market_closed(MarketClass.KR_KOSPI, datetime(2024, 6, 11, 15, 29, 59, tzinfo=KST))

    def test_us_uses_new_york_time(self, calendar):
        """23:00 KST on a Monday in June is 10:00 in New York."""
        now = datetime(2024, 6, 10, 23, 0, tzinfo=KST)

        assert not calendar.is_market_closed(MarketClass.US_EQUITY, now)
        assert calendar.is_market_closed(MarketClass.KR_KOSPI, now)

    def test_metals_follow_kr_hours(self, calendar):
        assert not calendar.is_market_closed(MarketClass.METAL_FUTURES, datetime(2024, 6, 10, 11, 0, tzinfo=KST))

    @pytest.mark.parametrize("market", list(MarketClass))
    @pytest.mark.parametrize("hour", [0, 9, 12, 15, 23])
    def test_weekend_is_closed_for_every_market(self, calendar, market, hour):
        saturday = datetime(2024, 6, 8, hour, 0, tzinfo=KST)
        sunday = datetime(2024, 6, 9, hour, 0, tzinfo=KST)

        assert calendar.is_market_closed(market, saturday)
        assert calendar.is_market_closed(market, sunday)

    def test_naive_datetime_rejected(self, calendar):
        with pytest.raises(ValueError, match="timezone-aware"):
            calendar.is_market_closed(MarketClass.KR_KOSPI, datetime(2024, 6, 10, 10, 0))


# =============================================================================
# SESSION DATES
# =============================================================================

class TestSessions:
    """Tests for session date arithmetic."""

    def test_monday_early_morning_last_completed_is_friday(self, calendar):
        now = datetime(2024, 6, 10, 2, 0, tzinfo=KST)

        assert calendar.last_completed_session(MarketClass.KR_KOSPI, now) == FRI
        assert calendar.current_session(MarketClass.KR_KOSPI, now) == MON
        assert calendar.previous_close_session(MarketClass.KR_KOSPI, now) == FRI

    def test_after_close_today_is_completed(self, calendar):
        now = datetime(2024, 6, 11, 16, 0, tzinfo=KST)

        assert calendar.last_completed_session(MarketClass.KR_KOSPI, now) == TUE
        assert calendar.previous_close_session(MarketClass.KR_KOSPI, now) == MON

    def test_saturday_previous_close_is_thursday(self, calendar):
        """Saturday's price is Friday's close, so the reference is Thursday."""
        now = datetime(2024, 6, 8, 12, 0, tzinfo=KST)

        assert calendar.current_session(MarketClass.KR_KOSPI, now) == FRI
        assert calendar.last_completed_session(MarketClass.KR_KOSPI, now) == FRI
        assert calendar.previous_close_session(MarketClass.KR_KOSPI, now) == THU

    def test_us_sessions_use_local_date(self, calendar):
        """Mon 05:00 KST is Sun 16:00 in New York: current session is Friday."""
        now = datetime(2024, 6, 10, 5, 0, tzinfo=KST)

        assert calendar.current_session(MarketClass.US_EQUITY, now) == FRI
        assert calendar.previous_close_session(MarketClass.US_EQUITY, now) == THU

    def test_accepts_utc_input(self, calendar):
        now = datetime(2024, 6, 10, 14, 30, tzinfo=timezone.utc)  # 10:30 New York

        assert not calendar.is_market_closed(MarketClass.US_EQUITY, now)
        assert calendar.previous_close_session(MarketClass.US_EQUITY, now) == FRI

    def test_previous_session_skips_weekend(self, calendar):
        assert calendar.previous_session(MarketClass.KR_KOSPI, MON) == FRI

    @pytest.mark.parametrize("day", [8, 9])
    @pytest.mark.parametrize("hour", [0, 10, 20])
    def test_weekend_last_completed_is_earlier_weekday(self, calendar, day, hour):
        now = datetime(2024, 6, day, hour, 0, tzinfo=NEW_YORK)

        for market in MarketClass:
            session = calendar.last_completed_session(market, now)
            assert session.weekday() < 5
            assert session < now.astimezone(calendar.hours_for(market).tz).date()
