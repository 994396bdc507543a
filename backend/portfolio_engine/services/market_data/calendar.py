# backend/portfolio_engine/services/market_data/calendar.py
"""
Market calendar: trading hours and session dates per market class.

Every after-hours date decision goes through this module, so the
"which session is the previous close from" logic has one fix point.

Each market class has a weekday trading window in its exchange's local
time zone. Instants are converted with zoneinfo, so DST shifts of the
US window relative to KST are handled by the tz database.

Known limitation: only weekends are skipped. Exchange holidays are
treated as normal sessions; on a holiday the session-bar lookup finds no
bar for that date and the adapter returns the latest earlier one.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from portfolio_engine.models import MarketClass
from portfolio_engine.services.constants import (
    KR_CLOSE,
    KR_OPEN,
    KR_TIMEZONE,
    US_CLOSE,
    US_OPEN,
    US_TIMEZONE,
)
from portfolio_engine.utils.date_utils import (
    is_business_day,
    latest_business_day,
    previous_business_day,
)


@dataclass(frozen=True)
class MarketHours:
    """
    Weekday trading window in local exchange time, [open, close).

    The close instant itself counts as closed: at 15:30:00 KST the day
    session is already a completed session (last_completed_session), so
    an inclusive close would report one instant as both open and completed.
    Quote pages that treat 15:30:00 as still open differ by that instant only.
    """
    tz: ZoneInfo
    open: time
    close: time

    def __post_init__(self) -> None:
        if self.open >= self.close:
            raise ValueError(f"open ({self.open}) must be before close ({self.close})")


_KR_HOURS = MarketHours(ZoneInfo(KR_TIMEZONE), KR_OPEN, KR_CLOSE)
_US_HOURS = MarketHours(ZoneInfo(US_TIMEZONE), US_OPEN, US_CLOSE)

DEFAULT_HOURS: dict[MarketClass, MarketHours] = {
    MarketClass.KR_KOSPI: _KR_HOURS,
    MarketClass.KR_KOSDAQ: _KR_HOURS,
    # Domestic metal futures quotes follow the KRX day session
    MarketClass.METAL_FUTURES: _KR_HOURS,
    MarketClass.US_EQUITY: _US_HOURS,
}


class MarketCalendar:
    """
    Pure time arithmetic over trading windows.

    No method can fail for a tz-aware `now`. Naive datetimes are
    rejected because their meaning depends on the host time zone.

    Example:
        calendar = MarketCalendar()
        monday_2am = datetime(2024, 6, 10, 2, 0, tzinfo=ZoneInfo("Asia/Seoul"))

        calendar.is_market_closed(MarketClass.KR_KOSPI, monday_2am)        # True
        calendar.last_completed_session(MarketClass.KR_KOSPI, monday_2am)  # 2024-06-07 (Fri)
    """

    def __init__(self, hours: dict[MarketClass, MarketHours] | None = None) -> None:
        self._hours = dict(DEFAULT_HOURS)
        if hours:
            self._hours.update(hours)

    def hours_for(self, market: MarketClass) -> MarketHours:
        return self._hours[market]

    def local_time(self, market: MarketClass, now: datetime) -> datetime:
        """`now` converted to the market's local time zone."""
        if now.tzinfo is None or now.utcoffset() is None:
            raise ValueError("MarketCalendar requires timezone-aware datetimes")
        return now.astimezone(self._hours[market].tz)

    def is_market_closed(self, market: MarketClass, now: datetime) -> bool:
        """True outside the weekday trading window (always True on weekends)."""
        local = self.local_time(market, now)
        if not is_business_day(local.date()):
            return True
        hours = self._hours[market]
        return not (hours.open <= local.time() < hours.close)

    def current_session(self, market: MarketClass, now: datetime) -> date:
        """
        The session `now` belongs to: today on weekdays (open, closed or
        not yet opened), the preceding Friday on weekends.
        """
        return latest_business_day(self.local_time(market, now).date())

    def last_completed_session(self, market: MarketClass, now: datetime) -> date:
        """
        Most recent weekday whose session had fully closed at `now`.

        Today counts only once the local time is at or after the close.
        """
        local = self.local_time(market, now)
        today = local.date()
        if is_business_day(today) and local.time() >= self._hours[market].close:
            return today
        return previous_business_day(today)

    def previous_session(self, market: MarketClass, session: date) -> date:
        """Weekday session strictly before `session`."""
        return previous_business_day(session)

    def previous_close_session(self, market: MarketClass, now: datetime) -> date:
        """
        Session whose close is the reference "previous close" at `now`:
        the last completed session strictly before the current one.

        Monday 02:00 -> Friday; Tuesday 16:00 -> Monday; Saturday -> Thursday.
        """
        session = self.last_completed_session(market, now)
        if session >= self.current_session(market, now):
            session = self.previous_session(market, session)
        return session
