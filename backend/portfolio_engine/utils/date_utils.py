# backend/portfolio_engine/utils/date_utils.py
"""
Weekday arithmetic shared by the market calendar.

Only weekends are skipped. Exchange holidays are not modelled, so a
holiday is treated as a normal session.
"""

from datetime import date, timedelta


def is_business_day(d: date) -> bool:
    """True for Monday through Friday."""
    return d.weekday() < 5


def previous_business_day(d: date) -> date:
    """
    The weekday strictly before `d`.

    Monday and the weekend both map back to the previous Friday.
    """
    prev_day = d - timedelta(days=1)
    while prev_day.weekday() >= 5:
        prev_day -= timedelta(days=1)
    return prev_day


def latest_business_day(d: date) -> date:
    """`d` itself if it is a weekday, otherwise the Friday before it."""
    return d if is_business_day(d) else previous_business_day(d)
