"""
Time rules: the injectable "now", local timezone and relative listing periods.
"""
import calendar
from datetime import datetime, timedelta
from typing import Optional

import pytz

from ..config import settings


PERIODS = ("week", "month", "quarter", "year", "all")


def local_tz():
    return pytz.timezone(settings.tz_default)


def get_now() -> datetime:
    """
    Current instant in the configured timezone.
    Used as a FastAPI dependency so tests can pin the clock.
    """
    return datetime.now(local_tz())


def shift_months(dt: datetime, months: int) -> datetime:
    """
    Move dt by whole calendar months, clamping the day to the target month's length.

    Args:
        dt: Datetime to shift
        months: Months to add (negative to go back)

    Returns:
        Shifted datetime (time of day and tzinfo preserved)
    """
    index = dt.month - 1 + months
    year = dt.year + index // 12
    month = index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def period_start(now: datetime, period: str) -> Optional[datetime]:
    """Start of a relative listing period ending at now; None for "all"."""
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return shift_months(now, -1)
    if period == "quarter":
        return shift_months(now, -3)
    if period == "year":
        return shift_months(now, -12)
    if period == "all":
        return None
    raise ValueError(f"Unknown period: {period}")
