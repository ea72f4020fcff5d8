"""Calendar helpers for bucketing epoch-millisecond timestamps in UTC."""

from __future__ import annotations

import calendar
import time
from datetime import date, datetime, timedelta, timezone

MS_PER_SECOND = 1000
MS_PER_HOUR = 3_600_000
MS_PER_DAY = 86_400_000


def now_ms() -> int:
    return int(time.time() * MS_PER_SECOND)


def ms_to_date(timestamp_ms: int) -> date:
    """UTC calendar date containing ``timestamp_ms``."""
    return datetime.fromtimestamp(timestamp_ms / MS_PER_SECOND, tz=timezone.utc).date()


def date_to_ms(day: date) -> int:
    """Epoch milliseconds at UTC midnight starting ``day``."""
    return calendar.timegm(day.timetuple()) * MS_PER_SECOND


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_end(day: date) -> date:
    return week_start(day) + timedelta(days=6)


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def next_month_start(day: date) -> date:
    return month_end(day) + timedelta(days=1)


def span_days(start: date, end: date) -> int:
    """Number of calendar days in the inclusive range ``[start, end]``."""
    return (end - start).days + 1
