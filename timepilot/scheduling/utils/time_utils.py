"""
Date and time-of-day helpers.

Dates travel as "YYYY-MM-DD" strings and times as "HH:MM" strings. Weekdays
use the 0 = Sunday numbering that settings and commitments are stored in.
"""

from datetime import date, datetime, timedelta
from typing import Iterator, Optional, Union

import pytz

from ..core.constants import MINUTES_PER_DAY


def parse_date(value: Union[str, date]) -> date:
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def add_days(value: str, days: int) -> str:
    return format_date(parse_date(value) + timedelta(days=days))


def days_between(start: str, end: str) -> int:
    """Signed number of calendar days from start to end."""
    return (parse_date(end) - parse_date(start)).days


def iter_dates(start: str, end: str) -> Iterator[str]:
    """Yield every date from start to end inclusive."""
    current = parse_date(start)
    last = parse_date(end)
    while current <= last:
        yield format_date(current)
        current += timedelta(days=1)


def weekday(value: Union[str, date]) -> int:
    """Day of week with Sunday = 0."""
    return (parse_date(value).weekday() + 1) % 7


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    minutes = max(0, min(int(round(minutes)), MINUTES_PER_DAY - 1))
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def duration_hours(start: str, end: str) -> float:
    return (time_to_minutes(end) - time_to_minutes(start)) / 60


def round_hours(hours: float) -> float:
    """Round to the nearest minute expressed in hours."""
    return round(hours * 60) / 60


def resolve_today(today: Optional[Union[str, date]] = None, timezone: str = "UTC") -> str:
    """Return today's local date string unless the caller pinned one."""
    if today is not None:
        return format_date(parse_date(today))
    return format_date(datetime.now(pytz.timezone(timezone)).date())


def now_timestamp(timezone: str = "UTC") -> str:
    return datetime.now(pytz.timezone(timezone)).isoformat()
