"""Trading-day boundaries.

One policy everywhere: a "day" is the calendar day in the account's
configured timezone, and naive timestamps are read as UTC.
"""

from datetime import datetime, timedelta

import pytz


def to_utc(moment: datetime) -> datetime:
    """Make a timestamp timezone-aware in UTC, reading naive values as UTC."""
    if moment.tzinfo is None:
        return pytz.utc.localize(moment)
    return moment.astimezone(pytz.utc)


def day_window(now: datetime, timezone: str = "UTC") -> tuple[datetime, datetime]:
    """Get the [start, end) UTC bounds of the calendar day containing ``now``.

    Args:
        now: Reference moment.
        timezone: IANA zone whose calendar day is used.

    Returns:
        Tuple of UTC-aware start and end datetimes.
    """
    tz = pytz.timezone(timezone)
    local = to_utc(now).astimezone(tz)
    start = tz.localize(datetime(local.year, local.month, local.day))
    next_day = local.date() + timedelta(days=1)
    end = tz.localize(datetime(next_day.year, next_day.month, next_day.day))
    return start.astimezone(pytz.utc), end.astimezone(pytz.utc)


def in_window(moment: datetime, window: tuple[datetime, datetime]) -> bool:
    start, end = window
    return start <= to_utc(moment) < end


def is_valid_timezone(name: str) -> bool:
    return name in pytz.all_timezones_set
