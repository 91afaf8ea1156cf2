"""Resolve report ranges into concrete UTC timestamps.

Day boundaries follow the local wall clock. The local UTC offset is read
once, when a range is resolved, and applied to both bounds.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional

from .errors import InvalidInput

DATE_FMT = "%Y-%m-%d"


def local_now(now: Optional[datetime] = None) -> datetime:
    """Return ``now`` (default: the current time) as an aware datetime.

    An aware ``now`` is taken as already expressed in the wanted local zone.
    """
    if now is None:
        return datetime.now().astimezone()
    if now.tzinfo is None:
        return now.astimezone()
    return now


def local_offset(now: Optional[datetime] = None) -> tzinfo:
    current = local_now(now)
    offset = current.utcoffset()
    return timezone(offset) if offset is not None else timezone.utc


def local_midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=tz)


def offset_range(
    days_offset: int,
    days: Optional[int] = None,
    *,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """Range starting at local midnight ``days_offset`` days back from today.

    With ``days`` the range spans that many whole days; without it the range
    ends at ``now``.
    """
    if days_offset < 0:
        raise InvalidInput("days_offset must not be negative")
    if days is not None and days < 0:
        raise InvalidInput("days must not be negative")

    current = local_now(now)
    tz = local_offset(current)
    start = local_midnight(current.date() - timedelta(days=days_offset), tz)
    end = start + timedelta(days=days) if days is not None else current
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def parse_day(value: str, label: str) -> date:
    try:
        return datetime.strptime(value, DATE_FMT).date()
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Invalid format of {label}: {value!r}") from exc


def date_range(
    day_start: str,
    day_end: str,
    *,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """Inclusive local-date range ``[day_start 00:00:00, day_end 23:59:59]``."""
    start_day = parse_day(day_start, "day_start")
    end_day = parse_day(day_end, "day_end")
    if end_day < start_day:
        raise InvalidInput("Invalid date range: day_end must not be before day_start")

    tz = local_offset(now)
    start = local_midnight(start_day, tz)
    end = datetime.combine(end_day, time(23, 59, 59), tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_dates(
    start: datetime, end: datetime, *, now: Optional[datetime] = None
) -> list[date]:
    """Local calendar dates touched by the half-open range ``[start, end)``.

    Dates are read with the same offset the range was resolved with.
    """
    if end <= start:
        return []
    tz = local_offset(now)
    first = start.astimezone(tz).date()
    last = (end - timedelta(microseconds=1)).astimezone(tz).date()
    return [first + timedelta(days=offset) for offset in range((last - first).days + 1)]
