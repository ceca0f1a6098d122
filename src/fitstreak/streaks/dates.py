"""Calendar helpers: local dates, week boundaries and reset schedules."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utc_now().date()


def as_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def resolve_timezone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA timezone name, falling back to UTC when it is unknown."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid timezone %r, falling back to UTC", tz_name)
        return ZoneInfo("UTC")


def local_now(now: datetime, tz_name: str) -> datetime:
    """Convert an aware (or naive UTC) instant to the user's local wall clock."""
    return as_utc(now).astimezone(resolve_timezone(tz_name))  # type: ignore[union-attr]


def local_date(now: datetime, tz_name: str) -> date:
    """Get the user's calendar date at ``now``.

    Example: 02:00 UTC on 2025-11-19 is still 2025-11-18 in America/Sao_Paulo.
    """
    return local_now(now, tz_name).date()


def week_start_sunday(d: date) -> date:
    """Get the Sunday that opens the Sunday-Saturday week containing ``d``."""
    return d - timedelta(days=(d.weekday() + 1) % 7)


def next_monday(now: datetime) -> datetime:
    """Get the next Monday 00:00 UTC strictly after ``now``."""
    current = as_utc(now).astimezone(timezone.utc)  # type: ignore[union-attr]
    days_ahead = 7 - current.weekday()
    return datetime(current.year, current.month, current.day, tzinfo=timezone.utc) + timedelta(days=days_ahead)


def advance_reset_date(reset_date: date, today: date, interval_days: int) -> date:
    """Step ``reset_date`` forward by whole intervals until it lies after ``today``."""
    step = timedelta(days=interval_days)
    while reset_date <= today:
        reset_date += step
    return reset_date
