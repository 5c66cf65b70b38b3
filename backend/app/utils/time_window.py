"""Timezone-aware time helpers for schedule and quiet-hours arithmetic.

All instants handled here are absolute (UTC). Wall-clock fields such as
``time_of_day`` or quiet-hours boundaries are only compared after converting
the instant into the zone they were declared in.
"""

import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.constants.execution import Frequency

HHMM_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def utc_now() -> datetime:
    """Default clock: the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC (SQLite drops tzinfo)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def get_zone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Invalid timezone: {name}")


def validate_timezone(name: str) -> str:
    get_zone(name)
    return name


def parse_hhmm(value: str) -> time:
    """Parse a 24-hour ``HH:MM`` string."""
    match = HHMM_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid time format '{value}'. Use HH:MM (24-hour format)")
    return time(int(match.group(1)), int(match.group(2)))


def format_hhmm(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def now_in_zone(tz_name: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Return ``now`` (default: current instant) expressed in the given zone."""
    return as_utc(now or utc_now()).astimezone(get_zone(tz_name))


def is_within_window(now: str, start: str, end: str) -> bool:
    """
    Check whether wall-clock ``now`` falls inside the ``[start, end)`` window.

    A window whose start is after its end wraps midnight (e.g. 22:00-08:00).
    A window whose start equals its end has zero width and contains nothing.
    """
    current = parse_hhmm(now)
    window_start = parse_hhmm(start)
    window_end = parse_hhmm(end)

    if window_start < window_end:
        return window_start <= current < window_end
    if window_start > window_end:
        return current >= window_start or current < window_end
    return False


def _weekday_sunday_first(moment: datetime) -> int:
    # Python counts Monday=0; schedules count Sunday=0
    return (moment.weekday() + 1) % 7


def compute_next_run(schedule: Any, from_instant: datetime) -> Optional[datetime]:
    """
    Compute the next UTC instant strictly after ``from_instant`` at which ``schedule`` is due.

    ``schedule`` is anything exposing ``frequency``, ``time_of_day``, ``timezone``,
    ``day_of_week``, ``day_of_month`` and ``once_date`` (ORM row or pydantic model).
    Returns None for a one-time schedule whose date has already passed.
    """
    zone = get_zone(schedule.timezone)
    reference = as_utc(from_instant)
    local_now = reference.astimezone(zone)
    at = parse_hhmm(schedule.time_of_day)
    frequency = Frequency(schedule.frequency)
    today = local_now.date()

    def _at(day: date) -> datetime:
        return datetime.combine(day, at, tzinfo=zone).astimezone(timezone.utc)

    if frequency is Frequency.ONCE:
        once_date = schedule.once_date
        if once_date is None:
            return None
        if isinstance(once_date, datetime):
            once_date = once_date.date()
        candidate = _at(once_date)
        return candidate if candidate > reference else None

    if frequency is Frequency.DAILY:
        candidate = _at(today)
        if candidate <= reference:
            candidate = _at(today + timedelta(days=1))
        return candidate

    if frequency is Frequency.WEEKLY:
        days_ahead = (schedule.day_of_week - _weekday_sunday_first(local_now)) % 7
        candidate = _at(today + timedelta(days=days_ahead))
        if candidate <= reference:
            candidate = _at(today + timedelta(days=days_ahead + 7))
        return candidate

    # Monthly: walk forward month by month, clamping the day to each month's length
    year, month = today.year, today.month
    for _ in range(13):
        last_day = calendar.monthrange(year, month)[1]
        candidate = _at(date(year, month, min(schedule.day_of_month, last_day)))
        if candidate > reference:
            return candidate
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return None
