"""
Time helpers for cycle windows and horizon labels.

All datetimes in the package are timezone-aware UTC. Durations are carried
as integer milliseconds on persisted records and converted to hours for the
temporal model.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

MS_PER_MINUTE = 60_000
MS_PER_HOUR = 3_600_000


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hours_to_ms(hours: float) -> int:
    return int(round(hours * MS_PER_HOUR))


def ms_to_hours(ms: int | float) -> float:
    return ms / MS_PER_HOUR


def add_ms(moment: datetime, ms: int | float) -> datetime:
    return moment + timedelta(milliseconds=ms)


def format_duration(ms: int | float) -> str:
    """Human label for a duration: ``"45min"``, ``"6h"``, ``"7h 30min"``, ``"2d 4h"``."""
    total_minutes = int(round(ms / MS_PER_MINUTE))
    if total_minutes < 60:
        return f"{total_minutes}min"

    hours, minutes = divmod(total_minutes, 60)
    if hours < 24:
        return f"{hours}h" if minutes == 0 else f"{hours}h {minutes}min"

    days, hours = divmod(hours, 24)
    return f"{days}d" if hours == 0 else f"{days}d {hours}h"
