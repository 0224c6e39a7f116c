from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..domain.errors import ValidationError

MINUTES_PER_DAY = 24 * 60

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")


def parse_iso_date(value: date | str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string; dates pass through unchanged."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise ValidationError(f"invalid date format: {value!r}, expected YYYY-MM-DD")
    try:
        parsed = date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"invalid date: {value}") from exc
    if parsed.isoformat() != value:  # pragma: no cover - regex already pins the shape
        raise ValidationError(f"invalid date: {value}")
    return parsed


def parse_hhmm(value: time | str) -> time:
    if isinstance(value, time):
        return value
    match = _HHMM.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValidationError(f"invalid time format: {value!r}, expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)), int(match.group(3) or 0))


def to_minutes(value: time | str) -> int:
    parsed = parse_hhmm(value)
    return parsed.hour * 60 + parsed.minute


def format_hhmm(minutes: int) -> str:
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def sunday_weekday(value: date) -> int:
    """Weekday index with Sunday=0 ... Saturday=6."""
    return (value.weekday() + 1) % 7


@lru_cache
def restaurant_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as exc:
        raise ValidationError(f"unknown timezone: {name}") from exc


def local_now(zone: ZoneInfo) -> datetime:
    return datetime.now(timezone.utc).astimezone(zone)


def local_today(zone: ZoneInfo) -> date:
    return local_now(zone).date()


def reservation_datetime(reservation_date: date, reservation_time: time, zone: ZoneInfo) -> datetime:
    """Aware datetime of a reservation in the restaurant's timezone."""
    return datetime.combine(reservation_date, reservation_time.replace(tzinfo=None), tzinfo=zone)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
