from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterator, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_hhmm(value: str, field_name: str = "Giờ") -> time:
    """Parse an ``HH:MM`` time-of-day string."""
    v = (value or "").strip()
    try:
        return datetime.strptime(v, "%H:%M").time()
    except ValueError:
        raise ValidationError(f"{field_name} không hợp lệ (HH:MM)")


def parse_timestamp(value: str, field_name: str = "Thời gian", *, tz: Optional[tzinfo] = None) -> datetime:
    """Parse an ISO-8601 timestamp and normalize it to UTC.

    Naive values (e.g. from a ``datetime-local`` input) are read in ``tz``.
    """
    v = (value or "").strip()
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(v)
    except ValueError:
        raise ValidationError(f"{field_name} không hợp lệ")
    return to_utc(parsed, tz=tz)


def to_utc(value: datetime, *, tz: Optional[tzinfo] = None) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz or timezone.utc)
    return value.astimezone(timezone.utc)


def load_timezone(name: str) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        raise ValidationError(f"Múi giờ không hợp lệ: {name}")


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every calendar date from ``start`` to ``end`` inclusive."""
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)


def sunday_weekday(d: date) -> int:
    """Weekday number with 0 = Sunday .. 6 = Saturday."""
    return (d.weekday() + 1) % 7


def last_day_of_month(d: date) -> date:
    first_next = (d.replace(day=28) + timedelta(days=4)).replace(day=1)
    return first_next - timedelta(days=1)


def now_utc() -> datetime:
    """Current UTC time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc)
