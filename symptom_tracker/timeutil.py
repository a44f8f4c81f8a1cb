# -*- coding: utf-8 -*-
"""Time helpers: UTC normalization, ISO strings and epoch milliseconds."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Union

DateLike = Union[datetime, date, str, int, float]

DAY_MS = 24 * 60 * 60 * 1000
HOUR_MS = 60 * 60 * 1000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: DateLike) -> datetime:
    """Coerce datetimes, dates, ISO strings and epoch ms into aware UTC datetimes.

    Naive datetimes are taken to already be UTC.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso(value: DateLike) -> str:
    # Fixed width so stored timestamps compare correctly as strings.
    return to_utc(value).isoformat(timespec="microseconds")


def iso_now() -> str:
    return iso(utc_now())


def to_ms(value: DateLike) -> int:
    return int(round(to_utc(value).timestamp() * 1000))


def from_ms(ms: Union[int, float]) -> datetime:
    return to_utc(ms)


def date_key(value: DateLike) -> str:
    """UTC calendar day as YYYY-MM-DD."""
    return to_utc(value).date().isoformat()


def sunday_weekday(value: DateLike) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return (to_utc(value).weekday() + 1) % 7


def parse_date_key(key: str) -> datetime:
    return datetime.strptime(key, "%Y-%m-%d").replace(tzinfo=timezone.utc)


def start_of_day(value: DateLike) -> datetime:
    dt = to_utc(value)
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: DateLike) -> datetime:
    return start_of_day(value) + timedelta(days=1) - timedelta(microseconds=1)


def _minus_years(dt: datetime, years: int) -> datetime:
    try:
        return dt.replace(year=dt.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year.
        return dt.replace(year=dt.year - years, day=28)


def subtract_time_range(end: datetime, time_range: str) -> datetime:
    """Move ``end`` back by a range like ``30d``, ``2y`` or ``all`` (five years).

    Raises ValueError for anything else.
    """
    key = (time_range or "").strip().lower()
    if key == "all":
        return _minus_years(end, 5)
    if len(key) >= 2 and key[:-1].isdigit():
        amount = int(key[:-1])
        if key.endswith("d"):
            return end - timedelta(days=amount)
        if key.endswith("y"):
            return _minus_years(end, amount)
    raise ValueError(f"Unsupported time range: {time_range!r}")
