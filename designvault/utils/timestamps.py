"""Timestamp helpers shared by the store adapters.

SQLite has no native timestamp type, so timestamps are persisted as
fixed-width UTC strings (``2026-01-31T09:15:00.000000Z``).  Fixed width
keeps lexical order identical to chronological order, which the date
range filters rely on.
"""

from __future__ import annotations

from datetime import datetime, timezone

_DB_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db_timestamp(value: datetime) -> str:
    return as_utc(value).strftime(_DB_FORMAT)


def from_db_timestamp(value: str | datetime) -> datetime:
    """Parse a stored timestamp; PostgreSQL drivers already return datetimes."""
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return datetime.strptime(value, _DB_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return as_utc(datetime.fromisoformat(value))
