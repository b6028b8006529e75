"""Datetime helpers.

Everything persisted by the ORM is naive UTC; values coming from the remote
API may or may not carry an offset and are normalised here.
"""

from __future__ import annotations

from datetime import datetime, timezone

from dateutil import parser as dateparser


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_remote_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; strings without an offset are UTC."""
    if not value:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        parsed = dateparser.parse(value)
    except (ValueError, OverflowError):
        return None
    return to_naive_utc(parsed)
