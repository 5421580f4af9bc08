"""Helpers for working with UTC datetimes.

Entities carry timezone-aware UTC values. The database columns are plain
``DATETIME`` so values are stored without ``tzinfo`` and re-attached on load.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` expressed in UTC, treating naive values as UTC."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` converted to UTC without ``tzinfo`` for storage."""

    normalized = ensure_utc(value)
    if normalized is None:
        return None
    return normalized.replace(tzinfo=None)


def isoformat_or_none(value: datetime | None) -> str | None:
    normalized = ensure_utc(value)
    return normalized.isoformat() if normalized else None


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO timestamp (as produced by :func:`isoformat_or_none`)."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def to_json_compatible(data: Any) -> Any:
    """Return a copy of ``data`` with nested datetimes turned into ISO strings."""

    if isinstance(data, datetime):
        return isoformat_or_none(data)
    if isinstance(data, dict):
        return {key: to_json_compatible(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [to_json_compatible(item) for item in data]
    return data
