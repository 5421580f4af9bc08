"""Utility helpers for reusable functionality."""

from .datetime import (
    ensure_utc,
    isoformat_or_none,
    parse_datetime,
    to_json_compatible,
    to_naive_utc,
    utc_now,
)
from .pagination import MAX_PAGE_SIZE, Pagination, paginate

__all__ = [
    "ensure_utc",
    "isoformat_or_none",
    "parse_datetime",
    "to_json_compatible",
    "to_naive_utc",
    "utc_now",
    "MAX_PAGE_SIZE",
    "Pagination",
    "paginate",
]
