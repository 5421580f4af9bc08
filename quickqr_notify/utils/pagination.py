"""Page/limit clamping shared by the store and the HTTP layer."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Pagination:
    """Resolved pagination window for a listing."""

    current_page: int
    items_per_page: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool
    skip: int


def _coerce_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def paginate(page: Any = 1, limit: Any = 10, total: int = 0) -> Pagination:
    """Clamp ``page`` to >= 1 and ``limit`` to [1, 100] and derive the window."""

    current_page = max(1, _coerce_int(page, 1))
    items_per_page = min(MAX_PAGE_SIZE, max(1, _coerce_int(limit, 10)))
    total_pages = math.ceil(total / items_per_page) if total > 0 else 0
    return Pagination(
        current_page=current_page,
        items_per_page=items_per_page,
        total_items=total,
        total_pages=total_pages,
        has_next_page=current_page < total_pages,
        has_prev_page=current_page > 1,
        skip=(current_page - 1) * items_per_page,
    )


__all__ = ["MAX_PAGE_SIZE", "Pagination", "paginate"]
