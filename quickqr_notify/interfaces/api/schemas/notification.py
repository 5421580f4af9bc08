"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    recipient_id: str
    topic_id: str | None = None
    kind: str
    title: str
    body: str
    payload: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime


class PaginationRead(BaseModel):
    """Pagination metadata returned next to a page of notifications."""

    current_page: int
    items_per_page: int
    total_pages: int
    total_items: int
    has_next_page: bool
    has_prev_page: bool


class NotificationPageRead(BaseModel):
    notifications: list[NotificationRead]
    pagination: PaginationRead


class UnreadCountRead(BaseModel):
    unread_count: int = Field(..., ge=0)


class MarkAllReadResponse(BaseModel):
    updated: int = Field(..., ge=0, description="Number of notifications flipped to read")
    message: str = "All notifications marked as read"


__all__ = [
    "NotificationRead",
    "PaginationRead",
    "NotificationPageRead",
    "UnreadCountRead",
    "MarkAllReadResponse",
]
