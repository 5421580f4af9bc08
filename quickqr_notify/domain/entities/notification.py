"""Domain entity representing a recipient notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

NOTIFICATION_KIND_NEW_ORDER = "new_order"
NOTIFICATION_KIND_ORDER_STATUS = "order_status"
NOTIFICATION_KIND_MENU_UPDATE = "menu_update"
NOTIFICATION_KIND_SYSTEM = "system"
NOTIFICATION_KIND_REVIEW = "review"

NOTIFICATION_KINDS = frozenset(
    {
        NOTIFICATION_KIND_NEW_ORDER,
        NOTIFICATION_KIND_ORDER_STATUS,
        NOTIFICATION_KIND_MENU_UPDATE,
        NOTIFICATION_KIND_SYSTEM,
        NOTIFICATION_KIND_REVIEW,
    }
)


@dataclass
class Notification:
    """Message durably addressed to one recipient."""

    id: int | None
    recipient_id: str
    kind: str
    title: str
    body: str
    topic_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None


__all__ = [
    "Notification",
    "NOTIFICATION_KINDS",
    "NOTIFICATION_KIND_NEW_ORDER",
    "NOTIFICATION_KIND_ORDER_STATUS",
    "NOTIFICATION_KIND_MENU_UPDATE",
    "NOTIFICATION_KIND_SYSTEM",
    "NOTIFICATION_KIND_REVIEW",
]
