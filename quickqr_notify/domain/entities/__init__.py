"""Domain entities exposed by the application."""

from .channel import CHANNEL_TRANSITIONS, ChannelState, LiveChannel
from .notification import (
    NOTIFICATION_KIND_MENU_UPDATE,
    NOTIFICATION_KIND_NEW_ORDER,
    NOTIFICATION_KIND_ORDER_STATUS,
    NOTIFICATION_KIND_REVIEW,
    NOTIFICATION_KIND_SYSTEM,
    NOTIFICATION_KINDS,
    Notification,
)

__all__ = [
    "CHANNEL_TRANSITIONS",
    "ChannelState",
    "LiveChannel",
    "Notification",
    "NOTIFICATION_KINDS",
    "NOTIFICATION_KIND_NEW_ORDER",
    "NOTIFICATION_KIND_ORDER_STATUS",
    "NOTIFICATION_KIND_MENU_UPDATE",
    "NOTIFICATION_KIND_SYSTEM",
    "NOTIFICATION_KIND_REVIEW",
]
