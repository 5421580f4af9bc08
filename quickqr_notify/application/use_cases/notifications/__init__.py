"""Public helpers for storing and routing notifications."""

from .events import (
    EVENT_NOTIFICATION_NEW,
    EVENT_ORDER_NEW,
    EVENT_ORDER_UPDATED,
    NotificationRouter,
    RoutingResult,
    event_name_for,
    notify_new_order,
    notify_order_status_changed,
    route_event_blocking,
    serialize_notification,
)
from .inbox import (
    NotificationPage,
    create_notification,
    delete_notification,
    get_unread_count,
    list_notifications,
    mark_all_notifications_read,
    mark_notification_read,
)

__all__ = [
    "EVENT_NOTIFICATION_NEW",
    "EVENT_ORDER_NEW",
    "EVENT_ORDER_UPDATED",
    "NotificationRouter",
    "RoutingResult",
    "event_name_for",
    "notify_new_order",
    "notify_order_status_changed",
    "route_event_blocking",
    "serialize_notification",
    "NotificationPage",
    "create_notification",
    "delete_notification",
    "get_unread_count",
    "list_notifications",
    "mark_all_notifications_read",
    "mark_notification_read",
]
