"""Route domain events to the notification store and to live channels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Mapping

from anyio import from_thread
from sqlalchemy.orm import Session

from quickqr_notify.domain.entities import (
    NOTIFICATION_KIND_NEW_ORDER,
    NOTIFICATION_KIND_ORDER_STATUS,
    Notification,
)
from quickqr_notify.infrastructure.notifications import (
    ConnectionRegistry,
    NotificationPublisher,
)
from quickqr_notify.utils import isoformat_or_none

from .inbox import create_notification

logger = logging.getLogger(__name__)

EVENT_ORDER_NEW = "order:new"
EVENT_ORDER_UPDATED = "order:updated"
EVENT_NOTIFICATION_NEW = "notification:new"

_EVENT_BY_KIND = {
    NOTIFICATION_KIND_NEW_ORDER: EVENT_ORDER_NEW,
    NOTIFICATION_KIND_ORDER_STATUS: EVENT_ORDER_UPDATED,
}

ORDER_STATUS_MESSAGES = {
    "confirmed": "Order confirmed",
    "preparing": "Order is being prepared",
    "ready": "Order is ready for pickup",
    "served": "Order has been served",
    "completed": "Order completed",
    "cancelled": "Order was cancelled",
}


@dataclass(frozen=True)
class RoutingResult:
    """Outcome of routing one domain event."""

    notification: Notification
    event_name: str
    targets: frozenset[str]
    delivered: frozenset[str]


def event_name_for(kind: str) -> str:
    return _EVENT_BY_KIND.get(kind, EVENT_NOTIFICATION_NEW)


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the JSON representation pushed to channels and served by the API."""

    return {
        "id": notification.id,
        "recipient_id": notification.recipient_id,
        "topic_id": notification.topic_id,
        "kind": notification.kind,
        "title": notification.title,
        "body": notification.body,
        "payload": dict(notification.payload or {}),
        "is_read": notification.is_read,
        "read_at": isoformat_or_none(notification.read_at),
        "created_at": isoformat_or_none(notification.created_at),
    }


class NotificationRouter:
    """Persist a notification, then push it to every interested channel."""

    def __init__(
        self, registry: ConnectionRegistry, *, retention: int | None = None
    ) -> None:
        self._registry = registry
        self._publisher = NotificationPublisher(registry)
        self._retention = retention

    async def route_event(
        self,
        session: Session,
        *,
        kind: str,
        recipient_id: str,
        topic_id: str | None,
        title: str,
        body: str,
        payload: dict[str, Any] | None = None,
    ) -> RoutingResult:
        """Store the event for ``recipient_id`` and fan it out.

        The store write finishes before any channel is contacted, so a client
        that sees the push can immediately list it. Store errors propagate and
        nothing is pushed; delivery errors only affect the failing channel.
        """

        notification = create_notification(
            session,
            recipient_id=recipient_id,
            kind=kind,
            title=title,
            body=body,
            topic_id=topic_id,
            payload=payload,
            retention=self._retention,
        )
        event_name = event_name_for(notification.kind)
        message = serialize_notification(notification)
        targets = self._registry.resolve_targets(
            notification.recipient_id, notification.topic_id
        )
        if not targets:
            logger.info(
                "Recipient %s has no live channels; notification %s stored only",
                notification.recipient_id,
                notification.id,
            )
            return RoutingResult(notification, event_name, frozenset(), frozenset())

        delivered = await self._publisher.publish(targets, event_name, message)
        return RoutingResult(notification, event_name, targets, delivered)


def route_event_blocking(
    router: NotificationRouter, session: Session, **event: Any
) -> RoutingResult:
    """Run :meth:`NotificationRouter.route_event` from an anyio worker thread.

    Sync FastAPI endpoints run in such threads, so order handlers written as
    plain functions can call this after committing their own write.
    """

    return from_thread.run(partial(router.route_event, session, **event))


async def notify_new_order(
    router: NotificationRouter,
    session: Session,
    *,
    owner_id: str,
    restaurant_id: str,
    order: Mapping[str, Any],
) -> RoutingResult:
    """Notify the restaurant owner and staff channels about a placed order."""

    items = order.get("items") or []
    payload = {
        "orderId": order.get("id") or order.get("_id"),
        "orderNumber": order.get("orderNumber"),
        "customerName": order.get("customerName"),
        "tableNumber": order.get("tableNumber"),
        "total": order.get("total"),
        "itemCount": order.get("itemCount", len(items)),
    }
    result = await router.route_event(
        session,
        kind=NOTIFICATION_KIND_NEW_ORDER,
        recipient_id=owner_id,
        topic_id=restaurant_id,
        title="New Order Received",
        body=f"Table {order.get('tableNumber')} placed an order",
        payload=payload,
    )
    logger.info("New order notification sent for order: %s", payload["orderNumber"])
    return result


async def notify_order_status_changed(
    router: NotificationRouter,
    session: Session,
    *,
    owner_id: str,
    restaurant_id: str,
    order: Mapping[str, Any],
) -> RoutingResult:
    """Notify about an order moving to a new status."""

    status = order.get("status")
    payload = {
        "orderId": order.get("id") or order.get("_id"),
        "orderNumber": order.get("orderNumber"),
        "status": status,
        "tableNumber": order.get("tableNumber"),
    }
    result = await router.route_event(
        session,
        kind=NOTIFICATION_KIND_ORDER_STATUS,
        recipient_id=owner_id,
        topic_id=restaurant_id,
        title="Order Status Updated",
        body=ORDER_STATUS_MESSAGES.get(str(status), f"Order status: {status}"),
        payload=payload,
    )
    logger.info(
        "Order status update sent for order: %s, status: %s",
        payload["orderNumber"],
        status,
    )
    return result


__all__ = [
    "EVENT_ORDER_NEW",
    "EVENT_ORDER_UPDATED",
    "EVENT_NOTIFICATION_NEW",
    "ORDER_STATUS_MESSAGES",
    "NotificationRouter",
    "RoutingResult",
    "event_name_for",
    "serialize_notification",
    "route_event_blocking",
    "notify_new_order",
    "notify_order_status_changed",
]
