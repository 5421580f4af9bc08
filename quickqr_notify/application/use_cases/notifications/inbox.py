"""Use cases backing a recipient's notification inbox."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from quickqr_notify.config import get_settings
from quickqr_notify.domain.entities import NOTIFICATION_KINDS, Notification
from quickqr_notify.domain.errors import (
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from quickqr_notify.infrastructure.repositories import NotificationRepository
from quickqr_notify.utils import Pagination, paginate, to_json_compatible, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationPage:
    """One page of a recipient's notifications, newest first."""

    items: list[Notification]
    pagination: Pagination


def _require_text(value: Any, field_name: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{field_name} is required")
    return text


def create_notification(
    session: Session,
    *,
    recipient_id: str,
    kind: str,
    title: str,
    body: str,
    topic_id: str | None = None,
    payload: dict[str, Any] | None = None,
    retention: int | None = None,
) -> Notification:
    """Persist a notification and trim the recipient's history to ``retention``."""

    recipient = _require_text(recipient_id, "recipient_id")
    if kind not in NOTIFICATION_KINDS:
        raise ValidationError(f"Unknown notification kind '{kind}'")
    if payload is not None and not isinstance(payload, dict):
        raise ValidationError("payload must be an object")

    repository = NotificationRepository(session)
    saved = repository.create(
        Notification(
            id=None,
            recipient_id=recipient,
            topic_id=str(topic_id) if topic_id is not None else None,
            kind=kind,
            title=_require_text(title, "title"),
            body=_require_text(body, "body"),
            payload=to_json_compatible(payload or {}),
            created_at=utc_now(),
        )
    )

    keep_count = retention or get_settings().notification_retention
    try:
        evicted = repository.evict_oldest(recipient, keep_count)
    except StoreUnavailableError as exc:
        # The notification is durable; the cap converges on the next create.
        logger.warning("Retention cleanup failed for recipient %s: %s", recipient, exc)
    else:
        if evicted:
            logger.debug("Evicted %s old notification(s) for %s", evicted, recipient)
    return saved


def list_notifications(
    session: Session,
    recipient_id: str,
    *,
    page: Any = 1,
    page_size: Any = None,
) -> NotificationPage:
    """Return one page of notifications for ``recipient_id``."""

    repository = NotificationRepository(session)
    total = repository.count_for_recipient(recipient_id)
    pagination = paginate(
        page, page_size if page_size is not None else get_settings().default_page_size, total
    )
    items = repository.list_for_recipient(
        recipient_id, offset=pagination.skip, limit=pagination.items_per_page
    )
    return NotificationPage(items=list(items), pagination=pagination)


def get_unread_count(session: Session, recipient_id: str) -> int:
    return NotificationRepository(session).count_unread(recipient_id)


def mark_notification_read(
    session: Session, recipient_id: str, notification_id: int
) -> Notification:
    """Mark one notification as read; repeating the call is harmless."""

    notification = NotificationRepository(session).mark_as_read(
        recipient_id, notification_id
    )
    if notification is None:
        raise NotFoundError("Notification", notification_id)
    return notification


def mark_all_notifications_read(session: Session, recipient_id: str) -> int:
    return NotificationRepository(session).mark_all_as_read(recipient_id)


def delete_notification(session: Session, recipient_id: str, notification_id: int) -> None:
    """Remove a notification owned by ``recipient_id`` or raise ``NotFoundError``."""

    if not NotificationRepository(session).delete(recipient_id, notification_id):
        raise NotFoundError("Notification", notification_id)


__all__ = [
    "NotificationPage",
    "create_notification",
    "list_notifications",
    "get_unread_count",
    "mark_notification_read",
    "mark_all_notifications_read",
    "delete_notification",
]
