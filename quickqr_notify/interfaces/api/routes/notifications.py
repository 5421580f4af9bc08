"""Endpoints and websocket handler for realtime notifications."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Response, WebSocket, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quickqr_notify.application.use_cases.notifications import (
    NotificationPage,
    delete_notification,
    get_unread_count,
    list_notifications,
    mark_all_notifications_read,
    mark_notification_read,
)
from quickqr_notify.config import get_settings
from quickqr_notify.domain.entities import Notification
from quickqr_notify.domain.errors import AuthenticationError
from quickqr_notify.infrastructure.database import SessionLocal, get_db
from quickqr_notify.infrastructure.notifications import ConnectionRegistry, DeliverySession
from quickqr_notify.infrastructure.repositories import RestaurantMembershipRepository
from quickqr_notify.interfaces.api.dependencies import (
    get_connection_registry,
    get_current_recipient,
    resolve_recipient_id,
)
from quickqr_notify.interfaces.api.schemas import (
    MarkAllReadResponse,
    NotificationPageRead,
    NotificationRead,
    PaginationRead,
    UnreadCountRead,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])
logger = logging.getLogger(__name__)


def _notification_to_schema(notification: Notification) -> NotificationRead:
    return NotificationRead.model_validate(notification)


def _page_to_schema(page: NotificationPage) -> NotificationPageRead:
    pagination = page.pagination
    return NotificationPageRead(
        notifications=[_notification_to_schema(item) for item in page.items],
        pagination=PaginationRead(
            current_page=pagination.current_page,
            items_per_page=pagination.items_per_page,
            total_pages=pagination.total_pages,
            total_items=pagination.total_items,
            has_next_page=pagination.has_next_page,
            has_prev_page=pagination.has_prev_page,
        ),
    )


@router.get("/", response_model=NotificationPageRead)
def read_notifications(
    page: int = Query(1, description="Page number, values below 1 are clamped"),
    limit: int | None = Query(None, description="Page size, clamped to [1, 100]"),
    db: Session = Depends(get_db),
    recipient_id: str = Depends(get_current_recipient),
) -> NotificationPageRead:
    """Return the authenticated recipient's notifications, newest first."""

    return _page_to_schema(
        list_notifications(db, recipient_id, page=page, page_size=limit)
    )


@router.get("/unread-count", response_model=UnreadCountRead)
def read_unread_count(
    db: Session = Depends(get_db),
    recipient_id: str = Depends(get_current_recipient),
) -> UnreadCountRead:
    return UnreadCountRead(unread_count=get_unread_count(db, recipient_id))


@router.patch("/read-all", response_model=MarkAllReadResponse)
def mark_all_read(
    db: Session = Depends(get_db),
    recipient_id: str = Depends(get_current_recipient),
) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=mark_all_notifications_read(db, recipient_id))


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    recipient_id: str = Depends(get_current_recipient),
) -> NotificationRead:
    """Mark one notification as read. Already-read notifications are returned as is."""

    return _notification_to_schema(
        mark_notification_read(db, recipient_id, notification_id)
    )


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    recipient_id: str = Depends(get_current_recipient),
) -> Response:
    delete_notification(db, recipient_id, notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _load_restaurant_topics(owner_id: str) -> list[str]:
    session = SessionLocal()
    try:
        return RestaurantMembershipRepository(session).list_restaurant_ids(owner_id)
    except SQLAlchemyError as exc:
        logger.error("Error loading restaurant rooms for %s: %s", owner_id, exc)
        return []
    finally:
        session.close()


def _extract_credential(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token
    authorization = websocket.headers.get("authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


@router.websocket("/ws")
async def notifications_websocket(
    websocket: WebSocket,
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> None:
    """Websocket endpoint that streams notifications to the authenticated user."""

    settings = get_settings()
    session = DeliverySession(
        registry,
        authenticator=resolve_recipient_id,
        topic_resolver=_load_restaurant_topics,
        ping_interval=settings.ping_interval_seconds,
        ping_timeout=settings.ping_timeout_seconds,
    )
    try:
        session.authenticate(_extract_credential(websocket))
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    await session.run(websocket)


__all__ = ["router"]
