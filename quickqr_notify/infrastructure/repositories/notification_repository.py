"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager

import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quickqr_notify.domain.entities import Notification
from quickqr_notify.domain.errors import StoreUnavailableError
from quickqr_notify.infrastructure.models import NotificationModel
from quickqr_notify.utils import ensure_utc, to_naive_utc, utc_now

logger = logging.getLogger(__name__)

_NEWEST_FIRST = (NotificationModel.created_at.desc(), NotificationModel.id.desc())


class NotificationRepository:
    """Provide the store operations for :class:`Notification` objects.

    Every lookup and mutation is scoped by ``recipient_id`` so a caller can
    never observe or change another recipient's records.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, notification: Notification) -> Notification:
        model = NotificationModel(
            recipient_id=notification.recipient_id,
            topic_id=notification.topic_id,
            kind=notification.kind,
            title=notification.title,
            body=notification.body,
            payload=notification.payload or {},
            is_read=False,
            read_at=None,
            created_at=to_naive_utc(notification.created_at or utc_now()),
        )
        with self._writing("persist notification", notification.recipient_id):
            self.session.add(model)
            self.session.commit()
            self.session.refresh(model)
        return self._to_entity(model)

    def get_for_recipient(
        self, recipient_id: str, notification_id: int
    ) -> Notification | None:
        model = self._get_model(recipient_id, notification_id)
        return self._to_entity(model) if model is not None else None

    def list_for_recipient(
        self,
        recipient_id: str,
        *,
        offset: int = 0,
        limit: int | None = 20,
    ) -> Sequence[Notification]:
        query = (
            select(NotificationModel)
            .where(NotificationModel.recipient_id == recipient_id)
            .order_by(*_NEWEST_FIRST)
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in self.session.scalars(query)]

    def count_for_recipient(self, recipient_id: str) -> int:
        query = select(func.count(NotificationModel.id)).where(
            NotificationModel.recipient_id == recipient_id
        )
        return int(self.session.scalar(query) or 0)

    def count_unread(self, recipient_id: str) -> int:
        query = select(func.count(NotificationModel.id)).where(
            NotificationModel.recipient_id == recipient_id,
            NotificationModel.is_read.is_(False),
        )
        return int(self.session.scalar(query) or 0)

    def mark_as_read(
        self, recipient_id: str, notification_id: int
    ) -> Notification | None:
        """Flag one notification as read; already-read records are left untouched."""

        with self._writing("mark notification read", recipient_id):
            model = self._get_model(recipient_id, notification_id)
            if model is None:
                return None
            if not model.is_read:
                model.is_read = True
                model.read_at = to_naive_utc(utc_now())
                self.session.commit()
                self.session.refresh(model)
        return self._to_entity(model)

    def mark_all_as_read(self, recipient_id: str) -> int:
        with self._writing("mark notifications read", recipient_id):
            result = self.session.execute(
                update(NotificationModel)
                .where(
                    NotificationModel.recipient_id == recipient_id,
                    NotificationModel.is_read.is_(False),
                )
                .values(is_read=True, read_at=to_naive_utc(utc_now()))
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        return int(result.rowcount or 0)

    def delete(self, recipient_id: str, notification_id: int) -> bool:
        with self._writing("delete notification", recipient_id):
            model = self._get_model(recipient_id, notification_id)
            if model is None:
                return False
            self.session.delete(model)
            self.session.commit()
        return True

    def evict_oldest(self, recipient_id: str, keep_count: int) -> int:
        """Delete every notification beyond the ``keep_count`` most recent ones."""

        with self._writing("evict old notifications", recipient_id):
            stale_ids = list(
                self.session.scalars(
                    select(NotificationModel.id)
                    .where(NotificationModel.recipient_id == recipient_id)
                    .order_by(*_NEWEST_FIRST)
                    .offset(max(keep_count, 0))
                )
            )
            if not stale_ids:
                return 0
            self.session.execute(
                delete(NotificationModel)
                .where(NotificationModel.id.in_(stale_ids))
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        return len(stale_ids)

    @contextmanager
    def _writing(self, action: str, recipient_id: str) -> Iterator[None]:
        """Roll back and raise ``StoreUnavailableError`` when the database fails."""

        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Could not %s for recipient %s: %s", action, recipient_id, exc)
            raise StoreUnavailableError("Notification store unavailable") from exc

    def _get_model(
        self, recipient_id: str, notification_id: int
    ) -> NotificationModel | None:
        return self.session.scalar(
            select(NotificationModel).where(
                NotificationModel.id == notification_id,
                NotificationModel.recipient_id == recipient_id,
            )
        )

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            recipient_id=model.recipient_id,
            topic_id=model.topic_id,
            kind=model.kind,
            title=model.title,
            body=model.body,
            payload=dict(model.payload or {}),
            is_read=bool(model.is_read),
            read_at=ensure_utc(model.read_at),
            created_at=ensure_utc(model.created_at),
        )


__all__ = ["NotificationRepository"]
