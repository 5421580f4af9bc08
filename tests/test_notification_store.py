"""Tests for the notification inbox use cases."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from quickqr_notify.application.use_cases.notifications import (
    create_notification,
    delete_notification,
    get_unread_count,
    list_notifications,
    mark_all_notifications_read,
    mark_notification_read,
)
from quickqr_notify.domain.entities import (
    NOTIFICATION_KIND_NEW_ORDER,
    NOTIFICATION_KIND_SYSTEM,
)
from quickqr_notify.domain.errors import (
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from quickqr_notify.infrastructure.models import NotificationModel
from quickqr_notify.infrastructure.repositories import NotificationRepository
from quickqr_notify.utils import to_naive_utc, utc_now


def _create(session, recipient_id: str = "user-1", title: str = "Hello", **kwargs):
    return create_notification(
        session,
        recipient_id=recipient_id,
        kind=kwargs.pop("kind", NOTIFICATION_KIND_SYSTEM),
        title=title,
        body=kwargs.pop("body", "Body"),
        **kwargs,
    )


def test_create_persists_unread_notification(db_session) -> None:
    notification = _create(db_session, topic_id="r-1", payload={"orderId": "o-1"})

    assert notification.id is not None
    assert notification.is_read is False
    assert notification.read_at is None
    assert notification.topic_id == "r-1"
    assert notification.payload == {"orderId": "o-1"}
    assert notification.created_at is not None
    assert notification.created_at.tzinfo is not None


@pytest.mark.parametrize(
    "overrides",
    [
        {"recipient_id": "  "},
        {"title": ""},
        {"body": "   "},
        {"kind": "carrier_pigeon"},
        {"payload": ["not", "a", "dict"]},
    ],
)
def test_create_rejects_invalid_input(db_session, overrides) -> None:
    arguments = {
        "recipient_id": "user-1",
        "kind": NOTIFICATION_KIND_SYSTEM,
        "title": "Hello",
        "body": "Body",
    }
    arguments.update(overrides)

    with pytest.raises(ValidationError):
        create_notification(db_session, **arguments)

    assert NotificationRepository(db_session).count_for_recipient("user-1") == 0


def test_listing_is_newest_first_and_paginated(db_session) -> None:
    for index in range(5):
        _create(db_session, title=f"n{index}")

    first = list_notifications(db_session, "user-1", page=1, page_size=2)
    second = list_notifications(db_session, "user-1", page=2, page_size=2)

    assert [item.title for item in first.items] == ["n4", "n3"]
    assert [item.title for item in second.items] == ["n2", "n1"]
    assert first.pagination.total_items == 5
    assert first.pagination.total_pages == 3
    assert first.pagination.has_next_page is True
    assert second.pagination.has_prev_page is True


def test_listing_clamps_page_size(db_session) -> None:
    _create(db_session)

    page = list_notifications(db_session, "user-1", page=0, page_size=1000)

    assert page.pagination.current_page == 1
    assert page.pagination.items_per_page == 100


def test_retention_keeps_most_recent_notifications(db_session) -> None:
    for index in range(7):
        _create(db_session, title=f"n{index}", retention=5)

    page = list_notifications(db_session, "user-1", page=1, page_size=100)

    assert page.pagination.total_items == 5
    assert [item.title for item in page.items] == ["n6", "n5", "n4", "n3", "n2"]


def test_retention_is_scoped_to_recipient(db_session) -> None:
    _create(db_session, recipient_id="user-2", title="other")
    for index in range(3):
        _create(db_session, title=f"n{index}", retention=2)

    assert NotificationRepository(db_session).count_for_recipient("user-1") == 2
    assert NotificationRepository(db_session).count_for_recipient("user-2") == 1


def test_mark_read_is_idempotent_and_updates_unread_count(db_session) -> None:
    first = _create(db_session)
    _create(db_session)
    assert get_unread_count(db_session, "user-1") == 2

    marked = mark_notification_read(db_session, "user-1", first.id)
    read_at = marked.read_at
    again = mark_notification_read(db_session, "user-1", first.id)

    assert marked.is_read is True
    assert read_at is not None
    assert again.read_at == read_at
    assert get_unread_count(db_session, "user-1") == 1


def test_unread_count_matches_unread_records(db_session) -> None:
    created = [_create(db_session, title=f"n{index}") for index in range(4)]
    mark_notification_read(db_session, "user-1", created[0].id)
    mark_notification_read(db_session, "user-1", created[2].id)

    page = list_notifications(db_session, "user-1", page=1, page_size=100)
    unread = [item for item in page.items if not item.is_read]

    assert get_unread_count(db_session, "user-1") == len(unread) == 2
    for item in page.items:
        assert item.is_read == (item.read_at is not None)


def test_mark_all_read_returns_updated_count(db_session) -> None:
    first = _create(db_session)
    _create(db_session)
    _create(db_session)
    mark_notification_read(db_session, "user-1", first.id)

    assert mark_all_notifications_read(db_session, "user-1") == 2
    assert mark_all_notifications_read(db_session, "user-1") == 0
    assert get_unread_count(db_session, "user-1") == 0


def test_other_recipient_cannot_touch_notification(db_session) -> None:
    notification = _create(db_session)

    with pytest.raises(NotFoundError):
        mark_notification_read(db_session, "user-2", notification.id)
    with pytest.raises(NotFoundError):
        delete_notification(db_session, "user-2", notification.id)

    assert get_unread_count(db_session, "user-1") == 1


def test_delete_removes_notification(db_session) -> None:
    notification = _create(db_session)

    delete_notification(db_session, "user-1", notification.id)

    assert NotificationRepository(db_session).get_for_recipient("user-1", notification.id) is None
    with pytest.raises(NotFoundError):
        delete_notification(db_session, "user-1", notification.id)


def test_equal_timestamps_are_ordered_by_id(db_session) -> None:
    repository = NotificationRepository(db_session)
    first = _create(db_session, title="first")
    second = _create(db_session, title="second")
    db_session.execute(
        update(NotificationModel).values(created_at=to_naive_utc(first.created_at))
    )
    db_session.commit()

    items = repository.list_for_recipient("user-1")

    assert [item.id for item in items] == [second.id, first.id]


def test_store_failure_raises_store_unavailable(db_session, monkeypatch) -> None:
    def _fail() -> None:
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", _fail)

    with pytest.raises(StoreUnavailableError):
        _create(db_session, kind=NOTIFICATION_KIND_NEW_ORDER)


def test_created_at_is_recent(db_session) -> None:
    notification = _create(db_session)

    assert utc_now() - notification.created_at < timedelta(minutes=1)


def test_mark_read_leaves_content_untouched(db_session) -> None:
    created = _create(
        db_session, title="Order ready", body="Table 2", payload={"orderId": "o-9"}
    )

    marked = mark_notification_read(db_session, "user-1", created.id)

    assert (marked.title, marked.body, marked.payload) == (
        created.title,
        created.body,
        created.payload,
    )
    assert marked.created_at == created.created_at


def test_mark_all_read_flags_every_record(db_session) -> None:
    for index in range(3):
        _create(db_session, title=f"n{index}")

    mark_all_notifications_read(db_session, "user-1")

    db_session.expire_all()
    page = list_notifications(db_session, "user-1", page=1, page_size=100)
    assert len(page.items) == 3
    for item in page.items:
        assert item.is_read is True
        assert item.read_at is not None


@pytest.mark.parametrize(
    "action",
    [
        lambda session, notification_id: mark_notification_read(
            session, "user-1", notification_id
        ),
        lambda session, notification_id: mark_all_notifications_read(session, "user-1"),
        lambda session, notification_id: delete_notification(
            session, "user-1", notification_id
        ),
    ],
    ids=["mark_read", "mark_all_read", "delete"],
)
def test_store_failure_during_update_raises_store_unavailable(
    db_session, monkeypatch, action
) -> None:
    notification = _create(db_session)

    def _fail() -> None:
        raise OperationalError("UPDATE", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", _fail)

    with pytest.raises(StoreUnavailableError):
        action(db_session, notification.id)


def test_retention_failure_keeps_new_notification(db_session, monkeypatch) -> None:
    def _fail(self, recipient_id, keep_count):
        raise StoreUnavailableError("Notification store unavailable")

    monkeypatch.setattr(NotificationRepository, "evict_oldest", _fail)

    notification = _create(db_session, retention=1)

    assert NotificationRepository(db_session).get_for_recipient(
        "user-1", notification.id
    ) is not None
