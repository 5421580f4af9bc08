"""Tests for the client-side notification cache."""

from __future__ import annotations

from datetime import timedelta

import pytest

from quickqr_notify.client import CachedNotification
from quickqr_notify.utils import utc_now

pytestmark = pytest.mark.anyio


def _wire(notification_id=None, *, order_id="o-1", recipient_id="owner-1", **extra):
    data = {
        "id": notification_id,
        "recipient_id": recipient_id,
        "topic_id": "r-1",
        "kind": "new_order",
        "title": "New Order Received",
        "body": "Table 4 placed an order",
        "payload": {"orderId": order_id},
        "is_read": False,
        "read_at": None,
        "created_at": utc_now().isoformat(),
    }
    data.update(extra)
    return data


async def test_push_without_id_gets_provisional_entry(cache, scheduler) -> None:
    entry = cache.apply_push(_wire(None))

    assert entry.id is None
    assert entry.client_temp_id.startswith("temp-")
    assert cache.get(entry.client_temp_id) is entry
    assert cache.unread_count == 1
    assert [delay for delay, _ in scheduler.scheduled] == [0.5]


async def test_refreshes_are_coalesced(cache, scheduler) -> None:
    cache.apply_push(_wire(1, order_id="o-1"))
    cache.apply_push(_wire(2, order_id="o-2"))

    assert len(scheduler.scheduled) == 1
    assert cache.unread_count == 2


async def test_duplicate_push_is_counted_once(cache) -> None:
    cache.apply_push(_wire(7))
    cache.apply_push(_wire(7))

    assert len(cache.entries) == 1
    assert cache.unread_count == 1


async def test_reconcile_swaps_provisional_entry_for_stored_record(
    cache, fake_api, scheduler
) -> None:
    provisional = cache.apply_push(_wire(None))
    temp_id = provisional.client_temp_id
    fake_api.notifications = [_wire(7)]
    fake_api.unread = 1

    await scheduler.run_all()

    assert [entry.id for entry in cache.entries] == [7]
    assert cache.get(temp_id).id == 7
    assert cache.get(7).client_temp_id == temp_id
    assert cache.unread_count == 1


async def test_read_before_reconcile_stays_read(cache, fake_api, scheduler) -> None:
    provisional = cache.apply_push(_wire(None))

    assert await cache.mark_read_local(provisional.client_temp_id) is True
    assert cache.unread_count == 0
    assert ("mark_read", None) not in fake_api.calls

    fake_api.notifications = [_wire(7)]
    fake_api.unread = 1
    await scheduler.run_all()

    assert cache.get(7).is_read is True
    assert cache.unread_count == 0
    assert ("mark_read", 7) in fake_api.calls


async def test_reconcile_keeps_push_missing_from_page(cache, fake_api, scheduler) -> None:
    cache.apply_push(_wire(None, order_id="o-2"))
    fake_api.notifications = []
    fake_api.unread = 0

    await scheduler.run_all()

    assert len(cache.entries) == 1
    assert cache.unread_count == 1


async def test_correlation_respects_time_window(cache, fake_api, scheduler) -> None:
    cache.apply_push(_wire(None))
    stale = (utc_now() - timedelta(minutes=5)).isoformat()
    fake_api.notifications = [_wire(3, created_at=stale)]
    fake_api.unread = 1

    await scheduler.run_all()

    assert sorted(entry.key.startswith("temp-") for entry in cache.entries) == [False, True]
    assert cache.unread_count == 2


async def test_cache_is_bounded_without_touching_unread(cache) -> None:
    for notification_id in range(1, 8):
        cache.apply_push(_wire(notification_id, order_id=f"o-{notification_id}"))

    assert [entry.id for entry in cache.entries] == [7, 6, 5, 4, 3]
    assert cache.unread_count == 7


async def test_hydrate_replaces_entries(cache, fake_api) -> None:
    cache.apply_push(_wire(99, order_id="o-99"))
    fake_api.notifications = [_wire(2, order_id="o-2"), _wire(1, order_id="o-1")]
    fake_api.unread = 2

    await cache.hydrate()

    assert [entry.id for entry in cache.entries] == [2, 1]
    assert cache.unread_count == 2


async def test_failed_mark_read_is_not_rolled_back(
    cache, fake_api, scheduler, api_failure
) -> None:
    fake_api.notifications = [_wire(3)]
    fake_api.unread = 1
    await cache.hydrate()
    fake_api.fail_with = api_failure

    assert await cache.mark_read_local(3) is False

    assert cache.get(3).is_read is True
    assert cache.unread_count == 0
    assert [delay for delay, _ in scheduler.scheduled] == [0]


async def test_foreign_notification_is_marked_locally(cache, fake_api) -> None:
    cache.apply_push(_wire(11, recipient_id="staff-2"))

    assert await cache.mark_read_local(11) is True

    assert cache.unread_count == 0
    assert not any(name == "mark_read" for name, _ in fake_api.calls)


async def test_mark_all_read_local(cache, fake_api) -> None:
    cache.apply_push(_wire(1, order_id="o-1"))
    cache.apply_push(_wire(2, order_id="o-2"))

    assert await cache.mark_all_read_local() is True

    assert cache.unread_count == 0
    assert all(entry.is_read for entry in cache.entries)
    assert ("mark_all_read", None) in fake_api.calls


async def test_delete_of_already_removed_notification_succeeds(cache, fake_api) -> None:
    cache.apply_push(_wire(5))
    fake_api.missing.add(5)

    assert await cache.delete_local(5) is True

    assert cache.get(5) is None
    assert cache.unread_count == 0


async def test_clear_forgets_everything(cache) -> None:
    cache.apply_push(_wire(1))

    cache.clear()

    assert cache.entries == ()
    assert cache.unread_count == 0


def test_from_wire_accepts_legacy_keys() -> None:
    entry = CachedNotification.from_wire(
        {
            "type": "order_status",
            "title": "Order Status Updated",
            "message": "Order is ready for pickup",
            "data": {"orderId": "o-1", "status": "ready"},
            "timestamp": "2024-05-01T10:00:00Z",
        }
    )

    assert entry.kind == "order_status"
    assert entry.body == "Order is ready for pickup"
    assert entry.correlation_key() == (None, "order_status", "o-1", "ready")
    assert entry.created_at.tzinfo is not None


async def test_hydrate_is_scheduled_while_reconcile_is_pending(
    cache, fake_api, scheduler, api_failure
) -> None:
    cache.apply_push(_wire(3))
    fake_api.fail_with = api_failure

    assert await cache.mark_read_local(3) is False

    assert [delay for delay, _ in scheduler.scheduled] == [0.5, 0]
    fake_api.fail_with = None
    fake_api.notifications = [_wire(3, is_read=True)]
    await scheduler.run_all()
    assert cache.get(3).is_read is True
