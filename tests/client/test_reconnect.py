"""Tests for the reconnecting notification feed."""

from __future__ import annotations

import pytest

from quickqr_notify.client import BackoffPolicy, ConnectionStatus, NotificationFeed

pytestmark = pytest.mark.anyio


class ScriptedConnection:
    def __init__(self, messages) -> None:
        self._messages = list(messages)
        self.sent: list[dict] = []
        self.closed = False

    async def receive_json(self):
        if not self._messages:
            raise ConnectionError("socket closed")
        message = self._messages.pop(0)
        if isinstance(message, BaseException):
            raise message
        return message

    async def send_json(self, data) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True


class Recorder:
    def __init__(self) -> None:
        self.statuses: list[ConnectionStatus] = []
        self.delays: list[float] = []
        self.events: list[tuple[str, object]] = []

    def on_status(self, status, detail) -> None:
        self.statuses.append(status)

    def on_event(self, event, data) -> None:
        self.events.append((event, data))


def test_backoff_grows_exponentially_up_to_cap() -> None:
    policy = BackoffPolicy(initial_delay=1, multiplier=2, max_delay=30, max_attempts=10)

    assert [policy.delay_for(attempt) for attempt in range(1, 7)] == [1, 2, 4, 8, 16, 30]


async def test_feed_gives_up_after_max_attempts() -> None:
    recorder = Recorder()
    attempts = 0

    async def _connect():
        nonlocal attempts
        attempts += 1
        raise ConnectionRefusedError("server down")

    async def _sleep(delay: float) -> None:
        recorder.delays.append(delay)

    feed = NotificationFeed(
        _connect,
        policy=BackoffPolicy(max_attempts=5),
        on_status=recorder.on_status,
        sleep=_sleep,
    )

    status = await feed.run()

    assert status is ConnectionStatus.FAILED
    assert attempts == 5
    assert recorder.delays == [1, 2, 4, 8]
    assert recorder.statuses[0] is ConnectionStatus.CONNECTING
    assert recorder.statuses[-1] is ConnectionStatus.FAILED


async def test_feed_hydrates_dispatches_and_reconnects(cache, fake_api) -> None:
    recorder = Recorder()
    stored = {
        "id": 1,
        "recipient_id": "owner-1",
        "kind": "new_order",
        "title": "New Order Received",
        "body": "Table 2 placed an order",
        "payload": {"orderId": "o-1"},
    }
    first = ScriptedConnection(
        [
            {"type": "connected", "data": {"message": "hi"}},
            {"type": "ping", "data": {}},
            {"type": "order:new", "data": dict(stored)},
            {"type": "disconnect", "data": {"reason": "ping timeout"}},
        ]
    )
    second = ScriptedConnection([])
    connections = [first, second]
    feed: NotificationFeed

    async def _connect():
        connection = connections.pop(0)
        if connection is second:
            fake_api.notifications = [dict(stored, is_read=False)]
            fake_api.unread = 1
        return connection

    async def _sleep(delay: float) -> None:
        recorder.delays.append(delay)
        if not connections:
            feed.stop()

    feed = NotificationFeed(
        _connect,
        cache,
        on_status=recorder.on_status,
        on_event=recorder.on_event,
        sleep=_sleep,
    )

    status = await feed.run()

    assert status is ConnectionStatus.STOPPED
    assert first.sent == [{"type": "pong"}]
    assert first.closed is True and second.closed is True
    assert cache.get(1) is not None
    assert cache.unread_count == 1
    assert recorder.events[0][0] == "order:new"
    assert feed.last_disconnect_reason == "socket closed"
    assert ConnectionStatus.RECONNECTING in recorder.statuses
    assert recorder.statuses.count(ConnectionStatus.CONNECTED) == 2
    assert recorder.delays == [1, 1]
    assert [name for name, _ in fake_api.calls].count("list") == 2


async def test_malformed_push_does_not_drop_connection(cache) -> None:
    connection = ScriptedConnection(
        [
            {"type": "notification:new", "data": {"id": "not-a-number", "title": "x"}},
            {"type": "notification:new", "data": {"id": 2, "created_at": "yesterday"}},
            {
                "type": "notification:new",
                "data": {"id": 3, "recipient_id": "owner-1", "kind": "system", "title": "ok"},
            },
            {"type": "disconnect", "data": {"reason": "server shutdown"}},
        ]
    )
    feed: NotificationFeed

    async def _connect():
        return connection

    async def _sleep(delay: float) -> None:
        feed.stop()

    feed = NotificationFeed(_connect, cache, sleep=_sleep)

    await feed.run()

    assert feed.last_disconnect_reason == "server shutdown"
    assert [entry.id for entry in cache.entries] == [3]
