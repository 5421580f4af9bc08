"""Fixtures for the client-side notification helpers."""

from __future__ import annotations

from typing import Any

import pytest

from quickqr_notify.client import NotificationCache
from quickqr_notify.domain.errors import NotFoundError, NotificationError


class FakeNotificationApi:
    """Scriptable stand-in for :class:`NotificationApiClient`."""

    def __init__(self) -> None:
        self.notifications: list[dict[str, Any]] = []
        self.unread = 0
        self.calls: list[tuple[str, Any]] = []
        self.fail_with: Exception | None = None
        self.missing: set[int] = set()

    def _record(self, name: str, argument: Any = None) -> None:
        self.calls.append((name, argument))
        if self.fail_with is not None:
            raise self.fail_with

    async def list_notifications(self, page: int = 1, limit: int = 20) -> dict[str, Any]:
        self._record("list", (page, limit))
        return {"notifications": list(self.notifications[:limit]), "pagination": {}}

    async def unread_count(self) -> int:
        self._record("unread_count")
        return self.unread

    async def mark_read(self, notification_id: int) -> dict[str, Any]:
        self._record("mark_read", notification_id)
        return {"id": notification_id, "is_read": True}

    async def mark_all_read(self) -> int:
        self._record("mark_all_read")
        return 0

    async def delete(self, notification_id: int) -> None:
        self._record("delete", notification_id)
        if notification_id in self.missing:
            raise NotFoundError("Notification")


class RecordingScheduler:
    """Collect scheduled refreshes so tests can run them on demand."""

    def __init__(self) -> None:
        self.scheduled: list[tuple[float, Any]] = []

    def __call__(self, delay: float, refresh) -> None:
        self.scheduled.append((delay, refresh))

    async def run_all(self) -> None:
        pending, self.scheduled = self.scheduled, []
        for _, refresh in pending:
            await refresh()


@pytest.fixture
def fake_api() -> FakeNotificationApi:
    return FakeNotificationApi()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def cache(fake_api, scheduler) -> NotificationCache:
    return NotificationCache(
        fake_api, recipient_id="owner-1", max_size=5, scheduler=scheduler
    )


@pytest.fixture
def api_failure() -> NotificationError:
    return NotificationError("store offline")
