"""Client-side mirror of the most recent notifications.

Live pushes and authoritative fetches describe the same facts through two
independent paths. The cache merges them: pushes show up immediately, a
follow-up refresh swaps provisional entries for their stored versions, and a
notification the user already handled is never shown as unread again because
of a late or duplicate record.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

import httpx

from quickqr_notify.domain.errors import NotFoundError, NotificationError
from quickqr_notify.utils import parse_datetime, utc_now

from .api import NotificationApiClient

logger = logging.getLogger(__name__)

Refresh = Callable[[], Awaitable[None]]
Scheduler = Callable[[float, Refresh], None]

_REFRESH_ERRORS = (NotificationError, httpx.HTTPError)


@dataclass
class CachedNotification:
    """Local copy of a notification, possibly not yet known to the store."""

    id: int | None
    kind: str
    title: str
    body: str
    recipient_id: str | None = None
    topic_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None
    client_temp_id: str | None = None

    @property
    def key(self) -> str:
        if self.id is not None:
            return str(self.id)
        return self.client_temp_id or ""

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "CachedNotification":
        raw_id = data.get("id")
        return cls(
            id=int(raw_id) if raw_id is not None else None,
            kind=str(data.get("kind") or data.get("type") or ""),
            title=str(data.get("title") or ""),
            body=str(data.get("body") or data.get("message") or ""),
            recipient_id=data.get("recipient_id"),
            topic_id=data.get("topic_id"),
            payload=dict(data.get("payload") or data.get("data") or {}),
            is_read=bool(data.get("is_read", False)),
            read_at=parse_datetime(data.get("read_at")),
            created_at=parse_datetime(data.get("created_at") or data.get("timestamp")),
        )

    def correlation_key(self) -> tuple[Any, ...] | None:
        order_ref = self.payload.get("orderId")
        if order_ref is None:
            return None
        return (self.recipient_id, self.kind, str(order_ref), self.payload.get("status"))


class NotificationCache:
    """Bounded, newest-first list of notifications plus an unread counter."""

    def __init__(
        self,
        api: NotificationApiClient,
        *,
        recipient_id: str | None = None,
        max_size: int = 50,
        page_size: int = 20,
        reconcile_delay: float = 0.5,
        correlation_window: timedelta = timedelta(seconds=30),
        scheduler: Scheduler | None = None,
    ) -> None:
        self._api = api
        self.recipient_id = recipient_id
        self._max_size = max_size
        self._page_size = page_size
        self._reconcile_delay = reconcile_delay
        self._correlation_window = correlation_window
        self._scheduler = scheduler or self._schedule_on_running_loop
        self._entries: list[CachedNotification] = []
        self._unread = 0
        self._pending_refreshes: set[str] = set()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def entries(self) -> tuple[CachedNotification, ...]:
        return tuple(self._entries)

    @property
    def unread_count(self) -> int:
        return self._unread

    def get(self, key: int | str) -> CachedNotification | None:
        wanted = str(key)
        for entry in self._entries:
            if entry.id is not None and str(entry.id) == wanted:
                return entry
            if entry.client_temp_id == wanted:
                return entry
        return None

    async def hydrate(self) -> None:
        """Replace the cache with the store's first page and unread count."""

        page = await self._api.list_notifications(page=1, limit=self._page_size)
        unread = await self._api.unread_count()
        items = [CachedNotification.from_wire(item) for item in page.get("notifications", [])]
        self._entries = items[: self._max_size]
        self._unread = max(0, unread)
        logger.debug("Hydrated %s notification(s), %s unread", len(self._entries), unread)

    def apply_push(self, data: Mapping[str, Any]) -> CachedNotification:
        """Show a pushed notification right away and schedule reconciliation."""

        incoming = CachedNotification.from_wire(data)
        existing = self._match(incoming, self._entries)
        if existing is not None:
            self._absorb(existing, incoming)
            return existing

        if incoming.id is None:
            incoming.client_temp_id = f"temp-{uuid4().hex}"
        if incoming.created_at is None:
            incoming.created_at = utc_now()
        self._entries.insert(0, incoming)
        if not incoming.is_read:
            self._unread += 1
        del self._entries[self._max_size :]
        self._schedule_refresh(self.reconcile, self._reconcile_delay)
        return incoming

    async def reconcile(self) -> None:
        """Merge the store's first page into the cache without dropping local state."""

        page = await self._api.list_notifications(page=1, limit=self._page_size)
        server_unread = await self._api.unread_count()

        merged: list[CachedNotification] = []
        consumed: set[int] = set()
        read_locally = 0
        unsynced: list[int] = []
        for item in page.get("notifications", []):
            stored = CachedNotification.from_wire(item)
            local = self._match(
                stored, [e for e in self._entries if id(e) not in consumed]
            )
            if local is not None:
                consumed.add(id(local))
                stored.client_temp_id = local.client_temp_id
                if local.is_read and not stored.is_read:
                    stored.is_read = True
                    stored.read_at = local.read_at
                    read_locally += 1
                    if local.id is None and stored.id is not None:
                        unsynced.append(stored.id)
            merged.append(stored)

        pending_unread = 0
        for local in self._entries:
            if id(local) in consumed:
                continue
            merged.append(local)
            if not local.is_read and (local.id is None or self._is_foreign(local)):
                pending_unread += 1

        merged.sort(key=_newest_first)
        self._entries = merged[: self._max_size]
        self._unread = max(0, server_unread - read_locally + pending_unread)

        # Reads made while the entry was provisional never reached the store.
        for notification_id in unsynced:
            try:
                await self._api.mark_read(notification_id)
            except _REFRESH_ERRORS as exc:
                logger.warning(
                    "Couldn't sync read state of notification %s: %s", notification_id, exc
                )

    async def mark_read_local(self, key: int | str) -> bool:
        """Flip an entry to read now, then tell the store.

        A failed store call is not rolled back locally; the next hydrate brings
        the authoritative state. Returns ``False`` when the store call failed.
        """

        entry = self.get(key)
        if entry is None:
            return False
        if not entry.is_read:
            entry.is_read = True
            entry.read_at = utc_now()
            self._unread = max(0, self._unread - 1)
        if entry.id is None or self._is_foreign(entry):
            return True
        try:
            await self._api.mark_read(entry.id)
        except _REFRESH_ERRORS as exc:
            logger.warning("Couldn't mark notification %s as read, will refresh: %s", entry.id, exc)
            self._schedule_refresh(self.hydrate, 0)
            return False
        return True

    async def mark_all_read_local(self) -> bool:
        now = utc_now()
        for entry in self._entries:
            if not entry.is_read:
                entry.is_read = True
                entry.read_at = now
        self._unread = 0
        try:
            await self._api.mark_all_read()
        except _REFRESH_ERRORS as exc:
            logger.warning("Couldn't mark all notifications as read, will refresh: %s", exc)
            self._schedule_refresh(self.hydrate, 0)
            return False
        return True

    async def delete_local(self, key: int | str) -> bool:
        entry = self.get(key)
        if entry is None:
            return False
        self._entries.remove(entry)
        if not entry.is_read:
            self._unread = max(0, self._unread - 1)
        if entry.id is None or self._is_foreign(entry):
            return True
        try:
            await self._api.delete(entry.id)
        except NotFoundError:
            return True
        except _REFRESH_ERRORS as exc:
            logger.warning("Couldn't delete notification %s, will refresh: %s", entry.id, exc)
            self._schedule_refresh(self.hydrate, 0)
            return False
        return True

    def clear(self) -> None:
        """Forget everything, e.g. on logout."""

        self._entries = []
        self._unread = 0

    def _is_foreign(self, entry: CachedNotification) -> bool:
        # Topic pushes can carry another staff member's notification.
        return (
            self.recipient_id is not None
            and entry.recipient_id is not None
            and entry.recipient_id != self.recipient_id
        )

    def _match(
        self, incoming: CachedNotification, candidates: list[CachedNotification]
    ) -> CachedNotification | None:
        if incoming.id is not None:
            for entry in candidates:
                if entry.id == incoming.id:
                    return entry
        key = incoming.correlation_key()
        if key is None:
            return None
        for entry in candidates:
            if entry.id is not None and incoming.id is not None:
                continue
            if entry.correlation_key() != key:
                continue
            if entry.created_at is None or incoming.created_at is None:
                return entry
            if abs(entry.created_at - incoming.created_at) <= self._correlation_window:
                return entry
        return None

    def _absorb(self, existing: CachedNotification, incoming: CachedNotification) -> None:
        if existing.id is None and incoming.id is not None:
            existing.id = incoming.id
            existing.created_at = incoming.created_at or existing.created_at
        if incoming.is_read and not existing.is_read:
            existing.is_read = True
            existing.read_at = incoming.read_at
            self._unread = max(0, self._unread - 1)

    def _schedule_refresh(self, refresh: Refresh, delay: float) -> None:
        # Pending reconciles and hydrates are coalesced separately.
        kind = refresh.__name__
        if kind in self._pending_refreshes:
            return
        self._pending_refreshes.add(kind)

        async def _run() -> None:
            self._pending_refreshes.discard(kind)
            await refresh()

        self._scheduler(delay, _run)

    def _schedule_on_running_loop(self, delay: float, refresh: Refresh) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._pending_refreshes.clear()
            logger.debug("No running event loop; skipping scheduled refresh")
            return

        async def _later() -> None:
            await asyncio.sleep(delay)
            try:
                await refresh()
            except _REFRESH_ERRORS as exc:
                logger.warning("Scheduled notification refresh failed: %s", exc)

        task = loop.create_task(_later())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


def _newest_first(entry: CachedNotification) -> tuple[float, int]:
    timestamp = entry.created_at.timestamp() if entry.created_at else float("-inf")
    return (-timestamp, -(entry.id or 0))


__all__ = ["CachedNotification", "NotificationCache"]
