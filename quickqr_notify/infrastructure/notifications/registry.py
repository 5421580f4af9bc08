"""Connection registry for notification websockets.

Channels are indexed twice: by the owner identity fixed at handshake and by
every topic (restaurant) the channel has joined. Both indexes are mutated and
read under the same lock so a reader always sees a consistent snapshot.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, DefaultDict, Protocol, Set

import anyio

from quickqr_notify.domain.entities import ChannelState, LiveChannel
from quickqr_notify.domain.errors import TransientDeliveryError
from quickqr_notify.utils import utc_now

logger = logging.getLogger(__name__)

FailureCallback = Callable[[str], None]


class ChannelTransport(Protocol):
    """Subset of :class:`fastapi.WebSocket` used to push messages."""

    async def send_json(self, data: Any) -> None: ...


@dataclass
class _ChannelEntry:
    channel_id: str
    owner_id: str
    transport: ChannelTransport
    on_failure: FailureCallback | None = None
    topics: Set[str] = field(default_factory=set)
    connected_at: Any = field(default_factory=utc_now)

    def snapshot(self) -> LiveChannel:
        return LiveChannel(
            channel_id=self.channel_id,
            owner_id=self.owner_id,
            topics=frozenset(self.topics),
            state=ChannelState.ACTIVE,
            connected_at=self.connected_at,
        )


class ConnectionRegistry:
    """Track live channels grouped by owner and by topic."""

    def __init__(self, *, send_timeout: float = 5.0) -> None:
        self._send_timeout = send_timeout
        self._lock = threading.RLock()
        self._channels: dict[str, _ChannelEntry] = {}
        self._owners: DefaultDict[str, Set[str]] = defaultdict(set)
        self._topics: DefaultDict[str, Set[str]] = defaultdict(set)

    def register(
        self,
        channel_id: str,
        owner_id: str,
        transport: ChannelTransport,
        *,
        on_failure: FailureCallback | None = None,
    ) -> LiveChannel:
        """Add ``channel_id`` to the owner index of ``owner_id``."""

        with self._lock:
            if channel_id in self._channels:
                raise ValueError(f"Channel {channel_id} is already registered")
            entry = _ChannelEntry(
                channel_id=channel_id,
                owner_id=owner_id,
                transport=transport,
                on_failure=on_failure,
            )
            self._channels[channel_id] = entry
            self._owners[owner_id].add(channel_id)
            snapshot = entry.snapshot()
        logger.info("Channel %s registered for owner %s", channel_id, owner_id)
        return snapshot

    def unregister(self, channel_id: str) -> bool:
        """Remove ``channel_id`` from every index. Unknown ids are ignored."""

        with self._lock:
            entry = self._channels.pop(channel_id, None)
            if entry is None:
                return False
            self._discard(self._owners, entry.owner_id, channel_id)
            for topic_id in entry.topics:
                self._discard(self._topics, topic_id, channel_id)
        logger.info("Channel %s unregistered (owner %s)", channel_id, entry.owner_id)
        return True

    def join_topic(self, channel_id: str, topic_id: str) -> bool:
        with self._lock:
            entry = self._channels.get(channel_id)
            if entry is None or topic_id in entry.topics:
                return False
            entry.topics.add(topic_id)
            self._topics[topic_id].add(channel_id)
        logger.info("Channel %s joined topic %s", channel_id, topic_id)
        return True

    def leave_topic(self, channel_id: str, topic_id: str) -> bool:
        with self._lock:
            entry = self._channels.get(channel_id)
            if entry is None or topic_id not in entry.topics:
                return False
            entry.topics.discard(topic_id)
            self._discard(self._topics, topic_id, channel_id)
        logger.info("Channel %s left topic %s", channel_id, topic_id)
        return True

    def channels_for_owner(self, owner_id: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._owners.get(owner_id, ()))

    def channels_for_topic(self, topic_id: str | None) -> frozenset[str]:
        if topic_id is None:
            return frozenset()
        with self._lock:
            return frozenset(self._topics.get(topic_id, ()))

    def resolve_targets(self, owner_id: str, topic_id: str | None) -> frozenset[str]:
        """Return the owner's channels plus the topic's channels, deduplicated."""

        with self._lock:
            targets = set(self._owners.get(owner_id, ()))
            if topic_id is not None:
                targets.update(self._topics.get(topic_id, ()))
            return frozenset(targets)

    def get(self, channel_id: str) -> LiveChannel | None:
        with self._lock:
            entry = self._channels.get(channel_id)
            return entry.snapshot() if entry is not None else None

    def __contains__(self, channel_id: object) -> bool:
        with self._lock:
            return channel_id in self._channels

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    async def send(self, channel_id: str, event: str, data: Any) -> bool:
        """Push ``data`` to one channel; failures are logged, never raised."""

        with self._lock:
            entry = self._channels.get(channel_id)
        if entry is None:
            logger.debug("Skipping %s for unknown channel %s", event, channel_id)
            return False

        try:
            with anyio.fail_after(self._send_timeout):
                await entry.transport.send_json({"type": event, "data": data})
        except Exception as exc:
            error = TransientDeliveryError(channel_id, str(exc) or type(exc).__name__)
            logger.warning("%s", error)
            self._schedule_unregister(entry, error)
            return False
        return True

    def _schedule_unregister(
        self, entry: _ChannelEntry, error: TransientDeliveryError
    ) -> None:
        if entry.on_failure is not None:
            entry.on_failure(error.reason)
        else:
            self.unregister(entry.channel_id)

    @staticmethod
    def _discard(index: DefaultDict[str, Set[str]], key: str, channel_id: str) -> None:
        members = index.get(key)
        if members is None:
            return
        members.discard(channel_id)
        if not members:
            index.pop(key, None)


__all__ = ["ChannelTransport", "ConnectionRegistry"]
