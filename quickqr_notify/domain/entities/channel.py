"""Domain entities describing live delivery channels."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ChannelState(str, Enum):
    """Lifecycle states of one connection instance."""

    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"
    REJECTED = "rejected"


CHANNEL_TRANSITIONS: dict[ChannelState, frozenset[ChannelState]] = {
    ChannelState.CONNECTING: frozenset({ChannelState.AUTHENTICATED, ChannelState.REJECTED}),
    ChannelState.AUTHENTICATED: frozenset({ChannelState.ACTIVE, ChannelState.CLOSING}),
    ChannelState.ACTIVE: frozenset({ChannelState.CLOSING}),
    ChannelState.CLOSING: frozenset({ChannelState.CLOSED}),
    ChannelState.CLOSED: frozenset(),
    ChannelState.REJECTED: frozenset(),
}


@dataclass(frozen=True)
class LiveChannel:
    """Snapshot of a registered channel.

    ``owner_id`` is fixed for the lifetime of the channel while ``topics`` is a
    copy of the topic set at the time the snapshot was taken.
    """

    channel_id: str
    owner_id: str
    topics: frozenset[str] = field(default_factory=frozenset)
    state: ChannelState = ChannelState.ACTIVE
    connected_at: datetime | None = None


__all__ = ["ChannelState", "CHANNEL_TRANSITIONS", "LiveChannel"]
