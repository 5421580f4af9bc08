"""Server side lifecycle of one notification websocket.

A :class:`DeliverySession` walks a single connection instance through
``connecting -> authenticated -> active -> closing -> closed`` (or
``connecting -> rejected``). Each instance owns a fresh ``channel_id``; a
closed session is never reused, reconnecting clients get a new one.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any, Protocol
from uuid import uuid4

import anyio
from fastapi import WebSocketDisconnect

from quickqr_notify.domain.entities import CHANNEL_TRANSITIONS, ChannelState, LiveChannel
from quickqr_notify.domain.errors import AuthenticationError, InvalidTransitionError

from .registry import ChannelTransport, ConnectionRegistry

logger = logging.getLogger(__name__)

JOIN_TOPIC_EVENT = "join:restaurant"
LEAVE_TOPIC_EVENT = "leave:restaurant"

CLIENT_DISCONNECT = "client disconnect"
PING_TIMEOUT = "ping timeout"
TRANSPORT_ERROR = "transport error"

CLOSE_CODE_GOING_AWAY = 1001

Authenticator = Callable[[str], str]
TopicResolver = Callable[[str], Iterable[str]]


class SessionTransport(ChannelTransport, Protocol):
    """Subset of :class:`fastapi.WebSocket` driven by the session."""

    async def receive_json(self) -> Any: ...

    async def close(self, code: int = 1000) -> None: ...


def _no_topics(owner_id: str) -> Iterable[str]:
    return ()


class DeliverySession:
    """State machine for one live channel."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        authenticator: Authenticator,
        topic_resolver: TopicResolver | None = None,
        ping_interval: float = 25.0,
        ping_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.channel_id = uuid4().hex
        self.owner_id: str | None = None
        self._registry = registry
        self._authenticator = authenticator
        self._topic_resolver = topic_resolver or _no_topics
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._clock = clock
        self._state = ChannelState.CONNECTING
        self._transport: SessionTransport | None = None
        self._memberships: set[str] = set()
        self._last_seen = clock()
        self._close_reason: str | None = None
        self._close_requested: anyio.Event | None = None

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def close_reason(self) -> str | None:
        return self._close_reason

    def _transition(self, target: ChannelState) -> None:
        if target not in CHANNEL_TRANSITIONS[self._state]:
            raise InvalidTransitionError(self._state.value, target.value)
        logger.debug(
            "Channel %s: %s -> %s", self.channel_id, self._state.value, target.value
        )
        self._state = target

    def authenticate(self, credential: str | None) -> str:
        """Resolve the owner identity from the credential sent with the handshake."""

        if self._state is not ChannelState.CONNECTING:
            raise InvalidTransitionError(
                self._state.value, ChannelState.AUTHENTICATED.value
            )
        try:
            if not credential:
                raise AuthenticationError("Authentication required")
            owner_id = self._authenticator(credential)
        except AuthenticationError as exc:
            self._transition(ChannelState.REJECTED)
            logger.warning("Channel %s rejected: %s", self.channel_id, exc.message)
            raise
        self.owner_id = owner_id
        self._transition(ChannelState.AUTHENTICATED)
        return owner_id

    async def activate(self, transport: SessionTransport) -> LiveChannel:
        """Register the channel, join the owner's topics and confirm the connection."""

        if self._state is not ChannelState.AUTHENTICATED or self.owner_id is None:
            raise InvalidTransitionError(self._state.value, ChannelState.ACTIVE.value)

        self._transport = transport
        self._close_requested = anyio.Event()
        self._registry.register(
            self.channel_id, self.owner_id, transport, on_failure=self.request_close
        )
        self._transition(ChannelState.ACTIVE)
        self._last_seen = self._clock()

        self._memberships = self._lookup_memberships()
        for topic_id in sorted(self._memberships):
            self._registry.join_topic(self.channel_id, topic_id)

        channel = self._registry.get(self.channel_id)
        topics = sorted(channel.topics) if channel else []
        await self._registry.send(
            self.channel_id,
            "connected",
            {
                "channel_id": self.channel_id,
                "owner_id": self.owner_id,
                "topics": topics,
                "message": "Connected to QuickQR notifications",
            },
        )
        logger.info("User connected: %s (channel %s)", self.owner_id, self.channel_id)
        return channel or LiveChannel(channel_id=self.channel_id, owner_id=self.owner_id)

    async def handle_message(self, message: Any) -> None:
        """Apply one client request received while the channel is active."""

        if self._state is not ChannelState.ACTIVE:
            return
        self._last_seen = self._clock()
        if not isinstance(message, dict):
            return

        message_type = message.get("type")
        if message_type == "ping":
            await self._registry.send(self.channel_id, "pong", {})
        elif message_type == "pong":
            return
        elif message_type == JOIN_TOPIC_EVENT:
            await self._join(message.get("data"))
        elif message_type == LEAVE_TOPIC_EVENT:
            topic_id = _topic_from(message.get("data"))
            if topic_id is None:
                await self._send_error("A restaurant id is required")
                return
            self._registry.leave_topic(self.channel_id, topic_id)
            await self._registry.send(self.channel_id, "topic:left", {"topic_id": topic_id})
        else:
            logger.debug("Ignoring %r from channel %s", message_type, self.channel_id)

    async def _join(self, data: Any) -> None:
        topic_id = _topic_from(data)
        if topic_id is None:
            await self._send_error("A restaurant id is required")
            return
        if not self._may_join(topic_id):
            logger.warning(
                "User %s may not join restaurant room %s", self.owner_id, topic_id
            )
            await self._send_error(f"Not a member of restaurant {topic_id}")
            return
        self._registry.join_topic(self.channel_id, topic_id)
        await self._registry.send(self.channel_id, "topic:joined", {"topic_id": topic_id})

    def _may_join(self, topic_id: str) -> bool:
        if topic_id in self._memberships:
            return True
        # Membership may have grown since activation (e.g. a new restaurant).
        self._memberships.update(self._lookup_memberships())
        return topic_id in self._memberships

    def _lookup_memberships(self) -> set[str]:
        try:
            return set(self._topic_resolver(self.owner_id or ""))
        except Exception:
            logger.exception(
                "Membership lookup failed for %s; channel %s stays owner-only",
                self.owner_id,
                self.channel_id,
            )
            return set()

    async def _send_error(self, message: str) -> None:
        await self._registry.send(self.channel_id, "error", {"message": message})

    def is_expired(self) -> bool:
        return self._clock() - self._last_seen > self._ping_timeout

    async def heartbeat(self) -> bool:
        """Ping the peer once; request close and return False when it went silent."""

        if self._state is not ChannelState.ACTIVE:
            return False
        if self.is_expired():
            self.request_close(PING_TIMEOUT)
            return False
        await self._registry.send(self.channel_id, "ping", {})
        return True

    async def _heartbeat_loop(self) -> None:
        while True:
            await anyio.sleep(self._ping_interval)
            if not await self.heartbeat():
                return

    def request_close(self, reason: str) -> None:
        """Ask a running session to close. Safe to call from delivery failures."""

        if self._state is not ChannelState.ACTIVE:
            return
        if self._close_reason is None:
            self._close_reason = reason
        if self._close_requested is not None:
            self._close_requested.set()

    async def close(self, reason: str | None = None) -> bool:
        """Unregister the channel and move to ``closed``. Later calls do nothing."""

        if self._state not in (ChannelState.AUTHENTICATED, ChannelState.ACTIVE):
            return False
        reason = self._close_reason or reason or "closed"
        self._close_reason = reason
        was_active = self._state is ChannelState.ACTIVE
        self._transition(ChannelState.CLOSING)

        if was_active and reason != CLIENT_DISCONNECT:
            await self._registry.send(self.channel_id, "disconnect", {"reason": reason})
        if was_active:
            self._registry.unregister(self.channel_id)
        if self._transport is not None and reason != CLIENT_DISCONNECT:
            try:
                await self._transport.close(code=CLOSE_CODE_GOING_AWAY)
            except Exception as exc:  # transport may already be gone
                logger.debug("Closing channel %s transport failed: %s", self.channel_id, exc)

        self._transition(ChannelState.CLOSED)
        logger.info(
            "User disconnected: %s (channel %s), reason: %s",
            self.owner_id,
            self.channel_id,
            reason,
        )
        return True

    async def run(self, transport: SessionTransport) -> str:
        """Serve the channel until the peer leaves, times out or fails."""

        try:
            if self._state is ChannelState.AUTHENTICATED:
                await self.activate(transport)
            if self._close_requested is None:
                raise InvalidTransitionError(
                    self._state.value, ChannelState.ACTIVE.value
                )

            async with anyio.create_task_group() as task_group:

                async def _until_done(func: Callable[[], Any]) -> None:
                    await func()
                    task_group.cancel_scope.cancel()

                task_group.start_soon(_until_done, partial(self._receive_loop, transport))
                task_group.start_soon(_until_done, self._heartbeat_loop)
                task_group.start_soon(_until_done, self._close_requested.wait)
        finally:
            with anyio.CancelScope(shield=True):
                await self.close(self._close_reason or TRANSPORT_ERROR)
        return self._close_reason or "closed"

    async def _receive_loop(self, transport: SessionTransport) -> None:
        while self._state is ChannelState.ACTIVE:
            try:
                message = await transport.receive_json()
            except WebSocketDisconnect:
                self._set_reason(CLIENT_DISCONNECT)
                return
            except (ValueError, KeyError):
                logger.debug("Malformed frame on channel %s", self.channel_id)
                continue
            except Exception:
                logger.exception("Transport error on channel %s", self.channel_id)
                self._set_reason(TRANSPORT_ERROR)
                return
            await self.handle_message(message)

    def _set_reason(self, reason: str) -> None:
        if self._close_reason is None:
            self._close_reason = reason


def _topic_from(data: Any) -> str | None:
    if isinstance(data, dict):
        data = data.get("topic_id") or data.get("restaurant_id")
    if isinstance(data, bool) or data is None:
        return None
    if isinstance(data, (str, int)):
        text = str(data).strip()
        return text or None
    return None


__all__ = [
    "DeliverySession",
    "SessionTransport",
    "JOIN_TOPIC_EVENT",
    "LEAVE_TOPIC_EVENT",
    "CLIENT_DISCONNECT",
    "PING_TIMEOUT",
    "TRANSPORT_ERROR",
]
