"""Client-side connection loop with exponential backoff.

Every attempt is a brand-new connection (and so a brand-new server channel);
nothing is resumed. After each successful connect the cache is hydrated from
the fetch API, which is what makes missed pushes visible again.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import anyio
import httpx

from quickqr_notify.domain.errors import NotificationError

from .cache import NotificationCache

logger = logging.getLogger(__name__)

PUSH_EVENTS = frozenset({"order:new", "order:updated", "notification:new"})


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential delays between consecutive failed attempts."""

    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    max_attempts: int = 5

    def delay_for(self, attempt: int) -> float:
        """Return the wait before retry number ``attempt`` (1-based)."""

        exponent = max(attempt - 1, 0)
        return min(self.max_delay, self.initial_delay * self.multiplier**exponent)


class ClientConnection(Protocol):
    async def receive_json(self) -> Any: ...

    async def send_json(self, data: Any) -> None: ...

    async def close(self) -> None: ...


Connector = Callable[[], Awaitable[ClientConnection]]
StatusListener = Callable[[ConnectionStatus, str | None], None]
EventListener = Callable[[str, Any], None]


class NotificationFeed:
    """Keep a live channel open and feed its pushes into a cache."""

    def __init__(
        self,
        connect: Connector,
        cache: NotificationCache | None = None,
        *,
        policy: BackoffPolicy | None = None,
        on_status: StatusListener | None = None,
        on_event: EventListener | None = None,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._connect = connect
        self._cache = cache
        self._policy = policy or BackoffPolicy()
        self._on_status = on_status
        self._on_event = on_event
        self._sleep = sleep
        self._status = ConnectionStatus.STOPPED
        self._stopped = False
        self._scope: anyio.CancelScope | None = None
        self.last_disconnect_reason: str | None = None

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    def stop(self) -> None:
        self._stopped = True
        if self._scope is not None:
            self._scope.cancel()

    async def run(self) -> ConnectionStatus:
        """Connect, consume and reconnect until stopped or out of attempts."""

        self._stopped = False
        with anyio.CancelScope() as scope:
            self._scope = scope
            await self._loop()
        self._scope = None
        if self._status is not ConnectionStatus.FAILED:
            self._set_status(ConnectionStatus.STOPPED)
        return self._status

    async def _loop(self) -> None:
        failures = 0
        self._set_status(ConnectionStatus.CONNECTING)
        while not self._stopped:
            try:
                connection = await self._connect()
            except Exception as exc:
                failures += 1
                logger.warning("Notification connection attempt %s failed: %s", failures, exc)
                if failures >= self._policy.max_attempts:
                    self._set_status(ConnectionStatus.FAILED, str(exc))
                    return
                self._set_status(ConnectionStatus.RECONNECTING, str(exc))
                await self._sleep(self._policy.delay_for(failures))
                continue

            failures = 0
            self._set_status(ConnectionStatus.CONNECTED)
            reason = await self._consume(connection)
            if self._stopped:
                return
            self.last_disconnect_reason = reason
            logger.info("Notification channel lost (%s); reconnecting", reason)
            self._set_status(ConnectionStatus.RECONNECTING, reason)
            await self._sleep(self._policy.delay_for(1))

    async def _consume(self, connection: ClientConnection) -> str:
        try:
            if self._cache is not None:
                try:
                    await self._cache.hydrate()
                except (NotificationError, httpx.HTTPError) as exc:
                    logger.warning("Could not refresh notifications after connect: %s", exc)
            while True:
                message = await connection.receive_json()
                reason = await self._dispatch(connection, message)
                if reason is not None:
                    return reason
        except Exception as exc:
            return str(exc) or type(exc).__name__
        finally:
            with anyio.CancelScope(shield=True):
                try:
                    await connection.close()
                except Exception as exc:
                    logger.debug("Closing notification connection failed: %s", exc)

    async def _dispatch(self, connection: ClientConnection, message: Any) -> str | None:
        if not isinstance(message, dict):
            return None
        event = message.get("type")
        data = message.get("data")
        if event == "ping":
            await connection.send_json({"type": "pong"})
        elif event == "connected":
            logger.info("Server confirmed connection: %s", (data or {}).get("message"))
        elif event == "disconnect":
            return str((data or {}).get("reason") or "server closed the channel")
        elif event in PUSH_EVENTS and isinstance(data, dict):
            if self._cache is not None:
                try:
                    self._cache.apply_push(data)
                except (TypeError, ValueError) as exc:
                    logger.warning("Skipping malformed %s push: %s", event, exc)
                    return None
            if self._on_event is not None:
                self._on_event(event, data)
        elif self._on_event is not None and isinstance(event, str):
            self._on_event(event, data)
        return None

    def _set_status(self, status: ConnectionStatus, detail: str | None = None) -> None:
        self._status = status
        if self._on_status is not None:
            self._on_status(status, detail)


__all__ = [
    "BackoffPolicy",
    "ClientConnection",
    "ConnectionStatus",
    "NotificationFeed",
    "PUSH_EVENTS",
]
