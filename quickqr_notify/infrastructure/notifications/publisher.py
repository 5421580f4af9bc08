"""Fan a serialized notification out to a set of live channels."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from typing import Any

import anyio

from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class NotificationPublisher:
    """Deliver one event to many channels concurrently."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def publish(
        self, channel_ids: Iterable[str], event: str, data: Any
    ) -> frozenset[str]:
        """Send ``event`` to every channel and return the ids that accepted it.

        Each channel receives its own copy of ``data``. A failing channel never
        affects its siblings.
        """

        targets = sorted(set(channel_ids))
        if not targets:
            return frozenset()

        delivered: set[str] = set()

        async def _deliver(channel_id: str) -> None:
            if await self._registry.send(channel_id, event, copy.deepcopy(data)):
                delivered.add(channel_id)

        async with anyio.create_task_group() as task_group:
            for channel_id in targets:
                task_group.start_soon(_deliver, channel_id)

        logger.info(
            "Emitted %s to %s of %s channel(s)", event, len(delivered), len(targets)
        )
        return frozenset(delivered)


__all__ = ["NotificationPublisher"]
