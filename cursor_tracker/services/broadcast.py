"""In-process publish channel for dashboard live updates."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from cursor_tracker.core import cache

logger = logging.getLogger(__name__)

# Notifications carry no payload; one pending is as good as many.
SUBSCRIBER_QUEUE_SIZE = 1


class Broadcaster:
    """Fan-out of "data changed" notifications to SSE subscribers."""

    def __init__(self) -> None:
        self._subscribers: set[asyncio.Queue[None]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self) -> None:
        """Notify every subscriber. Never blocks, never raises."""
        cache.clear()
        if not self._subscribers:
            return
        logger.info("Broadcasting update to %d clients", len(self._subscribers))
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(None)
            except asyncio.QueueFull:
                pass  # already has an undelivered notification

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue[None]]:
        queue: asyncio.Queue[None] = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscribers.add(queue)
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)
