"""
In-Process Change Feed

Fans events out to asyncio queues inside a single process. Used in
development mode and by the test suite.

Version: 1.0.0
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from orderdesk.services.realtime.base import BaseChangeFeed, ChangeEvent

logger = logging.getLogger(__name__)


class MemorySubscription:
    """Queue-backed subscription handle; iterate it to receive events."""

    def __init__(self, table: str, eq: Optional[dict[str, Any]], max_queue_size: int):
        self.table = table
        self.eq = eq
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=max_queue_size)

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self.queue.get()


class MemoryChangeFeed(BaseChangeFeed):
    """
    Change feed that lives in the current event loop.

    Attributes:
        max_queue_size: Events buffered per subscriber before new ones are dropped
    """

    def __init__(self, max_queue_size: int = 1000):
        self.max_queue_size = max_queue_size
        self._subscriptions: dict[str, list[MemorySubscription]] = defaultdict(list)
        logger.info(f"MemoryChangeFeed initialized (max_queue_size={max_queue_size})")

    @property
    def provider_name(self) -> str:
        return "memory"

    def subscriber_count(self, table: str) -> int:
        return len(self._subscriptions.get(table, ()))

    async def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions.get(event.table, ())):
            if not event.matches(subscription.eq):
                continue
            try:
                subscription.queue.put_nowait(event)
            except asyncio.QueueFull:
                # Views re-fetch everything on the next event anyway
                logger.warning(f"Subscriber queue full on '{event.table}', event dropped")

    @asynccontextmanager
    async def subscribe(
        self,
        table: str,
        eq: Optional[dict[str, Any]] = None,
    ) -> AsyncIterator[MemorySubscription]:
        subscription = MemorySubscription(table, eq, self.max_queue_size)
        self._subscriptions[table].append(subscription)
        logger.debug(f"Subscribed to '{table}' (filter={eq})")
        try:
            yield subscription
        finally:
            self._subscriptions[table].remove(subscription)
            logger.debug(f"Unsubscribed from '{table}' (filter={eq})")

    async def health_check(self) -> bool:
        return True
