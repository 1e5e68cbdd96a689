"""
Redis Change Feed

Publishes change events on one Redis pub/sub channel per table so that
every API process sees writes made by any other process.

Channel layout:
    orderdesk:changes:<table>

Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from orderdesk.core.config import get_settings
from orderdesk.core.exceptions import ExternalServiceError
from orderdesk.services.realtime.base import BaseChangeFeed, ChangeEvent

logger = logging.getLogger(__name__)


class RedisSubscription:
    """Iterates decoded events of one pub/sub channel."""

    def __init__(self, pubsub, eq: Optional[dict[str, Any]]):
        self._pubsub = pubsub
        self.eq = eq

    async def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                event = ChangeEvent.model_validate_json(message["data"])
            except ValueError:
                logger.warning("Discarding malformed change event")
                continue
            if event.matches(self.eq):
                yield event


class RedisChangeFeed(BaseChangeFeed):
    """Change feed backed by Redis pub/sub."""

    CHANNEL_PREFIX = "orderdesk:changes:"

    def __init__(self, redis_url: Optional[str] = None):
        settings = get_settings()
        self._client = aioredis.from_url(redis_url or settings.redis_url, decode_responses=True)
        logger.info("RedisChangeFeed initialized")

    @property
    def provider_name(self) -> str:
        return "redis"

    def _channel(self, table: str) -> str:
        return f"{self.CHANNEL_PREFIX}{table}"

    async def publish(self, event: ChangeEvent) -> None:
        try:
            await self._client.publish(self._channel(event.table), event.model_dump_json())
        except RedisError as e:
            raise ExternalServiceError(f"Change feed publish failed: {e}", service="realtime") from e

    @asynccontextmanager
    async def subscribe(
        self,
        table: str,
        eq: Optional[dict[str, Any]] = None,
    ) -> AsyncIterator[RedisSubscription]:
        pubsub = self._client.pubsub()
        try:
            await pubsub.subscribe(self._channel(table))
        except RedisError as e:
            await pubsub.aclose()
            raise ExternalServiceError(f"Change feed subscribe failed: {e}", service="realtime") from e

        logger.debug(f"Subscribed to channel {self._channel(table)} (filter={eq})")
        try:
            yield RedisSubscription(pubsub, eq)
        finally:
            try:
                await pubsub.unsubscribe(self._channel(table))
            finally:
                await pubsub.aclose()
            logger.debug(f"Unsubscribed from channel {self._channel(table)}")

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis change feed health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
