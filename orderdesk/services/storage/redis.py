"""
Redis Key/Value Storage

Client storage shared by every API process in staging and production.
Keys are namespaced under "orderdesk:kv:".

Version: 1.0.0
"""

import logging
from typing import Optional

import redis
from redis.exceptions import RedisError

from orderdesk.core.config import get_settings
from orderdesk.core.exceptions import ExternalServiceError
from orderdesk.services.storage.base import BaseKeyValueStorage

logger = logging.getLogger(__name__)


class RedisKeyValueStorage(BaseKeyValueStorage):

    KEY_PREFIX = "orderdesk:kv:"

    def __init__(self, redis_url: Optional[str] = None):
        settings = get_settings()
        self._client = redis.Redis.from_url(
            redis_url or settings.redis_url,
            decode_responses=True,
            socket_timeout=2,
        )
        logger.info("RedisKeyValueStorage initialized")

    @property
    def provider_name(self) -> str:
        return "redis"

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(self.KEY_PREFIX + key)
        except RedisError as e:
            raise ExternalServiceError(f"Storage read failed: {e}", service="storage") from e

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(self.KEY_PREFIX + key, value)
        except RedisError as e:
            raise ExternalServiceError(f"Storage write failed: {e}", service="storage") from e

    def remove(self, key: str) -> None:
        try:
            self._client.delete(self.KEY_PREFIX + key)
        except RedisError as e:
            raise ExternalServiceError(f"Storage delete failed: {e}", service="storage") from e

    def health_check(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError as e:
            logger.error(f"Redis storage health check failed: {e}")
            return False
