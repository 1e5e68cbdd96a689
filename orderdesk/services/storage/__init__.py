"""
Client Storage Factory

Environment Switching:
    - ENV_MODE=development → FileKeyValueStorage (under DATA_DIRECTORY)
    - ENV_MODE=staging/production → RedisKeyValueStorage

Version: 1.0.0
"""

import logging
from functools import lru_cache

from orderdesk.core.config import get_settings
from orderdesk.services.storage.base import BaseKeyValueStorage
from orderdesk.services.storage.file import FileKeyValueStorage
from orderdesk.services.storage.memory import MemoryKeyValueStorage

logger = logging.getLogger(__name__)


@lru_cache()
def get_key_value_storage() -> BaseKeyValueStorage:
    """Get the configured client storage instance."""
    settings = get_settings()

    if settings.use_real_services:
        from orderdesk.services.storage.redis import RedisKeyValueStorage

        logger.info(f"Client Storage: Using RedisKeyValueStorage ({settings.env_mode.value} mode)")
        return RedisKeyValueStorage()

    logger.info("Client Storage: Using FileKeyValueStorage (development mode)")
    return FileKeyValueStorage()


def reset_key_value_storage() -> None:
    """Clear the cached storage instance."""
    get_key_value_storage.cache_clear()
    logger.debug("Client storage cache cleared")


__all__ = [
    "get_key_value_storage",
    "reset_key_value_storage",
    "BaseKeyValueStorage",
    "FileKeyValueStorage",
    "MemoryKeyValueStorage",
]
