"""
Change Feed Factory

Provides a single entry point for obtaining the change feed shared by the
data store (publisher) and the realtime views (subscribers).

Environment Switching:
    - ENV_MODE=development → MemoryChangeFeed (single process)
    - ENV_MODE=staging/production → RedisChangeFeed

Version: 1.0.0
"""

import logging
from functools import lru_cache

from orderdesk.core.config import get_settings
from orderdesk.services.realtime.base import BaseChangeFeed, ChangeEvent, ChangeType
from orderdesk.services.realtime.memory import MemoryChangeFeed

logger = logging.getLogger(__name__)


@lru_cache()
def get_change_feed() -> BaseChangeFeed:
    """
    Get the configured change feed instance.

    Returns:
        BaseChangeFeed: Memory or Redis change feed
    """
    settings = get_settings()

    if settings.use_real_services:
        from orderdesk.services.realtime.redis import RedisChangeFeed

        logger.info(f"Change Feed: Using RedisChangeFeed ({settings.env_mode.value} mode)")
        return RedisChangeFeed()

    logger.info("Change Feed: Using MemoryChangeFeed (development mode)")
    return MemoryChangeFeed()


def reset_change_feed() -> None:
    """Clear the cached change feed instance."""
    get_change_feed.cache_clear()
    logger.debug("Change feed cache cleared")


__all__ = [
    "get_change_feed",
    "reset_change_feed",
    "BaseChangeFeed",
    "ChangeEvent",
    "ChangeType",
    "MemoryChangeFeed",
]
