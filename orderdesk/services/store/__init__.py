"""
Data Store Factory

Provides a single entry point for obtaining the data store instance.
The store is wired to the shared change feed so that every write
produces a change notification.

Usage:
    from orderdesk.services.store import get_data_store

    store = get_data_store()
    orders = await store.select("orders", order_by="created_at", descending=True)

Environment Switching:
    - ENV_MODE=development → MemoryDataStore
    - ENV_MODE=staging/production → SQLAlchemyDataStore (PostgreSQL)

Version: 1.0.0
"""

import logging
from functools import lru_cache

from orderdesk.core.config import get_settings
from orderdesk.services.realtime import get_change_feed
from orderdesk.services.store.base import TABLES, BaseDataStore, RowFilter
from orderdesk.services.store.memory import MemoryDataStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_data_store() -> BaseDataStore:
    """
    Get the configured data store instance.

    Returns:
        BaseDataStore: Memory or SQLAlchemy data store
    """
    settings = get_settings()
    change_feed = get_change_feed()

    if settings.use_real_services:
        # Imported lazily so development runs never build the database engine
        from orderdesk.services.store.sql import SQLAlchemyDataStore

        logger.info(f"Data Store: Using SQLAlchemyDataStore ({settings.env_mode.value} mode)")
        return SQLAlchemyDataStore(change_feed=change_feed)

    logger.info("Data Store: Using MemoryDataStore (development mode)")
    return MemoryDataStore(change_feed=change_feed)


def reset_data_store() -> None:
    """Clear the cached data store instance."""
    get_data_store.cache_clear()
    logger.debug("Data store cache cleared")


__all__ = [
    "get_data_store",
    "reset_data_store",
    "BaseDataStore",
    "RowFilter",
    "TABLES",
    "MemoryDataStore",
]
