"""
Auth Provider Factory

The store-backed provider works against whichever data store and client
storage the environment selects, so the same factory serves every ENV_MODE.

Version: 1.0.0
"""

import logging
from functools import lru_cache

from orderdesk.services.auth.base import BaseAuthProvider
from orderdesk.services.auth.store import StoreAuthProvider
from orderdesk.services.storage import get_key_value_storage
from orderdesk.services.store import get_data_store

logger = logging.getLogger(__name__)


@lru_cache()
def get_auth_provider() -> BaseAuthProvider:
    """Get the configured auth provider instance."""
    logger.info("Auth Provider: Using StoreAuthProvider")
    return StoreAuthProvider(get_data_store(), get_key_value_storage())


def reset_auth_provider() -> None:
    """Clear the cached auth provider instance."""
    get_auth_provider.cache_clear()


__all__ = [
    "get_auth_provider",
    "reset_auth_provider",
    "BaseAuthProvider",
    "StoreAuthProvider",
]
