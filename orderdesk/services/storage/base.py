"""
Client Storage Abstract Base Class

Key/value storage for state a browser would keep locally: the cart
snapshot and the language preference. Values are strings; callers
serialize structured data themselves and must tolerate garbage on read.

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Optional


class BaseKeyValueStorage(ABC):
    """Abstract base class for client-side key/value storage."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the backend (e.g., "memory", "file", "redis")."""
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None if the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete the key; absent keys are ignored."""
        pass

    def health_check(self) -> bool:
        return True
