"""
Change Feed Abstract Base Class

Defines the subscribe-to-changes primitive the realtime views rely on.
A data store publishes one ChangeEvent per written row after the write
commits; subscribers receive the events for one table, optionally
narrowed by an equality filter on the row.

Design Pattern: Strategy Pattern
    - MemoryChangeFeed for development and tests (asyncio queues)
    - RedisChangeFeed for multi-process deployments (Redis pub/sub)
    - A polling notifier could be added without touching the views

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Optional

from pydantic import BaseModel, Field


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """
    One committed row change.

    Attributes:
        table: Table the row belongs to
        event_type: INSERT, UPDATE or DELETE
        new: Row after the change (empty for DELETE)
        old: Row before the change (empty for INSERT)
        committed_at: When the store published the event
    """
    table: str
    event_type: ChangeType
    new: dict[str, Any] = Field(default_factory=dict)
    old: dict[str, Any] = Field(default_factory=dict)
    committed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def matches(self, eq: Optional[dict[str, Any]]) -> bool:
        """Check whether the new or old row satisfies every equality filter."""
        if not eq:
            return True
        for record in (self.new, self.old):
            if record and all(str(record.get(k)) == str(v) for k, v in eq.items()):
                return True
        return False


class BaseChangeFeed(ABC):
    """
    Abstract base class for change notification transports.

    Example:
        >>> feed = get_change_feed()
        >>> async with feed.subscribe("orders", eq={"user_id": uid}) as events:
        ...     async for event in events:
        ...         print(event.event_type, event.new.get("status"))
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the transport (e.g., "memory", "redis")."""
        pass

    @abstractmethod
    async def publish(self, event: ChangeEvent) -> None:
        """
        Deliver an event to every matching subscriber of its table.

        Raises:
            ExternalServiceError: If the transport is unreachable
        """
        pass

    @abstractmethod
    def subscribe(
        self,
        table: str,
        eq: Optional[dict[str, Any]] = None,
    ) -> AbstractAsyncContextManager[AsyncIterator[ChangeEvent]]:
        """
        Open a subscription to one table.

        The returned async context manager yields an async iterator of
        events and releases the subscription when the block exits.

        Args:
            table: Table to watch (e.g., "orders")
            eq: Optional column equality filter (e.g., {"user_id": "..."})
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify the transport is operational."""
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None
