"""
Data Store Abstract Base Class

Defines the narrow table interface the ordering core talks to: per-table
insert/update/select/count/delete with equality and ordering filters.
Rows are plain dicts keyed by column name.

Every committed write is published to the change feed, one event per
row, so realtime views refresh after the write that caused them.

Design Pattern: Template Method + Strategy
    - Public methods validate input, call the backend hook, publish events
    - MemoryDataStore and SQLAlchemyDataStore implement the hooks

Version: 1.0.0
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from orderdesk.core.exceptions import ExternalServiceError
from orderdesk.services.realtime.base import BaseChangeFeed, ChangeEvent, ChangeType

logger = logging.getLogger(__name__)

TABLES = ("categories", "products", "orders", "order_items", "profiles")

# Columns never sent over the change feed
PRIVATE_COLUMNS = {"profiles": frozenset({"password_hash"})}


@dataclass
class RowFilter:
    """
    Conjunction of column predicates.

    Attributes:
        eq: column == value
        in_: column IN values
        neq: column != value
        gte: column >= value
        lte: column <= value
    """
    eq: dict[str, Any] = field(default_factory=dict)
    in_: dict[str, Iterable[Any]] = field(default_factory=dict)
    neq: dict[str, Any] = field(default_factory=dict)
    gte: dict[str, Any] = field(default_factory=dict)
    lte: dict[str, Any] = field(default_factory=dict)

    def matches(self, row: dict[str, Any]) -> bool:
        """Evaluate the filter against an in-memory row."""
        for column, value in self.eq.items():
            if row.get(column) != value:
                return False
        for column, values in self.in_.items():
            if row.get(column) not in list(values):
                return False
        for column, value in self.neq.items():
            if row.get(column) == value:
                return False
        for column, value in self.gte.items():
            current = row.get(column)
            if current is None or current < value:
                return False
        for column, value in self.lte.items():
            current = row.get(column)
            if current is None or current > value:
                return False
        return True


class BaseDataStore(ABC):
    """
    Abstract base class for table stores.

    Example:
        >>> store = get_data_store()
        >>> [order] = await store.insert("orders", [{"order_number": "ORD-123456", ...}])
        >>> pending = await store.select("orders", eq={"status": "pending"})
    """

    def __init__(self, change_feed: Optional[BaseChangeFeed] = None):
        self.change_feed = change_feed

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the backend (e.g., "memory", "postgres")."""
        pass

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Insert rows and return them as stored (ids and defaults filled in).

        Raises:
            ExternalServiceError: If the backend rejects the write
        """
        self._check_table(table)
        if not rows:
            return []
        created = await self._insert(table, rows)
        await self._notify(table, ChangeType.INSERT, [(row, {}) for row in created])
        return created

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        eq: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """
        Update every row matching ``eq`` and return the updated rows.

        An empty result means nothing matched; callers use this as a
        compare-and-set by putting the expected current value into ``eq``.
        """
        self._check_table(table)
        if not eq:
            raise ValueError("update() requires an equality filter")
        changed = await self._update(table, values, RowFilter(eq=dict(eq)))
        await self._notify(table, ChangeType.UPDATE, changed)
        return [new for new, _old in changed]

    async def delete(self, table: str, *, eq: dict[str, Any]) -> list[dict[str, Any]]:
        """Delete every row matching ``eq`` and return the deleted rows."""
        self._check_table(table)
        if not eq:
            raise ValueError("delete() requires an equality filter")
        removed = await self._delete(table, RowFilter(eq=dict(eq)))
        await self._notify(table, ChangeType.DELETE, [({}, row) for row in removed])
        return removed

    async def select(
        self,
        table: str,
        *,
        eq: Optional[dict[str, Any]] = None,
        in_: Optional[dict[str, Iterable[Any]]] = None,
        neq: Optional[dict[str, Any]] = None,
        gte: Optional[dict[str, Any]] = None,
        lte: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Return rows matching every given predicate."""
        self._check_table(table)
        row_filter = RowFilter(
            eq=dict(eq or {}),
            in_=dict(in_ or {}),
            neq=dict(neq or {}),
            gte=dict(gte or {}),
            lte=dict(lte or {}),
        )
        return await self._select(table, row_filter, order_by, descending, limit)

    async def select_one(self, table: str, *, eq: dict[str, Any]) -> Optional[dict[str, Any]]:
        rows = await self.select(table, eq=eq, limit=1)
        return rows[0] if rows else None

    async def count(
        self,
        table: str,
        *,
        eq: Optional[dict[str, Any]] = None,
        in_: Optional[dict[str, Iterable[Any]]] = None,
        neq: Optional[dict[str, Any]] = None,
    ) -> int:
        self._check_table(table)
        row_filter = RowFilter(eq=dict(eq or {}), in_=dict(in_ or {}), neq=dict(neq or {}))
        return await self._count(table, row_filter)

    async def close(self) -> None:
        """Release backend resources."""
        return None

    # =========================================================================
    # BACKEND HOOKS
    # =========================================================================

    @abstractmethod
    async def _insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    async def _update(
        self,
        table: str,
        values: dict[str, Any],
        row_filter: RowFilter,
    ) -> list[tuple[dict[str, Any], dict[str, Any]]]:
        """Apply ``values`` and return (new_row, old_row) pairs."""
        pass

    @abstractmethod
    async def _delete(self, table: str, row_filter: RowFilter) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    async def _select(
        self,
        table: str,
        row_filter: RowFilter,
        order_by: Optional[str],
        descending: bool,
        limit: Optional[int],
    ) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    async def _count(self, table: str, row_filter: RowFilter) -> int:
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify connectivity to the backend."""
        pass

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _check_table(self, table: str) -> None:
        if table not in TABLES:
            raise ValueError(f"Unknown table '{table}'. Options: {list(TABLES)}")

    async def _notify(
        self,
        table: str,
        change_type: ChangeType,
        changes: list[tuple[dict[str, Any], dict[str, Any]]],
    ) -> None:
        """
        Publish one event per changed row, minus private columns.

        The write has already committed, so a transport failure is logged
        rather than reported as a failed write.
        """
        if self.change_feed is None:
            return
        private = PRIVATE_COLUMNS.get(table, frozenset())
        for new, old in changes:
            event = ChangeEvent(
                table=table,
                event_type=change_type,
                new={k: v for k, v in new.items() if k not in private},
                old={k: v for k, v in old.items() if k not in private},
            )
            try:
                await self.change_feed.publish(event)
            except ExternalServiceError:
                logger.exception(f"Failed to publish {change_type.value} on '{table}'")
