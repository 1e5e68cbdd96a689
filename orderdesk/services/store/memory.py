"""
In-Memory Data Store Implementation

Keeps every table as a list of dicts inside the process. Used in
development mode (ENV_MODE=development) and by the test suite to:
    - Run the complete ordering flow without PostgreSQL
    - Simulate backend failures on chosen tables
    - Count writes to prove validation happens before persistence

Behavior:
    - Fills in "id" (UUID) and "created_at" like the database defaults do
    - Sets "updated_at" on every update
    - Raises ExternalServiceError for writes to tables in fail_tables

Version: 1.0.0
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from orderdesk.core.exceptions import ExternalServiceError
from orderdesk.services.realtime.base import BaseChangeFeed
from orderdesk.services.store.base import TABLES, BaseDataStore, RowFilter

logger = logging.getLogger(__name__)


class MemoryDataStore(BaseDataStore):
    """
    Mock implementation of the data store.

    Attributes:
        fail_tables: Tables whose writes raise ExternalServiceError
        write_count: Number of successful write operations so far

    Example:
        >>> store = MemoryDataStore(fail_tables={"order_items"})
        >>> await store.insert("order_items", [...])  # raises ExternalServiceError
    """

    def __init__(
        self,
        change_feed: Optional[BaseChangeFeed] = None,
        fail_tables: Optional[Iterable[str]] = None,
    ):
        super().__init__(change_feed)
        self.fail_tables = set(fail_tables or ())
        self.write_count = 0
        self._tables: dict[str, list[dict[str, Any]]] = {name: [] for name in TABLES}

        logger.info(
            f"MemoryDataStore initialized (fail_tables={sorted(self.fail_tables) or 'none'})"
        )

    @property
    def provider_name(self) -> str:
        return "memory"

    def _maybe_fail(self, table: str, operation: str) -> None:
        if table in self.fail_tables:
            logger.debug(f"Mock: simulated {operation} failure on '{table}'")
            raise ExternalServiceError(f"Simulated {operation} failure on '{table}'")

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    async def _insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self._maybe_fail(table, "insert")

        created = []
        for row in rows:
            stored = dict(row)
            stored.setdefault("id", str(uuid.uuid4()))
            stored.setdefault("created_at", self._now())
            self._tables[table].append(stored)
            created.append(dict(stored))

        self.write_count += 1
        logger.debug(f"Mock: inserted {len(created)} row(s) into '{table}'")
        return created

    async def _update(
        self,
        table: str,
        values: dict[str, Any],
        row_filter: RowFilter,
    ) -> list[tuple[dict[str, Any], dict[str, Any]]]:
        self._maybe_fail(table, "update")

        changed = []
        for stored in self._tables[table]:
            if row_filter.matches(stored):
                old = dict(stored)
                stored.update(values)
                stored["updated_at"] = self._now()
                changed.append((dict(stored), old))

        if changed:
            self.write_count += 1
        return changed

    async def _delete(self, table: str, row_filter: RowFilter) -> list[dict[str, Any]]:
        self._maybe_fail(table, "delete")

        kept, removed = [], []
        for stored in self._tables[table]:
            (removed if row_filter.matches(stored) else kept).append(stored)
        self._tables[table] = kept

        if removed:
            self.write_count += 1
        return [dict(row) for row in removed]

    async def _select(
        self,
        table: str,
        row_filter: RowFilter,
        order_by: Optional[str],
        descending: bool,
        limit: Optional[int],
    ) -> list[dict[str, Any]]:
        rows = [dict(row) for row in self._tables[table] if row_filter.matches(row)]

        if order_by:
            # Rows missing the column sort last in either direction
            present = [r for r in rows if r.get(order_by) is not None]
            missing = [r for r in rows if r.get(order_by) is None]
            present.sort(key=lambda r: r[order_by], reverse=descending)
            rows = present + missing

        if limit is not None:
            rows = rows[:limit]
        return rows

    async def _count(self, table: str, row_filter: RowFilter) -> int:
        return sum(1 for row in self._tables[table] if row_filter.matches(row))

    async def health_check(self) -> bool:
        return True
