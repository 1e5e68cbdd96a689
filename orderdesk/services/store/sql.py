"""
SQLAlchemy Data Store Implementation

Backs the table interface with PostgreSQL through the async engine in
orderdesk.database. Used when ENV_MODE is staging or production.

Each public call runs in its own session and transaction. Updates and
deletes lock the matching rows (SELECT ... FOR UPDATE) so that the
compare-and-set used by status transitions holds across processes.

Version: 1.0.0
"""

import logging
from typing import Any, Optional

from sqlalchemy import func, inspect, select, text
from sqlalchemy.exc import SQLAlchemyError

from orderdesk.core.exceptions import ExternalServiceError
from orderdesk.models import Category, Order, OrderItem, Product, Profile
from orderdesk.services.realtime.base import BaseChangeFeed
from orderdesk.services.store.base import BaseDataStore, RowFilter

logger = logging.getLogger(__name__)

TABLE_MODELS = {
    "categories": Category,
    "products": Product,
    "orders": Order,
    "order_items": OrderItem,
    "profiles": Profile,
}


class SQLAlchemyDataStore(BaseDataStore):
    """PostgreSQL implementation of the data store."""

    def __init__(
        self,
        change_feed: Optional[BaseChangeFeed] = None,
        session_maker=None,
    ):
        super().__init__(change_feed)
        if session_maker is None:
            from orderdesk.database import async_session_maker as session_maker
        self._session_maker = session_maker
        logger.info("SQLAlchemyDataStore initialized")

    @property
    def provider_name(self) -> str:
        return "postgres"

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _to_dict(obj) -> dict[str, Any]:
        return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}

    @staticmethod
    def _conditions(model, row_filter: RowFilter) -> list:
        conditions = []
        for column, value in row_filter.eq.items():
            conditions.append(getattr(model, column) == value)
        for column, values in row_filter.in_.items():
            conditions.append(getattr(model, column).in_(list(values)))
        for column, value in row_filter.neq.items():
            conditions.append(getattr(model, column) != value)
        for column, value in row_filter.gte.items():
            conditions.append(getattr(model, column) >= value)
        for column, value in row_filter.lte.items():
            conditions.append(getattr(model, column) <= value)
        return conditions

    def _wrap(self, operation: str, table: str, error: SQLAlchemyError) -> ExternalServiceError:
        logger.error(f"Database {operation} on '{table}' failed: {error}")
        return ExternalServiceError(f"Database {operation} on '{table}' failed")

    # =========================================================================
    # BACKEND HOOKS
    # =========================================================================

    async def _insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        model = TABLE_MODELS[table]
        try:
            async with self._session_maker() as session:
                objects = [model(**row) for row in rows]
                session.add_all(objects)
                await session.commit()
                for obj in objects:
                    await session.refresh(obj)
                return [self._to_dict(obj) for obj in objects]
        except SQLAlchemyError as e:
            raise self._wrap("insert", table, e) from e

    async def _update(
        self,
        table: str,
        values: dict[str, Any],
        row_filter: RowFilter,
    ) -> list[tuple[dict[str, Any], dict[str, Any]]]:
        model = TABLE_MODELS[table]
        try:
            async with self._session_maker() as session:
                stmt = select(model).where(*self._conditions(model, row_filter)).with_for_update()
                objects = (await session.execute(stmt)).scalars().all()

                olds = [self._to_dict(obj) for obj in objects]
                for obj in objects:
                    for column, value in values.items():
                        setattr(obj, column, value)
                await session.commit()

                changed = []
                for obj, old in zip(objects, olds):
                    await session.refresh(obj)
                    changed.append((self._to_dict(obj), old))
                return changed
        except SQLAlchemyError as e:
            raise self._wrap("update", table, e) from e

    async def _delete(self, table: str, row_filter: RowFilter) -> list[dict[str, Any]]:
        model = TABLE_MODELS[table]
        try:
            async with self._session_maker() as session:
                stmt = select(model).where(*self._conditions(model, row_filter)).with_for_update()
                objects = (await session.execute(stmt)).scalars().all()
                removed = [self._to_dict(obj) for obj in objects]
                for obj in objects:
                    await session.delete(obj)
                await session.commit()
                return removed
        except SQLAlchemyError as e:
            raise self._wrap("delete", table, e) from e

    async def _select(
        self,
        table: str,
        row_filter: RowFilter,
        order_by: Optional[str],
        descending: bool,
        limit: Optional[int],
    ) -> list[dict[str, Any]]:
        model = TABLE_MODELS[table]
        stmt = select(model).where(*self._conditions(model, row_filter))
        if order_by:
            column = getattr(model, order_by)
            stmt = stmt.order_by(column.desc().nulls_last() if descending else column.asc().nulls_last())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            async with self._session_maker() as session:
                objects = (await session.execute(stmt)).scalars().all()
                return [self._to_dict(obj) for obj in objects]
        except SQLAlchemyError as e:
            raise self._wrap("select", table, e) from e

    async def _count(self, table: str, row_filter: RowFilter) -> int:
        model = TABLE_MODELS[table]
        stmt = select(func.count()).select_from(model).where(*self._conditions(model, row_filter))
        try:
            async with self._session_maker() as session:
                return (await session.execute(stmt)).scalar() or 0
        except SQLAlchemyError as e:
            raise self._wrap("count", table, e) from e

    async def health_check(self) -> bool:
        try:
            async with self._session_maker() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def close(self) -> None:
        from orderdesk.database import dispose_engine

        await dispose_engine()
