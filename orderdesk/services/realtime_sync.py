"""
Realtime Sync Adapter

Keeps order views current. A view subscribes to change notifications on
the orders table and, on every notification, re-fetches its full order
list rather than patching individual rows. Ordering and filtering
therefore always match what a fresh page load would show.

Scopes:
    - all_orders: admin back-office, also watches order_items inserts
      so items written after their order still reach the view
    - for_customer(user_id): "my orders" page, filtered by owner

Version: 1.0.0
"""

import asyncio
import inspect
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Union

from orderdesk.core.exceptions import ExternalServiceError
from orderdesk.schemas import Order
from orderdesk.services.catalog import MenuCatalog
from orderdesk.services.realtime.base import BaseChangeFeed, ChangeEvent
from orderdesk.services.store.base import BaseDataStore

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[list[Order]], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class OrderScope:
    """Which orders a view shows."""
    user_id: Optional[str] = None

    @classmethod
    def all_orders(cls) -> "OrderScope":
        return cls()

    @classmethod
    def for_customer(cls, user_id: str) -> "OrderScope":
        if not user_id:
            raise ValueError("Customer scope requires a user id")
        return cls(user_id=user_id)

    @property
    def is_admin(self) -> bool:
        return self.user_id is None

    @property
    def filter(self) -> Optional[dict[str, Any]]:
        return None if self.user_id is None else {"user_id": self.user_id}

    def __str__(self) -> str:
        return "all orders" if self.is_admin else f"orders of {self.user_id}"


@dataclass
class OrderView:
    """Latest order list delivered to a watcher."""
    scope: OrderScope
    orders: list[Order] = field(default_factory=list)
    refresh_count: int = 0


class RealtimeSyncAdapter:
    """
    Fetches order lists and keeps them refreshed from the change feed.

    Example:
        >>> adapter = RealtimeSyncAdapter(store, feed)
        >>> async with adapter.watch(OrderScope.all_orders(), render) as view:
        ...     await asyncio.sleep(60)
    """

    def __init__(self, store: BaseDataStore, feed: BaseChangeFeed):
        self.store = store
        self.feed = feed
        self.catalog = MenuCatalog(store)

    # =========================================================================
    # FETCH
    # =========================================================================

    async def fetch_orders(self, scope: OrderScope) -> list[Order]:
        """Orders of the scope, newest first, each with its item rows."""
        rows = await self.store.select(
            "orders",
            eq=scope.filter,
            order_by="created_at",
            descending=True,
        )
        orders = [Order.model_validate(row) for row in rows]
        return await self.catalog.attach_items(orders)

    # =========================================================================
    # WATCH
    # =========================================================================

    @asynccontextmanager
    async def watch(
        self,
        scope: OrderScope,
        on_refresh: RefreshCallback,
    ) -> AsyncIterator[OrderView]:
        """
        Subscribe a view to its scope for the duration of the block.

        The initial fetch is delivered before the block starts; errors
        there propagate. Later re-fetches or callbacks that fail are
        logged and the view keeps listening. Leaving the block cancels the consumer and releases the
        subscriptions.
        """
        view = OrderView(scope=scope)

        async with AsyncExitStack() as stack:
            streams = [await stack.enter_async_context(self.feed.subscribe("orders", eq=scope.filter))]
            if scope.is_admin:
                streams.append(await stack.enter_async_context(self.feed.subscribe("order_items")))
            logger.info(f"Watching {scope} ({len(streams)} subscription(s))")

            await self._deliver(view, await self.fetch_orders(scope), on_refresh)

            lock = asyncio.Lock()
            tasks = [
                asyncio.create_task(self._consume(view, stream, on_refresh, lock))
                for stream in streams
            ]
            try:
                yield view
            finally:
                for task in tasks:
                    task.cancel()
                results = await asyncio.gather(*tasks, return_exceptions=True)
                for result in results:
                    if isinstance(result, Exception):
                        logger.error(f"Watcher for {scope} stopped with error: {result!r}")
                logger.info(f"Stopped watching {scope}")

    async def _consume(
        self,
        view: OrderView,
        stream: AsyncIterator[ChangeEvent],
        on_refresh: RefreshCallback,
        lock: asyncio.Lock,
    ) -> None:
        async for event in stream:
            logger.debug(f"{event.event_type.value} on '{event.table}', refreshing {view.scope}")
            async with lock:
                try:
                    orders = await self.fetch_orders(view.scope)
                except ExternalServiceError as e:
                    logger.warning(f"Refresh of {view.scope} failed, keeping last view: {e}")
                    continue
                try:
                    await self._deliver(view, orders, on_refresh)
                except Exception:
                    logger.exception(f"Refresh callback for {view.scope} failed")

    @staticmethod
    async def _deliver(view: OrderView, orders: list[Order], on_refresh: RefreshCallback) -> None:
        view.orders = orders
        view.refresh_count += 1
        result = on_refresh(orders)
        if inspect.isawaitable(result):
            await result
