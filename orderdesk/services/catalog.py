"""
Menu Catalog

Read-only access to categories, products and single orders for the
customer-facing pages. Menu reads degrade to an empty list when the data
store is unreachable so the page still renders.

Version: 1.0.0
"""

import logging
from collections import defaultdict
from typing import Optional

from orderdesk.core.exceptions import ExternalServiceError, OrderNotFoundError
from orderdesk.schemas import Category, Order, OrderItem, Product
from orderdesk.services.store.base import BaseDataStore

logger = logging.getLogger(__name__)

FEATURED_LIMIT = 4


class MenuCatalog:
    """Menu and order lookups against the data store."""

    def __init__(self, store: BaseDataStore):
        self.store = store

    async def categories(self) -> list[Category]:
        """Active categories by sort order."""
        try:
            rows = await self.store.select("categories", eq={"is_active": True}, order_by="sort_order")
        except ExternalServiceError as e:
            logger.error(f"Failed to load categories: {e}")
            return []
        return [Category.model_validate(row) for row in rows]

    async def products(self, category_id: Optional[str] = None) -> list[Product]:
        """Available products by sort order, optionally for one category."""
        eq = {"is_available": True}
        if category_id:
            eq["category_id"] = category_id
        try:
            rows = await self.store.select("products", eq=eq, order_by="sort_order")
        except ExternalServiceError as e:
            logger.error(f"Failed to load products: {e}")
            return []
        return [Product.model_validate(row) for row in rows]

    async def featured(self, limit: int = FEATURED_LIMIT) -> list[Product]:
        try:
            rows = await self.store.select(
                "products",
                eq={"is_featured": True, "is_available": True},
                order_by="sort_order",
                limit=limit,
            )
        except ExternalServiceError as e:
            logger.warning(f"Featured products unavailable: {e}")
            return []
        return [Product.model_validate(row) for row in rows]

    async def get_order(self, order_id: str) -> Order:
        """
        Load one order with its items, for the confirmation page.

        Raises:
            OrderNotFoundError: Unknown order id
        """
        row = await self.store.select_one("orders", eq={"id": order_id})
        if row is None:
            raise OrderNotFoundError(order_id)

        order = Order.model_validate(row)
        item_rows = await self.store.select("order_items", eq={"order_id": order_id})
        order.items = [OrderItem.model_validate(item) for item in item_rows]
        return order

    async def attach_items(self, orders: list[Order]) -> list[Order]:
        """Fill in the items of already loaded orders with a single query."""
        if not orders:
            return orders
        item_rows = await self.store.select(
            "order_items",
            in_={"order_id": [order.id for order in orders]},
        )
        grouped: dict[str, list[OrderItem]] = defaultdict(list)
        for item in item_rows:
            grouped[item["order_id"]].append(OrderItem.model_validate(item))
        for order in orders:
            order.items = grouped.get(order.id, [])
        return orders
