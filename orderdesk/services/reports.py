"""
Back-Office Reports

Aggregates for the admin dashboard, the sales report and the customer
list. Aggregation is done with pandas over rows read from the data
store; cancelled orders never count towards revenue in the sales report
or the customer list.

Version: 1.0.0
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional

import pandas as pd

from orderdesk.core.config import Settings, get_settings
from orderdesk.core.exceptions import ExternalServiceError, ValidationError
from orderdesk.schemas import (
    CustomerStats,
    DailySales,
    DashboardStats,
    Order,
    OrderStatus,
    ProductSales,
    Profile,
    SalesReport,
)
from orderdesk.services.catalog import MenuCatalog
from orderdesk.services.order_status import ACTIVE_STATUSES, is_active
from orderdesk.services.pricing import ZERO, to_money
from orderdesk.services.store.base import BaseDataStore

logger = logging.getLogger(__name__)

REPORT_PERIODS = (7, 30, 90)
RECENT_ORDERS_LIMIT = 5
TOP_PRODUCTS_LIMIT = 10

# Statuses counted as "pending" on the dashboard tile
OPEN_STATUSES = (OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PREPARING)


# =============================================================================
# ORDER LIST HELPERS
# =============================================================================

def split_active_completed(orders: Iterable[Order]) -> tuple[list[Order], list[Order]]:
    """Split orders into the admin "active" and "completed" tabs, keeping order."""
    active, completed = [], []
    for order in orders:
        (active if is_active(order.status) else completed).append(order)
    return active, completed


def orphaned_order_ids(orders: Iterable[Order]) -> list[str]:
    """Ids of orders that have no item rows (left over from a failed checkout)."""
    return [order.id for order in orders if order.is_orphaned]


def _start_of_day(now: datetime, tz: str) -> datetime:
    """Local midnight of ``now`` in zone ``tz``, as a UTC datetime."""
    local = pd.Timestamp(now).tz_convert(tz).normalize()
    return local.tz_convert("UTC").to_pydatetime()


# =============================================================================
# REPORT SERVICE
# =============================================================================

class ReportService:
    """Dashboard, sales and customer aggregates."""

    def __init__(self, store: BaseDataStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()
        self.catalog = MenuCatalog(store)

    async def dashboard_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        """
        Tiles and recent orders of the admin dashboard.

        Degrades to empty stats when the data store is unreachable.
        """
        now = now or datetime.now(timezone.utc)
        try:
            day_start = _start_of_day(now, self.settings.restaurant_timezone)
            today_rows = await self.store.select("orders", gte={"created_at": day_start})
            pending = await self.store.count(
                "orders", in_={"status": [status.value for status in OPEN_STATUSES]}
            )
            customers = await self.store.count("profiles")
            recent_rows = await self.store.select(
                "orders", order_by="created_at", descending=True, limit=RECENT_ORDERS_LIMIT
            )
            active_rows = await self.store.select(
                "orders", in_={"status": [status.value for status in ACTIVE_STATUSES]}
            )
            active = await self.catalog.attach_items([Order.model_validate(r) for r in active_rows])
        except ExternalServiceError as e:
            logger.error(f"Dashboard stats unavailable: {e}")
            return DashboardStats()

        return DashboardStats(
            today_orders=len(today_rows),
            today_revenue=to_money(sum((Decimal(str(row["total"])) for row in today_rows), ZERO)),
            pending_orders=pending,
            total_customers=customers,
            recent_orders=[Order.model_validate(row) for row in recent_rows],
            orphaned_orders=orphaned_order_ids(active),
        )

    async def sales_report(self, days: int = 7, now: Optional[datetime] = None) -> SalesReport:
        """
        Sales over the last ``days`` days, cancelled orders excluded.

        Raises:
            ValidationError: Period other than 7, 30 or 90 days
            ExternalServiceError: Data store unreachable
        """
        if days not in REPORT_PERIODS:
            raise ValidationError(
                f"Report period must be one of {', '.join(str(d) for d in REPORT_PERIODS)} days",
                field="days",
            )

        now = now or datetime.now(timezone.utc)
        rows = await self.store.select(
            "orders",
            gte={"created_at": now - timedelta(days=days)},
            lte={"created_at": now},
            neq={"status": OrderStatus.CANCELLED.value},
        )
        if not rows:
            return SalesReport(days=days)

        orders = pd.DataFrame([
            Order.model_validate(row).model_dump(mode="json", exclude={"items"}) for row in rows
        ])
        orders["total"] = orders["total"].astype(float)
        created = pd.to_datetime(orders["created_at"], utc=True)
        orders["date"] = created.dt.tz_convert(self.settings.restaurant_timezone).dt.strftime("%Y-%m-%d")

        daily = (
            orders.groupby("date")
            .agg(revenue=("total", "sum"), orders=("id", "count"))
            .reset_index()
            .sort_values("date")
        )

        total_revenue = to_money(orders["total"].sum())
        total_orders = len(orders)

        report = SalesReport(
            days=days,
            total_revenue=total_revenue,
            total_orders=total_orders,
            average_order_value=to_money(orders["total"].sum() / total_orders),
            delivery_orders=int((orders["order_type"] == "delivery").sum()),
            pickup_orders=int((orders["order_type"] != "delivery").sum()),
            daily_sales=[
                DailySales(date=row.date, revenue=to_money(row.revenue), orders=int(row.orders))
                for row in daily.itertuples(index=False)
            ],
            top_products=await self._top_products(orders["id"].tolist()),
        )
        logger.info(f"Sales report ({days} days): {total_orders} orders, revenue {total_revenue}")
        return report

    async def _top_products(self, order_ids: list[str]) -> list[ProductSales]:
        item_rows = await self.store.select("order_items", in_={"order_id": order_ids})
        if not item_rows:
            return []

        items = pd.DataFrame(item_rows)
        items["total_price"] = items["total_price"].astype(float)
        top = (
            items.groupby("product_name")
            .agg(quantity=("quantity", "sum"), revenue=("total_price", "sum"))
            .reset_index()
            .sort_values(["quantity", "product_name"], ascending=[False, True])
            .head(TOP_PRODUCTS_LIMIT)
        )
        return [
            ProductSales(name=row.product_name, quantity=int(row.quantity), revenue=to_money(row.revenue))
            for row in top.itertuples(index=False)
        ]

    async def customer_stats(self) -> list[CustomerStats]:
        """Profiles with their order count, spend and last order, biggest spenders first."""
        profile_rows = await self.store.select("profiles", order_by="created_at", descending=True)
        if not profile_rows:
            return []

        order_rows = await self.store.select("orders", neq={"status": OrderStatus.CANCELLED.value})
        order_rows = [row for row in order_rows if row.get("user_id")]

        per_user: dict[str, dict] = {}
        if order_rows:
            orders = pd.DataFrame(order_rows)[["user_id", "total", "created_at"]]
            orders["total"] = orders["total"].astype(float)
            orders["created_at"] = pd.to_datetime(orders["created_at"], utc=True)
            grouped = orders.groupby("user_id").agg(
                order_count=("total", "count"),
                total_spent=("total", "sum"),
                last_order=("created_at", "max"),
            )
            per_user = grouped.to_dict("index")

        stats = []
        for row in profile_rows:
            profile = Profile.model_validate(row)
            totals = per_user.get(profile.user_id)
            if totals is None:
                stats.append(CustomerStats(profile=profile))
                continue
            stats.append(CustomerStats(
                profile=profile,
                order_count=int(totals["order_count"]),
                total_spent=to_money(totals["total_spent"]),
                last_order=totals["last_order"].to_pydatetime(),
            ))

        stats.sort(key=lambda s: s.total_spent, reverse=True)
        return stats
