"""Tests for dashboard, sales report and customer aggregates."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from orderdesk.core.config import Settings
from orderdesk.core.exceptions import ExternalServiceError, ValidationError
from orderdesk.schemas import Order
from orderdesk.services.reports import ReportService, orphaned_order_ids, split_active_completed

NOW = datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)


def _order(number, total, status="delivered", order_type="pickup", created_at=NOW, user_id=None):
    return {
        "order_number": number,
        "user_id": user_id,
        "customer_name": "Lea",
        "customer_email": "lea@example.com",
        "order_type": order_type,
        "payment_method": "cash",
        "status": status,
        "subtotal": Decimal(total),
        "delivery_fee": Decimal("0.00"),
        "total": Decimal(total),
        "created_at": created_at,
    }


def _item(order_id, name, quantity, unit_price):
    return {
        "order_id": order_id,
        "product_id": name.lower(),
        "product_name": name,
        "quantity": quantity,
        "unit_price": Decimal(unit_price),
        "total_price": Decimal(unit_price) * quantity,
    }


@pytest.fixture
def reports(store):
    return ReportService(store)


# =============================================================================
# ORDER LIST HELPERS
# =============================================================================

def test_split_active_completed_keeps_order():
    orders = [
        Order.model_validate({**_order(f"ORD-00000{i}", "5.00", status=status), "id": str(i)})
        for i, status in enumerate(["pending", "delivered", "ready", "cancelled", "confirmed"])
    ]
    active, completed = split_active_completed(orders)
    assert [o.status.value for o in active] == ["pending", "ready", "confirmed"]
    assert [o.status.value for o in completed] == ["delivered", "cancelled"]


def test_orphaned_order_ids():
    bare = Order.model_validate({**_order("ORD-000001", "5.00", status="pending"), "id": "a"})
    assert orphaned_order_ids([bare]) == ["a"]


# =============================================================================
# DASHBOARD
# =============================================================================

@pytest.mark.asyncio
async def test_dashboard_stats(reports, store):
    [today_done, today_open, _] = await store.insert("orders", [
        _order("ORD-000001", "12.50", created_at=NOW - timedelta(hours=2)),
        _order("ORD-000002", "30.00", status="preparing", created_at=NOW - timedelta(hours=1)),
        _order("ORD-000003", "99.00", status="pending", created_at=NOW - timedelta(days=1)),
    ])
    await store.insert("order_items", [_item(today_open["id"], "Falafel", 2, "15.00")])
    await store.insert("profiles", [{"user_id": "u1", "email": "lea@example.com"}])

    stats = await reports.dashboard_stats(now=NOW)

    assert stats.today_orders == 2
    assert stats.today_revenue == Decimal("42.50")
    assert stats.pending_orders == 2
    assert stats.total_customers == 1
    assert [o.order_number for o in stats.recent_orders] == ["ORD-000002", "ORD-000001", "ORD-000003"]
    # yesterday's pending order never got items
    assert len(stats.orphaned_orders) == 1
    assert today_done["id"] not in stats.orphaned_orders


@pytest.mark.asyncio
async def test_dashboard_degrades_when_store_fails(reports, store, monkeypatch):
    async def broken_select(*args, **kwargs):
        raise ExternalServiceError("store offline")

    monkeypatch.setattr(store, "select", broken_select)
    stats = await reports.dashboard_stats(now=NOW)
    assert stats.today_orders == 0
    assert stats.recent_orders == []


# =============================================================================
# SALES REPORT
# =============================================================================

@pytest.mark.asyncio
async def test_sales_report_excludes_cancelled(reports, store):
    [first, second, cancelled, _] = await store.insert("orders", [
        _order("ORD-000001", "12.50", created_at=NOW - timedelta(days=1)),
        _order("ORD-000002", "30.00", order_type="delivery", created_at=NOW - timedelta(days=1)),
        _order("ORD-000003", "50.00", status="cancelled", created_at=NOW - timedelta(days=2)),
        _order("ORD-000004", "80.00", created_at=NOW - timedelta(days=20)),
    ])
    await store.insert("order_items", [
        _item(first["id"], "Falafel", 1, "12.50"),
        _item(second["id"], "Hummus", 4, "5.00"),
        _item(second["id"], "Falafel", 1, "10.00"),
        _item(cancelled["id"], "Baklava", 10, "5.00"),
    ])

    report = await reports.sales_report(days=7, now=NOW)

    assert report.total_orders == 2
    assert report.total_revenue == Decimal("42.50")
    assert report.average_order_value == Decimal("21.25")
    assert report.delivery_orders == 1
    assert report.pickup_orders == 1
    assert [(d.date, d.revenue, d.orders) for d in report.daily_sales] == [
        ("2026-03-13", Decimal("42.50"), 2),
    ]
    assert [(p.name, p.quantity) for p in report.top_products] == [("Hummus", 4), ("Falafel", 2)]


@pytest.mark.asyncio
async def test_sales_report_without_orders(reports):
    report = await reports.sales_report(days=30, now=NOW)
    assert report.days == 30
    assert report.total_orders == 0
    assert report.daily_sales == []


@pytest.mark.asyncio
@pytest.mark.parametrize("days", [0, 14, 365])
async def test_sales_report_rejects_other_periods(reports, days):
    with pytest.raises(ValidationError) as exc_info:
        await reports.sales_report(days=days)
    assert exc_info.value.field == "days"


# =============================================================================
# CUSTOMERS
# =============================================================================

@pytest.mark.asyncio
async def test_customer_stats_sorted_by_spend(reports, store):
    await store.insert("profiles", [
        {"user_id": "u1", "email": "lea@example.com", "created_at": NOW - timedelta(days=3)},
        {"user_id": "u2", "email": "jonas@example.com", "created_at": NOW - timedelta(days=2)},
        {"user_id": "u3", "email": "new@example.com", "created_at": NOW - timedelta(days=1)},
    ])
    await store.insert("orders", [
        _order("ORD-000001", "12.50", user_id="u1", created_at=NOW - timedelta(days=2)),
        _order("ORD-000002", "30.00", user_id="u2", created_at=NOW - timedelta(days=1)),
        _order("ORD-000003", "20.00", user_id="u1", created_at=NOW),
        _order("ORD-000004", "99.00", status="cancelled", user_id="u3"),
        _order("ORD-000005", "15.00"),
    ])

    stats = await reports.customer_stats()

    assert [s.profile.user_id for s in stats] == ["u1", "u2", "u3"]
    lea = stats[0]
    assert lea.order_count == 2
    assert lea.total_spent == Decimal("32.50")
    assert lea.last_order == NOW
    assert stats[2].order_count == 0
    assert stats[2].total_spent == Decimal("0.00")
    assert stats[2].last_order is None


# =============================================================================
# RESTAURANT TIMEZONE
# =============================================================================

@pytest.mark.asyncio
async def test_today_starts_at_local_midnight(store):
    reports = ReportService(store, Settings(_env_file=None, restaurant_timezone="Europe/Berlin"))
    late_evening = datetime(2026, 3, 13, 23, 30, tzinfo=timezone.utc)
    await store.insert("orders", [
        _order("ORD-000001", "10.00", created_at=datetime(2026, 3, 13, 23, 10, tzinfo=timezone.utc)),
        _order("ORD-000002", "20.00", created_at=datetime(2026, 3, 13, 22, 50, tzinfo=timezone.utc)),
    ])

    stats = await reports.dashboard_stats(now=late_evening)

    # 00:30 in Berlin: only the order placed after local midnight counts
    assert stats.today_orders == 1
    assert stats.today_revenue == Decimal("10.00")


@pytest.mark.asyncio
async def test_daily_sales_grouped_by_local_date(store):
    reports = ReportService(store, Settings(_env_file=None, restaurant_timezone="Europe/Berlin"))
    await store.insert("orders", [
        _order("ORD-000001", "10.00", created_at=datetime(2026, 3, 13, 23, 10, tzinfo=timezone.utc)),
        _order("ORD-000002", "20.00", created_at=datetime(2026, 3, 13, 22, 50, tzinfo=timezone.utc)),
    ])

    report = await reports.sales_report(days=7, now=NOW)

    assert [(d.date, d.orders) for d in report.daily_sales] == [("2026-03-13", 1), ("2026-03-14", 1)]
