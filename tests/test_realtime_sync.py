"""Tests for the realtime sync adapter (memory change feed)."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from orderdesk.core.exceptions import ExternalServiceError
from orderdesk.services.order_status import OrderStatusMachine
from orderdesk.services.realtime_sync import OrderScope, RealtimeSyncAdapter


def _order_row(user_id=None, minutes_ago=0, **overrides) -> dict:
    row = {
        "order_number": f"ORD-{minutes_ago:06d}",
        "user_id": user_id,
        "customer_name": "Mia",
        "customer_email": "mia@example.com",
        "order_type": "pickup",
        "payment_method": "cash",
        "status": "pending",
        "subtotal": Decimal("9.50"),
        "delivery_fee": Decimal("0.00"),
        "total": Decimal("9.50"),
        "created_at": datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    }
    row.update(overrides)
    return row


class Recorder:
    """Collects refreshes and lets a test wait for the next one."""

    def __init__(self):
        self.calls = []
        self._changed = asyncio.Event()

    def __call__(self, orders):
        self.calls.append(orders)
        self._changed.set()

    async def wait_for(self, count: int, timeout: float = 1.0):
        async def _wait():
            while len(self.calls) < count:
                self._changed.clear()
                await self._changed.wait()
        await asyncio.wait_for(_wait(), timeout)


@pytest.fixture
def adapter(store, feed):
    return RealtimeSyncAdapter(store, feed)


# =============================================================================
# FETCH
# =============================================================================

@pytest.mark.asyncio
async def test_fetch_orders_newest_first_with_items(adapter, store):
    [old, new] = await store.insert("orders", [_order_row(minutes_ago=30), _order_row(minutes_ago=5)])
    await store.insert("order_items", [{
        "order_id": old["id"],
        "product_id": "hummus",
        "product_name": "Hummus",
        "quantity": 2,
        "unit_price": Decimal("4.75"),
        "total_price": Decimal("9.50"),
    }])

    orders = await adapter.fetch_orders(OrderScope.all_orders())

    assert [o.id for o in orders] == [new["id"], old["id"]]
    assert orders[0].is_orphaned
    assert orders[1].items[0].product_name == "Hummus"


@pytest.mark.asyncio
async def test_customer_scope_only_sees_own_orders(adapter, store):
    await store.insert("orders", [_order_row(user_id="u-1"), _order_row(user_id="u-2")])

    orders = await adapter.fetch_orders(OrderScope.for_customer("u-1"))

    assert [o.user_id for o in orders] == ["u-1"]


def test_customer_scope_requires_user():
    with pytest.raises(ValueError):
        OrderScope.for_customer("")


# =============================================================================
# WATCH
# =============================================================================

@pytest.mark.asyncio
async def test_watch_delivers_initial_fetch(adapter, store):
    await store.insert("orders", [_order_row()])
    recorder = Recorder()

    async with adapter.watch(OrderScope.all_orders(), recorder) as view:
        assert len(recorder.calls) == 1
        assert len(view.orders) == 1


@pytest.mark.asyncio
async def test_watch_refreshes_after_status_change(adapter, store):
    [row] = await store.insert("orders", [_order_row()])
    recorder = Recorder()

    async with adapter.watch(OrderScope.all_orders(), recorder) as view:
        await OrderStatusMachine(store).accept(row["id"], "18:30")
        await recorder.wait_for(2)

        assert view.orders[0].status.value == "confirmed"
        assert view.refresh_count >= 2


@pytest.mark.asyncio
async def test_admin_watch_sees_late_items(adapter, store):
    """Items written after their order still reach the admin view."""
    recorder = Recorder()

    async with adapter.watch(OrderScope.all_orders(), recorder) as view:
        [row] = await store.insert("orders", [_order_row()])
        await recorder.wait_for(2)
        await store.insert("order_items", [{
            "order_id": row["id"],
            "product_id": "baklava",
            "product_name": "Baklava",
            "quantity": 1,
            "unit_price": Decimal("3.80"),
            "total_price": Decimal("3.80"),
        }])
        await recorder.wait_for(3)

        assert not view.orders[0].is_orphaned


@pytest.mark.asyncio
async def test_customer_watch_ignores_other_customers(adapter, store):
    recorder = Recorder()

    async with adapter.watch(OrderScope.for_customer("u-1"), recorder):
        await store.insert("orders", [_order_row(user_id="u-2")])
        await store.insert("orders", [_order_row(user_id="u-1")])
        await recorder.wait_for(2)
        await asyncio.sleep(0.05)

    assert len(recorder.calls) == 2
    assert [o.user_id for o in recorder.calls[-1]] == ["u-1"]


@pytest.mark.asyncio
async def test_watch_releases_subscriptions_on_exit(adapter, feed):
    async with adapter.watch(OrderScope.all_orders(), Recorder()):
        assert feed.subscriber_count("orders") == 1
        assert feed.subscriber_count("order_items") == 1

    assert feed.subscriber_count("orders") == 0
    assert feed.subscriber_count("order_items") == 0


@pytest.mark.asyncio
async def test_watch_releases_subscriptions_on_error(adapter, feed):
    with pytest.raises(RuntimeError):
        async with adapter.watch(OrderScope.for_customer("u-1"), Recorder()):
            raise RuntimeError("view crashed")

    assert feed.subscriber_count("orders") == 0


@pytest.mark.asyncio
async def test_failed_refresh_is_skipped(adapter, store, monkeypatch):
    recorder = Recorder()

    async with adapter.watch(OrderScope.all_orders(), recorder) as view:
        real_fetch = adapter.fetch_orders
        calls = {"n": 0}

        async def flaky_fetch(scope):
            calls["n"] += 1
            if calls["n"] == 1:
                raise ExternalServiceError("store offline")
            return await real_fetch(scope)

        monkeypatch.setattr(adapter, "fetch_orders", flaky_fetch)

        await store.insert("orders", [_order_row()])
        await asyncio.sleep(0.05)
        assert len(recorder.calls) == 1
        assert view.orders == []

        await store.insert("orders", [_order_row(minutes_ago=1)])
        await recorder.wait_for(2)
        assert len(view.orders) == 2


@pytest.mark.asyncio
async def test_async_callback_is_awaited(adapter, store):
    delivered = []

    async def on_refresh(orders):
        await asyncio.sleep(0)
        delivered.append(len(orders))

    await store.insert("orders", [_order_row()])
    async with adapter.watch(OrderScope.all_orders(), on_refresh):
        pass

    assert delivered == [1]


@pytest.mark.asyncio
async def test_watch_survives_failing_callback(adapter, store):
    recorder = Recorder()

    def render(orders):
        recorder(orders)
        if len(recorder.calls) == 2:
            raise RuntimeError("render failed")

    async with adapter.watch(OrderScope.all_orders(), render):
        for minutes_ago in (3, 2, 1):
            await store.insert("orders", [_order_row(minutes_ago=minutes_ago)])
            await recorder.wait_for(len(recorder.calls) + 1)

    assert len(recorder.calls) == 4
    assert len(recorder.calls[-1]) == 3
