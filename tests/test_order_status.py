"""Tests for the order status state machine."""

import asyncio
from decimal import Decimal

import pytest

from orderdesk.core.exceptions import InvalidTransitionError, OrderNotFoundError, ValidationError
from orderdesk.schemas import OrderStatus
from orderdesk.services.order_status import OrderStatusMachine, is_active, next_status


async def _insert_order(store, status: OrderStatus = OrderStatus.PENDING, **overrides) -> str:
    row = {
        "order_number": "ORD-000001",
        "customer_name": "Lena",
        "customer_email": "lena@example.com",
        "order_type": "delivery",
        "payment_method": "cash",
        "payment_status": "pending",
        "status": status.value,
        "subtotal": Decimal("10.00"),
        "delivery_fee": Decimal("2.50"),
        "total": Decimal("12.50"),
    }
    row.update(overrides)
    [created] = await store.insert("orders", [row])
    return created["id"]


@pytest.fixture
def machine(store):
    return OrderStatusMachine(store)


# =============================================================================
# HELPERS
# =============================================================================

def test_next_status():
    assert next_status(OrderStatus.CONFIRMED) == OrderStatus.PREPARING
    assert next_status(OrderStatus.PREPARING) == OrderStatus.READY
    assert next_status(OrderStatus.READY) == OrderStatus.DELIVERED
    assert next_status(OrderStatus.DELIVERED) is None
    assert next_status(OrderStatus.PENDING) is None
    assert next_status(OrderStatus.CANCELLED) is None


def test_is_active():
    assert is_active(OrderStatus.PENDING)
    assert is_active(OrderStatus.READY)
    assert not is_active(OrderStatus.DELIVERED)
    assert not is_active(OrderStatus.CANCELLED)


# =============================================================================
# ACCEPT
# =============================================================================

@pytest.mark.asyncio
async def test_accept_confirms_pending_order(machine, store):
    order_id = await _insert_order(store)

    order = await machine.accept(order_id, "18:30", admin_notes="Extra napkins")

    assert order.status == OrderStatus.CONFIRMED
    assert order.delivery_time == "18:30"
    assert order.admin_notes == "Extra napkins"
    assert order.total == Decimal("12.50")


@pytest.mark.asyncio
async def test_accept_twice_fails(machine, store):
    order_id = await _insert_order(store)
    await machine.accept(order_id, "18:30")

    with pytest.raises(InvalidTransitionError) as exc_info:
        await machine.accept(order_id, "19:00")
    assert exc_info.value.current_status == "confirmed"

    stored = await store.select_one("orders", eq={"id": order_id})
    assert stored["delivery_time"] == "18:30"


@pytest.mark.asyncio
@pytest.mark.parametrize("estimate", ["", "   "])
async def test_accept_requires_estimate(machine, store, estimate):
    order_id = await _insert_order(store)
    writes = store.write_count

    with pytest.raises(ValidationError):
        await machine.accept(order_id, estimate)
    assert store.write_count == writes
    assert (await machine.get_order(order_id)).status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_concurrent_accepts_only_one_wins(machine, store):
    order_id = await _insert_order(store)

    results = await asyncio.gather(
        machine.accept(order_id, "18:30"),
        machine.accept(order_id, "18:45"),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, InvalidTransitionError)]
    assert len(errors) == 1
    assert (await machine.get_order(order_id)).status == OrderStatus.CONFIRMED


@pytest.mark.asyncio
async def test_status_change_between_read_and_write(machine, store, monkeypatch):
    order_id = await _insert_order(store)
    write = store.update

    async def update_after_rival(table, values, *, eq):
        # another admin rejects the order after our status read
        await write("orders", {"status": OrderStatus.CANCELLED.value}, eq={"id": order_id})
        return await write(table, values, eq=eq)

    monkeypatch.setattr(store, "update", update_after_rival)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await machine.accept(order_id, "18:30")

    assert exc_info.value.current_status == "cancelled"
    order = await machine.get_order(order_id)
    assert order.status == OrderStatus.CANCELLED
    assert order.delivery_time is None


# =============================================================================
# REJECT
# =============================================================================

@pytest.mark.asyncio
async def test_reject_cancels_with_reason(machine, store):
    order_id = await _insert_order(store)

    order = await machine.reject(order_id, "Kitchen closing early")

    assert order.status == OrderStatus.CANCELLED
    assert order.rejection_reason == "Kitchen closing early"
    assert order.subtotal == Decimal("10.00")


@pytest.mark.asyncio
async def test_reject_empty_reason_leaves_order_pending(machine, store):
    order_id = await _insert_order(store)
    writes = store.write_count

    with pytest.raises(ValidationError):
        await machine.reject(order_id, "")

    assert (await machine.get_order(order_id)).status == OrderStatus.PENDING
    assert store.write_count == writes


@pytest.mark.asyncio
async def test_reject_blank_reason_checked_before_status(machine, store):
    """A blank reason is a validation error even for an order that cannot be rejected."""
    order_id = await _insert_order(store, status=OrderStatus.DELIVERED)
    with pytest.raises(ValidationError):
        await machine.reject(order_id, "  ")


@pytest.mark.asyncio
async def test_reject_confirmed_order_fails(machine, store):
    order_id = await _insert_order(store)
    await machine.accept(order_id, "18:30")

    with pytest.raises(InvalidTransitionError):
        await machine.reject(order_id, "Too late")
    assert (await machine.get_order(order_id)).status == OrderStatus.CONFIRMED


# =============================================================================
# ADVANCE
# =============================================================================

@pytest.mark.asyncio
async def test_advance_walks_kitchen_flow(machine, store):
    order_id = await _insert_order(store)
    await machine.accept(order_id, "20 min")

    seen = [(await machine.advance(order_id)).status for _ in range(3)]
    assert seen == [OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED]


@pytest.mark.asyncio
async def test_advance_delivered_is_noop(machine, store):
    order_id = await _insert_order(store, status=OrderStatus.DELIVERED)
    writes = store.write_count

    assert await machine.advance(order_id) is None
    assert store.write_count == writes


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.CANCELLED])
async def test_advance_rejected_outside_kitchen_flow(machine, store, status):
    order_id = await _insert_order(store, status=status)
    with pytest.raises(InvalidTransitionError) as exc_info:
        await machine.advance(order_id)
    assert exc_info.value.action == "advance"


@pytest.mark.asyncio
async def test_unknown_order(machine):
    with pytest.raises(OrderNotFoundError):
        await machine.advance("does-not-exist")
    with pytest.raises(OrderNotFoundError):
        await machine.accept("does-not-exist", "18:30")


@pytest.mark.asyncio
async def test_transition_publishes_update(machine, store, feed):
    order_id = await _insert_order(store)
    async with feed.subscribe("orders", eq={"id": order_id}) as events:
        await machine.accept(order_id, "18:30")
        event = events.queue.get_nowait()

    assert event.new["status"] == "confirmed"
    assert event.old["status"] == "pending"
