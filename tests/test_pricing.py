"""Tests for the pricing calculator."""

from decimal import Decimal

import pytest

from orderdesk.schemas import CartItem, OrderType
from orderdesk.services.pricing import compute_totals, line_total, to_money


def _line(price: str, quantity: int = 1, product_id: str = "A") -> CartItem:
    return CartItem(
        id=f"line-{product_id}-{price}",
        product_id=product_id,
        name=product_id,
        unit_price=Decimal(price),
        quantity=quantity,
    )


@pytest.mark.parametrize("order_type", [OrderType.PICKUP, OrderType.DELIVERY])
def test_empty_cart_is_all_zero(order_type):
    """No items means no fee, even for delivery."""
    totals = compute_totals([], order_type)
    assert totals.subtotal == Decimal("0.00")
    assert totals.delivery_fee == Decimal("0.00")
    assert totals.total == Decimal("0.00")


def test_small_delivery_order_pays_fee():
    totals = compute_totals([_line("5.00", 2)], OrderType.DELIVERY)
    assert totals.subtotal == Decimal("10.00")
    assert totals.delivery_fee == Decimal("2.50")
    assert totals.total == Decimal("12.50")


def test_large_delivery_order_is_free():
    totals = compute_totals([_line("10.00", 3)], OrderType.DELIVERY)
    assert totals.subtotal == Decimal("30.00")
    assert totals.delivery_fee == Decimal("0.00")
    assert totals.total == Decimal("30.00")


def test_threshold_is_inclusive():
    """A subtotal of exactly 25.00 already gets free delivery."""
    assert compute_totals([_line("25.00")], OrderType.DELIVERY).delivery_fee == Decimal("0.00")
    assert compute_totals([_line("24.99")], OrderType.DELIVERY).delivery_fee == Decimal("2.50")


def test_pickup_never_pays_fee():
    totals = compute_totals([_line("1.00")], OrderType.PICKUP)
    assert totals.delivery_fee == Decimal("0.00")
    assert totals.total == Decimal("1.00")


def test_custom_threshold_and_fee():
    totals = compute_totals(
        [_line("12.00")],
        OrderType.DELIVERY,
        free_delivery_threshold=Decimal("15.00"),
        base_delivery_fee=Decimal("3.90"),
    )
    assert totals.delivery_fee == Decimal("3.90")
    assert totals.total == Decimal("15.90")


def test_subtotal_sums_all_lines():
    items = [_line("8.90", 2, "A"), _line("4.50", 1, "B"), _line("2.00", 3, "C")]
    assert compute_totals(items, OrderType.PICKUP).subtotal == Decimal("28.30")


def test_rounding_is_half_up_on_final_sum():
    """Rounding happens once, on the summed subtotal."""
    items = [_line("0.335", 3)]
    assert compute_totals(items, OrderType.PICKUP).subtotal == Decimal("1.01")

    # Two lines of 0.005 would each round to 0.01, but their sum is 0.01
    items = [_line("0.005", 1, "A"), _line("0.005", 1, "B")]
    assert compute_totals(items, OrderType.PICKUP).subtotal == Decimal("0.01")


def test_total_is_subtotal_plus_fee():
    totals = compute_totals([_line("7.77", 2)], OrderType.DELIVERY)
    assert totals.total == totals.subtotal + totals.delivery_fee


def test_line_total():
    assert line_total(Decimal("8.90"), 3) == Decimal("26.70")
    assert line_total("0.125", 1) == Decimal("0.13")


def test_to_money_accepts_floats():
    assert to_money(12.5) == Decimal("12.50")
    assert to_money(21.400000000000002) == Decimal("21.40")
