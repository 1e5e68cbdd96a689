"""
Pricing Calculator

Derives subtotal, delivery fee and total from cart lines. The cart
preview, the checkout page and the snapshot stored with an order all
go through compute_totals, so the three can never disagree.

Rounding:
    Half-up to cents, applied once to the final subtotal (not to
    intermediate sums).

Version: 1.0.0
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from orderdesk.schemas import CartItem, OrderTotals, OrderType

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

DEFAULT_FREE_DELIVERY_THRESHOLD = Decimal("25.00")
DEFAULT_DELIVERY_FEE = Decimal("2.50")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Round a number half-up to cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(unit_price: Number, quantity: int) -> Decimal:
    """Price of one line, e.g. for OrderItem.total_price."""
    return to_money(Decimal(str(unit_price)) * quantity)


def compute_totals(
    items: Iterable[CartItem],
    order_type: OrderType,
    free_delivery_threshold: Number = DEFAULT_FREE_DELIVERY_THRESHOLD,
    base_delivery_fee: Number = DEFAULT_DELIVERY_FEE,
) -> OrderTotals:
    """
    Compute the price breakdown of a set of cart lines.

    Args:
        items: Cart lines (unit_price and quantity are used)
        order_type: Pickup never pays a delivery fee
        free_delivery_threshold: Delivery is free from this subtotal on
        base_delivery_fee: Fee for delivery orders below the threshold

    Returns:
        OrderTotals: subtotal, delivery_fee and total, all rounded to cents

    Example:
        >>> compute_totals([CartItem(..., unit_price=Decimal("5.00"), quantity=2)],
        ...                OrderType.DELIVERY).total
        Decimal('12.50')
    """
    items = list(items)
    if not items:
        return OrderTotals(subtotal=ZERO, delivery_fee=ZERO, total=ZERO)

    raw_subtotal = sum((Decimal(str(i.unit_price)) * i.quantity for i in items), Decimal(0))
    subtotal = to_money(raw_subtotal)

    if order_type == OrderType.DELIVERY and subtotal < to_money(free_delivery_threshold):
        delivery_fee = to_money(base_delivery_fee)
    else:
        delivery_fee = ZERO

    return OrderTotals(
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        total=subtotal + delivery_fee,
    )
