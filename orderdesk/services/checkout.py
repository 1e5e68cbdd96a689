"""
Order Submission Flow

Turns the current cart and checkout form into a persisted order.

Steps:
    1. Validate (empty cart, contact fields, delivery address), no writes yet
    2. Snapshot prices through the pricing calculator
    3. Insert the order row
    4. Insert its item rows
    5. Clear the cart and return the order

Steps 3 and 4 are two separate writes with no shared transaction. When
step 4 fails the order row already exists; the configured
ItemFailurePolicy decides whether it stays (for manual reconciliation)
or is deleted, and PartialOrderError is raised either way.

Version: 1.0.0
"""

import logging
import re
import time
from typing import Optional

from orderdesk.core.config import ItemFailurePolicy, Settings, get_settings
from orderdesk.core.exceptions import (
    EmptyCartError,
    ExternalServiceError,
    PartialOrderError,
    ValidationError,
)
from orderdesk.schemas import (
    CheckoutForm,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    PaymentMethod,
)
from orderdesk.services.cart import CartStore
from orderdesk.services.pricing import compute_totals, line_total
from orderdesk.services.store.base import BaseDataStore

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[\w\.\+-]+@[\w\.-]+\.\w+$")


def generate_order_number(prefix: str = "ORD", now_ms: Optional[int] = None) -> str:
    """
    Build a human-readable order number from the clock.

    Uses the last six digits of the epoch milliseconds, so two orders
    placed in the same millisecond (or 1000 seconds apart to the
    millisecond) share a number. Rows are keyed by UUID, so this only
    affects how staff refer to orders.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{prefix}-{str(now_ms)[-6:]}"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class OrderSubmissionFlow:
    """
    Validates checkout input and persists the order and its items.

    Attributes:
        store: Data store receiving the order and order_items rows
        settings: Pricing, estimate and compensation configuration
        item_failure_policy: Action taken when item rows fail to persist
    """

    def __init__(
        self,
        store: BaseDataStore,
        settings: Optional[Settings] = None,
        item_failure_policy: Optional[ItemFailurePolicy] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.item_failure_policy = item_failure_policy or self.settings.item_failure_policy

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self, cart: CartStore, form: CheckoutForm, order_type: OrderType) -> None:
        """
        Check submission preconditions in order; the first failure wins.

        Raises:
            EmptyCartError: The cart has no lines
            ValidationError: Contact or delivery fields are missing
        """
        if cart.snapshot.is_empty:
            raise EmptyCartError()

        if not _clean(form.name):
            raise ValidationError("Please fill in all required fields", field="name")
        email = _clean(form.email)
        if not email:
            raise ValidationError("Please fill in all required fields", field="email")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format", field="email")

        if order_type == OrderType.DELIVERY:
            for field in ("street", "city", "postal_code"):
                if not _clean(getattr(form, field)):
                    raise ValidationError("Please fill in delivery address", field=field)

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    async def submit(
        self,
        cart: CartStore,
        form: CheckoutForm,
        order_type: OrderType,
        payment_method: PaymentMethod,
        user_id: Optional[str] = None,
        estimated_time: Optional[int] = None,
    ) -> Order:
        """
        Place an order from the current cart.

        Returns:
            Order: The persisted order including its items

        Raises:
            EmptyCartError, ValidationError: Before any write
            ExternalServiceError: The order row could not be written
            PartialOrderError: The order row was written, its items were not
        """
        self.validate(cart, form, order_type)

        lines = cart.items
        totals = compute_totals(
            lines,
            order_type,
            free_delivery_threshold=self.settings.free_delivery_threshold,
            base_delivery_fee=self.settings.delivery_fee,
        )
        if estimated_time is None:
            estimated_time = (
                self.settings.pickup_estimate_minutes
                if order_type == OrderType.PICKUP
                else self.settings.delivery_estimate_minutes
            )

        is_delivery = order_type == OrderType.DELIVERY
        order_row = {
            "order_number": generate_order_number(self.settings.order_number_prefix),
            "user_id": user_id,
            "customer_name": _clean(form.name),
            "customer_email": _clean(form.email),
            "customer_phone": _clean(form.phone),
            "order_type": order_type.value,
            "payment_method": payment_method.value,
            "payment_status": "pending",
            "status": OrderStatus.PENDING.value,
            "subtotal": totals.subtotal,
            "delivery_fee": totals.delivery_fee,
            "total": totals.total,
            "delivery_address": _clean(form.street) if is_delivery else None,
            "delivery_city": _clean(form.city) if is_delivery else None,
            "delivery_postal_code": _clean(form.postal_code) if is_delivery else None,
            "notes": _clean(form.notes),
            "estimated_time": estimated_time,
        }

        [created] = await self.store.insert("orders", [order_row])
        order = Order.model_validate(created)
        logger.info(
            f"Order {order.order_number} created "
            f"({order.order_type.value}, total={order.total}, lines={len(lines)})"
        )

        item_rows = [
            {
                "order_id": order.id,
                "product_id": line.product_id,
                "product_name": line.name,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "total_price": line_total(line.unit_price, line.quantity),
                "notes": line.notes,
            }
            for line in lines
        ]

        try:
            created_items = await self.store.insert("order_items", item_rows)
        except ExternalServiceError as e:
            compensated = await self._handle_item_failure(order)
            raise PartialOrderError(order.id, order.order_number, compensated=compensated) from e

        order.items = [OrderItem.model_validate(row) for row in created_items]
        cart.clear()
        return order

    async def _handle_item_failure(self, order: Order) -> bool:
        """Apply the compensation policy; return True if the order row was removed."""
        if self.item_failure_policy != ItemFailurePolicy.DELETE_ORDER:
            logger.error(
                f"Order {order.order_number} ({order.id}) has no items; "
                f"left in place for manual reconciliation"
            )
            return False

        try:
            await self.store.delete("orders", eq={"id": order.id})
        except ExternalServiceError:
            logger.exception(
                f"Compensating delete of order {order.order_number} ({order.id}) failed"
            )
            return False

        logger.warning(f"Order {order.order_number} ({order.id}) deleted after item failure")
        return True
