"""
Order Status State Machine

Admin-side transitions of an order's status:

    pending ──accept──▶ confirmed ──▶ preparing ──▶ ready ──▶ delivered
       │                        (advance)    (advance)   (advance)
       └──reject──▶ cancelled

Each transition is one conditional update on the orders table: the row
changes only if it still has the status the transition starts from.
Prices are never touched.

Version: 1.0.0
"""

import logging
from typing import Optional

from orderdesk.core.exceptions import (
    InvalidTransitionError,
    OrderNotFoundError,
    ValidationError,
)
from orderdesk.schemas import Order, OrderStatus
from orderdesk.services.store.base import BaseDataStore

logger = logging.getLogger(__name__)

STATUS_FLOW = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.DELIVERED,
)

ACTIVE_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
)

COMPLETED_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


def next_status(status: OrderStatus) -> Optional[OrderStatus]:
    """Next status reachable with advance(), or None."""
    if status in (OrderStatus.PENDING, OrderStatus.CANCELLED):
        return None
    index = STATUS_FLOW.index(status)
    if index < len(STATUS_FLOW) - 1:
        return STATUS_FLOW[index + 1]
    return None


def is_active(status: OrderStatus) -> bool:
    return status in ACTIVE_STATUSES


class OrderStatusMachine:
    """Enforces legal status transitions and their side data."""

    def __init__(self, store: BaseDataStore):
        self.store = store

    async def get_order(self, order_id: str) -> Order:
        row = await self.store.select_one("orders", eq={"id": order_id})
        if row is None:
            raise OrderNotFoundError(order_id)
        return Order.model_validate(row)

    async def _transition(
        self,
        order: Order,
        action: str,
        expected: OrderStatus,
        values: dict,
    ) -> Order:
        updated = await self.store.update(
            "orders",
            values,
            eq={"id": order.id, "status": expected.value},
        )
        if not updated:
            # Status moved between our read and the update
            current = await self.get_order(order.id)
            raise InvalidTransitionError(order.id, current.status.value, action)

        result = Order.model_validate(updated[0])
        logger.info(
            f"Order {result.order_number}: {expected.value} → {result.status.value} ({action})"
        )
        return result

    async def accept(
        self,
        order_id: str,
        delivery_time_estimate: str,
        admin_notes: Optional[str] = None,
    ) -> Order:
        """
        Confirm a pending order with a delivery/pickup time estimate.

        Raises:
            ValidationError: Empty estimate
            InvalidTransitionError: Order is not pending
            OrderNotFoundError: Unknown order id
        """
        estimate = (delivery_time_estimate or "").strip()
        if not estimate:
            raise ValidationError("Delivery time estimate is required", field="delivery_time")

        order = await self.get_order(order_id)
        if order.status != OrderStatus.PENDING:
            raise InvalidTransitionError(order_id, order.status.value, "accept")

        notes = (admin_notes or "").strip() or None
        return await self._transition(
            order,
            "accept",
            OrderStatus.PENDING,
            {
                "status": OrderStatus.CONFIRMED.value,
                "delivery_time": estimate,
                "admin_notes": notes,
            },
        )

    async def reject(self, order_id: str, rejection_reason: str) -> Order:
        """
        Cancel a pending order with a reason shown to the customer.

        Raises:
            ValidationError: Empty reason (checked before the status)
            InvalidTransitionError: Order is not pending
            OrderNotFoundError: Unknown order id
        """
        reason = (rejection_reason or "").strip()
        if not reason:
            raise ValidationError("Rejection reason is required", field="rejection_reason")

        order = await self.get_order(order_id)
        if order.status != OrderStatus.PENDING:
            raise InvalidTransitionError(order_id, order.status.value, "reject")

        return await self._transition(
            order,
            "reject",
            OrderStatus.PENDING,
            {"status": OrderStatus.CANCELLED.value, "rejection_reason": reason},
        )

    async def advance(self, order_id: str) -> Optional[Order]:
        """
        Move a confirmed order one step along the kitchen flow.

        Returns:
            The updated order, or None if it is already delivered

        Raises:
            InvalidTransitionError: Order is pending or cancelled
            OrderNotFoundError: Unknown order id
        """
        order = await self.get_order(order_id)

        if order.status in (OrderStatus.PENDING, OrderStatus.CANCELLED):
            raise InvalidTransitionError(order_id, order.status.value, "advance")

        target = next_status(order.status)
        if target is None:
            logger.debug(f"Order {order.order_number} already delivered; nothing to advance")
            return None

        return await self._transition(order, "advance", order.status, {"status": target.value})
