"""
Error Taxonomy

Every failure the ordering core reports derives from OrderDeskError.
The HTTP layer maps each class to a status code; services raise them
and never return error sentinels.

Version: 1.0.0
"""

from typing import Optional


class OrderDeskError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrderDeskError):
    """Missing or invalid required input."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class EmptyCartError(OrderDeskError):
    """Checkout attempted with no items in the cart."""

    def __init__(self, message: str = "Your cart is empty"):
        super().__init__(message)


class InvalidTransitionError(OrderDeskError):
    """Status change attempted from the wrong state."""

    def __init__(self, order_id: str, current_status: Optional[str], action: str):
        super().__init__(
            f"Cannot {action} order {order_id} while it is {current_status or 'unknown'}"
        )
        self.order_id = order_id
        self.current_status = current_status
        self.action = action


class PartialOrderError(OrderDeskError):
    """
    The order row was written but its item rows were not.

    Attributes:
        order_id: Id of the order row that was created
        order_number: Human-readable number of that order
        compensated: True if the order row was deleted afterwards
    """

    def __init__(self, order_id: str, order_number: str, compensated: bool = False):
        state = "was removed" if compensated else "needs manual reconciliation"
        super().__init__(f"Order {order_number} was created without items and {state}")
        self.order_id = order_id
        self.order_number = order_number
        self.compensated = compensated


class ExternalServiceError(OrderDeskError):
    """A data store, auth or realtime collaborator failed."""

    def __init__(self, message: str, service: str = "store"):
        super().__init__(message)
        self.service = service


class OrderNotFoundError(OrderDeskError):
    """No order exists with the given id."""

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class AuthenticationError(OrderDeskError):
    """Credentials or session token were rejected."""


class AuthorizationError(OrderDeskError):
    """The session is valid but lacks the required role."""
