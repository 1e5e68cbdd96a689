"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from orderdesk.core.config import get_settings, Settings, EnvironmentMode
from orderdesk.core.exceptions import (
    OrderDeskError,
    ValidationError,
    EmptyCartError,
    InvalidTransitionError,
    PartialOrderError,
    ExternalServiceError,
    OrderNotFoundError,
    AuthenticationError,
    AuthorizationError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "OrderDeskError",
    "ValidationError",
    "EmptyCartError",
    "InvalidTransitionError",
    "PartialOrderError",
    "ExternalServiceError",
    "OrderNotFoundError",
    "AuthenticationError",
    "AuthorizationError",
]
