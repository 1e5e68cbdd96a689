"""
Ordering services.

Collaborators (data store, change feed, auth, client storage) live in
subpackages with get_*/reset_* factories; the modules here hold the
ordering core built on top of them.
"""

from orderdesk.services.cart import CartStore
from orderdesk.services.catalog import MenuCatalog
from orderdesk.services.checkout import OrderSubmissionFlow, generate_order_number
from orderdesk.services.order_status import OrderStatusMachine, is_active, next_status
from orderdesk.services.preferences import LanguagePreferences
from orderdesk.services.pricing import compute_totals, line_total
from orderdesk.services.realtime_sync import OrderScope, OrderView, RealtimeSyncAdapter
from orderdesk.services.reports import ReportService

__all__ = [
    "CartStore",
    "MenuCatalog",
    "OrderSubmissionFlow",
    "generate_order_number",
    "OrderStatusMachine",
    "is_active",
    "next_status",
    "LanguagePreferences",
    "compute_totals",
    "line_total",
    "OrderScope",
    "OrderView",
    "RealtimeSyncAdapter",
    "ReportService",
]
