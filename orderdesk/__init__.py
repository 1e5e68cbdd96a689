"""
                OrderDesk

Ordering backend and admin back-office for a single restaurant:
cart, checkout, order lifecycle and realtime order views on top of
pluggable data store, auth and change-feed services.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
