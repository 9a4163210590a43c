"""
Orders blueprint package: sales orders and the delivery orders posted against them.

The actual routes and logic are in routes.py.
"""

from .routes import delivery_orders_bp, sales_orders_bp  # noqa: F401
