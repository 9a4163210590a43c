"""
RFQ blueprint package.

This file just exposes the Blueprint object to be imported in nexaproc.__init__.
The actual routes and logic are in routes.py.
"""

from .routes import rfqs_bp  # noqa: F401
