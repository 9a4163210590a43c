"""
Catalog blueprint package: clients, suppliers and goods master data.

The actual routes and logic are in routes.py.
"""

from .routes import catalog_bp  # noqa: F401
