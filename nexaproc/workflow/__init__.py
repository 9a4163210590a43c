"""
Workflow services: the document lifecycle rules.

Every service takes the acting user explicitly, validates before it mutates,
and only flushes. The calling route owns the commit.
"""

from .catalog import create_client, create_good, create_supplier  # noqa: F401
from .invoice import derive_invoice, mark_invoice_paid, update_invoice  # noqa: F401
from .quotation import create_quotation, plan_quotation_update, update_quotation  # noqa: F401
from .rfq import create_rfq, freeze_rfq, update_rfq  # noqa: F401
from .sales_order import (  # noqa: F401
    approve_sales_order,
    create_sales_order,
    fulfillment,
    post_delivery_order,
    update_sales_order,
)
