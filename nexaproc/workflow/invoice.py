"""
nexaproc/workflow/invoice.py

Invoice derivation and payment.

An invoice is never created by hand. It is derived exactly once from a sales
order when the order is approved to "waiting payment":

- lines are snapshotted from the order (subtotal = qty * price per line)
- subtotal = order total if recorded, else the line sum
- tax = order tax if recorded, else 0
- grand total = order grand total if recorded, else subtotal + tax
- billing company/address come from the linked client, else from the order
- payment_time comes from the quotation, else from the order
- the number is allocated for the derivation date's year, status = overdue

At most one invoice per order: the pre-check returns the existing invoice,
and the unique constraint on invoices.sales_order_id catches the concurrent
case. The losing insert is rolled back to its savepoint (giving its number
back) and the winner is returned.

Status only ever moves overdue -> paid. Payment cascades completion up the
reference chain (see cascade.py).
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..audit import log_action, serialize_model
from ..errors import InvalidTransition, ValidationError
from ..extensions import db
from ..line_items import money, to_decimal
from ..models import DocumentKind, Invoice, InvoiceStatus
from .cascade import cascade_completion
from .payload import optional_text
from .sequences import allocate_document_number

logger = logging.getLogger(__name__)


def find_invoice_for_order(order) -> Invoice | None:
    return Invoice.query.filter_by(sales_order_id=order.id).first()


def _resolve_totals(order, line_sum: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    subtotal = to_decimal(order.total_amount) if order.total_amount is not None else line_sum
    tax = to_decimal(order.tax_amount) if order.tax_amount is not None else Decimal("0")
    grand = to_decimal(order.grand_total) if order.grand_total is not None else subtotal + tax
    return money(subtotal), money(tax), money(grand)


def _resolve_billing(order) -> tuple[str | None, str | None]:
    client = order.client
    if client is None and order.quotation is not None:
        client = order.quotation.client

    company = (client.company_name if client else None) or order.company_name
    address = (client.address if client else None) or order.delivery_address
    return company, address


def _resolve_payment_time(order) -> str | None:
    quotation = order.quotation
    if quotation is not None and quotation.payment_time:
        return quotation.payment_time
    return order.payment_time


def derive_invoice(order, actor=None, today: date | None = None) -> tuple[Invoice, bool]:
    """
    Return (invoice, created).

    Calling it again for the same order returns the existing invoice with
    created=False.
    """
    existing = find_invoice_for_order(order)
    if existing is not None:
        return existing, False

    today = today or date.today()
    items = order.goods
    line_sum = sum((item.subtotal for item in items), Decimal("0"))
    subtotal, tax, grand = _resolve_totals(order, line_sum)
    company_name, billing_address = _resolve_billing(order)
    client = order.client or (order.quotation.client if order.quotation else None)

    savepoint = db.session.begin_nested()
    try:
        invoice = Invoice(
            invoice_number=allocate_document_number(DocumentKind.INVOICE, today),
            sales_order_id=order.id,
            client_id=client.id if client else None,
            company_name=company_name,
            billing_address=billing_address,
            payment_time=_resolve_payment_time(order),
            invoice_date=today,
            total_amount=subtotal,
            tax_amount=tax,
            grand_total=grand,
            status=InvoiceStatus.OVERDUE.value,
            paid_date=None,
            created_by_id=getattr(actor, "id", None),
        )
        invoice.goods = items
        db.session.add(invoice)
        db.session.flush()
        savepoint.commit()
    except IntegrityError:
        savepoint.rollback()
        winner = find_invoice_for_order(order)
        if winner is None:
            raise
        logger.warning("Invoice for sales order %s was derived concurrently; reusing %s",
                       order.id, winner.invoice_number)
        return winner, False

    log_action(invoice, "create", actor=actor, description=f"Auto-created invoice {invoice.invoice_number}")
    logger.info("Invoice %s derived from sales order %s", invoice.invoice_number, order.order_number)
    return invoice, True


def mark_invoice_paid(invoice: Invoice, actor=None, today: date | None = None) -> list:
    """overdue -> paid, then cascade. Returns the records touched by the cascade."""
    if invoice.status != InvoiceStatus.OVERDUE.value:
        raise InvalidTransition(
            "Invoice status can only be updated from overdue to paid", status=invoice.status
        )

    invoice.status = InvoiceStatus.PAID.value
    invoice.paid_date = today or date.today()
    db.session.flush()

    log_action(invoice, "status", actor=actor, description=f"Invoice {invoice.invoice_number} paid")
    logger.info("Invoice %s paid on %s", invoice.invoice_number, invoice.paid_date)
    return cascade_completion(invoice, actor)


def update_invoice(invoice: Invoice, actor, data: dict, today: date | None = None) -> Invoice:
    """Edit payment_time / billing_address; a `status` key may only request overdue -> paid."""
    wants_paid = "status" in data
    if wants_paid and (invoice.status != InvoiceStatus.OVERDUE.value or data.get("status") != InvoiceStatus.PAID.value):
        raise InvalidTransition(
            "Invoice status can only be updated from overdue to paid", status=invoice.status
        )

    changes = {key: optional_text(data, key) for key in ("payment_time", "billing_address") if key in data}
    if not changes and not wants_paid:
        raise ValidationError("No valid fields to update")

    if changes:
        before = serialize_model(invoice)
        for key, value in changes.items():
            setattr(invoice, key, value)
        db.session.flush()
        log_action(
            invoice,
            "update",
            actor=actor,
            description=f"Updated invoice {invoice.invoice_number}",
            before=before,
            after=serialize_model(invoice),
        )

    if wants_paid:
        mark_invoice_paid(invoice, actor, today=today)

    return invoice
