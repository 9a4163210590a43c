from __future__ import annotations

from datetime import date, datetime

import pytest

from nexaproc.extensions import db
from nexaproc.models import DeliveryOrder, DocumentKind, DocumentSequence, Invoice, SalesOrder
from nexaproc.workflow.sequences import (
    allocate_document_number,
    format_document_number,
    next_sequence,
    parse_sequence,
    roman_month,
)


def test_format_document_number(app):
    assert format_document_number(7, DocumentKind.INVOICE, date(2026, 10, 3)) == "0007/RGI/INV/X/2026"
    assert format_document_number(12, DocumentKind.DELIVERY_ORDER, date(2026, 4, 30)) == "0012/RGI/DO/IV/2026"


def test_company_code_comes_from_config(app):
    app.config["DOCUMENT_COMPANY_CODE"] = "ACME"
    assert format_document_number(1, DocumentKind.INVOICE, date(2026, 1, 1)) == "0001/ACME/INV/I/2026"


def test_roman_months():
    assert [roman_month(date(2026, m, 1)) for m in (1, 4, 9, 12)] == ["I", "IV", "IX", "XII"]


def test_parse_sequence_ignores_foreign_numbers(app):
    assert parse_sequence("0042/RGI/INV/III/2026", DocumentKind.INVOICE) == 42
    assert parse_sequence("0042/RGI/DO/III/2026", DocumentKind.INVOICE) is None
    assert parse_sequence("INV-2026-0042", DocumentKind.INVOICE) is None
    assert parse_sequence(None, DocumentKind.INVOICE) is None


def test_numbering_rejects_unnumbered_kinds(app):
    with pytest.raises(ValueError):
        format_document_number(1, DocumentKind.QUOTATION, date(2026, 1, 1))


def test_first_document_of_the_year_is_0001(app):
    assert allocate_document_number(DocumentKind.INVOICE, date(2026, 2, 14)) == "0001/RGI/INV/II/2026"


def test_sequences_increase_and_restart_each_year(app):
    numbers = [next_sequence(DocumentKind.INVOICE, 2026) for _ in range(3)]
    assert numbers == [1, 2, 3]
    assert next_sequence(DocumentKind.INVOICE, 2027) == 1
    assert next_sequence(DocumentKind.INVOICE, 2026) == 4


def test_invoices_and_delivery_orders_do_not_share_counters(app):
    assert next_sequence(DocumentKind.INVOICE, 2026) == 1
    assert next_sequence(DocumentKind.DELIVERY_ORDER, 2026) == 1
    assert next_sequence(DocumentKind.DELIVERY_ORDER, 2026) == 2
    assert next_sequence(DocumentKind.INVOICE, 2026) == 2


def test_new_counter_is_seeded_from_existing_documents(app):
    orders = [SalesOrder(order_number=f"SO-{n}") for n in range(4)]
    db.session.add_all(orders)
    db.session.flush()
    db.session.add_all([
        Invoice(invoice_number="0005/RGI/INV/III/2026", sales_order_id=orders[0].id, invoice_date=date(2026, 3, 1)),
        # no invoice_date: the creation timestamp decides the year
        Invoice(invoice_number="0008/RGI/INV/IX/2026", sales_order_id=orders[1].id,
                invoice_date=None, created_at=datetime(2026, 9, 2, 10, 0)),
        Invoice(invoice_number="0099/RGI/INV/XII/2025", sales_order_id=orders[2].id, invoice_date=date(2025, 12, 30)),
        Invoice(invoice_number="INV/2026/120", sales_order_id=orders[3].id, invoice_date=date(2026, 5, 5)),
    ])
    db.session.add(DeliveryOrder(delivery_number="0030/RGI/DO/III/2026", delivery_date=date(2026, 3, 9),
                                 sales_order_id=orders[0].id))
    db.session.commit()

    assert next_sequence(DocumentKind.INVOICE, 2026) == 9
    assert next_sequence(DocumentKind.DELIVERY_ORDER, 2026) == 31
    assert next_sequence(DocumentKind.INVOICE, 2025) == 100

    counter = DocumentSequence.query.filter_by(kind="invoices", year=2026).one()
    assert counter.last_value == 9


def test_rolled_back_allocation_gives_the_number_back(app):
    assert next_sequence(DocumentKind.INVOICE, 2026) == 1
    db.session.commit()
    assert next_sequence(DocumentKind.INVOICE, 2026) == 2
    db.session.rollback()
    assert next_sequence(DocumentKind.INVOICE, 2026) == 2
