"""
nexaproc/workflow/sequences.py

Document numbering for invoices and delivery orders.

Format:
    NNNN/<company>/<code>/<roman month>/<year>      e.g. 0007/RGI/INV/X/2026

Rules:
- The sequence restarts at 0001 every calendar year, per document kind.
  Invoices and delivery orders never share a counter.
- The next value comes from a locked counter row (document_sequences), not
  from scanning for max(number) + 1, so concurrent requests cannot collide.
- The first time a (kind, year) counter is needed it is seeded from the
  documents already on file for that year, so numbers issued before the
  counter table existed are not reused. Numbers that do not match the
  scheme (legacy or hand-typed) are ignored while seeding.
- Lookup failures propagate to the caller; nothing is retried here except
  the counter-creation race, which is resolved with a savepoint.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DeliveryOrder, DocumentKind, DocumentSequence, Invoice

logger = logging.getLogger(__name__)

ROMAN_MONTHS = ("I", "II", "III", "IV", "V", "VI", "VII", "VIII", "IX", "X", "XI", "XII")

DEFAULT_COMPANY_CODE = "RGI"


@dataclass(frozen=True)
class NumberingScheme:
    kind: DocumentKind
    code: str
    model: type
    number_attr: str
    # First non-null attribute decides which year a stored document belongs to.
    date_attrs: tuple[str, ...]


SCHEMES = {
    DocumentKind.INVOICE: NumberingScheme(
        kind=DocumentKind.INVOICE,
        code="INV",
        model=Invoice,
        number_attr="invoice_number",
        date_attrs=("invoice_date", "created_at"),
    ),
    DocumentKind.DELIVERY_ORDER: NumberingScheme(
        kind=DocumentKind.DELIVERY_ORDER,
        code="DO",
        model=DeliveryOrder,
        number_attr="delivery_number",
        date_attrs=("delivery_date",),
    ),
}


def _scheme(kind: DocumentKind) -> NumberingScheme:
    try:
        return SCHEMES[DocumentKind(kind)]
    except (KeyError, ValueError):
        raise ValueError(f"No numbering scheme for document kind {kind!r}") from None


def company_code() -> str:
    return current_app.config.get("DOCUMENT_COMPANY_CODE") or DEFAULT_COMPANY_CODE


def roman_month(on_date: date) -> str:
    return ROMAN_MONTHS[on_date.month - 1]


# ---------------------------------------------------------------------
# Formatting / parsing (pure)
# ---------------------------------------------------------------------
def format_document_number(sequence: int, kind: DocumentKind, on_date: date, company: str | None = None) -> str:
    if sequence < 1:
        raise ValueError("Document sequence must be positive")
    scheme = _scheme(kind)
    company = company or company_code()
    return f"{sequence:04d}/{company}/{scheme.code}/{roman_month(on_date)}/{on_date.year}"


def number_pattern(kind: DocumentKind, company: str | None = None) -> re.Pattern:
    scheme = _scheme(kind)
    company = company or company_code()
    return re.compile(rf"^(\d{{4,}})/{re.escape(company)}/{scheme.code}/[IVXLCDM]+/(\d{{4}})$")


def parse_sequence(number: str | None, kind: DocumentKind, company: str | None = None) -> int | None:
    """Return the numeric sequence of a document number, or None if it does not match the scheme."""
    if not number:
        return None
    match = number_pattern(kind, company).match(number.strip())
    if not match:
        return None
    return int(match.group(1))


# ---------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------
def _effective_year(row, date_count: int) -> int | None:
    for value in row[1:1 + date_count]:
        if value is not None:
            return value.year
    return None


def scan_max_sequence(kind: DocumentKind, year: int) -> int:
    """Highest sequence already used by stored documents of `kind` dated in `year` (0 if none)."""
    scheme = _scheme(kind)
    model = scheme.model
    columns = [getattr(model, scheme.number_attr)] + [getattr(model, attr) for attr in scheme.date_attrs]

    pattern = number_pattern(kind)
    highest = 0
    for row in db.session.execute(select(*columns)).all():
        if _effective_year(row, len(scheme.date_attrs)) != year:
            continue
        match = pattern.match((row[0] or "").strip())
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def _locked_counter(kind: DocumentKind, year: int) -> DocumentSequence | None:
    return db.session.execute(
        select(DocumentSequence)
        .where(DocumentSequence.kind == kind.value, DocumentSequence.year == year)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def next_sequence(kind: DocumentKind, year: int) -> int:
    """
    Increment and return the (kind, year) counter.

    The increment becomes visible when the caller commits; a rollback gives
    the number back.
    """
    kind = DocumentKind(kind)
    _scheme(kind)

    counter = _locked_counter(kind, year)
    if counter is None:
        seed = scan_max_sequence(kind, year)
        savepoint = db.session.begin_nested()
        try:
            counter = DocumentSequence(kind=kind.value, year=year, last_value=seed)
            db.session.add(counter)
            db.session.flush()
            savepoint.commit()
        except IntegrityError:
            # Another request created the counter first.
            savepoint.rollback()
            logger.debug("Sequence counter race for %s/%s, re-reading", kind.value, year)
            counter = _locked_counter(kind, year)
            if counter is None:
                raise

    counter.last_value += 1
    db.session.flush()
    logger.debug("Allocated %s sequence %s for %s", kind.value, counter.last_value, year)
    return counter.last_value


def allocate_document_number(kind: DocumentKind, on_date: date) -> str:
    """Next document number for `kind`, with month and year taken from `on_date`."""
    sequence = next_sequence(kind, on_date.year)
    return format_document_number(sequence, kind, on_date)
