"""
nexaproc/workflow/cascade.py

Completion cascade along the document reference chain.

    Invoice --sales_order--> SalesOrder --quotation--> Quotation --rfq--> Rfq
                               done                     success            success

Paying an invoice walks up the chain once, in that order, and stops at the
first missing reference. Only records reachable from the paid invoice are
touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from ..audit import log_action
from ..models import DocumentKind, QuotationStatus, RfqStatus, SalesOrderStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainLink:
    kind: DocumentKind
    parent_of: Callable[[Any], Any]
    terminal_status: str


COMPLETION_CHAIN: tuple[ChainLink, ...] = (
    ChainLink(DocumentKind.SALES_ORDER, lambda invoice: invoice.sales_order, SalesOrderStatus.DONE.value),
    ChainLink(DocumentKind.QUOTATION, lambda order: order.quotation, QuotationStatus.SUCCESS.value),
    ChainLink(DocumentKind.RFQ, lambda quotation: quotation.rfq, RfqStatus.SUCCESS.value),
)


def walk_up(invoice) -> Iterator[tuple[ChainLink, Any]]:
    """Yield (link, record) for each ancestor of `invoice` that exists."""
    node = invoice
    for link in COMPLETION_CHAIN:
        node = link.parent_of(node)
        if node is None:
            return
        yield link, node


def cascade_completion(invoice, actor=None) -> list:
    """Move every ancestor of a paid invoice to its terminal status. Returns the ancestors."""
    touched = []
    for link, record in walk_up(invoice):
        if record.status != link.terminal_status:
            previous = record.status
            record.status = link.terminal_status
            log_action(
                record,
                "status",
                actor=actor,
                description=(
                    f"Status {previous} -> {link.terminal_status} "
                    f"(invoice {invoice.invoice_number} paid)"
                ),
            )
            logger.info(
                "Cascade %s #%s: %s -> %s", link.kind.value, record.id, previous, link.terminal_status
            )
        touched.append(record)
    return touched
