"""
nexaproc/workflow/sales_order.py

Sales order fulfillment.

    ongoing --(partial DO)--> on-delivery --(DO completes every line)--> waiting approval
    waiting approval --(manager approval, derives the invoice)--> waiting payment
    waiting payment --(invoice paid, cascade only)--> done

Shipped quantities are recomputed from the delivery orders after every
posting (ledger.py); they are never stored on the order.

Rules:
- Only a manager/superadmin may move an order to "waiting payment", and only
  from "waiting approval". Every other status is set by the system.
- A delivery order may not ship more than the remaining balance of a line.
- Delivery orders are immutable: there is no update or delete.
- Header fields stay editable until the order is done; goods and money only
  while the order is still ongoing.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal

from ..audit import log_action, serialize_model
from ..errors import InvalidTransition, ValidationError
from ..extensions import db
from ..line_items import money, parse_decimal, parse_line_items
from ..models import (
    Client,
    DeliveryOrder,
    DocumentKind,
    Quotation,
    QuotationStatus,
    SalesOrder,
    SalesOrderStatus,
)
from ..notifications import notify, privileged_emails
from ..security import require_privileged
from .catalog import resolve_line_items
from .invoice import derive_invoice
from .ledger import LedgerSummary, line_key, remaining_quantities, summarize
from .payload import (
    get_or_not_found,
    optional_text,
    parse_date,
    parse_optional_id,
    required_text,
)
from .sequences import allocate_document_number

logger = logging.getLogger(__name__)

HEADER_FIELDS = ("company_name", "delivery_address", "payment_time", "notes")
MONEY_FIELDS = ("total_amount", "tax_amount", "grand_total")
DELIVERABLE_STATUSES = frozenset({SalesOrderStatus.ONGOING.value, SalesOrderStatus.ON_DELIVERY.value})


def _optional_money(data: dict, key: str) -> Decimal | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    return money(parse_decimal(value, field_name=key))


def fulfillment(order: SalesOrder) -> LedgerSummary:
    return summarize(order.goods, [delivery.goods for delivery in order.delivery_orders])


# ---------------------------------------------------------------------
# Create / update
# ---------------------------------------------------------------------
def create_sales_order(actor, data: dict) -> SalesOrder:
    order_number = required_text(data, "order_number")
    if SalesOrder.query.filter_by(order_number=order_number).first() is not None:
        raise ValidationError(f"Sales order {order_number} already exists", field="order_number")

    quotation_id = parse_optional_id(data.get("quotation_id"), field_name="quotation_id")
    quotation = get_or_not_found(Quotation, quotation_id, "Quotation") if quotation_id else None
    if quotation is not None and quotation.status != QuotationStatus.PROCESS.value:
        raise InvalidTransition(
            "Sales orders can only be created from quotations in process", status=quotation.status
        )

    client_id = parse_optional_id(data.get("client_id"), field_name="client_id")
    if client_id:
        get_or_not_found(Client, client_id, "Client")
    elif quotation is not None:
        client_id = quotation.client_id

    if "goods" in data:
        goods = resolve_line_items(parse_line_items(data.get("goods")))
        totals = {key: _optional_money(data, key) for key in MONEY_FIELDS}
    elif quotation is not None:
        goods = quotation.goods
        totals = {key: getattr(quotation, key) for key in MONEY_FIELDS}
    else:
        goods = []
        totals = {key: None for key in MONEY_FIELDS}

    order_date = parse_date(data.get("order_date"), field_name="order_date")

    order = SalesOrder(
        order_number=order_number,
        quotation_id=quotation.id if quotation else None,
        client_id=client_id,
        company_name=optional_text(data, "company_name") or (quotation.company_name if quotation else None),
        delivery_address=optional_text(data, "delivery_address"),
        payment_time=optional_text(data, "payment_time") or (quotation.payment_time if quotation else None),
        order_date=order_date,
        notes=optional_text(data, "notes"),
        status=SalesOrderStatus.ONGOING.value,
        created_by_id=getattr(actor, "id", None),
        **totals,
    )
    order.goods = goods
    db.session.add(order)
    db.session.flush()

    log_action(order, "create", actor=actor, description=f"Created sales order {order.order_number}")
    logger.info("Sales order %s created", order.order_number)
    return order


def _check_status_request(order: SalesOrder, actor, requested: str) -> None:
    if requested == SalesOrderStatus.WAITING_PAYMENT.value:
        require_privileged(actor, "Only managers can update status to waiting payment")
        if order.status != SalesOrderStatus.WAITING_APPROVAL.value:
            raise InvalidTransition(
                "Only orders waiting approval can move to waiting payment", status=order.status
            )
        return

    try:
        SalesOrderStatus(requested)
    except ValueError:
        raise ValidationError(f"Unknown sales order status {requested!r}", status=requested) from None
    raise InvalidTransition(
        f"Sales order status {requested} is set automatically", status=order.status, requested=requested
    )


def update_sales_order(order: SalesOrder, actor, data: dict) -> SalesOrder:
    requested = optional_text(data, "status")
    is_status_change = bool(requested) and requested != order.status
    if is_status_change:
        _check_status_request(order, actor, requested)

    if order.status == SalesOrderStatus.DONE.value:
        raise InvalidTransition("Completed sales orders cannot be edited", status=order.status)

    touches_lines = "goods" in data or any(key in data for key in MONEY_FIELDS)
    if touches_lines and order.status != SalesOrderStatus.ONGOING.value:
        raise InvalidTransition(
            "Goods and amounts can only be edited while the order is ongoing", status=order.status
        )

    # Validate everything before touching the row.
    header = {key: optional_text(data, key) for key in HEADER_FIELDS if key in data}
    if "order_date" in data:
        header["order_date"] = parse_date(data.get("order_date"), field_name="order_date")
    goods = resolve_line_items(parse_line_items(data["goods"])) if "goods" in data else None
    amounts = {key: _optional_money(data, key) for key in MONEY_FIELDS if key in data}

    if header or goods is not None or amounts:
        before = serialize_model(order)
        for key, value in {**header, **amounts}.items():
            setattr(order, key, value)
        if goods is not None:
            order.goods = goods
        order.last_edited_by_id = getattr(actor, "id", None)
        db.session.flush()
        log_action(
            order,
            "update",
            actor=actor,
            description=f"Updated sales order {order.order_number}",
            before=before,
            after=serialize_model(order),
        )

    if is_status_change:
        approve_sales_order(order, actor)

    return order


# ---------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------
def approve_sales_order(order: SalesOrder, actor):
    """waiting approval -> waiting payment; derives the invoice. Returns the invoice."""
    require_privileged(actor, "Only managers can update status to waiting payment")
    if order.status != SalesOrderStatus.WAITING_APPROVAL.value:
        raise InvalidTransition(
            "Only orders waiting approval can move to waiting payment", status=order.status
        )

    order.status = SalesOrderStatus.WAITING_PAYMENT.value
    order.last_edited_by_id = getattr(actor, "id", None)
    db.session.flush()
    log_action(order, "status", actor=actor, description="Updated sales order status to waiting payment")
    logger.info("Sales order %s approved (waiting payment)", order.order_number)

    invoice, _created = derive_invoice(order, actor)
    return invoice


def _match_delivery_lines(order: SalesOrder, lines):
    """Map requested delivery lines onto order lines and check remaining balances."""
    order_items = order.goods
    templates = {}
    for item in order_items:
        templates.setdefault(line_key(item), item)

    remaining = remaining_quantities(order_items, [delivery.goods for delivery in order.delivery_orders])
    requested: dict = defaultdict(lambda: Decimal("0"))
    shipped = []

    for line in lines:
        key = line_key(line)
        if key not in templates:
            raise ValidationError(f"{line.label} is not on sales order {order.order_number}")
        requested[key] += line.qty
        if requested[key] > remaining[key]:
            raise ValidationError(
                f"Delivery quantity for {line.label} exceeds the remaining quantity",
                requested=str(requested[key]),
                remaining=str(remaining[key]),
            )
        template = templates[key]
        shipped.append(template.with_qty(line.qty))
    return shipped


def post_delivery_order(actor, data: dict) -> DeliveryOrder:
    """Record a shipment and advance the order to on-delivery or waiting approval."""
    sales_order_id = parse_optional_id(data.get("sales_order_id"), field_name="sales_order_id")
    if sales_order_id is None:
        raise ValidationError("sales_order_id is required", field="sales_order_id")
    delivery_date = parse_date(data.get("delivery_date"), field_name="delivery_date")
    if delivery_date is None:
        raise ValidationError("delivery_date is required", field="delivery_date")
    order = get_or_not_found(SalesOrder, sales_order_id, "Sales order")

    lines = resolve_line_items(parse_line_items(data.get("goods")))
    if any(line.qty < 0 for line in lines):
        raise ValidationError("Delivery quantities must be positive")
    lines = [line for line in lines if line.qty > 0]
    if not lines:
        raise ValidationError("Delivery goods are required")

    if order.status not in DELIVERABLE_STATUSES:
        raise InvalidTransition(
            f"Cannot post deliveries to a sales order in {order.status}", status=order.status
        )

    shipped = _match_delivery_lines(order, lines)

    delivery = DeliveryOrder(
        delivery_number=allocate_document_number(DocumentKind.DELIVERY_ORDER, delivery_date),
        delivery_date=delivery_date,
        sales_order=order,
        company_name=optional_text(data, "company_name") or order.company_name,
        created_by_id=getattr(actor, "id", None),
    )
    delivery.goods = shipped
    db.session.add(delivery)
    db.session.flush()
    log_action(delivery, "create", actor=actor, description=f"Created delivery order {delivery.delivery_number}")

    summary = fulfillment(order)
    previous = order.status
    order.status = (
        SalesOrderStatus.WAITING_APPROVAL.value if summary.fully_shipped else SalesOrderStatus.ON_DELIVERY.value
    )
    db.session.flush()

    if order.status != previous:
        log_action(order, "status", actor=actor, description=f"Updated sales order status to {order.status}")
        logger.info("Sales order %s: %s -> %s", order.order_number, previous, order.status)

    if summary.fully_shipped:
        notify(
            privileged_emails(),
            f"Sales order {order.order_number} is waiting approval",
            {
                "event": "sales_order_waiting_approval",
                "sales_order_id": order.id,
                "order_number": order.order_number,
                "delivery_number": delivery.delivery_number,
                "fulfillment": summary.to_dict(),
            },
        )

    return delivery
