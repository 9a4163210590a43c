"""
Sales order and delivery order routes (JSON).

Sales orders:
- GET   /sales-orders                 list, optional ?status=
- POST  /sales-orders                 create (status ongoing)
- GET   /sales-orders/<id>            includes the fulfillment ledger
- PUT   /sales-orders/<id>            header/goods edits; status only -> waiting payment
- POST  /sales-orders/<id>/approve    waiting approval -> waiting payment (derives the invoice)

Delivery orders (immutable once posted: no update or delete):
- GET   /delivery-orders              list, optional ?sales_order_id=
- POST  /delivery-orders              post a shipment
- GET   /delivery-orders/<id>
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ...extensions import db
from ...models import DeliveryOrder, SalesOrder
from ...security import privileged_required
from ...workflow import (
    approve_sales_order,
    create_sales_order,
    fulfillment,
    post_delivery_order,
    update_sales_order,
)
from ...workflow.invoice import find_invoice_for_order
from ...workflow.payload import get_or_not_found
from .. import int_arg, json_payload


sales_orders_bp = Blueprint("sales_orders", __name__, url_prefix="/sales-orders")
delivery_orders_bp = Blueprint("delivery_orders", __name__, url_prefix="/delivery-orders")


def _order_payload(order: SalesOrder) -> dict:
    invoice = find_invoice_for_order(order)
    return dict(
        order.to_dict(),
        fulfillment=fulfillment(order).to_dict(),
        invoice_id=invoice.id if invoice else None,
    )


# ============================================================
# SALES ORDERS
# ============================================================

@sales_orders_bp.route("", methods=["GET"])
@login_required
def list_sales_orders():
    query = SalesOrder.query
    status = request.args.get("status")
    if status:
        query = query.filter(SalesOrder.status == status)
    rows = query.order_by(SalesOrder.created_at.desc(), SalesOrder.id.desc()).all()
    return jsonify([row.to_dict() for row in rows])


@sales_orders_bp.route("", methods=["POST"])
@login_required
def create():
    order = create_sales_order(current_user, json_payload())
    db.session.commit()
    return jsonify(_order_payload(order)), 201


@sales_orders_bp.route("/<int:order_id>", methods=["GET"])
@login_required
def detail(order_id: int):
    order = get_or_not_found(SalesOrder, order_id, "Sales order")
    return jsonify(_order_payload(order))


@sales_orders_bp.route("/<int:order_id>", methods=["PUT", "PATCH"])
@login_required
def update(order_id: int):
    order = get_or_not_found(SalesOrder, order_id, "Sales order")
    update_sales_order(order, current_user, json_payload())
    db.session.commit()
    return jsonify(_order_payload(order))


@sales_orders_bp.route("/<int:order_id>/approve", methods=["POST"])
@login_required
@privileged_required
def approve(order_id: int):
    order = get_or_not_found(SalesOrder, order_id, "Sales order")
    invoice = approve_sales_order(order, current_user)
    db.session.commit()
    return jsonify({"sales_order": order.to_dict(), "invoice": invoice.to_dict()})


# ============================================================
# DELIVERY ORDERS
# ============================================================

@delivery_orders_bp.route("", methods=["GET"])
@login_required
def list_delivery_orders():
    query = DeliveryOrder.query
    sales_order_id = int_arg("sales_order_id")
    if sales_order_id is not None:
        query = query.filter(DeliveryOrder.sales_order_id == sales_order_id)
    rows = query.order_by(DeliveryOrder.delivery_date.desc(), DeliveryOrder.id.desc()).all()
    return jsonify([row.to_dict() for row in rows])


@delivery_orders_bp.route("", methods=["POST"])
@login_required
def create_delivery():
    delivery = post_delivery_order(current_user, json_payload())
    db.session.commit()
    return jsonify(
        dict(
            delivery.to_dict(),
            sales_order_status=delivery.sales_order.status,
            fulfillment=fulfillment(delivery.sales_order).to_dict(),
        )
    ), 201


@delivery_orders_bp.route("/<int:delivery_id>", methods=["GET"])
@login_required
def delivery_detail(delivery_id: int):
    delivery = get_or_not_found(DeliveryOrder, delivery_id, "Delivery order")
    return jsonify(delivery.to_dict())
