"""
Invoice routes (JSON).

- GET   /invoices             list, optional ?status= and ?sales_order_id=
- POST  /invoices             refused: invoices are derived from sales orders
- GET   /invoices/<id>
- PUT   /invoices/<id>        payment_time / billing_address; status only overdue -> paid
- POST  /invoices/<id>/pay    overdue -> paid, cascades completion
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ...errors import PermissionDenied
from ...extensions import db
from ...models import Invoice
from ...workflow import mark_invoice_paid, update_invoice
from ...workflow.payload import get_or_not_found
from .. import int_arg, json_payload


invoices_bp = Blueprint("invoices", __name__, url_prefix="/invoices")


@invoices_bp.route("", methods=["GET"])
@login_required
def list_invoices():
    query = Invoice.query
    status = request.args.get("status")
    if status:
        query = query.filter(Invoice.status == status)
    sales_order_id = int_arg("sales_order_id")
    if sales_order_id is not None:
        query = query.filter(Invoice.sales_order_id == sales_order_id)
    rows = query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()
    return jsonify([row.to_dict() for row in rows])


@invoices_bp.route("", methods=["POST"])
@login_required
def create():
    raise PermissionDenied("Invoices are generated automatically")


@invoices_bp.route("/<int:invoice_id>", methods=["GET"])
@login_required
def detail(invoice_id: int):
    invoice = get_or_not_found(Invoice, invoice_id, "Invoice")
    return jsonify(invoice.to_dict())


@invoices_bp.route("/<int:invoice_id>", methods=["PUT", "PATCH"])
@login_required
def update(invoice_id: int):
    invoice = get_or_not_found(Invoice, invoice_id, "Invoice")
    update_invoice(invoice, current_user, json_payload())
    db.session.commit()
    return jsonify(invoice.to_dict())


@invoices_bp.route("/<int:invoice_id>/pay", methods=["POST"])
@login_required
def pay(invoice_id: int):
    invoice = get_or_not_found(Invoice, invoice_id, "Invoice")
    touched = mark_invoice_paid(invoice, current_user)
    db.session.commit()
    return jsonify(
        {
            "invoice": invoice.to_dict(),
            "cascade": [{"entity": record.__tablename__, "id": record.id, "status": record.status} for record in touched],
        }
    )
