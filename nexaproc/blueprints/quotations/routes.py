"""
Quotation routes (JSON).

- GET   /quotations           list, optional ?status= and ?rfq_id=
- POST  /quotations           create (status waiting, freezes the RFQ)
- GET   /quotations/<id>
- PUT   /quotations/<id>      content edit and/or status change

Status rules are enforced in workflow/quotation.py; this module only
translates HTTP to service calls.
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ...extensions import db
from ...models import Quotation
from ...workflow import create_quotation, update_quotation
from ...workflow.payload import get_or_not_found
from .. import int_arg, json_payload


quotations_bp = Blueprint("quotations", __name__, url_prefix="/quotations")


@quotations_bp.route("", methods=["GET"])
@login_required
def list_quotations():
    query = Quotation.query
    status = request.args.get("status")
    if status:
        query = query.filter(Quotation.status == status)
    rfq_id = int_arg("rfq_id")
    if rfq_id is not None:
        query = query.filter(Quotation.rfq_id == rfq_id)
    rows = query.order_by(Quotation.created_at.desc(), Quotation.id.desc()).all()
    return jsonify([row.to_dict() for row in rows])


@quotations_bp.route("", methods=["POST"])
@login_required
def create():
    quotation = create_quotation(current_user, json_payload())
    db.session.commit()
    return jsonify(quotation.to_dict()), 201


@quotations_bp.route("/<int:quotation_id>", methods=["GET"])
@login_required
def detail(quotation_id: int):
    quotation = get_or_not_found(Quotation, quotation_id, "Quotation")
    return jsonify(quotation.to_dict())


@quotations_bp.route("/<int:quotation_id>", methods=["PUT", "PATCH"])
@login_required
def update(quotation_id: int):
    quotation = get_or_not_found(Quotation, quotation_id, "Quotation")
    update_quotation(quotation, current_user, json_payload())
    db.session.commit()
    return jsonify(quotation.to_dict())
