"""
RFQ routes (JSON).

- GET   /rfqs            list, optional ?status=
- POST  /rfqs            create (status open)
- GET   /rfqs/<id>
- PUT   /rfqs/<id>       edit while open (requester or admin/manager/superadmin)

There is no status endpoint: an RFQ moves to process when a quotation is
created against it, and to success when the derived invoice is paid.
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ...extensions import db
from ...models import Rfq
from ...workflow import create_rfq, update_rfq
from ...workflow.payload import get_or_not_found
from .. import json_payload


rfqs_bp = Blueprint("rfqs", __name__, url_prefix="/rfqs")


@rfqs_bp.route("", methods=["GET"])
@login_required
def list_rfqs():
    query = Rfq.query
    status = request.args.get("status")
    if status:
        query = query.filter(Rfq.status == status)
    rows = query.order_by(Rfq.created_at.desc(), Rfq.id.desc()).all()
    return jsonify([row.to_dict() for row in rows])


@rfqs_bp.route("", methods=["POST"])
@login_required
def create():
    rfq = create_rfq(current_user, json_payload())
    db.session.commit()
    return jsonify(rfq.to_dict()), 201


@rfqs_bp.route("/<int:rfq_id>", methods=["GET"])
@login_required
def detail(rfq_id: int):
    rfq = get_or_not_found(Rfq, rfq_id, "RFQ")
    return jsonify(rfq.to_dict())


@rfqs_bp.route("/<int:rfq_id>", methods=["PUT", "PATCH"])
@login_required
def update(rfq_id: int):
    rfq = get_or_not_found(Rfq, rfq_id, "RFQ")
    update_rfq(rfq, current_user, json_payload())
    db.session.commit()
    return jsonify(rfq.to_dict())
