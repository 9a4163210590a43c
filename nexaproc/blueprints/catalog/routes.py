"""
Master data routes (JSON).

- GET/POST  /clients,   GET /clients/<id>
- GET/POST  /suppliers, GET /suppliers/<id>
- GET/POST  /goods,     GET /goods/<id>     (?supplier_id= filter on the list)

Reading is open to every logged-in user; creating needs admin, manager or
superadmin (enforced in the catalog service).
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ...extensions import db
from ...models import Client, Good, Supplier
from ...workflow import create_client, create_good, create_supplier
from ...workflow.payload import get_or_not_found
from .. import int_arg, json_payload


catalog_bp = Blueprint("catalog", __name__)


# ----------------------------------------------------------------------
# Clients
# ----------------------------------------------------------------------
@catalog_bp.route("/clients", methods=["GET"])
@login_required
def list_clients():
    rows = Client.query.order_by(Client.company_name.asc()).all()
    return jsonify([row.to_dict() for row in rows])


@catalog_bp.route("/clients", methods=["POST"])
@login_required
def add_client():
    client = create_client(current_user, json_payload())
    db.session.commit()
    return jsonify(client.to_dict()), 201


@catalog_bp.route("/clients/<int:client_id>", methods=["GET"])
@login_required
def client_detail(client_id: int):
    return jsonify(get_or_not_found(Client, client_id, "Client").to_dict())


# ----------------------------------------------------------------------
# Suppliers
# ----------------------------------------------------------------------
@catalog_bp.route("/suppliers", methods=["GET"])
@login_required
def list_suppliers():
    query = Supplier.query
    status = request.args.get("status")
    if status:
        query = query.filter(Supplier.status == status)
    rows = query.order_by(Supplier.name.asc()).all()
    return jsonify([row.to_dict() for row in rows])


@catalog_bp.route("/suppliers", methods=["POST"])
@login_required
def add_supplier():
    supplier = create_supplier(current_user, json_payload())
    db.session.commit()
    return jsonify(supplier.to_dict()), 201


@catalog_bp.route("/suppliers/<int:supplier_id>", methods=["GET"])
@login_required
def supplier_detail(supplier_id: int):
    return jsonify(get_or_not_found(Supplier, supplier_id, "Supplier").to_dict())


# ----------------------------------------------------------------------
# Goods
# ----------------------------------------------------------------------
@catalog_bp.route("/goods", methods=["GET"])
@login_required
def list_goods():
    query = Good.query
    supplier_id = int_arg("supplier_id")
    if supplier_id is not None:
        query = query.filter(Good.suppliers.any(Supplier.id == supplier_id))
    rows = query.order_by(Good.name.asc()).all()
    return jsonify([row.to_dict() for row in rows])


@catalog_bp.route("/goods", methods=["POST"])
@login_required
def add_good():
    good = create_good(current_user, json_payload())
    db.session.commit()
    return jsonify(good.to_dict()), 201


@catalog_bp.route("/goods/<int:good_id>", methods=["GET"])
@login_required
def good_detail(good_id: int):
    return jsonify(get_or_not_found(Good, good_id, "Good").to_dict())
