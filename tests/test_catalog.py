from __future__ import annotations

from decimal import Decimal

import pytest

from nexaproc.errors import NotFound, PermissionDenied, ValidationError
from nexaproc.extensions import db
from nexaproc.models import AuditLog, Good
from nexaproc.workflow import create_client, create_good, create_supplier


def test_editors_create_goods_linked_to_suppliers(users):
    supplier = create_supplier(users.admin, {"name": "CV Baja", "payment_terms": "30 days"})
    good = create_good(users.manager, {
        "sku": "FLG-4", "name": "Flange 4in", "price": "12,5", "supplier_ids": [supplier.id, supplier.id],
    })
    db.session.commit()

    assert good.unit == "pcs"
    assert good.price == Decimal("12.50")
    assert good.to_dict()["supplier_ids"] == [supplier.id]
    assert supplier.goods == [good]
    assert AuditLog.query.filter_by(entity_type="goods", action="create").count() == 1


def test_staff_cannot_manage_master_data(users):
    with pytest.raises(PermissionDenied):
        create_client(users.staff, {"company_name": "PT Baru"})
    with pytest.raises(PermissionDenied):
        create_good(users.staff, {"sku": "X-1", "name": "Thing"})


def test_good_validation(users):
    create_good(users.admin, {"sku": "VLV-1", "name": "Valve"})
    with pytest.raises(ValidationError):
        create_good(users.admin, {"sku": "VLV-1", "name": "Valve again"})
    with pytest.raises(ValidationError):
        create_good(users.admin, {"sku": "VLV-2"})
    with pytest.raises(NotFound):
        create_good(users.admin, {"sku": "VLV-3", "name": "Valve", "supplier_ids": [77]})
    assert Good.query.count() == 1


def test_client_requires_company_name(users):
    with pytest.raises(ValidationError):
        create_client(users.admin, {"address": "Jl. Kosong"})
    client = create_client(users.admin, {"company_name": "PT Pelanggan", "pic_email": "a@pelanggan.test"})
    assert client.status == "active"


def test_catalog_over_http(client, users, login):
    login(users.staff)
    assert client.post("/suppliers", json={"name": "CV Baja"}).status_code == 403

    login(users.admin)
    supplier = client.post("/suppliers", json={"name": "CV Baja"}).get_json()
    response = client.post("/goods", json={"sku": "PMP-1", "name": "Pump", "supplier_ids": [supplier["id"]]})
    assert response.status_code == 201
    good = response.get_json()
    assert client.post("/goods", json={"sku": "CBL-1", "name": "Cable"}).status_code == 201

    login(users.staff)
    assert [row["sku"] for row in client.get(f"/goods?supplier_id={supplier['id']}").get_json()] == ["PMP-1"]
    assert len(client.get("/goods").get_json()) == 2
    assert client.get(f"/goods/{good['id']}").get_json()["name"] == "Pump"
    assert client.get("/clients/5").status_code == 404
