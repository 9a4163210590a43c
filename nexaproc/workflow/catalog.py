"""
nexaproc/workflow/catalog.py

Master data: clients, suppliers and goods.

Any logged-in user may read the catalog; creating entries needs an editor
role (admin, manager or superadmin).

Documents reference goods by id. resolve_line_items / resolve_requested_goods
check every reference against the goods table (NotFound for an unknown id)
and fill in the name and unit the caller left out.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from ..audit import log_action, serialize_model
from ..errors import PermissionDenied, ValidationError
from ..extensions import db
from ..line_items import LineItem, RequestedGood, money, parse_decimal
from ..models import Client, Good, Supplier
from ..security import is_editor
from .payload import get_or_not_found, optional_text, parse_optional_id, required_text

logger = logging.getLogger(__name__)

CLIENT_FIELDS = ("address", "pic_name", "pic_email", "pic_phone")
SUPPLIER_FIELDS = ("contact_person", "email", "phone", "address", "tax_id", "payment_terms")


def _require_editor(actor) -> None:
    if not is_editor(actor):
        raise PermissionDenied("Only admin, manager or superadmin can manage master data")


# ---------------------------------------------------------------------
# Goods references
# ---------------------------------------------------------------------
def _goods_by_id(good_ids: Iterable[int]) -> dict[int, Good]:
    found = {}
    for good_id in dict.fromkeys(good_ids):
        found[good_id] = get_or_not_found(Good, good_id, "Good")
    return found


def resolve_line_items(items: list[LineItem]) -> list[LineItem]:
    goods = _goods_by_id(item.good_id for item in items if item.good_id is not None)
    resolved = []
    for item in items:
        good = goods.get(item.good_id)
        if good is not None:
            item = replace(item, name=item.name or good.name, unit=item.unit or good.unit)
        resolved.append(item)
    return resolved


def resolve_requested_goods(items: list[RequestedGood]) -> list[RequestedGood]:
    goods = _goods_by_id(item.good_id for item in items if item.good_id is not None)
    return [
        replace(item, type="existing", name=item.name or goods[item.good_id].name)
        if item.good_id is not None
        else item
        for item in items
    ]


# ---------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------
def create_client(actor, data: dict) -> Client:
    _require_editor(actor)
    client = Client(
        company_name=required_text(data, "company_name"),
        status=optional_text(data, "status") or "active",
        **{key: optional_text(data, key) for key in CLIENT_FIELDS},
    )
    db.session.add(client)
    db.session.flush()
    log_action(client, "create", actor=actor, description=f"Created client {client.company_name}",
               after=serialize_model(client))
    return client


def create_supplier(actor, data: dict) -> Supplier:
    _require_editor(actor)
    supplier = Supplier(
        name=required_text(data, "name"),
        status=optional_text(data, "status") or "active",
        **{key: optional_text(data, key) for key in SUPPLIER_FIELDS},
    )
    db.session.add(supplier)
    db.session.flush()
    log_action(supplier, "create", actor=actor, description=f"Created supplier {supplier.name}",
               after=serialize_model(supplier))
    return supplier


def create_good(actor, data: dict) -> Good:
    _require_editor(actor)
    sku = required_text(data, "sku")
    if Good.query.filter_by(sku=sku).first() is not None:
        raise ValidationError(f"SKU {sku} already exists", field="sku")

    raw_ids = data.get("supplier_ids") or []
    if not isinstance(raw_ids, list):
        raise ValidationError("supplier_ids must be a list", field="supplier_ids")
    supplier_ids = [parse_optional_id(raw, field_name="supplier_ids") for raw in raw_ids]
    suppliers = [get_or_not_found(Supplier, supplier_id, "Supplier") for supplier_id in dict.fromkeys(supplier_ids)]

    good = Good(
        sku=sku,
        name=required_text(data, "name"),
        description=optional_text(data, "description"),
        unit=optional_text(data, "unit") or "pcs",
        price=money(parse_decimal(data.get("price"), field_name="price")),
    )
    good.suppliers = suppliers
    db.session.add(good)
    db.session.flush()
    log_action(good, "create", actor=actor, description=f"Created good {good.sku}", after=serialize_model(good))
    logger.info("Good %s created with %d supplier(s)", good.sku, len(suppliers))
    return good
