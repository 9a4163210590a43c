"""
NexaProc – Procurement Workflow Domain Models

Reference data:
- User (fixed roles), Client, Supplier, Good

Workflow documents (reference chain, child -> parent):
- Invoice -> SalesOrder -> Quotation -> Rfq
- DeliveryOrder -> SalesOrder

Infrastructure:
- DocumentSequence (per-kind, per-year numbering counters)
- AuditLog (activity log)

IMPORTANT:
- Goods line items are stored as JSON text and exposed through the `goods`
  properties as dataclasses (see line_items.py). Always assign a new list;
  never mutate the returned list in place.
- Status columns hold the `.value` of the enums below. Workflow rules live in
  nexaproc/workflow/, not here.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db
from .line_items import (
    LineItem,
    RequestedGood,
    dump_line_items,
    dump_requested_goods,
    load_line_items,
    load_requested_goods,
)


# ---------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------
class Role(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"


class RfqStatus(str, Enum):
    OPEN = "open"
    PROCESS = "process"
    SUCCESS = "success"


class QuotationStatus(str, Enum):
    WAITING = "waiting"
    NEGOTIATION = "negotiation"
    RENEGOTIATION = "renegotiation"
    REJECTED = "rejected"
    PROCESS = "process"
    SUCCESS = "success"


class SalesOrderStatus(str, Enum):
    ONGOING = "ongoing"
    ON_DELIVERY = "on-delivery"
    WAITING_APPROVAL = "waiting approval"
    WAITING_PAYMENT = "waiting payment"
    DONE = "done"


class InvoiceStatus(str, Enum):
    OVERDUE = "overdue"
    PAID = "paid"


class DocumentKind(str, Enum):
    """Closed set of workflow document kinds (used by numbering, audit and cascade)."""

    RFQ = "rfqs"
    QUOTATION = "quotations"
    SALES_ORDER = "sales_orders"
    DELIVERY_ORDER = "delivery_orders"
    INVOICE = "invoices"


# ---------------------------------------------------------------------
# Users & reference data
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user with one fixed role."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(20), nullable=False, default=Role.STAFF.value, index=True)
    title = db.Column(db.String(150), nullable=True)
    phone = db.Column(db.String(50), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "title": self.title,
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"


class Client(db.Model):
    __tablename__ = "clients"

    id = db.Column(db.Integer, primary_key=True)

    company_name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text)
    pic_name = db.Column(db.String(255))
    pic_email = db.Column(db.String(255))
    pic_phone = db.Column(db.String(100))
    status = db.Column(db.String(50), default="active")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "address": self.address,
            "pic_name": self.pic_name,
            "pic_email": self.pic_email,
            "pic_phone": self.pic_phone,
            "status": self.status,
        }

    def __repr__(self):
        return f"<Client {self.company_name}>"


goods_suppliers = db.Table(
    "goods_suppliers",
    db.Column("good_id", db.Integer, db.ForeignKey("goods.id", ondelete="CASCADE"), primary_key=True),
    db.Column("supplier_id", db.Integer, db.ForeignKey("suppliers.id", ondelete="CASCADE"), primary_key=True),
)


class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255))
    email = db.Column(db.String(255))
    phone = db.Column(db.String(100))
    address = db.Column(db.Text)
    tax_id = db.Column(db.String(150))
    payment_terms = db.Column(db.String(150))
    status = db.Column(db.String(50), default="active")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "tax_id": self.tax_id,
            "payment_terms": self.payment_terms,
            "status": self.status,
        }

    def __repr__(self):
        return f"<Supplier {self.name}>"


class Good(db.Model):
    __tablename__ = "goods"

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(120), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    unit = db.Column(db.String(50), default="pcs")
    price = db.Column(db.Numeric(12, 2), default=Decimal("0.00"))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    suppliers = db.relationship("Supplier", secondary=goods_suppliers, backref="goods")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "unit": self.unit,
            "price": _money_str(self.price),
            "supplier_ids": sorted(supplier.id for supplier in self.suppliers),
        }

    def __repr__(self):
        return f"<Good {self.sku} - {self.name}>"


# ---------------------------------------------------------------------
# Workflow documents
# ---------------------------------------------------------------------
class Rfq(db.Model):
    """Request for quotation. Frozen once a quotation is created against it."""

    __tablename__ = "rfqs"

    id = db.Column(db.Integer, primary_key=True)

    rfq_number = db.Column(db.String(120), nullable=False, index=True)
    company_name = db.Column(db.String(255), nullable=False)
    project_name = db.Column(db.String(255), nullable=False)
    pic_name = db.Column(db.String(255), nullable=False)
    pic_email = db.Column(db.String(255), nullable=False)
    pic_phone = db.Column(db.String(100), nullable=False)

    goods_json = db.Column("goods", db.Text, nullable=True)
    attachment_url = db.Column(db.String(500), nullable=True)

    status = db.Column(db.String(50), nullable=False, default=RfqStatus.OPEN.value, index=True)

    requested_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    requested_by = db.relationship("User", foreign_keys=[requested_by_id])

    @property
    def goods(self) -> list[RequestedGood]:
        return load_requested_goods(self.goods_json)

    @goods.setter
    def goods(self, items: list[RequestedGood]):
        self.goods_json = dump_requested_goods(items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rfq_number": self.rfq_number,
            "company_name": self.company_name,
            "project_name": self.project_name,
            "pic_name": self.pic_name,
            "pic_email": self.pic_email,
            "pic_phone": self.pic_phone,
            "goods": [item.to_dict() for item in self.goods],
            "attachment_url": self.attachment_url,
            "status": self.status,
            "requested_by": self.requested_by_id,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Rfq {self.rfq_number} ({self.status})>"


class Quotation(db.Model):
    __tablename__ = "quotations"

    id = db.Column(db.Integer, primary_key=True)

    quotation_number = db.Column(db.String(120), nullable=True, index=True)

    rfq_id = db.Column(db.Integer, db.ForeignKey("rfqs.id", ondelete="SET NULL"), nullable=True, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    requested_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    company_name = db.Column(db.String(255))
    project_name = db.Column(db.String(255))

    goods_json = db.Column("goods", db.Text, nullable=True)

    include_tax = db.Column(db.Boolean, default=False, nullable=False)
    total_amount = db.Column(db.Numeric(14, 2), default=Decimal("0.00"))
    tax_amount = db.Column(db.Numeric(14, 2), default=Decimal("0.00"))
    grand_total = db.Column(db.Numeric(14, 2), default=Decimal("0.00"))

    payment_time = db.Column(db.String(150))
    valid_until = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    negotiation_round = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(50), nullable=False, default=QuotationStatus.WAITING.value, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rfq = db.relationship("Rfq", backref=db.backref("quotations", lazy=True))
    client = db.relationship("Client")
    requested_by = db.relationship("User", foreign_keys=[requested_by_id])

    @property
    def goods(self) -> list[LineItem]:
        return load_line_items(self.goods_json)

    @goods.setter
    def goods(self, items: list[LineItem]):
        self.goods_json = dump_line_items(items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quotation_number": self.quotation_number,
            "rfq_id": self.rfq_id,
            "client_id": self.client_id,
            "company_name": self.company_name,
            "project_name": self.project_name,
            "goods": [dict(item.to_dict(), subtotal=str(item.subtotal)) for item in self.goods],
            "include_tax": self.include_tax,
            "total_amount": _money_str(self.total_amount),
            "tax_amount": _money_str(self.tax_amount),
            "grand_total": _money_str(self.grand_total),
            "payment_time": self.payment_time,
            "valid_until": _iso(self.valid_until),
            "notes": self.notes,
            "negotiation_round": self.negotiation_round,
            "status": self.status,
            "requested_by": self.requested_by_id,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Quotation {self.quotation_number or self.id} ({self.status})>"


class SalesOrder(db.Model):
    __tablename__ = "sales_orders"

    id = db.Column(db.Integer, primary_key=True)

    order_number = db.Column(db.String(120), nullable=False, unique=True, index=True)

    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id", ondelete="SET NULL"), nullable=True, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)

    company_name = db.Column(db.String(255))
    delivery_address = db.Column(db.Text)
    payment_time = db.Column(db.String(150))
    order_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    goods_json = db.Column("goods", db.Text, nullable=True)

    # NULL means "not recorded"; invoice derivation then falls back to the lines.
    total_amount = db.Column(db.Numeric(14, 2), nullable=True)
    tax_amount = db.Column(db.Numeric(14, 2), nullable=True)
    grand_total = db.Column(db.Numeric(14, 2), nullable=True)

    status = db.Column(db.String(50), nullable=False, default=SalesOrderStatus.ONGOING.value, index=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    last_edited_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    quotation = db.relationship("Quotation", backref=db.backref("sales_orders", lazy=True))
    client = db.relationship("Client")
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    last_edited_by = db.relationship("User", foreign_keys=[last_edited_by_id])

    delivery_orders = db.relationship(
        "DeliveryOrder",
        back_populates="sales_order",
        order_by="DeliveryOrder.id",
        lazy=True,
    )

    @property
    def goods(self) -> list[LineItem]:
        return load_line_items(self.goods_json)

    @goods.setter
    def goods(self, items: list[LineItem]):
        self.goods_json = dump_line_items(items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "quotation_id": self.quotation_id,
            "client_id": self.client_id,
            "company_name": self.company_name,
            "delivery_address": self.delivery_address,
            "payment_time": self.payment_time,
            "order_date": _iso(self.order_date),
            "notes": self.notes,
            "goods": [item.to_dict() for item in self.goods],
            "total_amount": _money_str(self.total_amount),
            "tax_amount": _money_str(self.tax_amount),
            "grand_total": _money_str(self.grand_total),
            "status": self.status,
            "created_by": self.created_by_id,
            "last_edited_by": self.last_edited_by_id,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<SalesOrder {self.order_number} ({self.status})>"


class DeliveryOrder(db.Model):
    """Shipment against a sales order. Immutable once created."""

    __tablename__ = "delivery_orders"

    id = db.Column(db.Integer, primary_key=True)

    delivery_number = db.Column(db.String(120), nullable=False, unique=True, index=True)
    delivery_date = db.Column(db.Date, nullable=False, index=True)

    sales_order_id = db.Column(
        db.Integer,
        db.ForeignKey("sales_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    company_name = db.Column(db.String(255))
    goods_json = db.Column("goods", db.Text, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    sales_order = db.relationship("SalesOrder", back_populates="delivery_orders")
    created_by = db.relationship("User", foreign_keys=[created_by_id])

    @property
    def goods(self) -> list[LineItem]:
        return load_line_items(self.goods_json)

    @goods.setter
    def goods(self, items: list[LineItem]):
        self.goods_json = dump_line_items(items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "delivery_number": self.delivery_number,
            "delivery_date": _iso(self.delivery_date),
            "sales_order_id": self.sales_order_id,
            "company_name": self.company_name,
            "goods": [item.to_dict() for item in self.goods],
            "created_by": self.created_by_id,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<DeliveryOrder {self.delivery_number}>"


class Invoice(db.Model):
    """Derived from a sales order on approval. At most one per order."""

    __tablename__ = "invoices"

    id = db.Column(db.Integer, primary_key=True)

    invoice_number = db.Column(db.String(120), nullable=False, unique=True, index=True)

    sales_order_id = db.Column(
        db.Integer,
        db.ForeignKey("sales_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)

    company_name = db.Column(db.String(255))
    billing_address = db.Column(db.Text)
    payment_time = db.Column(db.String(150))

    invoice_date = db.Column(db.Date, nullable=True, index=True)

    goods_json = db.Column("goods", db.Text, nullable=True)

    total_amount = db.Column(db.Numeric(14, 2), default=Decimal("0.00"))
    tax_amount = db.Column(db.Numeric(14, 2), default=Decimal("0.00"))
    grand_total = db.Column(db.Numeric(14, 2), default=Decimal("0.00"))

    status = db.Column(db.String(50), nullable=False, default=InvoiceStatus.OVERDUE.value, index=True)
    paid_date = db.Column(db.Date, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sales_order = db.relationship("SalesOrder", backref=db.backref("invoices", lazy=True))
    client = db.relationship("Client")

    __table_args__ = (db.UniqueConstraint("sales_order_id", name="uq_invoice_sales_order"),)

    @property
    def goods(self) -> list[LineItem]:
        return load_line_items(self.goods_json)

    @goods.setter
    def goods(self, items: list[LineItem]):
        self.goods_json = dump_line_items(items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "sales_order_id": self.sales_order_id,
            "client_id": self.client_id,
            "company_name": self.company_name,
            "billing_address": self.billing_address,
            "payment_time": self.payment_time,
            "invoice_date": _iso(self.invoice_date),
            "goods": [
                dict(item.to_dict(), no=index, subtotal=str(item.subtotal))
                for index, item in enumerate(self.goods, start=1)
            ],
            "total_amount": _money_str(self.total_amount),
            "tax_amount": _money_str(self.tax_amount),
            "grand_total": _money_str(self.grand_total),
            "status": self.status,
            "paid_date": _iso(self.paid_date),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Invoice {self.invoice_number} ({self.status})>"


# ---------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------
class DocumentSequence(db.Model):
    """
    Numbering counter per (document kind, calendar year).

    The row is locked (SELECT ... FOR UPDATE) while it is incremented, so two
    requests can never receive the same number.
    """

    __tablename__ = "document_sequences"

    id = db.Column(db.Integer, primary_key=True)

    kind = db.Column(db.String(50), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    last_value = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint("kind", "year", name="uq_document_sequence_kind_year"),)

    def __repr__(self):
        return f"<DocumentSequence {self.kind}/{self.year}={self.last_value}>"


class AuditLog(db.Model):
    """Activity log: who did what to which document."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(255), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))


# ---------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------
def _iso(value):
    return value.isoformat() if value is not None else None


def _money_str(value):
    return str(value) if value is not None else None
