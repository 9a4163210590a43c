from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest

from config import TestConfig
from nexaproc import create_app
from nexaproc.extensions import db
from nexaproc.line_items import LineItem
from nexaproc.models import Good, Role, SalesOrder, SalesOrderStatus, User

PASSWORD = "secret-pass"


class RecordingMailer:
    """Mailer stand-in that keeps every notification it is handed."""

    def __init__(self):
        self.sent = []

    def __call__(self, recipients, subject, context):
        self.sent.append(SimpleNamespace(recipients=list(recipients), subject=subject, context=context))

    def events(self, event):
        return [message for message in self.sent if message.context.get("event") == event]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def app(mailer):
    app = create_app(TestConfig, mailer=mailer)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def users(app):
    def make(email, role):
        user = User(email=email, full_name=email.split("@")[0].title(), role=role.value, is_active=True)
        user.set_password(PASSWORD)
        db.session.add(user)
        return user

    people = SimpleNamespace(
        superadmin=make("root@rgi.test", Role.SUPERADMIN),
        manager=make("manager@rgi.test", Role.MANAGER),
        admin=make("admin@rgi.test", Role.ADMIN),
        staff=make("staff@rgi.test", Role.STAFF),
        other=make("other@rgi.test", Role.STAFF),
    )
    db.session.commit()
    return people


@pytest.fixture
def goods(app):
    """Catalog rows the goods payloads in the tests point at (ids 1, 3 and 9)."""
    rows = [
        Good(id=1, sku="BRN-100", name="Burner", unit="unit", price=Decimal("1000.00")),
        Good(id=3, sku="PJ-2T", name="Pallet jack", unit="pcs"),
        Good(id=9, sku="VLV-DN50", name="Valve", unit="pcs"),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return {row.id: row for row in rows}


def line(name, qty, price="0", good_id=None, unit="pcs"):
    return LineItem(good_id=good_id, name=name, unit=unit, qty=Decimal(str(qty)), price=Decimal(str(price)))


@pytest.fixture
def make_order(users):
    counter = {"n": 0}

    def _make(goods, status=SalesOrderStatus.ONGOING, **fields):
        counter["n"] += 1
        fields.setdefault("order_number", f"SO-{counter['n']:03d}")
        fields.setdefault("company_name", "PT Contoh")
        order = SalesOrder(status=status.value, created_by_id=users.staff.id, **fields)
        order.goods = goods
        db.session.add(order)
        db.session.commit()
        return order

    return _make


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    def _login(user, password=PASSWORD):
        response = client.post("/auth/login", json={"email": user.email, "password": password})
        assert response.status_code == 200, response.get_json()
        return response

    return _login
