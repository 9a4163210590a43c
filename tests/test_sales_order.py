from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from conftest import line

from nexaproc.errors import InvalidTransition, NotFound, PermissionDenied, ValidationError
from nexaproc.extensions import db
from nexaproc.models import DeliveryOrder, Invoice, Quotation, SalesOrderStatus
from nexaproc.workflow import (
    approve_sales_order,
    create_sales_order,
    fulfillment,
    post_delivery_order,
    update_sales_order,
)


def ship(actor, order, *lines, on=date(2026, 10, 5)):
    delivery = post_delivery_order(actor, {
        "sales_order_id": order.id,
        "delivery_date": on.isoformat(),
        "goods": [{"good_id": good_id, "name": name, "qty": qty} for name, qty, good_id in lines],
    })
    db.session.commit()
    return delivery


def test_partial_then_full_delivery(users, make_order, mailer, goods):
    order = make_order([line("Valve", 10, price=100, good_id=9)])

    first = ship(users.staff, order, ("Valve", "6", 9))
    assert order.status == SalesOrderStatus.ON_DELIVERY.value
    assert first.delivery_number == "0001/RGI/DO/X/2026"
    assert mailer.events("sales_order_waiting_approval") == []

    second = ship(users.staff, order, ("Valve", "4", 9), on=date(2026, 11, 2))
    assert order.status == SalesOrderStatus.WAITING_APPROVAL.value
    assert second.delivery_number == "0002/RGI/DO/XI/2026"

    [message] = mailer.events("sales_order_waiting_approval")
    assert set(message.recipients) == {users.superadmin.email, users.manager.email}
    assert fulfillment(order).fully_shipped


def test_over_delivery_is_rejected_without_writing(users, make_order):
    order = make_order([line("Valve", 10)])
    ship(users.staff, order, ("Valve", "7", None))

    with pytest.raises(ValidationError) as excinfo:
        post_delivery_order(users.staff, {
            "sales_order_id": order.id,
            "delivery_date": "2026-10-06",
            "goods": [{"name": "Valve", "qty": 5}],
        })
    db.session.rollback()

    assert excinfo.value.details["remaining"] == "3"
    assert DeliveryOrder.query.count() == 1
    assert order.status == SalesOrderStatus.ON_DELIVERY.value


def test_two_lines_for_the_same_good_count_together(users, make_order):
    order = make_order([line("Valve", 10)])
    with pytest.raises(ValidationError):
        post_delivery_order(users.staff, {
            "sales_order_id": order.id,
            "delivery_date": "2026-10-06",
            "goods": [{"name": "Valve", "qty": 6}, {"name": "Valve", "qty": 6}],
        })


def test_zero_lines_are_dropped(users, make_order):
    order = make_order([line("Valve", 10), line("Gasket", 5)])
    delivery = ship(users.staff, order, ("Valve", "3", None), ("Gasket", "0", None))
    assert [item.name for item in delivery.goods] == ["Valve"]


def test_delivery_lines_copy_the_order_line(users, make_order):
    order = make_order([line("Valve", 10, price=100, unit="set")])
    delivery = ship(users.staff, order, ("Valve", "3", None))
    assert delivery.goods[0].unit == "set"
    assert delivery.goods[0].qty == Decimal("3")


@pytest.mark.parametrize("goods", [[], [{"name": "Valve", "qty": 0}], [{"name": "Valve", "qty": -1}]])
def test_delivery_needs_positive_quantities(users, make_order, goods):
    order = make_order([line("Valve", 10)])
    with pytest.raises(ValidationError):
        post_delivery_order(users.staff, {"sales_order_id": order.id, "delivery_date": "2026-10-06", "goods": goods})


def test_delivery_of_unknown_good_is_rejected(users, make_order):
    order = make_order([line("Valve", 10)])
    with pytest.raises(ValidationError):
        ship(users.staff, order, ("Pump", "1", None))


def test_delivery_requires_order_and_date(users, make_order):
    order = make_order([line("Valve", 10)])
    with pytest.raises(ValidationError):
        post_delivery_order(users.staff, {"delivery_date": "2026-10-06", "goods": [{"name": "Valve", "qty": 1}]})
    with pytest.raises(ValidationError):
        post_delivery_order(users.staff, {"sales_order_id": order.id, "goods": [{"name": "Valve", "qty": 1}]})
    with pytest.raises(NotFound):
        post_delivery_order(users.staff, {
            "sales_order_id": 404, "delivery_date": "2026-10-06", "goods": [{"name": "Valve", "qty": 1}],
        })


@pytest.mark.parametrize("status", [SalesOrderStatus.WAITING_APPROVAL, SalesOrderStatus.WAITING_PAYMENT, SalesOrderStatus.DONE])
def test_no_deliveries_after_shipping_is_complete(users, make_order, status):
    order = make_order([line("Valve", 10)], status=status)
    with pytest.raises(InvalidTransition):
        ship(users.staff, order, ("Valve", "1", None))


# ---------------------------------------------------------------------
# Approval and status rules
# ---------------------------------------------------------------------
def test_staff_cannot_move_order_to_waiting_payment(users, make_order):
    order = make_order([line("Valve", 10)], status=SalesOrderStatus.WAITING_APPROVAL)
    with pytest.raises(PermissionDenied):
        update_sales_order(order, users.staff, {"status": "waiting payment"})
    db.session.rollback()
    assert order.status == SalesOrderStatus.WAITING_APPROVAL.value
    assert Invoice.query.count() == 0


def test_privilege_is_checked_before_state(users, make_order):
    order = make_order([line("Valve", 10)])
    with pytest.raises(PermissionDenied):
        update_sales_order(order, users.admin, {"status": "waiting payment"})
    with pytest.raises(InvalidTransition):
        update_sales_order(order, users.manager, {"status": "waiting payment"})


def test_manager_approval_through_update_derives_invoice(users, make_order):
    order = make_order([line("Valve", 10, price=100)], status=SalesOrderStatus.WAITING_APPROVAL)
    update_sales_order(order, users.manager, {"status": "waiting payment", "notes": "approved by phone"})
    db.session.commit()

    assert order.status == SalesOrderStatus.WAITING_PAYMENT.value
    assert order.notes == "approved by phone"
    assert order.last_edited_by_id == users.manager.id
    assert Invoice.query.filter_by(sales_order_id=order.id).count() == 1


@pytest.mark.parametrize("requested", ["done", "on-delivery", "waiting approval", "ongoing"])
def test_system_statuses_cannot_be_requested(users, make_order, requested):
    order = make_order([line("Valve", 10)], status=SalesOrderStatus.WAITING_PAYMENT)
    with pytest.raises(InvalidTransition):
        update_sales_order(order, users.manager, {"status": requested})


def test_unknown_order_status_is_a_validation_error(users, make_order):
    order = make_order([line("Valve", 10)])
    with pytest.raises(ValidationError):
        update_sales_order(order, users.manager, {"status": "shipped"})


def test_approve_requires_waiting_approval(users, make_order):
    order = make_order([line("Valve", 10)], status=SalesOrderStatus.ON_DELIVERY)
    with pytest.raises(InvalidTransition):
        approve_sales_order(order, users.manager)
    with pytest.raises(PermissionDenied):
        approve_sales_order(order, users.staff)


def test_goods_are_locked_once_delivery_starts(users, make_order):
    order = make_order([line("Valve", 10)], status=SalesOrderStatus.ON_DELIVERY)
    with pytest.raises(InvalidTransition):
        update_sales_order(order, users.staff, {"goods": [{"name": "Valve", "qty": 20}]})
    update_sales_order(order, users.staff, {"delivery_address": "Gudang 2", "order_date": "2026-10-01"})
    assert order.delivery_address == "Gudang 2"
    assert order.order_date == date(2026, 10, 1)


def test_done_orders_are_read_only(users, make_order):
    order = make_order([line("Valve", 10)], status=SalesOrderStatus.DONE)
    with pytest.raises(InvalidTransition):
        update_sales_order(order, users.manager, {"notes": "late note"})


def test_ongoing_order_goods_and_amounts_are_editable(users, make_order):
    order = make_order([line("Valve", 10)])
    update_sales_order(order, users.staff, {"goods": [{"name": "Valve", "qty": 12, "price": 10}], "total_amount": "120"})
    assert order.goods[0].qty == Decimal("12")
    assert order.total_amount == Decimal("120.00")


# ---------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------
def _process_quotation(users, **fields):
    quotation = Quotation(
        quotation_number="Q-9",
        requested_by_id=users.staff.id,
        company_name="PT Contoh",
        payment_time="30 days",
        status="process",
        total_amount=Decimal("1000.00"),
        tax_amount=Decimal("110.00"),
        grand_total=Decimal("1110.00"),
        **fields,
    )
    quotation.goods = [line("Valve", 10, price=100)]
    db.session.add(quotation)
    db.session.commit()
    return quotation


def test_create_from_quotation_copies_goods_and_totals(users):
    quotation = _process_quotation(users)
    order = create_sales_order(users.staff, {"order_number": "PO-CLIENT-1", "quotation_id": quotation.id})

    assert order.status == SalesOrderStatus.ONGOING.value
    assert order.goods == quotation.goods
    assert order.grand_total == Decimal("1110.00")
    assert order.payment_time == "30 days"
    assert order.company_name == "PT Contoh"


def test_create_needs_process_quotation(users):
    quotation = _process_quotation(users)
    quotation.status = "negotiation"
    db.session.commit()
    with pytest.raises(InvalidTransition):
        create_sales_order(users.staff, {"order_number": "PO-1", "quotation_id": quotation.id})


def test_create_requires_unique_order_number(users):
    with pytest.raises(ValidationError):
        create_sales_order(users.staff, {})
    create_sales_order(users.staff, {"order_number": "PO-1", "goods": [{"name": "Valve", "qty": 1}]})
    with pytest.raises(ValidationError):
        create_sales_order(users.staff, {"order_number": "PO-1"})


def test_manual_order_without_amounts_keeps_them_unrecorded(users):
    order = create_sales_order(users.staff, {"order_number": "PO-2", "goods": [{"name": "Valve", "qty": 2, "price": 5}]})
    assert order.total_amount is None
    assert order.grand_total is None


def test_duplicate_lines_complete_once_each_line_is_covered(users, make_order):
    order = make_order([line("Bolt", 5), line("Bolt", 5)])
    ship(users.staff, order, ("Bolt", "6", None))

    assert order.status == SalesOrderStatus.WAITING_APPROVAL.value
    assert fulfillment(order).fully_shipped


def test_unknown_catalog_good_is_not_found(users, make_order):
    with pytest.raises(NotFound):
        create_sales_order(users.staff, {"order_number": "PO-3", "goods": [{"good_id": 404, "qty": 1}]})

    order = make_order([line("Valve", 10)])
    with pytest.raises(NotFound):
        post_delivery_order(users.staff, {
            "sales_order_id": order.id, "delivery_date": "2026-10-06", "goods": [{"good_id": 404, "qty": 1}],
        })
    assert DeliveryOrder.query.count() == 0
