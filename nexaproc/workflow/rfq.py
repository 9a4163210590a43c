"""
nexaproc/workflow/rfq.py

RFQ lifecycle gate.

    open --(quotation created)--> process --(invoice paid)--> success

- open: editable by the requester or by admin/manager/superadmin.
- process: frozen, including goods and attachment. There is no way back to open.
- success: terminal, set only by the payment cascade.
"""

from __future__ import annotations

import logging

from ..audit import log_action, serialize_model
from ..errors import InvalidTransition, PermissionDenied
from ..extensions import db
from ..line_items import parse_requested_goods
from ..models import Rfq, RfqStatus
from ..security import is_editor, is_same_user
from .catalog import resolve_requested_goods
from .payload import optional_text, required_text

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("rfq_number", "company_name", "project_name", "pic_name", "pic_email", "pic_phone")
EDITABLE_FIELDS = REQUIRED_FIELDS


def create_rfq(actor, data: dict) -> Rfq:
    values = {key: required_text(data, key) for key in REQUIRED_FIELDS}
    goods = resolve_requested_goods(parse_requested_goods(data.get("goods")))

    rfq = Rfq(
        **values,
        attachment_url=optional_text(data, "attachment_url"),
        status=RfqStatus.OPEN.value,
        requested_by_id=getattr(actor, "id", None),
    )
    rfq.goods = goods
    db.session.add(rfq)
    db.session.flush()

    log_action(rfq, "create", actor=actor, description=f"Created RFQ {rfq.rfq_number}")
    return rfq


def ensure_rfq_editable(rfq: Rfq, actor) -> None:
    if rfq.status != RfqStatus.OPEN.value:
        raise InvalidTransition(f"RFQ is already in {rfq.status} and cannot be edited", status=rfq.status)
    if not (is_editor(actor) or is_same_user(actor, rfq.requested_by_id)):
        raise PermissionDenied("Not authorized to edit this RFQ")


def update_rfq(rfq: Rfq, actor, data: dict) -> Rfq:
    ensure_rfq_editable(rfq, actor)

    requested_status = optional_text(data, "status")
    if requested_status and requested_status != rfq.status:
        raise InvalidTransition("RFQ status cannot be changed directly", status=rfq.status)

    # Validate everything before touching the row.
    changes = {key: required_text(data, key) for key in EDITABLE_FIELDS if key in data}
    goods = resolve_requested_goods(parse_requested_goods(data["goods"])) if "goods" in data else None

    before = serialize_model(rfq)
    for key, value in changes.items():
        setattr(rfq, key, value)
    if goods is not None:
        rfq.goods = goods
    if "attachment_url" in data:
        rfq.attachment_url = optional_text(data, "attachment_url")
    db.session.flush()

    log_action(
        rfq,
        "update",
        actor=actor,
        description=f"Updated RFQ {rfq.rfq_number}",
        before=before,
        after=serialize_model(rfq),
    )
    return rfq


def freeze_rfq(rfq: Rfq, actor=None) -> Rfq:
    """open -> process when a quotation is created against the RFQ. Idempotent for process."""
    if rfq.status == RfqStatus.PROCESS.value:
        return rfq
    if rfq.status != RfqStatus.OPEN.value:
        raise InvalidTransition(f"RFQ {rfq.rfq_number} is already {rfq.status}", status=rfq.status)

    rfq.status = RfqStatus.PROCESS.value
    log_action(rfq, "status", actor=actor, description=f"RFQ {rfq.rfq_number} moved to process")
    logger.info("RFQ %s frozen (process)", rfq.rfq_number)
    return rfq
