"""
nexaproc/workflow/quotation.py

Quotation negotiation state machine.

States: waiting, negotiation, renegotiation, rejected, process, success.

    waiting        -> negotiation | rejected | process          (manager)
    negotiation    -> renegotiation | rejected | process | waiting (manager)
    renegotiation  -> negotiation | rejected | process | waiting (manager)
    negotiation    -> renegotiation   implicit, on a content edit without a status change
    process        -> success         only through the invoice payment cascade

- Entering negotiation increments negotiation_round. The implicit
  renegotiation does not.
- process, rejected and success are frozen: every edit fails.
- Status changes need a privileged role; content edits need a privileged
  role or the original requester.

plan_quotation_update() is the pure decision; update_quotation() applies it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app

from ..audit import log_action, serialize_model
from ..errors import InvalidTransition, PermissionDenied, ValidationError
from ..extensions import db
from ..line_items import compute_totals, parse_line_items
from ..models import Client, Quotation, QuotationStatus, Rfq
from ..notifications import notify, privileged_emails
from ..security import is_privileged, is_same_user, is_top_tier
from .catalog import resolve_line_items
from .payload import get_or_not_found, optional_text, parse_date, parse_optional_id
from .rfq import freeze_rfq

logger = logging.getLogger(__name__)

ALLOWED_STATUS_CHANGES: dict[QuotationStatus, frozenset[QuotationStatus]] = {
    QuotationStatus.WAITING: frozenset({
        QuotationStatus.NEGOTIATION,
        QuotationStatus.REJECTED,
        QuotationStatus.PROCESS,
    }),
    QuotationStatus.NEGOTIATION: frozenset({
        QuotationStatus.RENEGOTIATION,
        QuotationStatus.REJECTED,
        QuotationStatus.PROCESS,
        QuotationStatus.WAITING,
    }),
    QuotationStatus.RENEGOTIATION: frozenset({
        QuotationStatus.NEGOTIATION,
        QuotationStatus.REJECTED,
        QuotationStatus.PROCESS,
        QuotationStatus.WAITING,
    }),
}

FROZEN_STATUSES = frozenset({QuotationStatus.PROCESS, QuotationStatus.REJECTED, QuotationStatus.SUCCESS})

CONTENT_FIELDS = ("goods", "payment_time", "include_tax", "valid_until", "notes")


# ---------------------------------------------------------------------
# Pure transition plan
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class QuotationTransition:
    status: QuotationStatus
    round_delta: int = 0
    status_changed: bool = False
    auto_renegotiated: bool = False

    @property
    def entered_status(self) -> QuotationStatus | None:
        """The status just entered, for notifications; None when nothing changed."""
        if self.status_changed or self.auto_renegotiated:
            return self.status
        return None


def _coerce_status(value) -> QuotationStatus:
    try:
        return QuotationStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown quotation status {value!r}", status=str(value)) from None


def plan_quotation_update(
    current,
    *,
    requested_status=None,
    has_content_edit: bool = False,
    privileged: bool = False,
    is_requester: bool = False,
) -> QuotationTransition:
    """
    Decide the outcome of an update request without touching any record.

    Raises InvalidTransition for frozen quotations or disallowed moves,
    PermissionDenied for unauthorized actors, ValidationError for unknown statuses.
    """
    current = _coerce_status(current)

    if current in FROZEN_STATUSES:
        raise InvalidTransition(
            f"{current.value.capitalize()} quotations cannot be edited", status=current.value
        )

    if not (privileged or is_requester):
        raise PermissionDenied("Not authorized to edit this quotation")

    target = _coerce_status(requested_status) if requested_status else None

    if target is None or target == current:
        if has_content_edit and current == QuotationStatus.NEGOTIATION:
            return QuotationTransition(status=QuotationStatus.RENEGOTIATION, auto_renegotiated=True)
        return QuotationTransition(status=current)

    if not privileged:
        raise PermissionDenied("Only managers can update status")

    if target not in ALLOWED_STATUS_CHANGES.get(current, frozenset()):
        raise InvalidTransition(
            f"Quotation cannot move from {current.value} to {target.value}",
            status=current.value,
            requested=target.value,
        )

    return QuotationTransition(
        status=target,
        round_delta=1 if target == QuotationStatus.NEGOTIATION else 0,
        status_changed=True,
    )


# ---------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------
def quotation_recipients(status: QuotationStatus, requester) -> list[str]:
    """
    Who hears about a quotation entering `status`.

    waiting / renegotiation -> managers (minus the requester)
    negotiation / rejected  -> the requester, unless superadmin
    process                 -> managers and the requester
    """
    requester_email = getattr(requester, "email", None)

    if status in (QuotationStatus.WAITING, QuotationStatus.RENEGOTIATION):
        return privileged_emails(exclude=requester_email)

    if status in (QuotationStatus.NEGOTIATION, QuotationStatus.REJECTED):
        if requester_email and not is_top_tier(requester):
            return [requester_email]
        return []

    if status == QuotationStatus.PROCESS:
        return privileged_emails(exclude=requester_email) + ([requester_email] if requester_email else [])

    return []


def _notify_status(quotation: Quotation, status: QuotationStatus) -> None:
    recipients = quotation_recipients(status, quotation.requested_by)
    notify(
        recipients,
        f"Quotation {quotation.quotation_number or quotation.id} is {status.value}",
        {
            "event": "quotation_status",
            "quotation_id": quotation.id,
            "quotation_number": quotation.quotation_number,
            "status": status.value,
            "negotiation_round": quotation.negotiation_round,
            "rfq_number": quotation.rfq.rfq_number if quotation.rfq else None,
            "grand_total": str(quotation.grand_total),
        },
    )


# ---------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------
def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _apply_totals(quotation: Quotation) -> None:
    totals = compute_totals(
        quotation.goods,
        current_app.config.get("TAX_RATE_PERCENT", 0),
        include_tax=bool(quotation.include_tax),
    )
    quotation.total_amount = totals.total_amount
    quotation.tax_amount = totals.tax_amount
    quotation.grand_total = totals.grand_total


def create_quotation(actor, data: dict) -> Quotation:
    """Create a quotation in `waiting`; freezes the referenced RFQ."""
    rfq_id = parse_optional_id(data.get("rfq_id"), field_name="rfq_id")
    rfq = get_or_not_found(Rfq, rfq_id, "RFQ") if rfq_id else None
    client_id = parse_optional_id(data.get("client_id"), field_name="client_id")
    client = get_or_not_found(Client, client_id, "Client") if client_id else None

    goods = resolve_line_items(parse_line_items(data.get("goods")))
    valid_until = parse_date(data.get("valid_until"), field_name="valid_until")

    quotation = Quotation(
        quotation_number=optional_text(data, "quotation_number"),
        rfq_id=rfq.id if rfq else None,
        client_id=client.id if client else None,
        requested_by_id=getattr(actor, "id", None),
        company_name=optional_text(data, "company_name") or (rfq.company_name if rfq else None),
        project_name=optional_text(data, "project_name") or (rfq.project_name if rfq else None),
        include_tax=_parse_bool(data.get("include_tax", False)),
        payment_time=optional_text(data, "payment_time"),
        valid_until=valid_until,
        notes=optional_text(data, "notes"),
        negotiation_round=0,
        status=QuotationStatus.WAITING.value,
    )
    quotation.goods = goods
    _apply_totals(quotation)

    if rfq is not None:
        freeze_rfq(rfq, actor)

    db.session.add(quotation)
    db.session.flush()

    log_action(
        quotation,
        "create",
        actor=actor,
        description=f"Created quotation {quotation.quotation_number or quotation.id}",
    )
    logger.info("Quotation %s created (waiting)", quotation.id)

    _notify_status(quotation, QuotationStatus.WAITING)
    return quotation


def update_quotation(quotation: Quotation, actor, data: dict) -> Quotation:
    """
    Apply a content edit and/or a status change.

    Nothing is written when the request is rejected.
    """
    has_content_edit = any(key in data for key in CONTENT_FIELDS)
    transition = plan_quotation_update(
        quotation.status,
        requested_status=optional_text(data, "status"),
        has_content_edit=has_content_edit,
        privileged=is_privileged(actor),
        is_requester=is_same_user(actor, quotation.requested_by_id),
    )

    goods = resolve_line_items(parse_line_items(data["goods"])) if "goods" in data else None
    valid_until = parse_date(data.get("valid_until"), field_name="valid_until") if "valid_until" in data else None

    before = serialize_model(quotation)
    previous_status = quotation.status

    if goods is not None:
        quotation.goods = goods
    if "include_tax" in data:
        quotation.include_tax = _parse_bool(data["include_tax"])
    if "payment_time" in data:
        quotation.payment_time = optional_text(data, "payment_time")
    if "valid_until" in data:
        quotation.valid_until = valid_until
    if "notes" in data:
        quotation.notes = optional_text(data, "notes")
    if goods is not None or "include_tax" in data:
        _apply_totals(quotation)

    quotation.status = transition.status.value
    quotation.negotiation_round = (quotation.negotiation_round or 0) + transition.round_delta
    db.session.flush()

    label = quotation.quotation_number or quotation.id
    if has_content_edit:
        log_action(
            quotation,
            "update",
            actor=actor,
            description=f"Updated quotation {label}",
            before=before,
            after=serialize_model(quotation),
        )

    entered = transition.entered_status
    if entered is not None:
        log_action(quotation, "status", actor=actor, description=f"Updated quotation status to {entered.value}")
        logger.info(
            "Quotation %s: %s -> %s (round %s)",
            label, previous_status, entered.value, quotation.negotiation_round,
        )
        _notify_status(quotation, entered)

    return quotation
