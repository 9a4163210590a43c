from __future__ import annotations

import pytest

from nexaproc.errors import InvalidTransition, PermissionDenied, ValidationError
from nexaproc.models import QuotationStatus as S
from nexaproc.workflow.quotation import plan_quotation_update


def plan(current, requested=None, *, edit=False, privileged=True, requester=False):
    return plan_quotation_update(
        current,
        requested_status=requested,
        has_content_edit=edit,
        privileged=privileged,
        is_requester=requester,
    )


@pytest.mark.parametrize("current", [S.PROCESS, S.REJECTED, S.SUCCESS])
@pytest.mark.parametrize("requested", [None, "waiting", "negotiation", "success"])
def test_frozen_quotations_refuse_every_edit(current, requested):
    with pytest.raises(InvalidTransition):
        plan(current, requested, edit=True)


def test_outsiders_cannot_edit():
    with pytest.raises(PermissionDenied):
        plan(S.WAITING, edit=True, privileged=False, requester=False)


def test_requester_cannot_change_status():
    with pytest.raises(PermissionDenied):
        plan(S.WAITING, "negotiation", privileged=False, requester=True)


def test_requesting_the_current_status_is_not_a_change():
    result = plan(S.WAITING, "waiting", privileged=False, requester=True)
    assert result.status == S.WAITING
    assert not result.status_changed
    assert result.entered_status is None


def test_entering_negotiation_opens_a_new_round():
    result = plan(S.WAITING, "negotiation")
    assert result.status == S.NEGOTIATION
    assert result.round_delta == 1
    assert result.status_changed


def test_back_to_negotiation_from_renegotiation_opens_another_round():
    assert plan(S.RENEGOTIATION, "negotiation").round_delta == 1


def test_content_edit_during_negotiation_reopens_review():
    result = plan(S.NEGOTIATION, edit=True, privileged=False, requester=True)
    assert result.status == S.RENEGOTIATION
    assert result.auto_renegotiated
    assert result.round_delta == 0
    assert result.entered_status == S.RENEGOTIATION


def test_manager_content_edit_during_negotiation_also_reopens_review():
    assert plan(S.NEGOTIATION, edit=True).status == S.RENEGOTIATION


def test_content_edit_while_waiting_keeps_status():
    result = plan(S.WAITING, edit=True, privileged=False, requester=True)
    assert result.status == S.WAITING
    assert result.entered_status is None


@pytest.mark.parametrize(
    "current, requested",
    [
        (S.WAITING, "negotiation"),
        (S.WAITING, "rejected"),
        (S.WAITING, "process"),
        (S.NEGOTIATION, "renegotiation"),
        (S.NEGOTIATION, "waiting"),
        (S.NEGOTIATION, "process"),
        (S.RENEGOTIATION, "negotiation"),
        (S.RENEGOTIATION, "rejected"),
        (S.RENEGOTIATION, "waiting"),
    ],
)
def test_allowed_manager_transitions(current, requested):
    assert plan(current, requested).status == S(requested)


@pytest.mark.parametrize(
    "current, requested",
    [
        (S.WAITING, "renegotiation"),
        (S.WAITING, "success"),
        (S.NEGOTIATION, "success"),
        (S.RENEGOTIATION, "success"),
    ],
)
def test_disallowed_transitions(current, requested):
    with pytest.raises(InvalidTransition):
        plan(current, requested)


def test_unknown_status_is_a_validation_error():
    with pytest.raises(ValidationError):
        plan(S.WAITING, "approved")


def test_plain_strings_are_accepted_for_the_current_status():
    assert plan("waiting", "negotiation").status == S.NEGOTIATION
