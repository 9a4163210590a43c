"""
nexaproc/errors.py

Typed workflow errors.

Every workflow operation validates before it mutates, so raising one of these
means nothing was written. Routes roll back the session and render the error
as JSON: {"error": <code>, "message": <text>}.

    WorkflowError
    +-- ValidationError     400  missing field, bad quantity, over-delivery
    +-- PermissionDenied    403  role not allowed for this edit/transition
    +-- NotFound            404  referenced record does not exist
    +-- InvalidTransition   409  status change not allowed from current state,
                                 or edit of a frozen record
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for all workflow failures."""

    code = "workflow_error"
    http_status = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(WorkflowError):
    code = "validation_error"
    http_status = 400


class PermissionDenied(WorkflowError):
    code = "permission_denied"
    http_status = 403


class NotFound(WorkflowError):
    code = "not_found"
    http_status = 404


class InvalidTransition(WorkflowError):
    code = "invalid_transition"
    http_status = 409
