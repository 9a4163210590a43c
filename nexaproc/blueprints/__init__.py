"""
JSON blueprints.

Shared request helpers live here so every blueprint reads payloads the same
way. Routes call one workflow service, then commit once.
"""

from __future__ import annotations

from flask import request

from ..errors import ValidationError


def json_payload() -> dict:
    """The request's JSON object body ({} when empty)."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def int_arg(name: str) -> int | None:
    """Optional integer query-string filter."""
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", field=name) from None
