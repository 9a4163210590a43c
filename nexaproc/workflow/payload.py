"""
Payload helpers shared by the workflow services.

JSON payloads are untrusted: every helper here either returns a clean value
or raises ValidationError / NotFound.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from ..errors import NotFound, ValidationError
from ..extensions import db


def optional_text(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def required_text(data: dict, key: str) -> str:
    value = optional_text(data, key)
    if value is None:
        raise ValidationError(f"{key} is required", field=key)
    return value


def parse_date(value: Any, *, field_name: str) -> date | None:
    """Accepts a date, a datetime or an ISO string (YYYY-MM-DD, optionally with time)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise ValidationError(f"{field_name} must be a date (YYYY-MM-DD)", field=field_name) from None


def parse_optional_id(value: Any, *, field_name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an id", field=field_name) from None


def get_or_not_found(model, record_id: Any, label: str | None = None):
    """Load a row by primary key or raise NotFound."""
    label = label or model.__tablename__
    try:
        pk = int(record_id)
    except (TypeError, ValueError):
        raise NotFound(f"{label} {record_id!r} not found") from None
    record = db.session.get(model, pk)
    if record is None:
        raise NotFound(f"{label} {pk} not found")
    return record
