"""
nexaproc/audit.py

Activity log helper.

Goals:
- Capture WHO did WHAT to WHICH document, with optional BEFORE/AFTER snapshots.
- Store a username snapshot to preserve identity even if the user is renamed later.
- Store the IP address when the action happens inside an HTTP request.

IMPORTANT:
- This helper ADDS AuditLog entries to the current SQLAlchemy session.
  The calling route controls transaction boundaries (commit/rollback), so a
  failed operation never leaves a log line behind.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request
from sqlalchemy import inspect

from .extensions import db
from .models import AuditLog


def _safe_str(value: Any) -> Optional[str]:
    """
    Convert a value to a stable string representation suitable for JSON and DB storage.

    - For Decimal/datetime/etc: str(value) is typically safe.
    - For None: return None.
    """
    if value is None:
        return None
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """
    Convert a SQLAlchemy model instance to a dict snapshot based on table columns.

    Captures only scalar column values (not relationships). The goods JSON column
    is included as stored text.
    """
    data: Dict[str, Optional[str]] = {}
    for attr in inspect(instance).mapper.column_attrs:
        data[attr.columns[0].name] = _safe_str(getattr(instance, attr.key))
    return data


def log_action(
    entity: Any,
    action: str,
    *,
    actor: Any = None,
    description: str | None = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the current db session.

    Parameters:
        entity: SQLAlchemy model instance with .id (flush first for new rows)
        action: create / update / status
        actor: acting User (None for system actions)
        description: human readable summary, e.g. "Auto-created invoice 0001/RGI/INV/X/2026"
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    entry = AuditLog(
        user_id=getattr(actor, "id", None),
        username_snapshot=getattr(actor, "email", None),
        entity_type=entity.__tablename__,
        entity_id=int(entity_id),
        action=str(action),
        description=description,
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    return entry
