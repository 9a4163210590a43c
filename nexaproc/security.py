"""
nexaproc/security.py

Role checks for workflow operations.

Key rules:
- Roles are fixed: superadmin, admin, manager, staff.
- Status changes (quotation status, sales order approval) need a PRIVILEGED role.
- RFQ edits are open to the requester and to EDITOR roles.
- superadmin is the top tier: it never receives "your quotation changed" mail.

Workflow services receive the acting User explicitly and call these helpers;
they never read flask_login.current_user themselves. Route decorators below
are the HTTP-side safety net.

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask_login import current_user

from .errors import PermissionDenied
from .models import Role

PRIVILEGED_ROLES = frozenset({Role.SUPERADMIN.value, Role.MANAGER.value})
EDITOR_ROLES = frozenset({Role.SUPERADMIN.value, Role.ADMIN.value, Role.MANAGER.value})
TOP_TIER_ROLE = Role.SUPERADMIN.value


def _role_of(user: Any) -> str | None:
    if user is None:
        return None
    role = getattr(user, "role", None)
    return role.value if isinstance(role, Role) else role


def is_privileged(user: Any) -> bool:
    """Manager-tier or higher: may change workflow status fields."""
    return _role_of(user) in PRIVILEGED_ROLES


def is_editor(user: Any) -> bool:
    """Admin, manager or superadmin: may edit other users' RFQs."""
    return _role_of(user) in EDITOR_ROLES


def is_top_tier(user: Any) -> bool:
    return _role_of(user) == TOP_TIER_ROLE


def is_same_user(user: Any, user_id: int | None) -> bool:
    """True when `user` is the user referenced by `user_id`."""
    if user is None or user_id is None:
        return False
    return getattr(user, "id", None) == user_id


def require_privileged(user: Any, message: str) -> None:
    if not is_privileged(user):
        raise PermissionDenied(message)


def privileged_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: manager/superadmin only. Use after @login_required."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        require_privileged(current_user, "Only managers can perform this action")
        return view_func(*args, **kwargs)

    return wrapper
