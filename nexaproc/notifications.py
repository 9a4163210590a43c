"""
nexaproc/notifications.py

Best-effort workflow notifications.

Delivery is delegated to a mailer callable registered on the app:

    app.extensions["nexaproc_mailer"] = callable(recipients: list[str], subject: str, context: dict)

The default mailer only logs. Notification failures are logged and discarded:
they must never fail or roll back the business transition that triggered them.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from flask import current_app

from .models import User
from .security import PRIVILEGED_ROLES

logger = logging.getLogger(__name__)

MAILER_EXTENSION_KEY = "nexaproc_mailer"

Mailer = Callable[[list, str, dict], Any]


def log_mailer(recipients: list[str], subject: str, context: dict) -> None:
    logger.info("Notification %r to %s (%s)", subject, ", ".join(recipients), context.get("event"))


def init_notifications(app, mailer: Mailer | None = None) -> None:
    app.extensions.setdefault(MAILER_EXTENSION_KEY, mailer or log_mailer)


def _unique_emails(recipients: Iterable[str | None]) -> list[str]:
    seen = set()
    result = []
    for email in recipients:
        if not email:
            continue
        key = email.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(email.strip())
    return result


def privileged_emails(exclude: str | None = None) -> list[str]:
    """E-mails of active manager/superadmin users, optionally minus one address."""
    rows = (
        User.query
        .filter(User.role.in_(sorted(PRIVILEGED_ROLES)), User.is_active.is_(True))
        .order_by(User.id.asc())
        .all()
    )
    excluded = exclude.strip().lower() if exclude else None
    return _unique_emails(u.email for u in rows if u.email.strip().lower() != excluded)


def notify(recipients: Iterable[str | None], subject: str, context: dict) -> bool:
    """
    Send one notification. Returns True if the mailer accepted it.

    Never raises.
    """
    emails = _unique_emails(recipients)
    if not emails:
        return False

    try:
        mailer = current_app.extensions.get(MAILER_EXTENSION_KEY, log_mailer)
        mailer(emails, subject, context)
    except Exception:
        logger.exception("Notification %r to %s failed", subject, ", ".join(emails))
        return False
    return True
