"""
nexaproc/seed.py

Bootstrap data.

- Safe to run multiple times (idempotent).
- Only the first superadmin is seeded; clients, suppliers and goods are
  business data entered through the application.
"""

from __future__ import annotations

from .extensions import db
from .models import Role, User


def seed_admin(email: str, password: str, full_name: str = "System Administrator") -> tuple[User, bool]:
    """Return (user, created). An existing account with that e-mail is left untouched."""
    email = email.strip().lower()
    existing = User.query.filter_by(email=email).first()
    if existing is not None:
        return existing, False

    user = User(email=email, full_name=full_name, role=Role.SUPERADMIN.value, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user, True
