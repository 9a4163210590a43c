"""
Authentication Routes

Provides:
- POST /auth/login   (JSON: email, password)
- POST /auth/logout
- GET  /auth/me

Rules:
- Only active users may log in.
- Credentials are validated via the password hash.
- Login returns a CSRF token; browser clients send it back in the
  X-CSRFToken header on every write.
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...extensions import csrf
from ...models import User
from .. import json_payload


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["POST"])
@csrf.exempt
def login():
    """Authenticate a user and open a session."""
    data = json_payload()
    email = str(data.get("email") or "").strip().lower()
    password = str(data.get("password") or "")

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        return jsonify({"error": "invalid_credentials", "message": "Wrong e-mail or password"}), 401

    if not user.is_active:
        return jsonify({"error": "inactive_account", "message": "This account is disabled"}), 403

    login_user(user)
    return jsonify({"user": user.to_dict(), "csrf_token": generate_csrf()})


# ============================================================
# LOGOUT
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user."""
    logout_user()
    return jsonify({"ok": True})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
