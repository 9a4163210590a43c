"""
nexaproc/__init__.py

Flask application factory for the RGI NexaProc procurement workflow service.

- JSON API only; every workflow route requires a logged-in user.
- Workflow rules live in nexaproc/workflow/ and raise typed WorkflowErrors.
  The error handler below rolls back the request's session and renders them
  as JSON, so a rejected operation never leaves a partial write.
- SQLite is used for development; any SQLAlchemy URL works via DATABASE_URL.
"""

from __future__ import annotations

import logging
import logging.config

import click
from flask import Flask, jsonify, url_for
from flask_login import current_user
from flask_wtf.csrf import CSRFError

from .errors import WorkflowError
from .extensions import csrf, db, login_manager, migrate
from .models import User
from .notifications import init_notifications

logger = logging.getLogger(__name__)


def create_app(config_object: str | object = "config.Config", mailer=None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.config.dictConfig(app.config["LOGGING"])

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    init_notifications(app, mailer)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "unauthorized", "message": "Login required"}), 401

    # ----------------------------------------------------------------------
    # Errors
    # ----------------------------------------------------------------------
    @app.errorhandler(WorkflowError)
    def handle_workflow_error(error: WorkflowError):
        db.session.rollback()
        logger.info("Rejected %s: %s", error.code, error.message)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error: CSRFError):
        return jsonify({"error": "csrf_error", "message": error.description}), 400

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.catalog import catalog_bp
    from .blueprints.invoices import invoices_bp
    from .blueprints.orders import delivery_orders_bp, sales_orders_bp
    from .blueprints.quotations import quotations_bp
    from .blueprints.rfqs import rfqs_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(rfqs_bp)
    app.register_blueprint(quotations_bp)
    app.register_blueprint(sales_orders_bp)
    app.register_blueprint(delivery_orders_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(catalog_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("seed-admin")
    @click.option("--email", default=None, help="Defaults to ADMIN_EMAIL.")
    @click.option("--password", default=None, help="Defaults to ADMIN_PASSWORD.")
    def seed_admin_command(email, password):
        """Create the superadmin account (safe to run more than once)."""
        from .seed import seed_admin

        user, created = seed_admin(
            email or app.config["ADMIN_EMAIL"],
            password or app.config["ADMIN_PASSWORD"],
        )
        if created:
            click.echo(f"Superadmin {user.email} created.")
        else:
            click.echo(f"Superadmin {user.email} already exists.")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Service banner; points anonymous callers at the login endpoint."""
        payload = {"app": app.config.get("APP_NAME")}
        if current_user.is_authenticated:
            payload["user"] = current_user.to_dict()
        else:
            payload["login"] = url_for("auth.login")
        return jsonify(payload)

    return app
