"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
tax and document-numbering settings, and logging. It uses environment variables for sensitive information and defaults
for development. In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'nexaproc.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for browser clients (token sent in the X-CSRFToken header)
    WTF_CSRF_ENABLED = True

    APP_NAME = "RGI NexaProc"

    # Percent, e.g. 11 means 11%
    TAX_RATE_PERCENT = os.environ.get("TAX_RATE_PERCENT", "11")

    # Middle token of invoice / delivery order numbers: 0001/RGI/INV/X/2026
    DOCUMENT_COMPANY_CODE = os.environ.get("DOCUMENT_COMPANY_CODE", "RGI")

    # Bootstrap account for `flask seed-admin`
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@example.com")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "change-me")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    LOGGING = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            "nexaproc": {
                "handlers": ["console"],
                "level": LOG_LEVEL,
                "propagate": False,
            },
        },
    }


class TestConfig(Config):
    """In-memory database, no CSRF. Used by the test suite."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    TAX_RATE_PERCENT = "11"

    # Let pytest's caplog see workflow logs.
    LOGGING = {
        **Config.LOGGING,
        "loggers": {"nexaproc": {"level": "DEBUG", "propagate": True}},
    }
