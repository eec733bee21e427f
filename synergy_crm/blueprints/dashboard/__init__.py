"""Dashboard blueprint package (/app)."""

from .routes import dashboard_bp  # noqa: F401
