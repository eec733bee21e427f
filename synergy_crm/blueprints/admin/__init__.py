"""Admin console blueprint package (/admin)."""

from .routes import admin_bp  # noqa: F401
