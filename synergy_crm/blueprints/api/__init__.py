"""JSON API blueprint package (/api)."""

from .routes import api_bp  # noqa: F401
