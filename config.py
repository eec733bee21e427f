"""
Application configuration.

This module defines the configuration settings for the Flask application: the hosted
backend (Supabase) credentials, secret key, logging and caching knobs. It uses environment
variables for sensitive information and defaults for development. The three Supabase
settings have no defaults; create_app() refuses to start without them.
"""

import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Hosted backend: project URL, public (anon) key and service-role key
    SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
    SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

    # CSRF protection for forms
    WTF_CSRF_ENABLED = _bool_env("WTF_CSRF_ENABLED", True)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_JSON = _bool_env("LOG_JSON", True)

    # GET /api/auth-users response cache (0 disables)
    AUTH_USERS_CACHE_SECONDS = _int_env("AUTH_USERS_CACHE_SECONDS", 30)

    # How long a cached login profile is trusted before asking the backend again
    SESSION_REVALIDATE_SECONDS = _int_env("SESSION_REVALIDATE_SECONDS", 300)

    # App UI name (used in templates)
    APP_NAME = "SynergyTech CRM"


REQUIRED_SETTINGS = ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY")
