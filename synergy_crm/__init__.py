"""
synergy_crm/__init__.py

Flask application factory for the SynergyTech CRM.

Requirements:
- Production mindset: clear architecture, stable imports, server-side security.
- The data lives in a hosted Supabase project; see backend.py for the two credential tiers.
- UI is never trusted; server-side access control is enforced.

Navigation:
- Dashboard users see one item per business entity kind.
- Admins see the administration console.
Items are filtered for visibility, BUT all permissions are enforced server-side.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

import click
from flask import Flask, jsonify, render_template, request
from flask_login import current_user
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from config import REQUIRED_SETTINGS, Config

from .backend import EXTENSION_KEY, SupabaseBackend
from .entities import DASHBOARD_KINDS, build_dialog_registry
from .errors import ConfigurationError, CrmError
from .extensions import csrf, login_manager
from .observability import configure_logging, ensure_request_id, register_request_ids
from .pages import DIALOG_REGISTRY_KEY
from .repository import AUTH_USERS_CACHE_KEY, AuthUsersCache
from .schemas import error_fields, error_summary
from .security import Capability, can, current_can, current_role, read_only_guard
from .session import initialize_session, load_user

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# NAVIGATION STRUCTURE (UI visibility only; security enforced in routes)
# -------------------------------------------------------------------

NAV_SECTIONS = [
    {
        "key": "records",
        "label": "Records",
        "capability": Capability.VIEW,
        "admin_console": False,
        "items": [
            {"label": kind.label, "endpoint": "dashboard.entity_list", "args": {"slug": kind.slug}}
            for kind in DASHBOARD_KINDS
        ]
        + [{"label": "Follow-ups", "endpoint": "dashboard.follow_ups", "args": {}}],
    },
    {
        "key": "administration",
        "label": "Administration",
        "capability": Capability.ADMIN_CONSOLE,
        "admin_console": True,
        "items": [
            {"label": "Users", "endpoint": "admin.users", "args": {}},
        ],
    },
]


def _check_required_settings(app: Flask) -> None:
    missing = [name for name in REQUIRED_SETTINGS if not str(app.config.get(name) or "").strip()]
    if missing:
        raise ConfigurationError(
            f"Missing required settings: {', '.join(missing)}",
            details={"missing": missing},
        )


def create_app(config_class: Type[Config] = Config, backend: Optional[SupabaseBackend] = None) -> Flask:
    """
    Create and configure the Flask application.

    `backend` replaces the Supabase collaborator (tests inject an in-memory double).
    Raises ConfigurationError when a Supabase setting is missing.
    """
    app = Flask(__name__)
    app.config.from_object(config_class)
    _check_required_settings(app)

    configure_logging(app)
    register_request_ids(app)

    # Extensions
    csrf.init_app(app)

    login_manager.init_app(app)
    login_manager.login_view = "auth.login"
    login_manager.login_message_category = "info"
    login_manager.user_loader(load_user)

    if backend is None:
        backend = SupabaseBackend()
    backend.init_app(app)
    app.extensions[EXTENSION_KEY] = backend
    app.extensions[DIALOG_REGISTRY_KEY] = build_dialog_registry()
    app.extensions[AUTH_USERS_CACHE_KEY] = AuthUsersCache(int(app.config["AUTH_USERS_CACHE_SECONDS"]))

    # ----------------------------------------------------------------------
    # Session state, then the global read-only safety net
    # ----------------------------------------------------------------------
    @app.before_request
    def _session_hook():
        initialize_session()
        return None

    @app.before_request
    def _read_only_hook():
        """
        Read-only enforcement (POST/PUT/PATCH/DELETE blocked for `read` users).

        This is a safety net. Each route must still enforce its own capability.
        """
        return read_only_guard()

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.admin import admin_bp
    from .blueprints.api import api_bp
    from .blueprints.auth import auth_bp
    from .blueprints.dashboard import dashboard_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(api_bp)
    csrf.exempt(api_bp)

    _register_error_handlers(app)

    # ----------------------------------------------------------------------
    # Context globals (navigation)
    # ----------------------------------------------------------------------
    @app.context_processor
    def inject_globals():
        """
        Inject navigation filtered by user.

        SECURITY NOTE:
        - This only filters visibility. Routes enforce permissions.
        """
        return {
            "config": app.config,
            "nav_sections": visible_nav_sections(),
            "current_role": current_role(),
            "can": current_can,
            "Capability": Capability,
        }

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("create-super-admin")
    @click.option("--email", required=True)
    @click.option("--password", required=True, prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option("--full-name", required=True)
    def create_super_admin_command(email: str, password: str, full_name: str):
        """Bootstrap the first super admin (refused once any user exists)."""
        from .seed import create_super_admin

        try:
            user = create_super_admin(
                app.extensions[EXTENSION_KEY],
                app.extensions[AUTH_USERS_CACHE_KEY],
                email,
                password,
                full_name,
            )
        except ValidationError as exc:
            raise click.ClickException(error_summary(exc)) from exc
        except CrmError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"Super admin {user.get('email')} created.")

    logger.info("app_created", extra={"app_name": app.config.get("APP_NAME")})
    return app


def visible_nav_sections() -> List[Dict[str, Any]]:
    """Sections the current user may see: admins get the console, everyone else the records."""
    if not current_user.is_authenticated:
        return []
    role = current_role()
    admin = can(role, Capability.ADMIN_CONSOLE)
    sections = []
    for section in NAV_SECTIONS:
        if section["admin_console"] != admin:
            continue
        if not can(role, section["capability"]):
            continue
        sections.append({"key": section["key"], "label": section["label"], "items": section["items"]})
    return sections


def _wants_json() -> bool:
    return request.path.startswith("/api/")


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CrmError)
    def _handle_crm_error(exc: CrmError):
        logger.warning(
            "request_failed",
            extra={"error_code": exc.code, "http_status": exc.http_status, "request_id": ensure_request_id()},
        )
        if _wants_json():
            return jsonify(exc.to_payload()), exc.http_status
        template = {403: "errors/403.html", 404: "errors/404.html"}.get(exc.http_status, "errors/500.html")
        return render_template(template, message=exc.message), exc.http_status

    @app.errorhandler(ValidationError)
    def _handle_validation_error(exc: ValidationError):
        if _wants_json():
            return jsonify({"error": error_summary(exc), "fields": error_fields(exc)}), 400
        return render_template("errors/500.html", message=error_summary(exc)), 400

    @app.errorhandler(404)
    def _handle_not_found(exc):
        if _wants_json():
            return jsonify({"error": "Not found"}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc

        app.logger.exception(
            "unexpected_exception",
            extra={
                "request_id": ensure_request_id(),
                "request_path": request.path,
                "http_method": request.method,
            },
        )
        if _wants_json():
            return jsonify({"error": "Internal server error"}), 500
        return render_template("errors/500.html", message=None), 500
