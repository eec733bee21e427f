"""
JSON API (/api)

- GET/POST/PUT/DELETE /api/auth-users   admin user directory (service-role tier)
- GET/POST/PUT/DELETE /api/<slug>       business entity kinds (user tier)

Contract:
- Reads: 200 + JSON array, or 500 + {"error": message}
- Writes take {"<kind>": {...}} and return the written row; DELETE takes ?id= and
  returns {"success": true}. A missing body or id is a 400; a backend failure on a
  write is a 400 with the backend's message, or a 404 when the id matched no row.
- Signed-out callers get 401 {"error": "Unauthorized"}.

The session cookie authenticates the caller, so CSRF form tokens are not used here.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Blueprint, jsonify, request
from flask_login import current_user
from pydantic import ValidationError

from ...audit import log_action
from ...entities import DASHBOARD_KINDS, USER, EntityKind, kind_for_slug
from ...errors import BackendError, PermissionDenied, RecordNotFound
from ...repository import repository_for, user_directory
from ...schemas import error_fields, error_summary
from ...security import Capability, api_capability_required, current_role

api_bp = Blueprint("api", __name__, url_prefix="/api")


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _body(key: str) -> Optional[Dict[str, Any]]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return None
    value = body.get(key)
    return value if isinstance(value, dict) and value else None


def _missing(what: str):
    return jsonify({"error": f"{what} is required"}), 400


def _invalid(exc: ValidationError):
    return jsonify({"error": error_summary(exc), "fields": error_fields(exc)}), 400


def _write_failed(exc: BackendError):
    if isinstance(exc, RecordNotFound):
        return jsonify(exc.to_payload()), exc.http_status
    return jsonify({"error": exc.message}), 400


def _denied(exc: PermissionDenied):
    return jsonify(exc.to_payload()), exc.http_status


def _api_kind(slug: str) -> Optional[EntityKind]:
    kind = kind_for_slug(slug)
    if kind is None or kind not in DASHBOARD_KINDS:
        return None
    return kind


def _not_found():
    return jsonify({"error": "Not found"}), 404


# ---------------------------------------------------------------------
# /api/auth-users
# ---------------------------------------------------------------------
@api_bp.route("/auth-users", methods=["GET"])
@api_capability_required(Capability.ADMIN_CONSOLE)
def list_auth_users():
    """All users (profile joined with auth e-mail), newest first."""
    try:
        return jsonify(user_directory().list())
    except BackendError as exc:
        return jsonify(exc.to_payload()), 500


@api_bp.route("/auth-users", methods=["POST"])
@api_capability_required(Capability.ADMIN_CONSOLE)
def create_auth_user():
    payload = _body("user")
    if payload is None:
        return _missing("User data")
    try:
        created = user_directory().create(payload, current_user.id, current_role())
    except ValidationError as exc:
        return _invalid(exc)
    except PermissionDenied as exc:
        return _denied(exc)
    except BackendError as exc:
        return _write_failed(exc)
    log_action(USER.key, "CREATE", created.get("id"), after=created)
    return jsonify(created)


@api_bp.route("/auth-users", methods=["PUT"])
@api_capability_required(Capability.ADMIN_CONSOLE)
def update_auth_user():
    payload = _body("user")
    if payload is None:
        return _missing("User data")
    user_id = str(payload.get("id") or "").strip()
    if not user_id:
        return _missing("User ID")
    directory = user_directory()
    try:
        before = directory.get(user_id)
        updated = directory.update(user_id, payload, current_user.id, current_role())
    except ValidationError as exc:
        return _invalid(exc)
    except PermissionDenied as exc:
        return _denied(exc)
    except BackendError as exc:
        return _write_failed(exc)
    log_action(USER.key, "UPDATE", user_id, before=before, after=updated)
    return jsonify(updated)


@api_bp.route("/auth-users", methods=["DELETE"])
@api_capability_required(Capability.ADMIN_CONSOLE)
def delete_auth_user():
    user_id = (request.args.get("id") or "").strip()
    if not user_id:
        return _missing("User ID")
    directory = user_directory()
    try:
        before = directory.get(user_id)
        directory.delete(user_id, current_user.id, current_role())
    except PermissionDenied as exc:
        return _denied(exc)
    except BackendError as exc:
        return _write_failed(exc)
    log_action(USER.key, "DELETE", user_id, before=before)
    return jsonify({"success": True})


# ---------------------------------------------------------------------
# /api/<slug>
# ---------------------------------------------------------------------
@api_bp.route("/<slug>", methods=["GET"])
@api_capability_required(Capability.VIEW)
def list_rows(slug: str):
    kind = _api_kind(slug)
    if kind is None:
        return _not_found()
    try:
        return jsonify(repository_for(kind).list())
    except BackendError as exc:
        return jsonify(exc.to_payload()), 500


@api_bp.route("/<slug>", methods=["POST"])
@api_capability_required(Capability.EDIT)
def create_row(slug: str):
    kind = _api_kind(slug)
    if kind is None:
        return _not_found()
    payload = _body(kind.key)
    if payload is None:
        return _missing(f"{kind.singular} data")
    try:
        created = repository_for(kind).create(payload, current_user.id)
    except ValidationError as exc:
        return _invalid(exc)
    except BackendError as exc:
        return _write_failed(exc)
    log_action(kind.key, "CREATE", created.get("id"), after=created)
    return jsonify(created)


@api_bp.route("/<slug>", methods=["PUT"])
@api_capability_required(Capability.EDIT)
def update_row(slug: str):
    kind = _api_kind(slug)
    if kind is None:
        return _not_found()
    payload = _body(kind.key)
    if payload is None:
        return _missing(f"{kind.singular} data")
    row_id = str(payload.get("id") or "").strip()
    if not row_id:
        return _missing(f"{kind.singular} ID")
    repository = repository_for(kind)
    try:
        before = repository.get(row_id)
        updated = repository.update(row_id, payload)
    except ValidationError as exc:
        return _invalid(exc)
    except BackendError as exc:
        return _write_failed(exc)
    log_action(kind.key, "UPDATE", row_id, before=before, after=updated)
    return jsonify(updated)


@api_bp.route("/<slug>", methods=["DELETE"])
@api_capability_required(Capability.DELETE)
def delete_row(slug: str):
    kind = _api_kind(slug)
    if kind is None:
        return _not_found()
    row_id = (request.args.get("id") or "").strip()
    if not row_id:
        return _missing(f"{kind.singular} ID")
    repository = repository_for(kind)
    try:
        before = repository.get(row_id)
        repository.delete(row_id)
    except BackendError as exc:
        return _write_failed(exc)
    log_action(kind.key, "DELETE", row_id, before=before)
    return jsonify({"success": True})
