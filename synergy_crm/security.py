"""
synergy_crm/security.py

Access control helpers.

Key rules:
- UI is never trusted; all permission checks are server-side.
- One enumerated Role per user (profiles.permission), one capability check: can(role, cap).
- super_admin / admin: full access plus the admin console.
- full_access: create, edit and delete business records.
- write: create and edit, no delete.
- read: read-only. The global read_only_guard() blocks mutating requests for them.

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

from flask import jsonify, render_template, request
from flask_login import current_user

from .schemas import Role

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# Self-service endpoints a read-only user may still POST to.
READ_ONLY_ALLOWED_ENDPOINTS = {"auth.login", "auth.logout"}


class Capability(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"
    ADMIN_CONSOLE = "admin_console"
    MANAGE_SUPER_ADMINS = "manage_super_admins"


_ALL = frozenset(Capability)

ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.SUPER_ADMIN: _ALL,
    Role.ADMIN: _ALL - {Capability.MANAGE_SUPER_ADMINS},
    Role.FULL_ACCESS: frozenset({Capability.VIEW, Capability.EDIT, Capability.DELETE}),
    Role.WRITE: frozenset({Capability.VIEW, Capability.EDIT}),
    Role.READ: frozenset({Capability.VIEW}),
}


def can(role: Role | str | None, capability: Capability) -> bool:
    """Single capability check used by routes, templates and guards."""
    return capability in ROLE_CAPABILITIES[Role.parse(role)]


def is_admin_role(role: Role | str | None) -> bool:
    return can(role, Capability.ADMIN_CONSOLE)


def current_role() -> Optional[Role]:
    if not current_user.is_authenticated:
        return None
    return Role.parse(getattr(current_user, "permission", None))


def current_can(capability: Capability) -> bool:
    role = current_role()
    return role is not None and can(role, capability)


def _forbidden() -> Tuple[str, int]:
    """Render a consistent 403 page."""
    return render_template("errors/403.html"), 403


def read_only_guard() -> Optional[Tuple[str, int]]:
    """
    Global guard: read-only users cannot mutate data.

    Blocks POST/PUT/PATCH/DELETE for authenticated users without the EDIT capability,
    except the allow-listed self-service endpoints. Each route still enforces its own
    capability; this is the safety net.
    """
    if request.method not in MUTATING_METHODS:
        return None
    if not current_user.is_authenticated:
        return None
    if current_can(Capability.EDIT):
        return None

    endpoint = (request.endpoint or "").strip()
    if endpoint in READ_ONLY_ALLOWED_ENDPOINTS:
        return None
    # Closing a dialog is not a mutation.
    if endpoint.endswith("_dialog") and request.form.get("action") == "close":
        return None

    if request.path.startswith("/api/"):
        return jsonify({"error": "Forbidden"}), 403
    return _forbidden()


def capability_required(capability: Capability) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator factory for HTML views."""
    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            if not current_can(capability):
                return _forbidden()
            return view_func(*args, **kwargs)

        return wrapper

    return decorator


def api_capability_required(capability: Capability) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator factory for JSON views: 401 when signed out, 403 when lacking the capability."""
    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            if not current_user.is_authenticated:
                return jsonify({"error": "Unauthorized"}), 401
            if not current_can(capability):
                return jsonify({"error": "Forbidden"}), 403
            return view_func(*args, **kwargs)

        return wrapper

    return decorator


def assignable_roles(actor_role: Role | str | None) -> list[Role]:
    """Roles an actor may hand out: admins cannot see or grant super_admin."""
    if can(actor_role, Capability.MANAGE_SUPER_ADMINS):
        return list(Role)
    return [role for role in Role if role is not Role.SUPER_ADMIN]


def check_user_change(
    actor_id: str,
    actor_role: Role | str | None,
    target: Optional[Dict[str, Any]],
    new_permission: Role | str | None,
) -> Optional[str]:
    """
    Validate a user create/update against the user administration rules.

    Returns an error message, or None when the change is allowed:
    - only admins manage users;
    - an admin cannot grant super_admin, nor edit an existing super_admin;
    - nobody changes their own permission.
    """
    if not can(actor_role, Capability.ADMIN_CONSOLE):
        return "You do not have permission to manage users."

    manages_super = can(actor_role, Capability.MANAGE_SUPER_ADMINS)
    new_role = Role.parse(new_permission) if new_permission is not None else None

    if new_role is Role.SUPER_ADMIN and not manages_super:
        return "Only a super admin can grant the super_admin permission."

    if target is not None:
        target_role = Role.parse(target.get("permission"))
        if target_role is Role.SUPER_ADMIN and not manages_super:
            return "Only a super admin can modify a super admin."
        if str(target.get("id")) == str(actor_id) and new_role is not None and new_role is not target_role:
            return "You cannot change your own permission."

    return None
