"""
synergy_crm/blueprints/admin/routes.py

Admin Routes: the administration console.

Includes:
- User management (auth account + profile), same list/dialog flow as the dashboard

Requirements implemented here:
- Guarded: signed-out users go to "/", non-admins go back to /app
- Admin-only CRUD through the service-role user directory
- Admins cannot grant or edit super_admin; nobody changes their own permission
- Audit logging for CREATE / UPDATE / DELETE

NOTES:
- UI is never trusted. All validations happen server-side.
"""

from __future__ import annotations

from flask import Blueprint, redirect, url_for
from flask_login import current_user

from ...entities import USER
from ...guards import Subtree, install_guard
from ...pages import UserPageService, handle_dialog, handle_submit, render_page
from ...repository import user_directory
from ...security import Capability, assignable_roles, capability_required, current_role

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

install_guard(admin_bp, Subtree.ADMIN)


def _service() -> UserPageService:
    return UserPageService(user_directory(), current_user.id, current_role())


# -------------------------------------------------------
# ENTRY
# -------------------------------------------------------
@admin_bp.route("")
def index():
    """Admin console entry: user management."""
    return redirect(url_for("admin.users"))


# -------------------------------------------------------
# USERS
# -------------------------------------------------------
@admin_bp.route("/users")
@capability_required(Capability.ADMIN_CONSOLE)
def users():
    """List users with the Add/Edit/Delete user dialogs."""
    return render_page(
        USER,
        _service(),
        dialog_url=url_for("admin.user_dialog"),
        submit_url=url_for("admin.user_submit"),
        field_choices={"permission": [role.value for role in assignable_roles(current_role())]},
    )


@admin_bp.route("/users/dialog", methods=["POST"])
@capability_required(Capability.ADMIN_CONSOLE)
def user_dialog():
    return handle_dialog(USER, _service(), url_for("admin.users"))


@admin_bp.route("/users/submit", methods=["POST"])
@capability_required(Capability.ADMIN_CONSOLE)
def user_submit():
    """Create / update / delete the user targeted by the open dialog."""
    return handle_submit(USER, _service(), url_for("admin.users"))
