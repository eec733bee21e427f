"""
Authentication Routes

Provides:
- /        landing page (public)
- /login   sign in with e-mail + password against the hosted auth service (public)
- /logout  sign out (any state)

Rules:
- Only users with an active profile may sign in.
- The public subtree is guarded: a signed-in user is sent to the dashboard.
"""

import logging

from flask import (
    Blueprint,
    render_template,
    redirect,
    flash,
    request,
)

from ...backend import get_backend
from ...dialogs import clear_session_stores
from ...errors import BackendError, RecordNotFound
from ...guards import ADMIN_ENTRY, DASHBOARD_ENTRY, PUBLIC_ENTRY, Subtree, install_guard
from ...schemas import UserStatus
from ...security import is_admin_role
from ...session import fetch_profile, forget_session, remember_session

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

install_guard(auth_bp, Subtree.PUBLIC, exempt=("logout",))


# ============================================================
# LANDING
# ============================================================

@auth_bp.route("/")
def home():
    """Public landing page."""
    return render_template("auth/home.html")


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    """
    Authenticate a user.

    Logic:
    - Credentials are checked by the hosted auth service
    - The profile row decides the role; inactive profiles are refused
    """
    if request.method == "POST":
        email = request.form.get("email", "").strip()
        password = request.form.get("password", "")

        if not email or not password:
            flash("Enter your e-mail and password.", "danger")
            return render_template("auth/login.html", email=email)

        backend = get_backend()
        try:
            auth = backend.sign_in(email, password)
        except BackendError as exc:
            logger.info("login_failed", extra={"reason": exc.code})
            flash("Invalid e-mail or password.", "danger")
            return render_template("auth/login.html", email=email)

        try:
            profile = fetch_profile(auth["user_id"], auth["access_token"])
        except RecordNotFound:
            flash("No profile is linked to this account. Contact an administrator.", "danger")
            return render_template("auth/login.html", email=email)
        except BackendError as exc:
            flash(exc.message, "danger")
            return render_template("auth/login.html", email=email)

        if (profile.get("status") or UserStatus.ACTIVE.value) != UserStatus.ACTIVE.value:
            flash("This account is inactive.", "danger")
            return render_template("auth/login.html", email=email)

        user = remember_session(auth, profile)
        logger.info("login_succeeded", extra={"user_id": user.id})
        flash("Welcome back!", "success")
        return redirect(ADMIN_ENTRY if is_admin_role(user.permission) else DASHBOARD_ENTRY)

    return render_template("auth/login.html", email="")


# ============================================================
# LOGOUT
# ============================================================

@auth_bp.route("/logout", methods=["GET", "POST"])
def logout():
    """Sign out: drops the cached session and every dialog store."""
    clear_session_stores()
    forget_session()
    flash("You have been signed out.", "info")
    return redirect(PUBLIC_ENTRY)
