"""
Dashboard Routes (/app)

One list page per business entity kind (clients, leads, quotes, vendors, sales orders,
requirements, vendor quotes, expenses), each with its Add/Edit/Delete dialogs, plus the
follow-ups view over clients.

Rules:
- Guarded: signed-out users go to "/", admins go to the admin console.
- Reads run with the signed-in user's token, so row-level security applies.
- Mutations are capability-checked server-side (write: add/edit, full_access: delete too).
"""

from flask import Blueprint, abort, redirect, render_template, url_for
from flask_login import current_user

from ...entities import CLIENT, DASHBOARD_KINDS, EntityKind, kind_for_slug
from ...errors import BackendError
from ...guards import Subtree, install_guard
from ...pages import EntityPageService, handle_dialog, handle_submit, render_page
from ...repository import follow_up_rows, repository_for
from ...security import Capability, capability_required


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/app")

install_guard(dashboard_bp, Subtree.DASHBOARD)


def _kind_or_404(slug: str) -> EntityKind:
    kind = kind_for_slug(slug)
    if kind is None or kind not in DASHBOARD_KINDS:
        abort(404)
    return kind


def _service(kind: EntityKind) -> EntityPageService:
    return EntityPageService(repository_for(kind), current_user.id)


def _list_url(kind: EntityKind) -> str:
    return url_for("dashboard.entity_list", slug=kind.slug)


# ---------------------------------------------------------------------
# ENTRY
# ---------------------------------------------------------------------

@dashboard_bp.route("")
def index():
    """Dashboard entry: the first entity list."""
    return redirect(_list_url(DASHBOARD_KINDS[0]))


# ---------------------------------------------------------------------
# FOLLOW-UPS
# ---------------------------------------------------------------------

@dashboard_bp.route("/follow-ups")
@capability_required(Capability.VIEW)
def follow_ups():
    """Clients with a scheduled follow-up, soonest first."""
    rows = []
    load_error = None
    try:
        rows = follow_up_rows(repository_for(CLIENT).list())
    except BackendError as exc:
        load_error = exc.message
    return render_template("entities/follow_ups.html", rows=rows, load_error=load_error)


# ---------------------------------------------------------------------
# LIST + DIALOGS
# ---------------------------------------------------------------------

@dashboard_bp.route("/<slug>")
@capability_required(Capability.VIEW)
def entity_list(slug: str):
    kind = _kind_or_404(slug)
    return render_page(
        kind,
        _service(kind),
        dialog_url=url_for("dashboard.entity_dialog", slug=kind.slug),
        submit_url=url_for("dashboard.entity_submit", slug=kind.slug),
    )


@dashboard_bp.route("/<slug>/dialog", methods=["POST"])
@capability_required(Capability.VIEW)
def entity_dialog(slug: str):
    """Open (add / edit / delete) or close a dialog."""
    kind = _kind_or_404(slug)
    return handle_dialog(kind, _service(kind), _list_url(kind))


@dashboard_bp.route("/<slug>/submit", methods=["POST"])
@capability_required(Capability.EDIT)
def entity_submit(slug: str):
    """Perform the open dialog's insert / update / delete."""
    kind = _kind_or_404(slug)
    return handle_submit(kind, _service(kind), _list_url(kind))
