"""
synergy_crm/pages.py

Entity list pages and their dialog set, shared by the dashboard and the admin console.

Each page has three views, all driven by the entity kind's dialog store:
- GET  .../<slug>          list + toolbar + whichever dialog the store says is open
- POST .../<slug>/dialog   open (add / edit / delete, targeting a row) or close
- POST .../<slug>/submit   perform the open dialog's operation

Rules:
- Edit/Delete forms only render while current_row is set.
- On success the dialog closes and the list refetches (redirect).
- On validation or backend failure the message is flashed and the dialog stays open.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from flask import current_app, flash, redirect, render_template, request, session
from pydantic import BaseModel, ValidationError

from .audit import log_action
from .dialogs import DialogAction, DialogStore, bind_session_store
from .entities import EntityKind
from .errors import BackendError, PermissionDenied
from .repository import EntityRepository, UserDirectory
from .schemas import Role, error_summary
from .security import Capability, current_can
from .utils import display_value, form_payload, status_badge_class

logger = logging.getLogger(__name__)

DIALOG_REGISTRY_KEY = "crm_dialogs"
FORM_STASH_PREFIX = "dialog_form."

_ACTION_CAPABILITY = {
    DialogAction.ADD: Capability.EDIT,
    DialogAction.EDIT: Capability.EDIT,
    DialogAction.DELETE: Capability.DELETE,
}


# ---------------------------------------------------------------------
# Services: one interface over the row repository and the user directory
# ---------------------------------------------------------------------
class EntityPageService:
    def __init__(self, repository: EntityRepository, actor_id: str) -> None:
        self.repository = repository
        self.actor_id = actor_id

    def list(self) -> List[Dict[str, Any]]:
        return self.repository.list()

    def get_record(self, row_id: str) -> BaseModel:
        return self.repository.get_record(row_id)

    def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.repository.create(payload, self.actor_id)

    def update(self, row_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.repository.update(row_id, payload)

    def delete(self, row_id: str) -> None:
        self.repository.delete(row_id)


class UserPageService:
    def __init__(self, directory: UserDirectory, actor_id: str, actor_role: Role) -> None:
        self.directory = directory
        self.actor_id = actor_id
        self.actor_role = actor_role

    def list(self) -> List[Dict[str, Any]]:
        return self.directory.list()

    def get_record(self, row_id: str) -> BaseModel:
        return self.directory.get_record(row_id)

    def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.directory.create(payload, self.actor_id, self.actor_role)

    def update(self, row_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.directory.update(row_id, payload, self.actor_id, self.actor_role)

    def delete(self, row_id: str) -> None:
        self.directory.delete(row_id, self.actor_id, self.actor_role)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def dialog_store(kind: EntityKind, service) -> DialogStore[Any]:
    return bind_session_store(current_app.extensions[DIALOG_REGISTRY_KEY], kind.key, service.get_record)


def _require(action: DialogAction) -> None:
    if not current_can(_ACTION_CAPABILITY[action]):
        raise PermissionDenied(f"You do not have permission to {action.value.lower()} records.")


def _stash_form(kind: EntityKind) -> None:
    """Keep what the user typed so the reopened form is not blank (never passwords)."""
    values = {
        f.name: request.form.get(f.name, "")
        for f in kind.form_fields
        if f.kind != "password" and f.name in request.form
    }
    session[FORM_STASH_PREFIX + kind.key] = values


def _form_values(kind: EntityKind, store: DialogStore[Any]) -> Dict[str, Any]:
    stashed = session.pop(FORM_STASH_PREFIX + kind.key, None)
    if stashed is not None:
        return stashed
    open_dialog = store.open_dialog
    if open_dialog is not None and open_dialog.action is DialogAction.EDIT and store.current_row is not None:
        return store.current_row.model_dump(mode="json")
    return {}


# ---------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------
def render_page(
    kind: EntityKind,
    service,
    *,
    dialog_url: str,
    submit_url: str,
    template: str = "entities/list.html",
    **context: Any,
):
    store = dialog_store(kind, service)
    rows: List[Dict[str, Any]] = []
    load_error: Optional[str] = None
    try:
        rows = service.list()
    except BackendError as exc:
        load_error = exc.message

    html = render_template(
        template,
        kind=kind,
        rows=rows,
        load_error=load_error,
        open_dialog=store.open_dialog,
        current_row=store.current_row,
        form_values=_form_values(kind, store),
        dialog_url=dialog_url,
        submit_url=submit_url,
        can_edit=current_can(Capability.EDIT),
        can_delete=current_can(Capability.DELETE),
        display_value=display_value,
        status_badge_class=status_badge_class,
        **context,
    )
    # This render is the close transition of a dialog closed on the previous request.
    store.transition_complete()
    return html


def handle_dialog(kind: EntityKind, service, back_url: str):
    store = dialog_store(kind, service)
    action_name = (request.form.get("action") or "").strip().lower()

    if action_name == "close":
        store.close()
        session.pop(FORM_STASH_PREFIX + kind.key, None)
        return redirect(back_url)

    try:
        action = DialogAction(action_name.capitalize())
    except ValueError:
        flash("Unknown dialog action.", "warning")
        return redirect(back_url)

    _require(action)
    if action is DialogAction.ADD:
        store.open(action)
        return redirect(back_url)

    row_id = (request.form.get("row_id") or "").strip()
    if not row_id:
        flash("No record selected.", "warning")
        return redirect(back_url)
    try:
        row = service.get_record(row_id)
    except BackendError as exc:
        flash(exc.message, "danger")
        return redirect(back_url)
    store.open(action, row)
    return redirect(back_url)


def handle_submit(kind: EntityKind, service, back_url: str):
    store = dialog_store(kind, service)
    variant = store.open_dialog
    if variant is None:
        flash("Nothing to submit: the dialog was closed.", "warning")
        return redirect(back_url)

    action = variant.action
    row = store.current_row
    if variant.targets_row and row is None:
        flash("No record selected.", "warning")
        store.close()
        return redirect(back_url)

    try:
        _require(action)
        if action is DialogAction.ADD:
            created = service.create(form_payload(request.form, kind))
            log_action(kind.key, "CREATE", created.get("id"), after=created)
            flash(f"{kind.singular} created.", "success")

        elif action is DialogAction.EDIT:
            before = row.model_dump(mode="json")
            updated = service.update(row.id, form_payload(request.form, kind))
            log_action(kind.key, "UPDATE", row.id, before=before, after=updated)
            flash(f"{kind.singular} updated.", "success")

        else:
            if kind.confirm_field:
                expected = str(getattr(row, kind.confirm_field, "") or "")
                typed = (request.form.get("confirm") or "").strip()
                if typed != expected:
                    flash(f'Type "{expected}" to confirm the deletion.', "danger")
                    return redirect(back_url)
            service.delete(row.id)
            log_action(kind.key, "DELETE", row.id, before=row.model_dump(mode="json"))
            flash(f"{kind.singular} deleted.", "success")

    except ValidationError as exc:
        logger.info("dialog_submit_invalid", extra={"entity": kind.key, "dialog": variant.name})
        _stash_form(kind)
        flash(error_summary(exc), "danger")
        return redirect(back_url)
    except (BackendError, PermissionDenied) as exc:
        _stash_form(kind)
        flash(exc.message, "danger")
        return redirect(back_url)

    store.close()
    return redirect(back_url)
