"""
Utility functions shared across the app. This includes:
- form_payload: Collect the submitted values for an entity kind's form fields.
- status_badge_class: Determine CSS class for a status cell.
- display_value: Render a cell value for list tables.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from .entities import EntityKind


def form_payload(form: Mapping[str, str], kind: EntityKind) -> Dict[str, Any]:
    """
    Values of the kind's form fields as submitted.

    Only declared fields are read, so a crafted form cannot smuggle other columns in.
    Empty strings are passed through; the input models turn them into None.
    """
    return {f.name: form.get(f.name, "") for f in kind.form_fields if f.name in form}


def status_badge_class(value: Any) -> str:
    """
    CSS class for a status value:

    1) won / approved / accepted / active / delivered / closed -> green
    2) lost / rejected / cancelled / inactive / expired -> red
    3) everything else -> neutral
    """
    status = str(value or "").strip().lower()
    if status in {"won", "approved", "accepted", "active", "delivered", "closed", "confirmed"}:
        return "badge-positive"
    if status in {"lost", "rejected", "cancelled", "inactive", "expired"}:
        return "badge-negative"
    return "badge-neutral"


def display_value(value: Any) -> str:
    if value is None or value == "":
        return "-"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(value)
