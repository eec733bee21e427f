"""
synergy_crm/audit.py

Audit logging helper.

Goals:
- Capture WHO did WHAT to WHICH record, with BEFORE/AFTER snapshots.
- Store the actor e-mail snapshot to preserve identity even if the account changes later.
- Store IP address for traceability.

Audit records go to the `synergy_crm.audit` logger (one structured line per mutation);
the hosted backend owns the data, so there is no local audit table.
Never trust UI for audit; audit must run server-side on mutations.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import has_request_context, request
from flask_login import current_user

audit_logger = logging.getLogger("synergy_crm.audit")

ACTIONS = ("CREATE", "UPDATE", "DELETE")


def _safe_str(value: Any) -> Optional[str]:
    """Stable string form of a column value (None stays None)."""
    if value is None:
        return None
    return str(value)


def snapshot(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Optional[str]]]:
    """Column snapshot of a backend row, values stringified for the log line."""
    if not row:
        return None
    return {key: _safe_str(value) for key, value in row.items()}


def log_action(
    kind: str,
    action: str,
    row_id: Any,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Emit one audit record.

    Parameters:
        kind: entity kind key (client, vendor, user, ...)
        action: CREATE / UPDATE / DELETE
        row_id: id of the affected row
        before/after: row snapshots (optional)

    SECURITY NOTE:
    - request.remote_addr is as Flask sees it. In production behind a reverse proxy,
      configure ProxyFix / trusted proxy headers to capture real client IP.
    """
    action = str(action).upper()
    if action not in ACTIONS:
        raise ValueError(f"Unknown audit action {action!r}")

    authenticated = current_user.is_authenticated
    audit_logger.info(
        "audit",
        extra={
            "actor_id": current_user.id if authenticated else None,
            "actor_email": getattr(current_user, "email", None) if authenticated else None,
            "entity_type": kind,
            "entity_id": _safe_str(row_id),
            "action": action,
            "before_data": snapshot(before),
            "after_data": snapshot(after),
            "ip_address": request.remote_addr if has_request_context() else None,
        },
    )
