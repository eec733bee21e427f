"""
synergy_crm/repository.py

CRUD over the hosted backend, one generic repository parametrized by EntityKind,
plus the admin-only user directory.

Rules enforced here (the UI is never trusted):
- Payloads are validated against the kind's input model before any backend call.
- Server-computed columns are never sent (e.g. vendor quote total_cost).
- New rows get a uuid id, owner column, timestamps and, for clients/vendors, the next
  generated code (C001, C002, ... / V001, ...). Updates never touch the generated code.

There is no local cache coherence: callers refetch after every write.
"""

from __future__ import annotations

import logging
import re
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import current_app
from flask_login import current_user
from pydantic import TypeAdapter

from .backend import SupabaseBackend, get_backend
from .entities import USER, EntityKind
from .errors import BackendError, PermissionDenied
from .schemas import Role, UserInput, UserStatus
from .security import check_user_change

logger = logging.getLogger(__name__)

AUTH_USERS_RPC = "get_auth_users"
AUTH_USERS_CACHE_KEY = "crm_auth_users_cache"

_WRITE_PROTECTED = {"id", "created_at", "created_by"}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def next_code(prefix: str, last_code: Optional[str]) -> str:
    """
    Next sequential code: C007 -> C008, C999 -> C1000.

    Missing or unreadable last codes restart at <prefix>001.
    """
    match = re.match(rf"^{re.escape(prefix)}(\d+)$", (last_code or "").strip())
    if not match:
        return f"{prefix}001"
    return f"{prefix}{int(match.group(1)) + 1:03d}"


_DATETIME = TypeAdapter(datetime)


def follow_up_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Clients that have a next follow-up date, soonest first. Naive dates count as UTC."""
    dated = []
    for row in rows:
        raw = row.get("next_follow_up_at")
        if not raw:
            continue
        when = _DATETIME.validate_python(raw)
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        dated.append((when, row))
    dated.sort(key=lambda pair: pair[0])
    return [row for _, row in dated]


class EntityRepository:
    def __init__(self, backend: SupabaseBackend, kind: EntityKind, access_token: str | None) -> None:
        self.backend = backend
        self.kind = kind
        self.access_token = access_token

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list(self) -> List[Dict[str, Any]]:
        return self.backend.select(self.kind.table, access_token=self.access_token)

    def get(self, row_id: str) -> Dict[str, Any]:
        return self.backend.select_one(self.kind.table, row_id, access_token=self.access_token)

    def get_record(self, row_id: str):
        return self.kind.record_model.model_validate(self.get(row_id))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def validate(self, payload: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        """
        Raises pydantic.ValidationError; returns JSON-ready column values.

        With partial=True only the columns present in the payload are returned (updates).
        """
        model = self.kind.input_model.model_validate(payload)
        data = model.model_dump(mode="json", exclude_unset=partial)
        for column in self.kind.server_computed | _WRITE_PROTECTED:
            data.pop(column, None)
        return data

    def generate_code(self) -> str:
        last = self.backend.latest(self.kind.table, self.kind.code_field, access_token=self.access_token)
        return next_code(self.kind.code_prefix, (last or {}).get(self.kind.code_field))

    def create(self, payload: Dict[str, Any], actor_id: str) -> Dict[str, Any]:
        data = self.validate(payload)
        if self.kind.code_field:
            if not data.get(self.kind.code_field):
                data[self.kind.code_field] = self.generate_code()
        for column, value in self.kind.create_defaults:
            data[column] = value
        now = utc_now_iso()
        data["id"] = str(uuid.uuid4())
        if self.kind.owner_field:
            data[self.kind.owner_field] = actor_id
        data["created_at"] = now
        data["updated_at"] = now
        return self.backend.insert(self.kind.table, data, access_token=self.access_token)

    def update(self, row_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self.validate(payload, partial=True)
        if self.kind.code_field:
            data.pop(self.kind.code_field, None)
        data["updated_at"] = utc_now_iso()
        return self.backend.update(self.kind.table, row_id, data, access_token=self.access_token)

    def delete(self, row_id: str) -> None:
        self.backend.delete(self.kind.table, row_id, access_token=self.access_token)


class AuthUsersCache:
    """Short-lived cache of the joined user list (shared across requests)."""

    def __init__(self, ttl_seconds: int) -> None:
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._data: Optional[List[Dict[str, Any]]] = None
        self._stored_at = 0.0

    def get(self) -> Optional[List[Dict[str, Any]]]:
        with self._lock:
            if self._data is None or self.ttl_seconds <= 0:
                return None
            if time.monotonic() - self._stored_at >= self.ttl_seconds:
                self._data = None
                return None
            return self._data

    def put(self, data: List[Dict[str, Any]]) -> None:
        with self._lock:
            self._data = data
            self._stored_at = time.monotonic()

    def invalidate(self) -> None:
        with self._lock:
            self._data = None
            self._stored_at = 0.0


def _user_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row.get("id"),
        "full_name": row.get("full_name"),
        "email": row.get("email"),
        "permission": row.get("permission"),
        "status": row.get("status"),
    }


class UserDirectory:
    """
    Admin-only user management (service-role tier).

    Profiles live in `profiles`; e-mails and passwords live in the auth service.
    The `get_auth_users` RPC returns the joined view.
    """

    def __init__(self, backend: SupabaseBackend, cache: AuthUsersCache) -> None:
        self.backend = backend
        self.cache = cache

    def list(self) -> List[Dict[str, Any]]:
        cached = self.cache.get()
        if cached is not None:
            return cached
        rows = self.backend.rpc(AUTH_USERS_RPC, admin=True) or []
        # Newest first; rows without created_at sink to the bottom.
        rows = sorted(rows, key=lambda r: r.get("created_at") or "", reverse=True)
        result = [_user_row(row) for row in rows]
        logger.info("auth_users_loaded", extra={"count": len(result)})
        self.cache.put(result)
        return result

    def get(self, user_id: str) -> Dict[str, Any]:
        for row in self.list():
            if str(row.get("id")) == str(user_id):
                return row
        profile = self.backend.select_one(USER.table, user_id, admin=True)
        return _user_row(profile)

    def get_record(self, user_id: str):
        return USER.record_model.model_validate(self.get(user_id))

    def create(self, payload: Dict[str, Any], actor_id: str, actor_role: Role) -> Dict[str, Any]:
        user = UserInput.model_validate({**payload, "is_edit": False})
        problem = check_user_change(actor_id, actor_role, None, user.permission)
        if problem:
            raise PermissionDenied(problem)

        auth_user = self.backend.admin_create_user(user.email, user.password or "")
        try:
            profile = self.backend.insert(
                USER.table,
                {
                    "id": auth_user["user_id"],
                    "full_name": user.full_name,
                    "permission": user.permission,
                    "status": UserStatus(user.status).value,
                },
                admin=True,
            )
        except BackendError:
            # Roll back the auth user so the e-mail can be reused.
            self.backend.admin_delete_user(auth_user["user_id"])
            raise
        self.cache.invalidate()
        return _user_row({**profile, "email": auth_user.get("email") or user.email})

    def update(
        self, user_id: str, payload: Dict[str, Any], actor_id: str, actor_role: Role
    ) -> Dict[str, Any]:
        user = UserInput.model_validate({**payload, "is_edit": True})
        target = self.get(user_id)
        problem = check_user_change(actor_id, actor_role, target, user.permission)
        if problem:
            raise PermissionDenied(problem)

        attributes: Dict[str, Any] = {}
        if user.email and user.email != target.get("email"):
            attributes["email"] = user.email
        if user.password:
            attributes["password"] = user.password
        if attributes:
            self.backend.admin_update_user(user_id, attributes)

        changes: Dict[str, Any] = {"full_name": user.full_name, "permission": user.permission}
        # An omitted status leaves the account as it is.
        if "status" in user.model_fields_set:
            changes["status"] = UserStatus(user.status).value
        profile = self.backend.update(USER.table, user_id, changes, admin=True)
        self.cache.invalidate()
        return _user_row({**profile, "email": user.email})

    def delete(self, user_id: str, actor_id: str, actor_role: Role) -> None:
        target = self.get(user_id)
        problem = check_user_change(actor_id, actor_role, target, None)
        if problem:
            raise PermissionDenied(problem)
        if str(user_id) == str(actor_id):
            raise PermissionDenied("You cannot delete your own account.")
        self.backend.delete(USER.table, user_id, admin=True)
        self.backend.admin_delete_user(user_id)
        self.cache.invalidate()


def repository_for(kind: EntityKind) -> EntityRepository:
    """Repository acting with the signed-in user's token (row-level security applies)."""
    return EntityRepository(get_backend(), kind, getattr(current_user, "access_token", None))


def user_directory() -> UserDirectory:
    return UserDirectory(get_backend(), current_app.extensions[AUTH_USERS_CACHE_KEY])
