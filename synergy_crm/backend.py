"""
synergy_crm/backend.py

Hosted backend collaborator (Supabase: PostgREST rows + RPC, GoTrue auth).

Two credential tiers:
- user tier: anon key + the signed-in user's access token, so row-level security applies.
  A fresh client is built per call; the SDK keeps auth state on the client object and
  must not leak between requests.
- admin tier: service-role key, one shared client. Used ONLY by the admin user directory
  (GET /api/auth-users and user management).

Every SDK / network failure is re-raised as BackendError carrying the backend's message.
No retries: a failed call is terminal for that operation.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from flask import Flask, current_app
from postgrest.exceptions import APIError
from supabase import Client, create_client

from .errors import BackendError, RecordNotFound

logger = logging.getLogger(__name__)

EXTENSION_KEY = "crm_backend"

Filters = Iterable[Tuple[str, Any]]


def get_backend() -> "SupabaseBackend":
    """Backend bound to the current app (a test double when one was injected)."""
    return current_app.extensions[EXTENSION_KEY]


class SupabaseBackend:
    def __init__(self, app: Flask | None = None) -> None:
        self.url = ""
        self.anon_key = ""
        self.service_role_key = ""
        self._admin_client: Client | None = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.url = app.config["SUPABASE_URL"]
        self.anon_key = app.config["SUPABASE_ANON_KEY"]
        self.service_role_key = app.config["SUPABASE_SERVICE_ROLE_KEY"]
        app.extensions[EXTENSION_KEY] = self

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------
    def user_client(self, access_token: str | None = None) -> Client:
        client = create_client(self.url, self.anon_key)
        if access_token:
            client.postgrest.auth(access_token)
        return client

    @property
    def admin_client(self) -> Client:
        if self._admin_client is None:
            self._admin_client = create_client(self.url, self.service_role_key)
        return self._admin_client

    def _client(self, access_token: str | None, admin: bool) -> Client:
        return self.admin_client if admin else self.user_client(access_token)

    def _run(self, label: str, call):
        started = time.monotonic()
        try:
            result = call()
        except APIError as exc:
            logger.warning("backend_call_failed", extra={"operation": label, "backend_code": exc.code})
            raise BackendError(exc.message or str(exc), code=exc.code or None) from exc
        except BackendError:
            raise
        except Exception as exc:
            logger.warning("backend_call_failed", extra={"operation": label, "error": str(exc)})
            raise BackendError(str(exc) or exc.__class__.__name__) from exc
        logger.debug(
            "backend_call",
            extra={"operation": label, "duration_ms": round((time.monotonic() - started) * 1000, 1)},
        )
        return result

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------
    def select(
        self,
        table: str,
        *,
        access_token: str | None = None,
        admin: bool = False,
        columns: str = "*",
        filters: Filters = (),
        order_by: str | None = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> List[Dict[str, Any]]:
        def call():
            query = self._client(access_token, admin).table(table).select(columns)
            for column, value in filters:
                query = query.eq(column, value)
            if order_by:
                query = query.order(order_by, desc=descending)
            if limit is not None:
                query = query.limit(limit)
            return query.execute().data or []

        return self._run(f"select:{table}", call)

    def select_one(
        self, table: str, row_id: str, *, access_token: str | None = None, admin: bool = False
    ) -> Dict[str, Any]:
        rows = self.select(
            table,
            access_token=access_token,
            admin=admin,
            filters=[("id", row_id)],
            order_by=None,
            limit=1,
        )
        if not rows:
            raise RecordNotFound(f"No {table} row with id {row_id}")
        return rows[0]

    def latest(
        self, table: str, column: str, *, access_token: str | None = None, admin: bool = False
    ) -> Optional[Dict[str, Any]]:
        """Most recently created row (only `column` selected), or None for an empty table."""
        rows = self.select(
            table, access_token=access_token, admin=admin, columns=column, limit=1
        )
        return rows[0] if rows else None

    def insert(
        self, table: str, row: Dict[str, Any], *, access_token: str | None = None, admin: bool = False
    ) -> Dict[str, Any]:
        def call():
            data = self._client(access_token, admin).table(table).insert(row).execute().data
            return data[0] if data else dict(row)

        return self._run(f"insert:{table}", call)

    def update(
        self,
        table: str,
        row_id: str,
        changes: Dict[str, Any],
        *,
        access_token: str | None = None,
        admin: bool = False,
    ) -> Dict[str, Any]:
        def call():
            data = (
                self._client(access_token, admin)
                .table(table)
                .update(changes)
                .eq("id", row_id)
                .execute()
                .data
            )
            if not data:
                raise RecordNotFound(f"No {table} row with id {row_id}")
            return data[0]

        return self._run(f"update:{table}", call)

    def delete(
        self, table: str, row_id: str, *, access_token: str | None = None, admin: bool = False
    ) -> None:
        def call():
            data = self._client(access_token, admin).table(table).delete().eq("id", row_id).execute().data
            if not data:
                raise RecordNotFound(f"No {table} row with id {row_id}")

        self._run(f"delete:{table}", call)

    def rpc(
        self,
        function: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        access_token: str | None = None,
        admin: bool = False,
    ) -> Any:
        def call():
            return self._client(access_token, admin).rpc(function, params or {}).execute().data

        return self._run(f"rpc:{function}", call)

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        def call():
            response = self.user_client().auth.sign_in_with_password(
                {"email": email, "password": password}
            )
            if not response.user or not response.session:
                raise BackendError("Invalid login credentials", code="invalid_credentials")
            return {
                "user_id": response.user.id,
                "email": response.user.email,
                "access_token": response.session.access_token,
                "refresh_token": response.session.refresh_token,
            }

        return self._run("auth:sign_in", call)

    def get_user(self, access_token: str) -> Dict[str, Any]:
        def call():
            response = self.user_client().auth.get_user(access_token)
            if response is None or response.user is None:
                raise BackendError("Session expired", code="session_expired")
            return {"user_id": response.user.id, "email": response.user.email}

        return self._run("auth:get_user", call)

    def admin_create_user(self, email: str, password: str) -> Dict[str, Any]:
        def call():
            response = self.admin_client.auth.admin.create_user(
                {"email": email, "password": password, "email_confirm": True}
            )
            if response.user is None:
                raise BackendError("Failed to create auth user")
            return {"user_id": response.user.id, "email": response.user.email}

        return self._run("auth:admin_create_user", call)

    def admin_update_user(self, user_id: str, attributes: Dict[str, Any]) -> None:
        self._run(
            "auth:admin_update_user",
            lambda: self.admin_client.auth.admin.update_user_by_id(user_id, attributes),
        )

    def admin_delete_user(self, user_id: str) -> None:
        self._run("auth:admin_delete_user", lambda: self.admin_client.auth.admin.delete_user(user_id))
