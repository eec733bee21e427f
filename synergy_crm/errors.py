"""
synergy_crm/errors.py

Exception taxonomy.

- ConfigurationError: missing credentials, fatal at startup.
- BackendError: anything the hosted backend (or the network path to it) reports.
  There is no finer split: a network failure and a constraint violation look the same
  to callers, and both are terminal for the single operation that raised them.
- PermissionDenied: a capability check failed.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CrmError(Exception):
    default_code = "system_error"
    default_http_status = 500

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        http_status: int | None = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = (message or "").strip() or self.default_code
        self.code = (code or self.default_code).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.details = dict(details or {})
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message}


class ConfigurationError(CrmError):
    default_code = "configuration_error"


class BackendError(CrmError):
    default_code = "backend_error"


class RecordNotFound(BackendError):
    default_code = "not_found"
    default_http_status = 404


class PermissionDenied(CrmError):
    default_code = "permission_denied"
    default_http_status = 403
