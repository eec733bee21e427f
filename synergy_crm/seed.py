"""
synergy_crm/seed.py

Bootstrap the FIRST super admin of the system.

Safety rules:
- If ANY profile already exists -> refuse (user management then happens in the admin console).
- The account is created through the service-role tier: auth user + profile row, with the
  same password rules as the admin console.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from .backend import SupabaseBackend
from .entities import USER
from .errors import CrmError
from .repository import AuthUsersCache, UserDirectory
from .schemas import Role, UserStatus

logger = logging.getLogger(__name__)

BOOTSTRAP_ACTOR = "bootstrap"


class AlreadySeeded(CrmError):
    default_code = "already_seeded"
    default_http_status = 409


def has_profiles(backend: SupabaseBackend) -> bool:
    rows = backend.select(USER.table, admin=True, columns="id", order_by=None, limit=1)
    return bool(rows)


def create_super_admin(
    backend: SupabaseBackend, cache: AuthUsersCache, email: str, password: str, full_name: str
) -> Dict[str, Any]:
    """Create the first super admin. Raises AlreadySeeded when any profile exists."""
    if has_profiles(backend):
        raise AlreadySeeded("A user already exists in the system.")

    user = UserDirectory(backend, cache).create(
        {
            "full_name": full_name,
            "email": email,
            "permission": Role.SUPER_ADMIN.value,
            "status": UserStatus.ACTIVE.value,
            "password": password,
            "confirm_password": password,
        },
        actor_id=BOOTSTRAP_ACTOR,
        actor_role=Role.SUPER_ADMIN,
    )
    logger.info("super_admin_created", extra={"user_id": user.get("id")})
    return user
