"""
synergy_crm/session.py

Process-wide user-session state.

SessionState moves UNINITIALIZED -> LOADING -> AUTHENTICATED(role) | UNAUTHENTICATED once
per request (initialize_session, wired as an app.before_request hook). The login profile
is cached in the signed Flask session and trusted for SESSION_REVALIDATE_SECONDS; after
that it is checked against the backend again. A failed check is indistinguishable from
"signed out": the cache is dropped and the state resolves to UNAUTHENTICATED.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Dict, Optional

from flask import current_app, g, session
from flask_login import UserMixin, login_user, logout_user

from .backend import get_backend
from .errors import BackendError
from .schemas import Role, UserStatus

logger = logging.getLogger(__name__)

AUTH_SESSION_KEY = "auth"
PROFILES_TABLE = "profiles"


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class CrmUser(UserMixin):
    """Signed-in user, rebuilt from the session cache on every request."""

    def __init__(self, data: Dict[str, Any]) -> None:
        self.id = str(data["user_id"])
        self.email = data.get("email")
        self.full_name = data.get("full_name") or self.email
        self.permission = Role.parse(data.get("permission"))
        self.status = data.get("status") or UserStatus.ACTIVE.value
        self.access_token = data.get("access_token")

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    @property
    def role(self) -> Role:
        return self.permission

    def __repr__(self) -> str:
        return f"<CrmUser {self.email} {self.permission.value}>"


class SessionStateHolder:
    def __init__(self) -> None:
        self.state = SessionState.UNINITIALIZED
        self.user: Optional[CrmUser] = None

    @property
    def role(self) -> Optional[Role]:
        return self.user.permission if self.user else None

    @property
    def resolved(self) -> bool:
        return self.state in (SessionState.AUTHENTICATED, SessionState.UNAUTHENTICATED)

    def begin(self) -> None:
        self.state = SessionState.LOADING

    def authenticate(self, user: CrmUser) -> None:
        self.user = user
        self.state = SessionState.AUTHENTICATED

    def unauthenticate(self) -> None:
        self.user = None
        self.state = SessionState.UNAUTHENTICATED


def get_state_holder() -> SessionStateHolder:
    holder = getattr(g, "session_state", None)
    if holder is None:
        holder = SessionStateHolder()
        g.session_state = holder
    return holder


def cached_user() -> Optional[CrmUser]:
    data = session.get(AUTH_SESSION_KEY)
    if not data or not data.get("user_id"):
        return None
    return CrmUser(data)


def load_user(user_id: str) -> Optional[CrmUser]:
    """Flask-Login user loader: the session cache is the only source."""
    user = cached_user()
    if user is None or user.id != str(user_id):
        return None
    return user


def fetch_profile(user_id: str, access_token: str) -> Dict[str, Any]:
    return get_backend().select_one(PROFILES_TABLE, user_id, access_token=access_token)


def remember_session(auth: Dict[str, Any], profile: Dict[str, Any]) -> CrmUser:
    data = {
        "user_id": auth["user_id"],
        "email": auth.get("email"),
        "access_token": auth.get("access_token"),
        "refresh_token": auth.get("refresh_token"),
        "full_name": profile.get("full_name"),
        "permission": Role.parse(profile.get("permission")).value,
        "status": profile.get("status") or UserStatus.ACTIVE.value,
        "validated_at": time.time(),
    }
    session[AUTH_SESSION_KEY] = data
    user = CrmUser(data)
    login_user(user)
    return user


def forget_session() -> None:
    session.pop(AUTH_SESSION_KEY, None)
    logout_user()


def _revalidate(data: Dict[str, Any]) -> Optional[CrmUser]:
    token = data.get("access_token") or ""
    try:
        auth = get_backend().get_user(token)
        profile = fetch_profile(auth["user_id"], token)
    except BackendError as exc:
        logger.info("session_revalidation_failed", extra={"reason": exc.message})
        return None
    if (profile.get("status") or UserStatus.ACTIVE.value) != UserStatus.ACTIVE.value:
        return None
    auth.setdefault("access_token", token)
    auth.setdefault("refresh_token", data.get("refresh_token"))
    return remember_session(auth, profile)


def initialize_session() -> SessionStateHolder:
    """Resolve the session state for this request (app.before_request)."""
    holder = get_state_holder()
    holder.begin()

    data = session.get(AUTH_SESSION_KEY)
    if not data or not data.get("user_id"):
        holder.unauthenticate()
        return holder

    max_age = int(current_app.config.get("SESSION_REVALIDATE_SECONDS", 300))
    age = time.time() - float(data.get("validated_at") or 0)
    if age < max_age:
        holder.authenticate(CrmUser(data))
        return holder

    user = _revalidate(data)
    if user is None:
        forget_session()
        holder.unauthenticate()
    else:
        holder.authenticate(user)
    return holder
