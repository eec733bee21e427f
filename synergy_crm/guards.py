"""
synergy_crm/guards.py

Auth layout guards: which route subtree may render for the current session state.

decide() is pure; install_guard() wires it as a blueprint before_request hook.

Subtrees:
- PUBLIC:    landing + login. Signed-in users are sent to the dashboard.
- DASHBOARD: /app. Signed-out users go to "/", admins go to the admin console.
- ADMIN:     /admin. Signed-out users go to "/", non-admins go back to /app.

While the session is not resolved yet and nothing is cached, a loading placeholder is
rendered instead of the guarded content.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from flask import Blueprint, redirect, render_template, request

from .schemas import Role
from .security import is_admin_role
from .session import SessionState, cached_user, get_state_holder

PUBLIC_ENTRY = "/"
DASHBOARD_ENTRY = "/app"
ADMIN_ENTRY = "/admin"


class Subtree(str, Enum):
    PUBLIC = "public"
    DASHBOARD = "dashboard"
    ADMIN = "admin"


class Outcome(str, Enum):
    RENDER = "render"
    LOADING = "loading"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class GuardDecision:
    outcome: Outcome
    location: Optional[str] = None

    @classmethod
    def render(cls) -> "GuardDecision":
        return cls(Outcome.RENDER)

    @classmethod
    def loading(cls) -> "GuardDecision":
        return cls(Outcome.LOADING)

    @classmethod
    def redirect_to(cls, location: str) -> "GuardDecision":
        return cls(Outcome.REDIRECT, location)


def decide(
    state: SessionState,
    subtree: Subtree,
    role: Role | str | None = None,
    has_cached_session: bool = False,
) -> GuardDecision:
    """Route decision for one subtree. `role` is only read when AUTHENTICATED."""
    if state in (SessionState.UNINITIALIZED, SessionState.LOADING):
        if not has_cached_session:
            return GuardDecision.loading()
        # A cached prior session stands in until the state resolves.
        state = SessionState.AUTHENTICATED

    authenticated = state is SessionState.AUTHENTICATED

    if subtree is Subtree.PUBLIC:
        if authenticated:
            return GuardDecision.redirect_to(DASHBOARD_ENTRY)
        return GuardDecision.render()

    if not authenticated:
        return GuardDecision.redirect_to(PUBLIC_ENTRY)

    if subtree is Subtree.DASHBOARD and is_admin_role(role):
        return GuardDecision.redirect_to(ADMIN_ENTRY)
    if subtree is Subtree.ADMIN and not is_admin_role(role):
        return GuardDecision.redirect_to(DASHBOARD_ENTRY)
    return GuardDecision.render()


def guard_current_request(subtree: Subtree):
    """Apply decide() to the current request. Returns a response, or None to render."""
    holder = get_state_holder()
    role = holder.role
    cached = None
    if not holder.resolved:
        cached = cached_user()
        role = cached.permission if cached else None

    decision = decide(holder.state, subtree, role, has_cached_session=cached is not None)
    if decision.outcome is Outcome.LOADING:
        return render_template("loading.html"), 200
    if decision.outcome is Outcome.REDIRECT:
        return redirect(decision.location)
    return None


def install_guard(blueprint: Blueprint, subtree: Subtree, exempt: tuple[str, ...] = ()) -> None:
    """Guard every view of `blueprint` except the endpoint names in `exempt`."""

    @blueprint.before_request
    def _layout_guard():
        endpoint = (request.endpoint or "").rsplit(".", 1)[-1]
        if endpoint in exempt:
            return None
        return guard_current_request(subtree)
