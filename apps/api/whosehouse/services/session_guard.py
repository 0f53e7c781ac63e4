"""
Session/identity guard.

Resolves the caller's session into one of four states and decides, for a
requested route group, whether to allow it or where to redirect. The guard
is an explicit per-request object rather than process-wide state: it is
built from the session token, used for routing decisions, and torn down by
sign_out(), which also drops every cache registered on it.
"""

import logging
from enum import Enum
from typing import Any, Callable
from uuid import UUID

import jwt
from sqlalchemy.orm import Session

from whosehouse.core.row_security import privileged
from whosehouse.core.security import decode_session_token
from whosehouse.db.enums import Role
from whosehouse.db.models import Profile


logger = logging.getLogger(__name__)


class GuardState(str, Enum):
    """Coarse identity states."""

    UNAUTHENTICATED = "unauthenticated"
    LOADING_PROFILE = "loading_profile"
    AUTHENTICATED = "authenticated"
    NO_PROFILE = "no_profile"  # Session without a profile row: misconfiguration


class RouteGroup(str, Enum):
    """Screen groups of the mobile app."""

    AUTH = "(auth)"
    SOCIAL_WORKER = "(social_worker)"
    FOSTER_CARER = "(foster_carer)"
    ADMIN = "(admin)"
    CHILD = "(child)"  # Public token-based routes


SIGN_IN_ROUTE = "/(auth)"

HOME_ROUTES = {
    Role.SOCIAL_WORKER: "/(social_worker)/dashboard",
    Role.FOSTER_CARER: "/(foster_carer)/dashboard",
    Role.ADMIN: "/(admin)/dashboard",
}

ROLE_GROUPS = {
    RouteGroup.SOCIAL_WORKER: Role.SOCIAL_WORKER,
    RouteGroup.FOSTER_CARER: Role.FOSTER_CARER,
    RouteGroup.ADMIN: Role.ADMIN,
}


class SessionGuard:
    """State machine over the caller's identity."""

    def __init__(self, load_profile: Callable[[UUID], Profile | None]):
        self._load_profile = load_profile
        self.state = GuardState.UNAUTHENTICATED
        self.loading = False
        self.profile: Profile | None = None
        self.claims: dict | None = None
        self._caches: dict[str, dict[Any, Any]] = {}

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, claims: dict | None) -> GuardState:
        """
        Resolve decoded session claims (or None) into a terminal state.

        loading is cleared on every branch, including the no-session one.
        """
        self.state = GuardState.LOADING_PROFILE
        self.loading = True
        self.profile = None
        self.claims = claims
        try:
            if not claims or "sub" not in claims:
                self.state = GuardState.UNAUTHENTICATED
                return self.state

            try:
                user_id = UUID(str(claims["sub"]))
            except ValueError:
                self.state = GuardState.UNAUTHENTICATED
                return self.state

            profile = self._load_profile(user_id)
            if profile is None:
                logger.warning("Session without profile row for user %s", claims["sub"])
                self.state = GuardState.NO_PROFILE
            elif not profile.is_active or profile.token_version != claims.get("token_version"):
                self.state = GuardState.UNAUTHENTICATED
            elif not Role.has_value(profile.role):
                self.state = GuardState.NO_PROFILE
            else:
                self.profile = profile
                self.state = GuardState.AUTHENTICATED
            return self.state
        finally:
            self.loading = False

    def sign_out(self) -> UUID | None:
        """Drop identity and all derived caches. Returns the signed-out user id."""
        user_id = self.profile.id if self.profile else None
        for cache in self._caches.values():
            cache.clear()
        self._caches.clear()
        self.profile = None
        self.claims = None
        self.loading = False
        self.state = GuardState.UNAUTHENTICATED
        return user_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def role(self) -> Role | None:
        if self.state != GuardState.AUTHENTICATED or self.profile is None:
            return None
        return Role(self.profile.role)

    @property
    def home_route(self) -> str:
        role = self.role
        return HOME_ROUTES[role] if role else SIGN_IN_ROUTE

    def route_for(self, group: RouteGroup | str) -> str | None:
        """
        None when the route group is allowed, otherwise the redirect target.
        """
        try:
            group = RouteGroup(group)
        except ValueError:
            return self.home_route

        if group == RouteGroup.CHILD:
            return None

        if self.state != GuardState.AUTHENTICATED:
            return None if group == RouteGroup.AUTH else SIGN_IN_ROUTE

        if group == RouteGroup.AUTH:
            return self.home_route
        if ROLE_GROUPS.get(group) == self.role:
            return None
        return self.home_route

    def cache(self, name: str) -> dict:
        """Named cache whose lifetime ends at sign_out()."""
        return self._caches.setdefault(name, {})

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "loading": self.loading,
            "role": self.role.value if self.role else None,
            "user_id": str(self.profile.id) if self.profile else None,
            "home_route": self.home_route,
        }


def build_session_guard(db: Session, token: str | None) -> SessionGuard:
    """Build and start a guard from a raw session token."""

    def load_profile(user_id: UUID) -> Profile | None:
        # Identity lookup must not pass through the profiles row policy
        with privileged():
            return db.query(Profile).filter(Profile.id == user_id).first()

    claims = None
    if token:
        try:
            claims = decode_session_token(token)
        except jwt.InvalidTokenError:
            claims = None

    guard = SessionGuard(load_profile)
    guard.start(claims)
    return guard
