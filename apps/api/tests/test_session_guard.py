"""Session guard state machine and route decisions."""

from types import SimpleNamespace
from uuid import uuid4

from whosehouse.core.security import create_session_token
from whosehouse.db.enums import Role
from whosehouse.services.session_guard import (
    GuardState,
    RouteGroup,
    SIGN_IN_ROUTE,
    SessionGuard,
    build_session_guard,
)


def _profile(role: str = Role.FOSTER_CARER.value, token_version: int = 1, is_active: bool = True):
    return SimpleNamespace(id=uuid4(), role=role, token_version=token_version, is_active=is_active)


def _claims(profile, token_version=None):
    return {
        "sub": str(profile.id),
        "token_version": profile.token_version if token_version is None else token_version,
    }


def test_no_session_is_unauthenticated_and_not_loading():
    guard = SessionGuard(lambda _: None)
    assert guard.start(None) == GuardState.UNAUTHENTICATED
    assert guard.loading is False
    assert guard.route_for(RouteGroup.AUTH) is None
    assert guard.route_for(RouteGroup.FOSTER_CARER) == SIGN_IN_ROUTE


def test_session_without_profile_row():
    guard = SessionGuard(lambda _: None)
    assert guard.start({"sub": str(uuid4()), "token_version": 1}) == GuardState.NO_PROFILE
    assert guard.loading is False
    assert guard.role is None


def test_malformed_subject_is_unauthenticated():
    guard = SessionGuard(lambda _: _profile())
    assert guard.start({"sub": "not-a-uuid", "token_version": 1}) == GuardState.UNAUTHENTICATED
    assert guard.loading is False


def test_loader_sees_loading_state():
    seen = []
    profile = _profile()

    def loader(user_id):
        seen.append((guard.state, guard.loading))
        return profile

    guard = SessionGuard(loader)
    guard.start(_claims(profile))
    assert seen == [(GuardState.LOADING_PROFILE, True)]
    assert guard.state == GuardState.AUTHENTICATED
    assert guard.loading is False


def test_revoked_or_disabled_profile_is_unauthenticated():
    stale = _profile(token_version=3)
    guard = SessionGuard(lambda _: stale)
    assert guard.start(_claims(stale, token_version=2)) == GuardState.UNAUTHENTICATED

    disabled = _profile(is_active=False)
    guard = SessionGuard(lambda _: disabled)
    assert guard.start(_claims(disabled)) == GuardState.UNAUTHENTICATED


def test_unknown_role_counts_as_missing_profile():
    odd = _profile(role="superuser")
    guard = SessionGuard(lambda _: odd)
    assert guard.start(_claims(odd)) == GuardState.NO_PROFILE


def test_routes_by_role():
    worker = _profile(role=Role.SOCIAL_WORKER.value)
    guard = SessionGuard(lambda _: worker)
    guard.start(_claims(worker))

    assert guard.home_route == "/(social_worker)/dashboard"
    assert guard.route_for(RouteGroup.SOCIAL_WORKER) is None
    assert guard.route_for(RouteGroup.FOSTER_CARER) == "/(social_worker)/dashboard"
    assert guard.route_for(RouteGroup.ADMIN) == "/(social_worker)/dashboard"
    assert guard.route_for(RouteGroup.AUTH) == "/(social_worker)/dashboard"
    assert guard.route_for("(nowhere)") == "/(social_worker)/dashboard"


def test_child_routes_are_always_open():
    guard = SessionGuard(lambda _: None)
    guard.start(None)
    assert guard.route_for(RouteGroup.CHILD) is None


def test_sign_out_clears_identity_and_caches():
    carer = _profile()
    guard = SessionGuard(lambda _: carer)
    guard.start(_claims(carer))
    guard.cache("conversations")["case"] = [1, 2]
    guard.cache("profile")["me"] = carer

    assert guard.sign_out() == carer.id
    assert guard.state == GuardState.UNAUTHENTICATED
    assert guard.profile is None
    assert guard.cache("conversations") == {}
    assert guard.snapshot() == {
        "state": "unauthenticated",
        "loading": False,
        "role": None,
        "user_id": None,
        "home_route": SIGN_IN_ROUTE,
    }


def test_build_from_token(db, carer):
    token = create_session_token(
        carer.id, carer.organization_id, carer.role, carer.token_version
    )
    guard = build_session_guard(db, token)
    assert guard.state == GuardState.AUTHENTICATED
    assert guard.role == Role.FOSTER_CARER


def test_build_from_garbage_token(db):
    guard = build_session_guard(db, "not-a-jwt")
    assert guard.state == GuardState.UNAUTHENTICATED
