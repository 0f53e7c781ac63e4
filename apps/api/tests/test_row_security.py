"""Row policies: visibility per role and the recursion guard."""

import pytest
from sqlalchemy import false

from whosehouse.core.policies import ROW_POLICIES, can_write, scoped_query
from whosehouse.core.row_security import (
    PolicyNotRegisteredError,
    PolicyRecursionError,
    PolicyRegistry,
    RowPolicy,
    is_privileged,
    privileged,
)
from whosehouse.db.enums import AuditAction, Role
from whosehouse.db.models import AuditLog, Case, ChildAccessToken, Household, Profile
from whosehouse.services import access_token_service, audit_service, case_service


def test_every_protected_table_is_registered():
    assert ROW_POLICIES.tables() == sorted(
        [
            "audit_logs",
            "case_media",
            "cases",
            "child_access_tokens",
            "household_invitations",
            "households",
            "messages",
            "placement_requests",
            "profiles",
        ]
    )


def test_unknown_table_raises():
    with pytest.raises(PolicyNotRegisteredError):
        ROW_POLICIES.get("organizations")


def test_reentrant_policy_raises_instead_of_recursing(db):
    registry = PolicyRegistry()

    def visible(session, identity):
        # Re-enters its own table
        return registry.visible_filter(session, identity, "profiles")

    registry.register(RowPolicy("profiles", visible))

    with pytest.raises(PolicyRecursionError) as exc:
        registry.scoped_query(db, object(), Profile)
    assert exc.value.table == "profiles"
    assert "profiles -> profiles" in str(exc.value)


def test_cross_table_cycle_is_detected(db):
    registry = PolicyRegistry()
    registry.register(
        RowPolicy("profiles", lambda s, i: registry.visible_filter(s, i, "households"))
    )
    registry.register(
        RowPolicy("households", lambda s, i: registry.visible_filter(s, i, "profiles"))
    )

    with pytest.raises(PolicyRecursionError) as exc:
        registry.visible_filter(db, object(), "profiles")
    assert exc.value.stack == ("profiles", "households")


def test_privileged_skips_policies(db):
    registry = PolicyRegistry()
    registry.register(RowPolicy("profiles", lambda s, i: false()))

    assert not is_privileged()
    with privileged():
        assert is_privileged()
        assert registry.visible_filter(db, object(), "profiles") is None
    assert not is_privileged()


def test_social_worker_sees_only_their_cases(db, session_for, make_profile, social_worker):
    other_worker = make_profile(Role.SOCIAL_WORKER, "Other Worker")
    mine = case_service.create_case(db, session_for(social_worker))
    theirs = case_service.create_case(db, session_for(other_worker))

    visible = scoped_query(db, session_for(social_worker), Case).all()
    assert [c.id for c in visible] == [mine.id]

    with pytest.raises(case_service.CaseNotFoundError):
        case_service.get_case(db, session_for(social_worker), theirs.id)


def test_admin_sees_every_case_in_org(db, session_for, make_profile, social_worker, admin):
    other_worker = make_profile(Role.SOCIAL_WORKER, "Other Worker")
    case_service.create_case(db, session_for(social_worker))
    case_service.create_case(db, session_for(other_worker))

    assert scoped_query(db, session_for(admin), Case).count() == 2


def test_carer_sees_only_own_household(db, session_for, make_household, carer, household):
    _, other = make_household("Elm House")

    visible = scoped_query(db, session_for(carer), Household).all()
    assert [h.id for h in visible] == [household.id]
    assert can_write(db, session_for(carer), household)
    assert not can_write(db, session_for(carer), other)


def test_carer_without_household_sees_none(db, session_for, make_profile):
    loner = make_profile(Role.FOSTER_CARER, "Lone Carer")
    assert scoped_query(db, session_for(loner), Household).count() == 0


def test_audit_logs_visible_to_admin_only(db, session_for, social_worker, admin, carer):
    audit_service.log_event(
        db,
        org_id=admin.organization_id,
        action=AuditAction.USER_LOGIN,
        actor_user_id=admin.id,
    )
    db.flush()

    assert scoped_query(db, session_for(admin), AuditLog).count() == 1
    assert scoped_query(db, session_for(social_worker), AuditLog).count() == 0
    assert scoped_query(db, session_for(carer), AuditLog).count() == 0


def test_child_tokens_visible_to_case_social_worker_only(
    db, session_for, social_worker, admin, carer, household
):
    case = case_service.create_case(db, session_for(social_worker))
    case.status = "active"
    case.household_id = household.id
    case.foster_carer_id = carer.id
    db.flush()
    access_token_service.generate_child_token(db, session_for(social_worker), case.id)

    assert scoped_query(db, session_for(social_worker), ChildAccessToken).count() == 1
    assert scoped_query(db, session_for(carer), ChildAccessToken).count() == 0
    assert scoped_query(db, session_for(admin), ChildAccessToken).count() == 0


def test_profile_write_self_or_org_admin(db, session_for, social_worker, admin, carer):
    assert can_write(db, session_for(carer), carer)
    assert not can_write(db, session_for(social_worker), carer)
    assert can_write(db, session_for(admin), carer)
