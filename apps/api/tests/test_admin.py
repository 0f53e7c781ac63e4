"""Organization administration: accounts, assignments, stats and the audit trail."""

import pytest

from whosehouse.db.enums import CaseStatus, Role
from whosehouse.db.models import AuditLog, Case
from whosehouse.services import admin_service, case_service


def test_create_user_account_is_audited(db, session_for, admin):
    profile = admin_service.create_user_account(
        db,
        session_for(admin),
        email="New.Worker@Example.com",
        password="Str0ng!Pass",
        full_name="  Nia   Worker ",
        role=Role.SOCIAL_WORKER,
    )
    assert profile.email == "new.worker@example.com"
    assert profile.full_name == "Nia Worker"

    entry = db.query(AuditLog).filter(AuditLog.action == "user_created").one()
    assert entry.target_id == profile.id
    assert entry.details == {"role": "social_worker"}


def test_admin_cannot_deactivate_self(db, session_for, admin):
    with pytest.raises(admin_service.SelfTargetError):
        admin_service.deactivate_user_account(db, session_for(admin), admin.id)


def test_last_admin_is_protected(db, session_for, make_profile, admin):
    second = make_profile(Role.ADMIN, "Second Admin")

    admin_service.deactivate_user_account(db, session_for(second), admin.id)
    assert admin.is_active is False

    # The org now has one active admin left
    with pytest.raises(admin_service.LastAdminError):
        admin_service.update_user_details(
            db, session_for(second), second.id, role=Role.SOCIAL_WORKER
        )


def test_deactivation_revokes_sessions_and_unassigns(
    db, session_for, admin, social_worker, carer, household
):
    case = case_service.create_case(db, session_for(social_worker))
    case.status = CaseStatus.ACTIVE.value
    case.household_id = household.id
    case.foster_carer_id = carer.id
    db.flush()
    version = social_worker.token_version

    admin_service.deactivate_user_account(
        db, session_for(admin), social_worker.id, reason="Left the agency"
    )
    db.refresh(case)

    assert social_worker.is_active is False
    assert social_worker.token_version == version + 1
    assert case.social_worker_id is None
    assert case.foster_carer_id == carer.id


def test_role_change_bumps_token_version(db, session_for, admin, social_worker):
    version = social_worker.token_version
    admin_service.update_user_details(db, session_for(admin), social_worker.id, role=Role.ADMIN)
    assert social_worker.role == Role.ADMIN.value
    assert social_worker.token_version == version + 1


def test_assignment_closes_existing_case(db, session_for, admin, make_profile, carer, household):
    first_worker = make_profile(Role.SOCIAL_WORKER, "First Worker")
    second_worker = make_profile(Role.SOCIAL_WORKER, "Second Worker")

    first = admin_service.assign_social_worker_to_carer(
        db, session_for(admin), first_worker.id, carer.id
    )
    assert first.status == CaseStatus.ACTIVE.value
    assert first.household_id == household.id

    second = admin_service.assign_social_worker_to_carer(
        db, session_for(admin), second_worker.id, carer.id
    )
    db.refresh(first)
    assert first.status == CaseStatus.CLOSED.value
    assert second.social_worker_id == second_worker.id
    active = db.query(Case).filter(Case.status == CaseStatus.ACTIVE.value).all()
    assert [c.id for c in active] == [second.id]


def test_assignment_validates_roles(db, session_for, admin, social_worker, carer):
    with pytest.raises(admin_service.InvalidAssignmentError):
        admin_service.assign_social_worker_to_carer(
            db, session_for(admin), carer.id, social_worker.id
        )


def test_organization_stats(db, session_for, admin, social_worker, carer):
    case_service.create_case(db, session_for(social_worker))
    stats = admin_service.get_organization_stats(db, session_for(admin))

    assert stats["users_by_role"] == {"social_worker": 1, "foster_carer": 1, "admin": 1}
    assert stats["active_users"] == 3
    assert stats["cases_by_status"]["pending"] == 1
    assert stats["messages_last_7_days"] == 0


# =============================================================================
# API
# =============================================================================

async def test_admin_endpoints_require_admin(client_for, social_worker):
    res = await client_for(social_worker).get("/admin/users")
    assert res.status_code == 403


async def test_admin_lists_users_and_audit(client_for, admin, social_worker, carer):
    console = client_for(admin)

    res = await console.get("/admin/users", params={"role": "foster_carer"})
    assert res.status_code == 200
    assert [u["id"] for u in res.json()["items"]] == [str(carer.id)]

    res = await console.post(f"/admin/users/{social_worker.id}/deactivate", json={})
    assert res.status_code == 200, res.text

    res = await console.get("/admin/audit-logs")
    assert res.status_code == 200
    assert "user_deactivated" in [e["action"] for e in res.json()["items"]]


async def test_deactivated_user_session_is_rejected(
    client_for, db, session_for, admin, social_worker
):
    worker = client_for(social_worker)
    admin_service.deactivate_user_account(db, session_for(admin), social_worker.id)
    db.commit()

    res = await worker.get("/auth/me")
    assert res.status_code == 401
