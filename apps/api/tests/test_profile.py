"""Own profile, social worker details and the carer's assigned social worker."""

import pytest

from whosehouse.db.enums import CaseStatus
from whosehouse.db.models import AuditLog
from whosehouse.services import case_service, profile_service


def test_update_profile_normalizes_and_audits(db, carer):
    profile_service.update_my_profile(
        db, carer, {"full_name": "  Olive   Oak ", "preferred_contact": "phone", "role": "admin"}
    )
    assert carer.full_name == "Olive Oak"
    assert carer.preferred_contact == "phone"
    # Role is not self-editable
    assert carer.role == "foster_carer"

    entry = db.query(AuditLog).filter(AuditLog.action == "profile_updated").one()
    assert entry.details == {"fields": ["full_name", "preferred_contact"]}


def test_blank_name_rejected(db, carer):
    with pytest.raises(profile_service.ProfileServiceError):
        profile_service.update_my_profile(db, carer, {"full_name": "   "})


def test_social_worker_details_only_for_workers(db, carer, social_worker):
    with pytest.raises(profile_service.NotSocialWorkerError):
        profile_service.get_social_worker_profile(db, carer)

    details = profile_service.upsert_social_worker_profile(
        db, social_worker, {"team_name": "Placements North", "is_on_leave": False}
    )
    again = profile_service.upsert_social_worker_profile(
        db, social_worker, {"office_location": "Town Hall"}
    )
    assert again.id == details.id
    assert again.team_name == "Placements North"


def test_assigned_social_worker(db, session_for, social_worker, carer, household):
    assert profile_service.get_assigned_social_worker_for_carer(db, carer) is None

    case = case_service.create_case(db, session_for(social_worker))
    case.status = CaseStatus.ACTIVE.value
    case.household_id = household.id
    db.flush()
    profile_service.upsert_social_worker_profile(
        db, social_worker, {"team_name": "Placements North"}
    )

    assigned = profile_service.get_assigned_social_worker_for_carer(db, carer)
    assert assigned["social_worker_id"] == social_worker.id
    assert assigned["case_number"] == case.case_number
    assert assigned["team_name"] == "Placements North"


async def test_profile_endpoints(client_for, carer, social_worker):
    home = client_for(carer)

    res = await home.patch("/profile", json={"phone_number": "07700 900123"})
    assert res.status_code == 200
    assert res.json()["phone_number"] == "07700 900123"

    res = await home.get("/profile/social-worker")
    assert res.status_code == 403

    res = await home.get("/profile/my-social-worker")
    assert res.status_code == 200
    assert res.json() is None

    worker = client_for(social_worker)
    res = await worker.put("/profile/social-worker", json={"team_name": "Placements North"})
    assert res.status_code == 200
    assert res.json()["team_name"] == "Placements North"
