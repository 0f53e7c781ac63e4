"""Uploads: validation, local storage and access through the API."""

import os
from uuid import UUID

import pytest

from whosehouse.core.config import settings
from whosehouse.db.enums import CaseStatus
from whosehouse.db.models import AuditLog, CaseMedia
from whosehouse.services import case_service, media_service


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def active_case(db, session_for, social_worker, carer, household):
    case = case_service.create_case(db, session_for(social_worker))
    case.status = CaseStatus.ACTIVE.value
    case.household_id = household.id
    case.foster_carer_id = carer.id
    db.flush()
    return case


@pytest.mark.parametrize(
    "filename,content_type,size",
    [
        ("script.exe", "application/octet-stream", 10),
        ("photo.png", "text/html", 10),
        ("photo.png", "image/png", 0),
        ("photo.png", "image/png", settings.MEDIA_MAX_FILE_SIZE_MB * 1024 * 1024 + 1),
    ],
)
def test_validate_file_rejects(filename, content_type, size):
    with pytest.raises(media_service.MediaValidationError):
        media_service.validate_file(filename, content_type, size)


def test_validate_file_accepts_pdf():
    media_service.validate_file("care-plan.PDF", "application/pdf", 2048)


async def test_upload_list_and_delete(client_for, db, social_worker, carer, active_case):
    worker = client_for(social_worker)

    res = await worker.post(
        "/media",
        data={
            "case_id": str(active_case.id),
            "media_type": "document",
            "is_visible_to_child": "true",
        },
        files={"file": ("room.png", PNG_BYTES, "image/png")},
    )
    assert res.status_code == 201, res.text
    media = res.json()
    assert media["file_size"] == len(PNG_BYTES)
    assert media["is_visible_to_child"] is True

    stored = db.query(CaseMedia).filter(CaseMedia.id == UUID(media["id"])).one()
    assert os.path.exists(os.path.join(settings.LOCAL_STORAGE_PATH, stored.storage_key))
    assert db.query(AuditLog).filter(AuditLog.action == "media_uploaded").count() == 1

    res = await client_for(carer).get("/media", params={"case_id": str(active_case.id)})
    assert [m["id"] for m in res.json()] == [media["id"]]

    res = await worker.get(f"/media/{media['id']}/url")
    assert res.json()["url"].endswith(stored.storage_key)

    # Only the uploader (or an admin) may delete
    res = await client_for(carer).delete(f"/media/{media['id']}")
    assert res.status_code == 403

    res = await worker.delete(f"/media/{media['id']}")
    assert res.status_code == 204
    assert not os.path.exists(os.path.join(settings.LOCAL_STORAGE_PATH, stored.storage_key))


async def test_household_photo_needs_membership(client_for, make_household, household):
    outsider, _ = make_household("Elm House")
    res = await client_for(outsider).post(
        "/media",
        data={"household_id": str(household.id)},
        files={"file": ("garden.jpg", b"jpeg-bytes", "image/jpeg")},
    )
    assert res.status_code in (403, 404)


async def test_upload_needs_exactly_one_owner(client_for, carer):
    res = await client_for(carer).post(
        "/media", files={"file": ("garden.jpg", b"jpeg-bytes", "image/jpeg")}
    )
    assert res.status_code == 400
