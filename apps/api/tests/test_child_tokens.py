"""Child access tokens: issuing, validation windows, revocation and the child view."""

from datetime import datetime, timedelta, timezone

import pytest

from whosehouse.core.security import hash_child_token
from whosehouse.db.enums import CaseStatus, MessageStatus, TokenExpiry, TokenStatus
from whosehouse.db.models import ChildAccessToken, Message, NotificationLog
from whosehouse.services import access_token_service, case_service, message_service
from whosehouse.services.access_token_service import ChildAccessDeniedError


T0 = datetime(2026, 5, 11, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def active_case(db, session_for, social_worker, carer, household):
    case = case_service.create_case(db, session_for(social_worker))
    case.status = CaseStatus.ACTIVE.value
    case.household_id = household.id
    case.foster_carer_id = carer.id
    db.flush()
    return case


def _issue(db, session_for, social_worker, case, expiry=TokenExpiry.SHORT, now=T0):
    return access_token_service.generate_child_token(
        db, session_for(social_worker), case.id, expiry=expiry, now=now
    )


def test_only_hash_is_stored(db, session_for, social_worker, active_case):
    issued = _issue(db, session_for, social_worker, active_case)

    row = db.query(ChildAccessToken).one()
    assert row.token_hash == hash_child_token(issued["raw_token"])
    assert row.token_hash != issued["raw_token"]
    assert issued["deep_link"].endswith(f"/child/access/{issued['raw_token']}")
    assert issued["access_url"].endswith(f"/child/access/{issued['raw_token']}")


def test_short_token_valid_for_24_hours(db, session_for, social_worker, active_case):
    raw = _issue(db, session_for, social_worker, active_case)["raw_token"]

    assert access_token_service.validate_child_token(db, raw, T0 + timedelta(hours=23))
    with pytest.raises(ChildAccessDeniedError):
        access_token_service.validate_child_token(db, raw, T0 + timedelta(hours=25))


def test_expired_token_stays_denied(db, session_for, social_worker, active_case):
    raw = _issue(db, session_for, social_worker, active_case)["raw_token"]

    for hours in (24, 24, 30, 200):
        with pytest.raises(ChildAccessDeniedError):
            access_token_service.validate_child_token(db, raw, T0 + timedelta(hours=hours))
        with pytest.raises(ChildAccessDeniedError):
            access_token_service.redeem_child_token(db, raw, now=T0 + timedelta(hours=hours))

    row = db.query(ChildAccessToken).one()
    assert row.used_at is None


@pytest.mark.parametrize(
    "expiry,hours", [(TokenExpiry.MEDIUM, 72), (TokenExpiry.LONG, 168)]
)
def test_longer_expiry_windows(db, session_for, social_worker, active_case, expiry, hours):
    issued = _issue(db, session_for, social_worker, active_case, expiry=expiry)
    assert issued["token"].expires_at == T0 + timedelta(hours=hours)


def test_new_token_revokes_previous(db, session_for, social_worker, active_case):
    first = _issue(db, session_for, social_worker, active_case)["raw_token"]
    second = _issue(db, session_for, social_worker, active_case)["raw_token"]

    with pytest.raises(ChildAccessDeniedError):
        access_token_service.validate_child_token(db, first, T0)
    assert access_token_service.validate_child_token(db, second, T0)


def test_revoked_token_denied(db, session_for, social_worker, active_case):
    issued = _issue(db, session_for, social_worker, active_case)
    access_token_service.revoke_child_token(db, session_for(social_worker), issued["token"].id)

    with pytest.raises(ChildAccessDeniedError):
        access_token_service.validate_child_token(db, issued["raw_token"], T0)


def test_closed_case_denies_token(db, session_for, social_worker, active_case):
    raw = _issue(db, session_for, social_worker, active_case)["raw_token"]
    active_case.status = CaseStatus.CLOSED.value
    db.flush()

    with pytest.raises(ChildAccessDeniedError):
        access_token_service.validate_child_token(db, raw, T0)


@pytest.mark.parametrize("raw", [None, "", "short", "x" * 43 + "!"])
def test_malformed_tokens_denied_with_generic_message(db, raw):
    with pytest.raises(ChildAccessDeniedError) as exc:
        access_token_service.validate_child_token(db, raw, T0)
    assert str(exc.value) == access_token_service.ACCESS_DENIED_DETAIL


def test_redeem_marks_first_use_only(db, session_for, social_worker, active_case):
    raw = _issue(db, session_for, social_worker, active_case)["raw_token"]

    token = access_token_service.redeem_child_token(
        db, raw, {"platform": "ios"}, now=T0 + timedelta(minutes=1)
    )
    assert token.status == TokenStatus.USED.value
    assert token.used_at == T0 + timedelta(minutes=1)
    assert token.device_info == {"platform": "ios"}

    again = access_token_service.redeem_child_token(
        db, raw, {"platform": "android"}, now=T0 + timedelta(hours=2)
    )
    assert again.used_at == T0 + timedelta(minutes=1)
    assert again.device_info == {"platform": "ios"}


def test_only_case_social_worker_issues(db, session_for, admin, active_case):
    with pytest.raises(access_token_service.TokenPermissionError):
        access_token_service.generate_child_token(db, session_for(admin), active_case.id)


def test_pending_case_cannot_have_tokens(db, session_for, social_worker):
    case = case_service.create_case(db, session_for(social_worker))
    with pytest.raises(access_token_service.CaseNotActiveError):
        access_token_service.generate_child_token(db, session_for(social_worker), case.id)


def test_child_message_goes_to_social_worker(db, session_for, social_worker, active_case):
    raw = _issue(db, session_for, social_worker, active_case)["raw_token"]

    message = message_service.send_child_message(db, raw, "Can I bring my cat?", now=T0)
    assert message.sender_id is None
    assert message.recipient_id == social_worker.id
    assert message.status == MessageStatus.SENT.value
    assert message_service.unread_count(db, social_worker.id) == 1


# =============================================================================
# API
# =============================================================================

async def test_child_endpoints_over_http(client_for, db, social_worker, carer, active_case):
    worker = client_for(social_worker)
    res = await worker.post(
        f"/cases/{active_case.id}/child-tokens", json={"expiry": "medium"}
    )
    assert res.status_code == 201, res.text
    raw = res.json()["token"]
    assert res.json()["status"] == "active"

    child = client_for()
    res = await child.post("/child/access", headers={"X-Child-Token": raw})
    assert res.status_code == 200
    assert res.json()["case_number"] == active_case.case_number

    res = await child.get("/child/view", headers={"X-Child-Token": raw})
    assert res.status_code == 200
    body = res.json()
    assert body["household"]["name"] == "Oak House"
    assert body["household"]["carers"] == ["Oak"]
    assert body["social_worker"]["name"] == "Sam Worker"

    res = await child.post(
        "/child/messages", json={"content": "Hello"}, headers={"X-Child-Token": raw}
    )
    assert res.status_code == 201
    assert res.json()["from_child"] is True

    # First access notified the social worker exactly once
    access_alerts = (
        db.query(NotificationLog)
        .filter(NotificationLog.notification_type == "child_access")
        .count()
    )
    assert access_alerts == 1
    assert db.query(Message).count() == 1


async def test_invalid_child_token_is_generic_401(client_for):
    child = client_for()
    res = await child.post("/child/access", json={"token": "A" * 43})
    assert res.status_code == 401
    assert res.json()["detail"] == access_token_service.ACCESS_DENIED_DETAIL


async def test_carer_cannot_list_tokens(
    client_for, db, session_for, carer, social_worker, active_case
):
    _issue(db, session_for, social_worker, active_case, now=datetime.now(timezone.utc))
    res = await client_for(carer).get(f"/cases/{active_case.id}/child-tokens")
    assert res.status_code == 200
    assert res.json() == []
