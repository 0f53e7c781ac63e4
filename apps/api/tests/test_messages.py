"""Case messaging: allowed paths, status transitions and unread counts."""

from datetime import datetime, timedelta, timezone

import pytest

from whosehouse.db.enums import CaseStatus, MessageStatus, Role
from whosehouse.db.models import NotificationLog
from whosehouse.services import case_service, message_service


T0 = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def active_case(db, session_for, social_worker, carer, household):
    case = case_service.create_case(db, session_for(social_worker))
    case.status = CaseStatus.ACTIVE.value
    case.household_id = household.id
    case.foster_carer_id = carer.id
    db.flush()
    return case


def _send(db, session_for, sender, recipient, case, content="Hello", now=T0, **kwargs):
    return message_service.send_message(
        db, session_for(sender), case.id, recipient.id, content, now=now, **kwargs
    )


def test_worker_and_carer_can_message(db, session_for, social_worker, carer, active_case):
    to_carer = _send(db, session_for, social_worker, carer, active_case)
    reply = _send(db, session_for, carer, social_worker, active_case, "Thanks")

    assert to_carer.status == MessageStatus.SENT.value
    assert reply.recipient_id == social_worker.id
    assert message_service.unread_count(db, carer.id) == 1
    assert message_service.unread_count(db, social_worker.id) == 1


def test_household_member_can_take_part(
    db, session_for, make_profile, social_worker, household, active_case
):
    partner = make_profile(Role.FOSTER_CARER, "Pat Partner")
    partner.household_id = household.id
    db.flush()

    message = _send(db, session_for, social_worker, partner, active_case)
    assert message.recipient_id == partner.id


def test_carer_to_carer_refused(db, session_for, make_profile, carer, household, active_case):
    partner = make_profile(Role.FOSTER_CARER, "Pat Partner")
    partner.household_id = household.id
    db.flush()

    with pytest.raises(message_service.InvalidRecipientError):
        _send(db, session_for, carer, partner, active_case)


def test_recipient_outside_case_refused(
    db, session_for, make_household, social_worker, active_case
):
    stranger, _ = make_household("Elm House")
    with pytest.raises(message_service.InvalidRecipientError):
        _send(db, session_for, social_worker, stranger, active_case)


def test_only_social_worker_sends_urgent(db, session_for, social_worker, carer, active_case):
    urgent = _send(db, session_for, social_worker, carer, active_case, is_urgent=True)
    assert urgent.is_urgent is True

    with pytest.raises(message_service.MessagePermissionError):
        _send(db, session_for, carer, social_worker, active_case, is_urgent=True)


@pytest.mark.parametrize("content", ["", "   ", "<script></script>"])
def test_empty_content_refused(db, session_for, social_worker, carer, active_case, content):
    with pytest.raises(message_service.InvalidMessageError):
        _send(db, session_for, social_worker, carer, active_case, content)


def test_oversize_content_refused(db, session_for, social_worker, carer, active_case):
    with pytest.raises(message_service.InvalidMessageError):
        _send(db, session_for, social_worker, carer, active_case, "x" * 5001)


def test_closed_case_refuses_messages(db, session_for, social_worker, carer, active_case):
    active_case.status = CaseStatus.CLOSED.value
    db.flush()
    with pytest.raises(message_service.MessagePermissionError):
        _send(db, session_for, social_worker, carer, active_case)


def test_typing_reaches_the_other_participants(
    db, session_for, make_profile, social_worker, carer, household, active_case
):
    partner = make_profile(Role.FOSTER_CARER, "Pat Partner")
    partner.household_id = household.id
    db.flush()

    from_worker = message_service.typing_recipients(db, session_for(social_worker), active_case.id)
    assert set(from_worker) == {carer.id, partner.id}

    from_carer = message_service.typing_recipients(db, session_for(carer), active_case.id)
    assert set(from_carer) == {social_worker.id, partner.id}


def test_typing_refused_off_thread(
    db, session_for, make_household, admin, social_worker, active_case
):
    stranger, _ = make_household("Elm House")
    for outsider in (stranger, admin):
        with pytest.raises(case_service.CaseNotFoundError):
            message_service.typing_recipients(db, session_for(outsider), active_case.id)

    active_case.status = CaseStatus.CLOSED.value
    db.flush()
    with pytest.raises(message_service.MessagePermissionError):
        message_service.typing_recipients(db, session_for(social_worker), active_case.id)


def test_status_only_moves_forward(db, session_for, social_worker, carer, active_case):
    message = _send(db, session_for, social_worker, carer, active_case)
    carer_session = session_for(carer)

    _, changed = message_service.update_message_status(
        db, carer_session, message.id, MessageStatus.READ, now=T0 + timedelta(minutes=2)
    )
    assert changed is True
    assert message.read_at == T0 + timedelta(minutes=2)
    assert message.delivered_at == T0 + timedelta(minutes=2)

    _, changed = message_service.update_message_status(
        db, carer_session, message.id, MessageStatus.DELIVERED, now=T0 + timedelta(minutes=5)
    )
    assert changed is False
    assert message.status == MessageStatus.READ.value
    assert message.read_at == T0 + timedelta(minutes=2)


def test_reading_one_message_drops_unread_by_one(
    db, session_for, social_worker, carer, active_case
):
    sent = [
        _send(
            db, session_for, social_worker, carer, active_case, f"Update {i}",
            now=T0 + timedelta(seconds=i),
        )
        for i in range(4)
    ]
    assert message_service.unread_count(db, carer.id) == 4

    carer_session = session_for(carer)
    for expected_changed in (True, False):
        _, changed = message_service.update_message_status(
            db, carer_session, sent[1].id, MessageStatus.READ, now=T0 + timedelta(minutes=1)
        )
        assert changed is expected_changed
        assert message_service.unread_count(db, carer.id) == 3
        assert message_service.unread_count(db, carer.id, active_case.id) == 3


def test_only_recipient_updates_status(db, session_for, social_worker, carer, active_case):
    message = _send(db, session_for, social_worker, carer, active_case)
    with pytest.raises(message_service.MessagePermissionError):
        message_service.update_message_status(
            db, session_for(social_worker), message.id, MessageStatus.READ
        )


def test_listing_marks_delivered_and_mark_read_clears_unread(
    db, session_for, social_worker, carer, active_case
):
    for i in range(3):
        _send(
            db, session_for, social_worker, carer, active_case, f"Note {i}",
            now=T0 + timedelta(seconds=i),
        )

    listed = message_service.list_case_messages(
        db, session_for(carer), active_case.id, now=T0 + timedelta(minutes=1)
    )
    assert [m.content for m in listed] == ["Note 0", "Note 1", "Note 2"]
    assert {m.status for m in listed} == {MessageStatus.DELIVERED.value}
    assert message_service.unread_count(db, carer.id) == 3

    marked = message_service.mark_case_read(db, session_for(carer), active_case.id)
    assert marked == 3
    assert message_service.unread_count(db, carer.id) == 0
    assert message_service.unread_counts_by_case(db, carer.id) == {}


def test_sender_listing_does_not_deliver(db, session_for, social_worker, carer, active_case):
    _send(db, session_for, social_worker, carer, active_case)
    listed = message_service.list_case_messages(db, session_for(social_worker), active_case.id)
    assert listed[0].status == MessageStatus.SENT.value


def test_conversations_show_unread(db, session_for, social_worker, carer, active_case):
    _send(db, session_for, social_worker, carer, active_case, "First", now=T0)
    _send(
        db, session_for, social_worker, carer, active_case, "Second",
        now=T0 + timedelta(minutes=1),
    )

    conversations = message_service.list_conversations(db, session_for(carer))
    assert len(conversations) == 1
    assert conversations[0]["case_id"] == active_case.id
    assert conversations[0]["last_message"].content == "Second"
    assert conversations[0]["unread_count"] == 2


# =============================================================================
# API
# =============================================================================

async def test_message_roundtrip_over_http(client_for, db, social_worker, carer, active_case):
    worker = client_for(social_worker)
    home = client_for(carer)

    res = await worker.post(
        f"/cases/{active_case.id}/messages",
        json={"recipient_id": str(carer.id), "content": "School run at 8?", "is_urgent": True},
    )
    assert res.status_code == 201, res.text
    message_id = res.json()["id"]

    res = await home.get("/messages/unread-count")
    assert res.json()["total"] == 1
    assert res.json()["by_case"] == {str(active_case.id): 1}

    res = await home.get(f"/cases/{active_case.id}/messages")
    assert [m["status"] for m in res.json()] == ["delivered"]

    res = await home.patch(f"/messages/{message_id}/status", json={"status": "read"})
    assert res.status_code == 200
    assert res.json()["status"] == "read"

    res = await home.get("/messages/unread-count")
    assert res.json()["total"] == 0

    urgent = (
        db.query(NotificationLog)
        .filter(NotificationLog.user_id == carer.id)
        .one()
    )
    assert urgent.notification_type == "urgent_message"
    assert "School run" not in (urgent.body or "")


async def test_outsider_gets_404(client_for, make_household, active_case):
    stranger, _ = make_household("Elm House")
    res = await client_for(stranger).get(f"/cases/{active_case.id}/messages")
    assert res.status_code == 404


async def test_mutation_without_csrf_header_is_rejected(
    client_for, social_worker, carer, active_case
):
    worker = client_for(social_worker, csrf=False)
    res = await worker.post(
        f"/cases/{active_case.id}/messages",
        json={"recipient_id": str(carer.id), "content": "Hi"},
    )
    assert res.status_code == 403
