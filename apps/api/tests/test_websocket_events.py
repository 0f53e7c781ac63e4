"""/ws/events end to end: authentication, heartbeat, pushed events and typing relay."""

import json
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from whosehouse.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE, get_db
from whosehouse.core.security import create_session_token
from whosehouse.db.enums import CaseStatus
from whosehouse.main import app
from whosehouse.services import case_service


def _token(profile) -> str:
    return create_session_token(
        profile.id, profile.organization_id, profile.role, profile.token_version
    )


@pytest.fixture
def ws_client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    # One portal for every request and socket, so pushes reach open sockets
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def thread(db, session_for, social_worker, carer, household, make_household):
    """An active case plus ids and tokens read before any socket touches the session."""
    case = case_service.create_case(db, session_for(social_worker))
    case.status = CaseStatus.ACTIVE.value
    case.household_id = household.id
    case.foster_carer_id = carer.id
    stranger, _ = make_household("Elm House")
    db.commit()
    return {
        "case_id": case.id,
        "worker_id": social_worker.id,
        "carer_id": carer.id,
        "worker_token": _token(social_worker),
        "carer_token": _token(carer),
        "stranger_token": _token(stranger),
    }


def _typing(case_id, is_typing=True) -> str:
    return json.dumps({"type": "typing", "case_id": str(case_id), "is_typing": is_typing})


def test_query_token_connects_and_answers_ping(ws_client, thread):
    with ws_client.websocket_connect(f"/ws/events?token={thread['worker_token']}") as ws:
        ws.send_text("ping")
        assert ws.receive_text() == "pong"


@pytest.mark.parametrize("query", ["", "?token=not-a-jwt"])
def test_unauthenticated_socket_is_closed(ws_client, query):
    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect(f"/ws/events{query}") as ws:
            ws.receive_text()
    assert exc.value.code == 4001


def test_cookie_socket_receives_message_push(ws_client, thread):
    cookie = {"cookie": f"{COOKIE_NAME}={thread['worker_token']}"}
    with ws_client.websocket_connect("/ws/events", headers=cookie) as worker_ws, \
            ws_client.websocket_connect(f"/ws/events?token={thread['carer_token']}") as carer_ws:
        res = ws_client.post(
            f"/cases/{thread['case_id']}/messages",
            json={"recipient_id": str(thread["carer_id"]), "content": "Contact moved to 4pm"},
            headers={
                "Authorization": f"Bearer {thread['worker_token']}",
                CSRF_HEADER: CSRF_HEADER_VALUE,
            },
        )
        assert res.status_code == 201, res.text

        for ws in (worker_ws, carer_ws):
            event = ws.receive_json()
            assert event["type"] == "message.created"
            assert event["data"]["content"] == "Contact moved to 4pm"

        assert carer_ws.receive_json()["type"] == "unread.count"


def test_typing_is_relayed_to_other_participants_only(ws_client, thread):
    case_id = thread["case_id"]
    with ws_client.websocket_connect(f"/ws/events?token={thread['worker_token']}") as worker_ws, \
            ws_client.websocket_connect(f"/ws/events?token={thread['carer_token']}") as carer_ws, \
            ws_client.websocket_connect(f"/ws/events?token={thread['stranger_token']}") as stranger_ws:
        worker_ws.send_text(_typing(case_id))

        event = carer_ws.receive_json()
        assert event["type"] == "typing"
        assert event["data"]["case_id"] == str(case_id)
        assert UUID(event["data"]["user_id"]) == thread["worker_id"]
        assert event["data"]["full_name"] == "Sam Worker"
        assert event["data"]["is_typing"] is True

        # Nothing was queued for the typist or the outsider ahead of the pong
        for ws in (worker_ws, stranger_ws):
            ws.send_text("ping")
            assert ws.receive_text() == "pong"

        res = ws_client.get(
            f"/cases/{case_id}/typing",
            headers={"Authorization": f"Bearer {thread['carer_token']}"},
        )
        assert res.status_code == 200
        assert res.json()["typing_user_ids"] == [str(thread["worker_id"])]

        worker_ws.send_text(_typing(case_id, is_typing=False))
        assert carer_ws.receive_json()["data"]["is_typing"] is False


def test_outsider_typing_is_refused(ws_client, thread):
    with ws_client.websocket_connect(f"/ws/events?token={thread['stranger_token']}") as ws:
        ws.send_text(_typing(thread["case_id"]))
        assert ws.receive_json() == {"type": "error", "data": {"detail": "Case not found"}}

        ws.send_text("{not json")
        assert ws.receive_json() == {"type": "error", "data": {"detail": "Unsupported event"}}

        ws.send_text(json.dumps({"type": "presence"}))
        assert ws.receive_json()["data"]["detail"] == "Unsupported event"

    res_headers = {"Authorization": f"Bearer {thread['stranger_token']}"}
    res = ws_client.get(f"/cases/{thread['case_id']}/typing", headers=res_headers)
    assert res.status_code == 404
