"""
WebSocket router for realtime case events.

Provides a WebSocket endpoint that:
1. Authenticates users via JWT query parameter or session cookie
2. Maintains persistent connections
3. Receives events pushed after commits (messages, unread counts, placements)
4. Relays typing events from one case participant to the others
"""

import json
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from whosehouse.core.deps import COOKIE_NAME, build_user_session, get_db, resolve_user
from whosehouse.core.websocket import manager, typing_tracker
from whosehouse.schemas.auth import UserSession
from whosehouse.services import case_service, message_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


def _authenticate(db: Session, raw: str | None) -> UserSession:
    try:
        user, payload = resolve_user(db, raw)
        return build_user_session(user, payload)
    finally:
        # Release the pooled connection while the socket idles
        db.rollback()


def _typing_recipients(db: Session, session: UserSession, case_id: UUID) -> list[UUID]:
    try:
        return message_service.typing_recipients(db, session, case_id)
    finally:
        db.rollback()


@router.websocket("/events")
async def websocket_events(
    websocket: WebSocket,
    token: str | None = Query(None),
    db: Session = Depends(get_db),
):
    """
    WebSocket endpoint for realtime events.

    Authenticates via:
    1. JWT token in query parameter (?token=...)
    2. Or session cookie (for browser clients)

    Once connected, the server pushes:
    - message.created / message.status
    - unread.count
    - placement.request / placement.response
    - typing
    - notification

    Clients send "ping" (answered with "pong") or JSON events:
    {"type": "typing", "case_id": "...", "is_typing": true}
    """
    raw = token or websocket.cookies.get(COOKIE_NAME)
    # Profile lookup is a blocking query
    try:
        session = await run_in_threadpool(_authenticate, db, raw)
    except HTTPException:
        await websocket.close(code=4001, reason="Authentication required")
        return

    user_id = session.user_id
    await manager.connect(websocket, user_id, session.org_id)

    try:
        while True:
            try:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text("pong")
                else:
                    await _handle_client_event(websocket, db, session, data)
            except WebSocketDisconnect:
                break
    finally:
        await manager.disconnect(websocket, user_id)
        if not manager.get_connected_count(user_id):
            typing_tracker.clear_user(user_id)


async def _send_error(websocket: WebSocket, detail: str) -> None:
    await websocket.send_text(json.dumps({"type": "error", "data": {"detail": detail}}))


async def _handle_client_event(
    websocket: WebSocket, db: Session, session: UserSession, data: str
) -> None:
    try:
        event = json.loads(data)
        if not isinstance(event, dict) or event.get("type") != "typing":
            raise ValueError(data)
        case_id = UUID(str(event["case_id"]))
        is_typing = bool(event.get("is_typing", True))
    except (ValueError, KeyError):
        await _send_error(websocket, "Unsupported event")
        return

    try:
        recipients = await run_in_threadpool(_typing_recipients, db, session, case_id)
    except (case_service.CaseServiceError, message_service.MessageServiceError) as e:
        logger.debug("Typing event refused for user %s: %s", session.user_id, e)
        await _send_error(websocket, str(e))
        return

    typing_tracker.set_typing(case_id, session.user_id, is_typing)
    await push_typing(recipients, case_id, session.user_id, session.full_name, is_typing)


# =============================================================================
# Push helpers (typing is relayed inline; the rest run as background tasks after commit)
# =============================================================================

async def push_typing(
    user_ids: list[UUID], case_id: UUID, user_id: UUID, full_name: str, is_typing: bool
):
    """Relay a typing change to the other participants of a case."""
    await manager.send_to_users(
        user_ids,
        {
            "type": "typing",
            "data": {
                "case_id": str(case_id),
                "user_id": str(user_id),
                "full_name": full_name,
                "is_typing": is_typing,
                "stale_after_seconds": typing_tracker.stale_after,
            },
        },
    )

async def push_notification(user_id: UUID, notification: dict):
    """Push a notification to a connected user."""
    await manager.send_to_user(
        user_id,
        {
            "type": "notification",
            "data": notification,
        },
    )


async def push_message_created(user_ids: list[UUID], message: dict):
    """Push a new message to every connected participant."""
    await manager.send_to_users(
        user_ids,
        {
            "type": "message.created",
            "data": message,
        },
    )


async def push_message_status(user_ids: list[UUID], message_id: UUID, status: str):
    await manager.send_to_users(
        user_ids,
        {
            "type": "message.status",
            "data": {"message_id": str(message_id), "status": status},
        },
    )


async def push_unread_count(user_id: UUID, total: int, by_case: dict | None = None):
    """Push the user's unread message count."""
    await manager.send_to_user(
        user_id,
        {
            "type": "unread.count",
            "data": {
                "total": total,
                "by_case": {str(k): v for k, v in (by_case or {}).items()},
            },
        },
    )


async def push_placement_request(user_ids: list[UUID], placement: dict):
    await manager.send_to_users(
        user_ids,
        {
            "type": "placement.request",
            "data": placement,
        },
    )


async def push_placement_response(user_id: UUID, placement: dict):
    await manager.send_to_user(
        user_id,
        {
            "type": "placement.response",
            "data": placement,
        },
    )


async def close_user_sockets(user_id: UUID):
    """Drop a signed-out or revoked user's sockets."""
    await manager.close_user(user_id)
