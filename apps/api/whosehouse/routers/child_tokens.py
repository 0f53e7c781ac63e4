"""
Child access router.

Social workers issue and revoke links; the child endpoints authenticate
with the raw token only (X-Child-Token header or request body) and never
touch the session cookie.
"""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from whosehouse.core.deps import get_child_token, get_current_session, get_db, require_csrf_header
from whosehouse.core.rate_limit import CHILD_ACCESS_LIMIT, limiter
from whosehouse.core.row_security import privileged
from whosehouse.db.enums import TokenStatus
from whosehouse.db.models import Case
from whosehouse.routers.messages import schedule_unread_push
from whosehouse.routers.websocket import push_message_created, push_notification
from whosehouse.schemas.auth import UserSession
from whosehouse.schemas.child_access import (
    ChildAccessRequest,
    ChildAccessResponse,
    ChildTokenCreate,
    ChildTokenCreated,
    ChildTokenRead,
    ChildView,
)
from whosehouse.schemas.message import ChildMessageCreate, MessageRead
from whosehouse.services import (
    access_token_service,
    case_service,
    message_service,
    notification_service,
)

router = APIRouter(tags=["child-access"])


def _denied() -> HTTPException:
    return HTTPException(status_code=401, detail=access_token_service.ACCESS_DENIED_DETAIL)


# =============================================================================
# Social worker side
# =============================================================================

@router.post(
    "/cases/{case_id}/child-tokens",
    response_model=ChildTokenCreated,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_child_token(
    case_id: UUID,
    request: Request,
    data: ChildTokenCreate | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    Issue an access link for the child on an active case.

    Earlier links for the case stop working. The raw token is returned
    once and cannot be read again.
    """
    expiry = data.expiry if data else ChildTokenCreate().expiry
    try:
        result = access_token_service.generate_child_token(
            db, session, case_id, expiry=expiry, request=request
        )
    except case_service.CaseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except access_token_service.TokenPermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except access_token_service.CaseNotActiveError as e:
        raise HTTPException(status_code=409, detail=str(e))
    db.commit()

    token = result["token"]
    db.refresh(token)
    return ChildTokenCreated(
        **ChildTokenRead.model_validate(token).model_dump(),
        token=result["raw_token"],
        deep_link=result["deep_link"],
        access_url=result["access_url"],
    )


@router.get("/cases/{case_id}/child-tokens", response_model=list[ChildTokenRead])
def list_child_tokens(
    case_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return access_token_service.list_case_tokens(db, session, case_id)
    except case_service.CaseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/child-tokens/{token_id}/revoke",
    response_model=ChildTokenRead,
    dependencies=[Depends(require_csrf_header)],
)
def revoke_child_token(
    token_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        token = access_token_service.revoke_child_token(db, session, token_id)
    except access_token_service.TokenNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    db.commit()
    db.refresh(token)
    return token


# =============================================================================
# Child side
# =============================================================================

@router.post("/child/access", response_model=ChildAccessResponse)
@limiter.limit(CHILD_ACCESS_LIMIT)
def redeem_access_link(
    request: Request,
    background_tasks: BackgroundTasks,
    data: ChildAccessRequest | None = None,
    db: Session = Depends(get_db),
):
    """Open an access link. The first use is stamped and the social worker told."""
    raw = get_child_token(request) or (data.token if data else None)
    try:
        first_use = (
            access_token_service.validate_child_token(db, raw).status == TokenStatus.ACTIVE.value
        )
        token = access_token_service.redeem_child_token(
            db, raw, device_info=data.device_info if data else None, request=request
        )
    except access_token_service.ChildAccessDeniedError:
        raise _denied()

    with privileged():
        case = db.query(Case).filter(Case.id == token.case_id).one()
    entry = notification_service.notify_child_access(db, case) if first_use else None
    db.commit()

    if entry:
        background_tasks.add_task(
            push_notification, entry.user_id, notification_service.serialize(entry)
        )
    return ChildAccessResponse(case_number=case.case_number, expires_at=token.expires_at)


@router.get("/child/view", response_model=ChildView)
@limiter.limit(CHILD_ACCESS_LIMIT)
def get_child_view(request: Request, db: Session = Depends(get_db)):
    try:
        view = access_token_service.get_child_view(db, get_child_token(request))
    except access_token_service.ChildAccessDeniedError:
        raise _denied()
    view["messages"] = [message_service.to_message_read(m) for m in view["messages"]]
    return view


@router.post("/child/messages", response_model=MessageRead, status_code=201)
@limiter.limit(CHILD_ACCESS_LIMIT)
def send_child_message(
    request: Request,
    data: ChildMessageCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """Message from the child to the case social worker."""
    try:
        message = message_service.send_child_message(
            db, get_child_token(request), data.content, request=request
        )
    except access_token_service.ChildAccessDeniedError:
        raise _denied()
    except message_service.MessageServiceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(message)

    payload = message_service.to_message_read(message).model_dump(mode="json")
    background_tasks.add_task(push_message_created, [message.recipient_id], payload)
    schedule_unread_push(background_tasks, db, message.recipient_id)
    return message_service.to_message_read(message)
