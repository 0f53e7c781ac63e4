"""Admin router - accounts, assignments, stats and the audit trail (admin only)."""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from whosehouse.core.deps import get_db, require_csrf_header, require_roles
from whosehouse.db.enums import ROLES_CAN_MANAGE_USERS, ROLES_CAN_VIEW_AUDIT, AuditAction, Role
from whosehouse.routers.websocket import close_user_sockets
from whosehouse.schemas.admin import (
    AssignmentCreate,
    AuditLogListResponse,
    DeactivateRequest,
    OrganizationStats,
    UserCreate,
    UserListResponse,
    UserRead,
    UserUpdate,
)
from whosehouse.schemas.auth import UserSession
from whosehouse.schemas.case import CaseRead
from whosehouse.services import admin_service, audit_service, auth_service

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_roles(list(ROLES_CAN_MANAGE_USERS))
require_auditor = require_roles(list(ROLES_CAN_VIEW_AUDIT))


def _raise_for(e: Exception):
    if isinstance(e, admin_service.UserNotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, admin_service.LastAdminError):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, auth_service.EmailAlreadyRegisteredError):
        raise HTTPException(status_code=409, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/users",
    response_model=UserRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_user(
    data: UserCreate,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        user = admin_service.create_user_account(
            db,
            session,
            email=data.email,
            password=data.password,
            full_name=data.full_name,
            role=data.role,
            phone_number=data.phone_number,
            request=request,
        )
        db.commit()
    except (admin_service.AdminServiceError, auth_service.AuthServiceError) as e:
        db.rollback()
        _raise_for(e)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="An account with this email already exists")
    db.refresh(user)
    return user


@router.get("/users", response_model=UserListResponse)
def list_users(
    role: Role | None = None,
    is_active: bool | None = None,
    search: str | None = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    items, total = admin_service.list_organization_users(
        db, session, role=role, is_active=is_active, search=search, limit=limit, offset=offset
    )
    return UserListResponse(items=items, total=total)


@router.patch(
    "/users/{user_id}", response_model=UserRead, dependencies=[Depends(require_csrf_header)]
)
def update_user(
    user_id: UUID,
    data: UserUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        user = admin_service.update_user_details(
            db,
            session,
            user_id,
            full_name=data.full_name,
            phone_number=data.phone_number,
            role=data.role,
            request=request,
        )
    except admin_service.AdminServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(user)
    if data.role is not None:
        background_tasks.add_task(close_user_sockets, user.id)
    return user


@router.post(
    "/users/{user_id}/deactivate",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def deactivate_user(
    user_id: UUID,
    request: Request,
    background_tasks: BackgroundTasks,
    data: DeactivateRequest | None = None,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        user = admin_service.deactivate_user_account(
            db, session, user_id, reason=data.reason if data else None, request=request
        )
    except admin_service.SelfTargetError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except admin_service.AdminServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(user)
    background_tasks.add_task(close_user_sockets, user.id)
    return user


@router.post(
    "/users/{user_id}/reactivate",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def reactivate_user(
    user_id: UUID,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        user = admin_service.reactivate_user_account(db, session, user_id, request=request)
    except admin_service.AdminServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(user)
    return user


@router.post(
    "/assignments",
    response_model=CaseRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_assignment(
    data: AssignmentCreate,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Link a social worker and a foster carer through a new active case."""
    try:
        case = admin_service.assign_social_worker_to_carer(
            db, session, data.social_worker_id, data.foster_carer_id, request=request
        )
        db.commit()
    except admin_service.AdminServiceError as e:
        db.rollback()
        _raise_for(e)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Household already has an active placement")
    db.refresh(case)
    return case


@router.get("/stats", response_model=OrganizationStats)
def get_stats(
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return admin_service.get_organization_stats(db, session)


@router.get("/audit-logs", response_model=AuditLogListResponse)
def list_audit_logs(
    action: AuditAction | None = None,
    user_id: UUID | None = None,
    target_id: UUID | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: UserSession = Depends(require_auditor),
    db: Session = Depends(get_db),
):
    items, total = audit_service.list_audit_logs(
        db,
        session,
        action=action,
        actor_user_id=user_id,
        target_id=target_id,
        limit=limit,
        offset=offset,
    )
    return AuditLogListResponse(items=items, total=total)
