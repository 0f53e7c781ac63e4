"""Auth router - signup, login, logout, session state and route checks."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from whosehouse.core.config import settings
from whosehouse.core.deps import (
    COOKIE_NAME,
    get_current_session,
    get_current_user,
    get_db,
    get_session_token,
    require_csrf_header,
)
from whosehouse.core.rate_limit import AUTH_LIMIT, limiter
from whosehouse.core.security import create_session_token
from whosehouse.core.structured_logging import build_log_context
from whosehouse.db.enums import Role
from whosehouse.db.models import Organization
from whosehouse.routers.websocket import close_user_sockets
from whosehouse.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RouteCheckResponse,
    SessionStateResponse,
    SignupRequest,
    UserSession,
)
from whosehouse.services import auth_service
from whosehouse.services.session_guard import HOME_ROUTES, build_session_guard


logger = logging.getLogger(__name__)

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )


def _login_response(response: Response, profile) -> LoginResponse:
    token = create_session_token(
        profile.id, profile.organization_id, profile.role, profile.token_version
    )
    _set_session_cookie(response, token)
    role = Role(profile.role)
    return LoginResponse(
        access_token=token,
        user_id=profile.id,
        role=role,
        home_route=HOME_ROUTES[role],
    )


@router.post(
    "/signup",
    response_model=LoginResponse,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(AUTH_LIMIT)
def signup(
    request: Request,
    response: Response,
    data: SignupRequest,
    db: Session = Depends(get_db),
):
    """Foster carer self-registration (starts a session)."""
    try:
        profile = auth_service.signup_foster_carer(
            db,
            email=data.email,
            password=data.password,
            full_name=data.full_name,
            organization_slug=data.organization_slug,
            household_name=data.household_name,
            request=request,
        )
        db.commit()
    except auth_service.OrganizationNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except auth_service.EmailAlreadyRegisteredError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except auth_service.AuthServiceError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    db.refresh(profile)
    logger.info("Foster carer signed up", extra=build_log_context(user_id=str(profile.id)))
    return _login_response(response, profile)


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(require_csrf_header)])
@limiter.limit(AUTH_LIMIT)
def login(
    request: Request,
    response: Response,
    data: LoginRequest,
    db: Session = Depends(get_db),
):
    try:
        profile = auth_service.authenticate(db, data.email, data.password, request=request)
    except auth_service.InvalidCredentialsError as e:
        # Keep the failed-attempt audit row
        db.commit()
        raise HTTPException(status_code=401, detail=str(e))
    db.commit()
    db.refresh(profile)
    return _login_response(response, profile)


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    Clear session cookie and log logout event.

    Open sockets for the user are closed so nothing keeps streaming after
    sign-out.
    """
    guard = build_session_guard(db, get_session_token(request))
    auth_service.record_logout(db, session, request=request)
    db.commit()

    user_id = guard.sign_out() or session.user_id
    background_tasks.add_task(close_user_sockets, user_id)
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}


@router.get("/me", response_model=MeResponse)
def get_me(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get current authenticated user info."""
    org = db.query(Organization).filter(Organization.id == user.organization_id).first()
    return MeResponse(
        user_id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=Role(user.role),
        org_id=user.organization_id,
        org_name=org.name if org else "",
        household_id=user.household_id,
        is_primary_carer=user.is_primary_carer,
        avatar_url=user.avatar_url,
        last_login=user.last_login,
    )


@router.get("/session", response_model=SessionStateResponse)
def get_session_state(request: Request, db: Session = Depends(get_db)):
    """Identity state for the app shell (works without a session)."""
    guard = build_session_guard(db, get_session_token(request))
    return SessionStateResponse(**guard.snapshot())


@router.get("/route-check", response_model=RouteCheckResponse)
def route_check(group: str, request: Request, db: Session = Depends(get_db)):
    """Whether the caller may open a screen group, and where to go if not."""
    guard = build_session_guard(db, get_session_token(request))
    redirect = guard.route_for(group)
    return RouteCheckResponse(group=group, allowed=redirect is None, redirect_to=redirect)


@router.post("/change-password", dependencies=[Depends(require_csrf_header)])
def change_password(
    request: Request,
    response: Response,
    data: ChangePasswordRequest,
    background_tasks: BackgroundTasks,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change password; every other session is revoked and this one is reissued."""
    try:
        auth_service.change_password(
            db, user, data.current_password, data.new_password, request=request
        )
    except auth_service.InvalidCredentialsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except auth_service.WeakPasswordError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(user)

    background_tasks.add_task(close_user_sockets, user.id)
    token = create_session_token(user.id, user.organization_id, user.role, user.token_version)
    _set_session_cookie(response, token)
    return {"status": "password_changed", "access_token": token}
