"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from whosehouse.core.security import decode_session_token
from whosehouse.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "wh_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"
CHILD_TOKEN_HEADER = "X-Child-Token"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_token(request: Request) -> str | None:
    """Session JWT from the cookie, or from an Authorization: Bearer header (mobile)."""
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


def resolve_user(db: Session, token: str | None):
    """
    Resolve a session token to an active Profile.

    Validates:
    - Token exists and JWT is valid and not expired
    - Profile exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    from whosehouse.db.models import Profile

    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
        user_id = UUID(str(payload["sub"]))
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.query(Profile).filter(Profile.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    if user.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    return user, payload


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """Get authenticated profile from the session token."""
    user, _ = resolve_user(db, get_session_token(request))
    return user


def get_current_session(request: Request, db: Session = Depends(get_db)):
    """
    Get full session context: user_id, org_id, role.

    This is the PRIMARY auth dependency for most endpoints. Role and org
    are taken from the signed claims so authorization never re-reads the
    profiles table to identify the caller.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: Unknown role
    """
    user, payload = resolve_user(db, get_session_token(request))
    return build_user_session(user, payload)


def build_user_session(user, payload: dict):
    """UserSession for a resolved profile and its verified claims (HTTP and websocket)."""
    from whosehouse.db.enums import Role
    from whosehouse.schemas.auth import UserSession

    claimed_role = payload.get("role") or user.role
    if not Role.has_value(claimed_role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{claimed_role}'. Contact administrator.",
        )
    # A role change by an admin bumps token_version, so claims and row agree here
    return UserSession(
        user_id=user.id,
        org_id=UUID(payload["org_id"]) if payload.get("org_id") else user.organization_id,
        role=Role(claimed_role),
        email=user.email,
        full_name=user.full_name,
    )


def require_roles(allowed_roles: list):
    """
    Dependency factory for role-based authorization.

    Usage:
        @router.post("/cases", dependencies=[Depends(require_roles([Role.SOCIAL_WORKER]))])
    """
    def dependency(request: Request, db: Session = Depends(get_db)):
        session = get_current_session(request, db)
        if session.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{session.role.value}' not authorized for this action",
            )
        return session
    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, PUT, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )


def get_child_token(request: Request) -> str | None:
    """Raw child access token from the X-Child-Token header."""
    return request.headers.get(CHILD_TOKEN_HEADER)
