"""Authentication-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from whosehouse.db.enums import Role


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    org_id: UUID
    role: str
    token_version: int


class UserSession(BaseModel):
    """
    Full session context for authenticated requests.

    This is returned by get_current_session and is the identity every
    authorization predicate evaluates against. role and org_id come from
    the token claims, not from a table read.
    """
    user_id: UUID
    org_id: UUID
    role: Role  # Validated enum
    email: str
    full_name: str


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user_id: UUID
    email: str
    full_name: str
    role: Role
    org_id: UUID
    org_name: str
    household_id: UUID | None
    is_primary_carer: bool
    avatar_url: str | None
    last_login: datetime | None


class SignupRequest(BaseModel):
    """Foster carer self-registration."""
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=255)
    organization_slug: str = Field(..., min_length=1, max_length=100)
    household_name: str | None = Field(None, max_length=255)


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=128)


class LoginResponse(BaseModel):
    """Token is also set as an HttpOnly cookie; mobile clients use the body."""
    access_token: str
    token_type: str = "bearer"
    user_id: UUID
    role: Role
    home_route: str


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., max_length=128)
    new_password: str = Field(..., max_length=128)


class SessionStateResponse(BaseModel):
    """Resolved identity state for the app's route guard."""
    state: str
    loading: bool
    role: str | None
    user_id: str | None
    home_route: str


class RouteCheckResponse(BaseModel):
    group: str
    allowed: bool
    redirect_to: str | None
