"""Security utilities for session tokens, passwords and child access tokens."""

import hashlib
import re
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from whosehouse.core.config import settings


# =============================================================================
# Session Token (JWT in cookie or bearer query param)
# =============================================================================

def create_session_token(
    user_id: UUID,
    org_id: UUID,
    role: str,
    token_version: int,
) -> str:
    """
    Create signed session JWT.

    Role and organization are cached in the claims at login so that
    authorization predicates never have to read the profiles table to
    learn who the caller is.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "org_id": str(org_id),
        "role": role,
        "token_version": token_version,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# Passwords
# =============================================================================

PASSWORD_MIN_LENGTH = 8
_SPECIAL_CHARS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def password_problems(password: str) -> list[str]:
    """Return the unmet password rules (empty list means acceptable)."""
    problems = []
    if len(password) < PASSWORD_MIN_LENGTH:
        problems.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain an uppercase letter")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain a lowercase letter")
    if not re.search(r"[0-9]", password):
        problems.append("Password must contain a number")
    if not _SPECIAL_CHARS.search(password):
        problems.append("Password must contain a special character")
    return problems


# =============================================================================
# Child Access Tokens
# =============================================================================

CHILD_TOKEN_BYTES = 32
CHILD_TOKEN_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{32,128}$")


def generate_child_token() -> str:
    """Generate an opaque token (32 random bytes, hex encoded)."""
    return secrets.token_hex(CHILD_TOKEN_BYTES)


def hash_child_token(token: str) -> str:
    """Hash a raw child token for storage/lookup. The raw value is never persisted."""
    return hashlib.sha256(token.encode()).hexdigest()


def is_well_formed_child_token(token: str | None) -> bool:
    return bool(token) and CHILD_TOKEN_PATTERN.match(token) is not None
