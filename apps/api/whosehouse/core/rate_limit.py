"""Request rate limits (slowapi), shared across workers through Redis when available."""

import logging
import os

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from whosehouse.core.config import settings


logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")

AUTH_LIMIT = f"{settings.RATE_LIMIT_AUTH}/minute"
CHILD_ACCESS_LIMIT = f"{settings.RATE_LIMIT_CHILD_ACCESS}/minute"


def client_key(request: Request) -> str:
    """Client IP; the first X-Forwarded-For hop only behind a trusted proxy."""
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def _storage_uri() -> str:
    if IS_TESTING:
        return "memory://"
    try:
        import redis

        redis.from_url(REDIS_URL, socket_connect_timeout=1).ping()
        return REDIS_URL
    except Exception as e:
        logger.warning("Redis unavailable for rate limiting, using in-memory: %s", e)
        return "memory://"


def build_limiter() -> Limiter:
    default_limits = []
    if not IS_TESTING and settings.RATE_LIMIT_API > 0:
        default_limits = [f"{settings.RATE_LIMIT_API}/minute"]
    return Limiter(
        key_func=client_key,
        storage_uri=_storage_uri(),
        default_limits=default_limits,
        enabled=not IS_TESTING,
    )


limiter = build_limiter()
