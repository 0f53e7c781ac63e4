"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text

from whosehouse.core.config import settings
from whosehouse.core.structured_logging import configure_logging
from whosehouse.db.session import engine

configure_logging()

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Safeguarding data never leaves the service
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from whosehouse.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="WhoseHouse API",
    description="Foster placement matching, case messaging and child access links",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Child-Token"],
)

# ============================================================================
# Routers
# ============================================================================

from whosehouse.routers import (
    admin,
    auth,
    cases,
    child_tokens,
    households,
    media,
    messages,
    notifications,
    placements,
    profile,
    websocket as ws_router,
)

# Auth router (always mounted)
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(profile.router)

# Households and placement flow
app.include_router(households.router)
app.include_router(cases.router)
app.include_router(placements.router)  # Mixed paths: /placements/... and /cases/{id}/placements

# Case threads
app.include_router(messages.router)  # Mixed paths: /messages/... and /cases/{id}/messages
app.include_router(child_tokens.router)  # Child endpoints authenticate by token only
app.include_router(media.router)

# Notifications (user-scoped)
app.include_router(notifications.router, prefix="/me", tags=["notifications"])

# Organization administration (admin only)
app.include_router(admin.router)

# WebSocket for realtime events
app.include_router(ws_router.router)

# Local media files (dev only; production uses S3 signed URLs)
if settings.ENV == "dev" and settings.STORAGE_BACKEND == "local":
    app.mount(
        "/media/local",
        StaticFiles(directory=settings.LOCAL_STORAGE_PATH, check_dir=False),
        name="media-local",
    )


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
