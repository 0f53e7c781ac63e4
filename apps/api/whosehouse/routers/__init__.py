"""API routers."""

from whosehouse.routers.admin import router as admin_router
from whosehouse.routers.auth import router as auth_router
from whosehouse.routers.cases import router as cases_router
from whosehouse.routers.child_tokens import router as child_tokens_router
from whosehouse.routers.households import router as households_router
from whosehouse.routers.media import router as media_router
from whosehouse.routers.messages import router as messages_router
from whosehouse.routers.notifications import router as notifications_router
from whosehouse.routers.placements import router as placements_router
from whosehouse.routers.profile import router as profile_router
from whosehouse.routers.websocket import router as websocket_router

__all__ = [
    "admin_router",
    "auth_router",
    "cases_router",
    "child_tokens_router",
    "households_router",
    "media_router",
    "messages_router",
    "notifications_router",
    "placements_router",
    "profile_router",
    "websocket_router",
]
