"""
WebSocket connection manager for realtime case events.

Holds the open sockets per user so committed changes (new messages,
status changes, unread counts, placement updates) reach connected
clients without polling. Delivery is fire-and-forget.

Typing state is kept in memory per process and goes stale after
TYPING_STALE_SECONDS without a refresh.
"""

from typing import Callable, Dict, Set
from uuid import UUID
import asyncio
import json
import logging
import time

from fastapi import WebSocket


logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections per user and organization."""

    def __init__(self):
        # user_id -> set of active WebSocket connections
        self._connections: Dict[UUID, Set[WebSocket]] = {}
        # user_id -> org_id (for org-based broadcasts)
        self._user_orgs: Dict[UUID, UUID] = {}
        self._lock = asyncio.Lock()

    async def connect(
        self, websocket: WebSocket, user_id: UUID, org_id: UUID | None = None
    ):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.setdefault(user_id, set()).add(websocket)
            if org_id:
                self._user_orgs[user_id] = org_id

    async def disconnect(self, websocket: WebSocket, user_id: UUID):
        """Remove a WebSocket connection."""
        async with self._lock:
            self._discard(user_id, [websocket])

    def _discard(self, user_id: UUID, sockets) -> None:
        # Caller holds self._lock
        if user_id not in self._connections:
            return
        for ws in sockets:
            self._connections[user_id].discard(ws)
        if not self._connections[user_id]:
            del self._connections[user_id]
            self._user_orgs.pop(user_id, None)

    async def send_to_user(self, user_id: UUID, message: dict):
        """Send a message to all connections for a specific user."""
        async with self._lock:
            connections = self._connections.get(user_id, set()).copy()

        if not connections:
            return

        data = json.dumps(message, default=str)
        closed = []

        for ws in connections:
            try:
                await ws.send_text(data)
            except Exception:
                # Connection closed or errored
                closed.append(ws)

        if closed:
            async with self._lock:
                self._discard(user_id, closed)

    async def send_to_users(self, user_ids, message: dict):
        """Send the same message to several users (duplicates ignored)."""
        for user_id in dict.fromkeys(uid for uid in user_ids if uid):
            await self.send_to_user(user_id, message)

    async def close_user(self, user_id: UUID, code: int = 4001, reason: str = "Signed out"):
        """Close and forget every socket a user has open (sign-out / revocation)."""
        async with self._lock:
            connections = self._connections.pop(user_id, set())
            self._user_orgs.pop(user_id, None)

        for ws in connections:
            try:
                await ws.close(code=code, reason=reason)
            except Exception:
                logger.debug("Socket already closed for user %s", user_id)

    def get_connected_count(self, user_id: UUID) -> int:
        """Get the number of active connections for a user."""
        return len(self._connections.get(user_id, set()))

    def get_total_connections(self) -> int:
        """Get total number of active connections across all users."""
        return sum(len(conns) for conns in self._connections.values())


TYPING_STALE_SECONDS = 10


class TypingTracker:
    """Who is typing on which case thread, dropping entries not refreshed in time."""

    def __init__(
        self,
        stale_after: float = TYPING_STALE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.stale_after = stale_after
        self._clock = clock
        # case_id -> user_id -> last refresh
        self._typing: Dict[UUID, Dict[UUID, float]] = {}

    def set_typing(self, case_id: UUID, user_id: UUID, is_typing: bool = True) -> None:
        self.clean()
        if is_typing:
            self._typing.setdefault(case_id, {})[user_id] = self._clock()
            return
        typers = self._typing.get(case_id)
        if typers is not None:
            typers.pop(user_id, None)
            if not typers:
                del self._typing[case_id]

    def clean(self) -> None:
        """Forget entries older than the stale window."""
        cutoff = self._clock() - self.stale_after
        for case_id in list(self._typing):
            typers = self._typing[case_id]
            for user_id in [u for u, seen in typers.items() if seen <= cutoff]:
                del typers[user_id]
            if not typers:
                del self._typing[case_id]

    def active_typers(self, case_id: UUID, exclude: UUID | None = None) -> list[UUID]:
        self.clean()
        return [u for u in self._typing.get(case_id, {}) if u != exclude]

    def clear_user(self, user_id: UUID) -> list[UUID]:
        """Drop a user from every thread (socket closed). Returns the affected case ids."""
        cleared = []
        for case_id in list(self._typing):
            if self._typing[case_id].pop(user_id, None) is not None:
                cleared.append(case_id)
                if not self._typing[case_id]:
                    del self._typing[case_id]
        return cleared


# Singleton instances
manager = ConnectionManager()
typing_tracker = TypingTracker()
