"""ConnectionManager fan-out and cleanup, and typing staleness."""

import json
from uuid import uuid4

from whosehouse.core.websocket import TYPING_STALE_SECONDS, ConnectionManager, TypingTracker


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.accepted = False
        self.sent: list[str] = []
        self.closed_with: tuple[int, str] | None = None
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, data: str):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = ""):
        self.closed_with = (code, reason)


async def test_send_to_every_socket_of_user():
    manager = ConnectionManager()
    user_id = uuid4()
    phone, tablet = FakeWebSocket(), FakeWebSocket()
    await manager.connect(phone, user_id)
    await manager.connect(tablet, user_id)

    await manager.send_to_user(user_id, {"type": "unread.count", "data": {"total": 2}})

    assert phone.accepted and tablet.accepted
    assert json.loads(phone.sent[0]) == {"type": "unread.count", "data": {"total": 2}}
    assert len(tablet.sent) == 1
    assert manager.get_connected_count(user_id) == 2


async def test_failed_socket_is_dropped():
    manager = ConnectionManager()
    user_id = uuid4()
    healthy, broken = FakeWebSocket(), FakeWebSocket(fail=True)
    await manager.connect(healthy, user_id)
    await manager.connect(broken, user_id)

    await manager.send_to_user(user_id, {"type": "ping"})

    assert manager.get_connected_count(user_id) == 1
    assert healthy.sent


async def test_send_to_users_deduplicates():
    manager = ConnectionManager()
    user_id = uuid4()
    socket = FakeWebSocket()
    await manager.connect(socket, user_id)

    await manager.send_to_users([user_id, None, user_id], {"type": "message.created"})

    assert len(socket.sent) == 1


async def test_close_user_closes_and_forgets():
    manager = ConnectionManager()
    user_id = uuid4()
    socket = FakeWebSocket()
    await manager.connect(socket, user_id, org_id=uuid4())

    await manager.close_user(user_id)

    assert socket.closed_with == (4001, "Signed out")
    assert manager.get_total_connections() == 0
    # Nothing to deliver once closed
    await manager.send_to_user(user_id, {"type": "notification"})
    assert socket.sent == []


async def test_disconnect_removes_socket():
    manager = ConnectionManager()
    user_id = uuid4()
    socket = FakeWebSocket()
    await manager.connect(socket, user_id)
    await manager.disconnect(socket, user_id)
    assert manager.get_connected_count(user_id) == 0


# =============================================================================
# Typing
# =============================================================================

class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_typing_goes_stale_without_refresh():
    clock = FakeClock()
    tracker = TypingTracker(clock=clock)
    case_id, worker, carer = uuid4(), uuid4(), uuid4()

    tracker.set_typing(case_id, worker)
    clock.now += TYPING_STALE_SECONDS - 1
    tracker.set_typing(case_id, carer)
    assert tracker.active_typers(case_id) == [worker, carer]

    clock.now += 1
    assert tracker.active_typers(case_id) == [carer]

    # A refresh restarts the window
    tracker.set_typing(case_id, carer)
    clock.now += TYPING_STALE_SECONDS - 1
    assert tracker.active_typers(case_id) == [carer]
    clock.now += 1
    assert tracker.active_typers(case_id) == []


def test_typing_stopped_and_excluded():
    tracker = TypingTracker(clock=FakeClock())
    case_id, worker, carer = uuid4(), uuid4(), uuid4()
    tracker.set_typing(case_id, worker)
    tracker.set_typing(case_id, carer)

    assert tracker.active_typers(case_id, exclude=carer) == [worker]
    tracker.set_typing(case_id, worker, is_typing=False)
    assert tracker.active_typers(case_id) == [carer]
    # Stopping twice is harmless
    tracker.set_typing(case_id, worker, is_typing=False)
    assert tracker.active_typers(case_id) == [carer]


def test_clear_user_leaves_every_thread():
    tracker = TypingTracker(clock=FakeClock())
    first, second, worker, carer = uuid4(), uuid4(), uuid4(), uuid4()
    tracker.set_typing(first, worker)
    tracker.set_typing(second, worker)
    tracker.set_typing(second, carer)

    assert sorted(tracker.clear_user(worker)) == sorted([first, second])
    assert tracker.active_typers(first) == []
    assert tracker.active_typers(second) == [carer]
    assert tracker.clear_user(worker) == []
