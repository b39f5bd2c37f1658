import json
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from xclone.main import app
from xclone.services.auth_service import AuthService
from xclone.services.redis_service import get_redis
from xclone.schemas.notification_schema import NotificationType
from xclone.services.message_service import MessageService
from xclone.services.notification_service import NotificationService
from xclone.websocket.manager import WebSocketManager, dispatch_committed_pushes, ws_manager


class FakeWebSocket:
    def __init__(self, broken: bool = False):
        self.accepted = False
        self.sent = []
        self.broken = broken

    async def accept(self):
        self.accepted = True

    async def send_text(self, text: str):
        if self.broken:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(text))


@pytest.fixture
def ws_client(fake_redis):
    app.dependency_overrides[get_redis] = lambda: fake_redis
    yield TestClient(app)
    app.dependency_overrides.pop(get_redis, None)


def _token(user_id: int = 1) -> str:
    return AuthService(None).create_access_token({"sub": str(user_id), "user_id": user_id, "username": "alice"})


@pytest.mark.asyncio
async def test_manager_pushes_to_every_connection():
    manager = WebSocketManager()
    first, second = FakeWebSocket(), FakeWebSocket()
    await manager.connect(1, first)
    await manager.connect(1, second)

    await manager.send_to_user(1, "notification", {"id": 5, "type": "like"})

    assert first.accepted and second.accepted
    assert first.sent == [{"type": "notification", "data": {"id": 5, "type": "like"}}]
    assert second.sent == first.sent
    assert await manager.get_connected_users_count() == 1
    assert await manager.get_total_connections_count() == 2


@pytest.mark.asyncio
async def test_manager_drops_broken_connections():
    manager = WebSocketManager()
    healthy, broken = FakeWebSocket(), FakeWebSocket(broken=True)
    await manager.connect(7, healthy)
    await manager.connect(7, broken)

    await manager.send_to_user(7, "message", {"text": "hi"})

    assert healthy.sent == [{"type": "message", "data": {"text": "hi"}}]
    assert await manager.get_total_connections_count() == 1


@pytest.mark.asyncio
async def test_notification_push_waits_for_commit(db_session, alice, bob):
    manager = WebSocketManager()
    socket = FakeWebSocket()
    await manager.connect(alice.id, socket)

    await NotificationService(db_session, manager).notify(alice.id, NotificationType.FOLLOW, bob.id)
    await dispatch_committed_pushes(db_session)
    assert socket.sent == []

    await db_session.commit()
    await dispatch_committed_pushes(db_session)
    assert [m["type"] for m in socket.sent] == ["notification"]
    assert socket.sent[0]["data"]["type"] == "follow"


@pytest.mark.asyncio
async def test_rolled_back_message_is_never_pushed(db_session, alice, bob):
    manager = WebSocketManager()
    socket = FakeWebSocket()
    await manager.connect(bob.id, socket)

    await MessageService(db_session, manager).send_message(alice.id, bob.id, "lost in transit")
    await db_session.rollback()
    await db_session.commit()
    await dispatch_committed_pushes(db_session)

    assert socket.sent == []

@pytest.mark.asyncio
async def test_manager_disconnect_and_offline_user():
    manager = WebSocketManager()
    socket = FakeWebSocket()
    await manager.connect(3, socket)
    await manager.disconnect(3, socket)

    # nobody listening is not an error
    await manager.send_to_user(3, "notification", {"id": 1})

    assert socket.sent == []
    assert await manager.get_connected_users_count() == 0


def test_websocket_rejects_missing_token(ws_client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect("/api/v1/ws"):
            pass

    assert exc.value.code == 1008


def test_websocket_rejects_invalid_token(ws_client):
    with pytest.raises(WebSocketDisconnect):
        with ws_client.websocket_connect("/api/v1/ws?token=garbage"):
            pass


def test_websocket_ping(ws_client):
    with ws_client.websocket_connect(f"/api/v1/ws?token={_token(42)}") as websocket:
        websocket.send_text(json.dumps({"type": "ping"}))
        assert websocket.receive_json() == {"type": "pong"}
        assert ws_manager.active_connections.get(42)


def test_websocket_rejects_blacklisted_token(ws_client, fake_redis):
    token = _token(42)
    fake_redis.store[f"blacklist:{token}"] = "1"

    with pytest.raises(WebSocketDisconnect):
        with ws_client.websocket_connect(f"/api/v1/ws?token={token}"):
            pass
