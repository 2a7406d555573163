from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from shieldcuisine_api.api.main import app
from shieldcuisine_api.core.security import create_access_token
from shieldcuisine_api.services.notifications import display_for
from shieldcuisine_api.services.realtime import BroadcastManager


def test_unknown_types_render_as_system():
    assert display_for("security").model_dump() == {"icon": "shield", "color": "red"}
    assert display_for("weather") == display_for("system")
    assert display_for(None).icon == "server-cog"


async def _notify(client, headers, **values):
    payload = {"title": "Recordatorio", "message": "Revisar cámara 2"}
    payload.update(values)
    res = await client.post("/api/notifications", json=payload, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


async def test_notifications_lifecycle(client, staff_headers):
    first = await _notify(client, staff_headers, type="inventory")
    await _notify(client, staff_headers)
    assert first["display"] == {"icon": "package", "color": "blue"}
    assert first["is_read"] is False

    count = await client.get("/api/notifications/unread/count", headers=staff_headers)
    assert count.json() == {"count": 2}

    read = await client.post(f"/api/notifications/{first['id']}/read", headers=staff_headers)
    assert read.json()["is_read"] is True
    assert read.json()["read_at"] is not None

    unread = await client.get("/api/notifications/unread", headers=staff_headers)
    assert unread.json()["total"] == 1

    await client.post("/api/notifications/read-all", headers=staff_headers)
    assert (await client.get("/api/notifications/unread/count", headers=staff_headers)).json() == {"count": 0}

    deleted = await client.delete(f"/api/notifications/{first['id']}", headers=staff_headers)
    assert deleted.status_code == 200
    assert (await client.get("/api/notifications", headers=staff_headers)).json()["total"] == 1


async def test_notifications_belong_to_their_owner(client, admin_headers, staff_headers):
    mine = await _notify(client, staff_headers)
    res = await client.post(f"/api/notifications/{mine['id']}/read", headers=admin_headers)
    assert res.status_code == 403
    assert res.json()["error"]["type"] == "forbidden"

    assert (await client.delete(f"/api/notifications/{mine['id']}", headers=admin_headers)).status_code == 403


async def test_only_admins_notify_other_users(client, admin_headers, staff_headers):
    staff = (await client.get("/api/user", headers=staff_headers)).json()
    admin = (await client.get("/api/user", headers=admin_headers)).json()

    denied = await client.post(
        "/api/notifications", json={"user_id": admin["id"], "title": "Hola", "message": "..."}, headers=staff_headers
    )
    assert denied.status_code == 403

    sent = await _notify(client, admin_headers, user_id=staff["id"], type="security")
    assert sent["user_id"] == staff["id"]
    assert (await client.get("/api/notifications", headers=staff_headers)).json()["total"] == 1


async def test_preferences_defaults_and_update(client, staff_headers):
    prefs = await client.get("/api/notification-preferences", headers=staff_headers)
    assert prefs.status_code == 200
    assert prefs.json()["appcc_notifications"] is True
    assert prefs.json()["email_frequency"] == "daily"

    updated = await client.put(
        "/api/notification-preferences",
        json={"email_frequency": "weekly", "system_notifications": False},
        headers=staff_headers,
    )
    assert updated.json()["email_frequency"] == "weekly"
    assert updated.json()["system_notifications"] is False
    assert updated.json()["appcc_notifications"] is True

    bad = await client.put("/api/notification-preferences", json={"email_frequency": "hourly"}, headers=staff_headers)
    assert bad.status_code == 422


# Real-time push


class _FakeSocket:
    application_state = client_state = SimpleNamespace()

    def __init__(self, fail: bool = False) -> None:
        self.sent = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(message)


async def test_publish_reaches_only_the_owner():
    manager = BroadcastManager()
    owner, other = _FakeSocket(), _FakeSocket()
    await manager.connect(manager.user_topic("t1", "u1"), owner)
    await manager.connect(manager.user_topic("t1", "u2"), other)

    await manager.publish_notification("t1", "u1", {"title": "Hola"})

    assert other.sent == []
    assert owner.sent[0]["type"] == "notification.created"
    assert owner.sent[0]["payload"] == {"title": "Hola"}
    assert owner.sent[0]["channel"] == "notifications:t1:u1"


async def test_broken_sockets_are_dropped():
    manager = BroadcastManager()
    topic = manager.user_topic("t1", "u1")
    await manager.connect(topic, _FakeSocket(fail=True))
    await manager.broadcast(topic, {"type": "ping"})
    assert manager.subscriber_count(topic) == 0


def test_websocket_requires_a_token():
    with TestClient(app).websocket_connect("/ws/notifications") as ws:
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_text()
    assert exc.value.code == 4401


def test_websocket_welcome_and_ping():
    token = create_access_token(
        subject="8d0c5e1e-2f3a-4a43-9a36-0f2f7c9b6a11",
        tenant_id="5b0f9d43-7c39-4c6e-9f0e-1c2d3e4f5a6b",
    )
    with TestClient(app).websocket_connect(f"/ws/notifications?token={token}") as ws:
        welcome = ws.receive_json()
        assert welcome["type"] == "system.welcome"
        assert welcome["channel"].startswith("notifications:5b0f9d43")
        ws.send_text("ping")
        assert ws.receive_text() == "pong"


class _AsgiWebSocket:
    """Websocket session driven through the ASGI interface on the test's event loop."""

    def __init__(self, headers: dict) -> None:
        token = headers["Authorization"].split()[1]
        self.scope = {
            "type": "websocket",
            "asgi": {"version": "3.0"},
            "scheme": "ws",
            "path": "/ws/notifications",
            "raw_path": b"/ws/notifications",
            "root_path": "",
            "query_string": f"token={token}".encode(),
            "headers": [(b"host", b"api.shieldcuisine.test")],
            "client": ("127.0.0.1", 50000),
            "server": ("api.shieldcuisine.test", 80),
            "subprotocols": [],
        }
        self._incoming: asyncio.Queue = asyncio.Queue()
        self._outgoing: asyncio.Queue = asyncio.Queue()
        self._task = None

    async def __aenter__(self) -> "_AsgiWebSocket":
        await self._incoming.put({"type": "websocket.connect"})
        self._task = asyncio.create_task(app(self.scope, self._incoming.get, self._outgoing.put))
        accepted = await self._next()
        assert accepted["type"] == "websocket.accept"
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self._incoming.put({"type": "websocket.disconnect", "code": 1000})
        await asyncio.wait_for(self._task, timeout=2)

    async def _next(self) -> dict:
        return await asyncio.wait_for(self._outgoing.get(), timeout=2)

    async def receive_json(self) -> dict:
        message = await self._next()
        assert message["type"] == "websocket.send"
        return json.loads(message["text"])

    def pending(self) -> int:
        return self._outgoing.qsize()


async def test_new_notification_is_pushed_to_its_owner_only(client, admin_headers, staff_headers):
    async with _AsgiWebSocket(staff_headers) as staff_ws, _AsgiWebSocket(admin_headers) as admin_ws:
        assert (await staff_ws.receive_json())["type"] == "system.welcome"
        assert (await admin_ws.receive_json())["type"] == "system.welcome"

        created = await _notify(client, staff_headers, type="inventory", title="Stock bajo")

        pushed = await staff_ws.receive_json()
        assert pushed["type"] == "notification.created"
        assert pushed["payload"]["id"] == created["id"]
        assert pushed["payload"]["title"] == "Stock bajo"
        assert pushed["payload"]["display"] == {"icon": "package", "color": "blue"}
        assert admin_ws.pending() == 0
