from __future__ import annotations

import asyncio
import datetime

from sidur.websocket.connection_manager import ConnectionManager


class FakeWebSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.accepted = False
        self.closed = False
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("connection lost")
        self.sent.append(message)

    async def close(self):
        self.closed = True

    def types(self):
        return [m["type"] for m in self.sent]


def _run(coro):
    return asyncio.run(coro)


def test_schedule_change_reaches_only_viewers_of_that_schedule():
    async def scenario():
        manager = ConnectionManager()
        viewer, other, editor = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
        await manager.connect(viewer, "a", "דנה")
        await manager.connect(other, "b", "יוסי")
        await manager.connect(editor, "c", "מוקדן")
        await manager.subscribe("a", 1)
        await manager.subscribe("b", 2)
        await manager.subscribe("c", 1)

        await manager.broadcast_schedule_change(1, "assignment", "update", 7, exclude_client="c")
        await manager.shutdown()
        return viewer, other, editor

    viewer, other, editor = _run(scenario())

    changes = [m for m in viewer.sent if m["type"] == "schedule_changed"]
    assert len(changes) == 1
    assert changes[0]["data"]["schedule_id"] == 1
    assert changes[0]["data"]["entity"] == "assignment"
    assert changes[0]["data"]["entity_id"] == 7
    assert "schedule_changed" not in other.types()
    assert "schedule_changed" not in editor.types()
    assert viewer.closed and other.closed and editor.closed


def test_viewers_update_on_subscribe_switch_and_disconnect():
    async def scenario():
        manager = ConnectionManager()
        first, second = FakeWebSocket(), FakeWebSocket()
        await manager.connect(first, "a", "דנה")
        await manager.connect(second, "b", "יוסי")
        await manager.subscribe("a", 1)
        await manager.subscribe("b", 1)
        counts = dict(manager.get_subscription_counts())

        await manager.subscribe("b", 2)
        after_switch = manager.get_viewers(1)
        await manager.disconnect("b")
        online = manager.get_online_count()
        await manager.shutdown()
        return first, counts, after_switch, online

    first, counts, after_switch, online = _run(scenario())

    assert counts == {1: 2}
    assert after_switch == [{"client_id": "a", "username": "דנה"}]
    assert online == 1
    updates = [m["data"] for m in first.sent if m["type"] == "viewers_update"]
    assert [u["count"] for u in updates] == [1, 2, 1]


def test_reconnect_with_same_client_id_closes_old_socket():
    async def scenario():
        manager = ConnectionManager()
        old, new = FakeWebSocket(), FakeWebSocket()
        await manager.connect(old, "a")
        await manager.connect(new, "a")
        current = manager.active_connections["a"]
        await manager.shutdown()
        return old, new, current

    old, new, current = _run(scenario())

    assert old.closed
    assert current is new


def test_failed_send_drops_client():
    async def scenario():
        manager = ConnectionManager()
        healthy, broken = FakeWebSocket(), FakeWebSocket()
        await manager.connect(healthy, "a")
        await manager.connect(broken, "b")
        await manager.subscribe("a", 1)
        manager.subscriptions["b"] = 1
        broken.fail = True

        await manager.broadcast_schedule_change(1, "schedule", "update", 1)
        remaining = set(manager.active_connections)
        await manager.shutdown()
        return remaining

    assert _run(scenario()) == {"a"}


def test_silent_clients_time_out():
    async def scenario():
        manager = ConnectionManager()
        quiet, chatty = FakeWebSocket(), FakeWebSocket()
        await manager.connect(quiet, "quiet")
        await manager.connect(chatty, "chatty")
        manager.last_heartbeat["quiet"] -= datetime.timedelta(seconds=manager.heartbeat_timeout + 5)
        manager.update_heartbeat("chatty")

        await manager.check_heartbeats()
        remaining = set(manager.active_connections)
        await manager.shutdown()
        return quiet, remaining

    quiet, remaining = _run(scenario())

    assert remaining == {"chatty"}
    assert quiet.closed


def test_websocket_endpoint_ping_and_subscribe(client):
    with client.websocket_connect("/api/ws?client_id=tab-1&username=דנה") as ws:
        hello = ws.receive_json()
        assert hello["type"] == "connection_established"
        assert hello["data"]["client_id"] == "tab-1"

        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

        ws.send_json({"type": "subscribe", "schedule_id": 5})
        update = ws.receive_json()
        assert update["type"] == "viewers_update"
        assert update["data"]["viewers"] == [{"client_id": "tab-1", "username": "דנה"}]

        ws.send_json({"type": "subscribe", "schedule_id": "five"})
        assert ws.receive_json()["type"] == "error"
