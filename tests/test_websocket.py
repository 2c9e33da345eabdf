"""Tests for WebSocket connection management and real-time broadcast."""

import json

import pytest
from starlette.testclient import TestClient

from quickroll.infra.ws_manager import ConnectionManager
from quickroll.models.result import ActionMessage


class FakeWebSocket:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[str] = []

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)


def _message() -> ActionMessage:
    return ActionMessage(item_id="item1", actor_id="actor1", title="Longsword")


# --- Unit tests for ConnectionManager ---


class TestConnectionManager:
    """Unit tests for the WebSocket ConnectionManager."""

    def test_empty_table_has_no_clients(self):
        mgr = ConnectionManager()
        assert mgr.get_connected_clients("table1") == []

    @pytest.mark.asyncio
    async def test_broadcast_to_empty_table(self):
        """Broadcasting to a table with no connections should not raise."""
        mgr = ConnectionManager()
        await mgr.broadcast("nonexistent", _message())

    @pytest.mark.asyncio
    async def test_broadcast_sends_message_json(self):
        mgr = ConnectionManager()
        ws = FakeWebSocket()
        mgr._connections["t1"]["c1"] = ws
        await mgr.broadcast("t1", _message())
        assert len(ws.sent) == 1
        assert json.loads(ws.sent[0])["title"] == "Longsword"

    @pytest.mark.asyncio
    async def test_broadcast_drops_dead_connections(self):
        mgr = ConnectionManager()
        alive, dead = FakeWebSocket(), FakeWebSocket(fail=True)
        mgr._connections["t1"]["alive"] = alive
        mgr._connections["t1"]["dead"] = dead
        await mgr.broadcast("t1", _message())
        assert mgr.get_connected_clients("t1") == ["alive"]
        assert len(alive.sent) == 1

    def test_disconnect_cleans_up(self):
        mgr = ConnectionManager()
        mgr._connections["t1"]["c1"] = "fake_ws"
        assert mgr.get_connected_clients("t1") == ["c1"]
        mgr.disconnect("t1", "c1")
        assert mgr.get_connected_clients("t1") == []
        assert "t1" not in mgr._connections

    def test_disconnect_nonexistent_is_noop(self):
        mgr = ConnectionManager()
        mgr.disconnect("no_table", "no_client")  # Should not raise


# --- WebSocket endpoint tests ---


def test_ws_connect_and_ping():
    """A connected client is tracked and gets a pong for any text it sends."""
    from quickroll.infra.ws_manager import ws_manager
    from quickroll.main import app

    client = TestClient(app)
    with client.websocket_connect("/api/web/ws/table_ws_test?client_id=viewer") as ws:
        assert "viewer" in ws_manager.get_connected_clients("table_ws_test")
        ws.send_text("ping")
        assert ws.receive_json() == {"type": "pong", "table_id": "table_ws_test"}

    assert "viewer" not in ws_manager.get_connected_clients("table_ws_test")
