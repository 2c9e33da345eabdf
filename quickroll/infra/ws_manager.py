"""WebSocket connection manager — broadcasts action messages to a table's clients."""

from __future__ import annotations

import logging
from collections import defaultdict

from fastapi import WebSocket

from quickroll.models.result import ActionMessage

logger = logging.getLogger("quickroll.ws")


class ConnectionManager:
    """Manages WebSocket connections grouped by table_id."""

    def __init__(self) -> None:
        self._connections: dict[str, dict[str, WebSocket]] = defaultdict(dict)

    async def connect(self, table_id: str, client_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections[table_id][client_id] = websocket

    def disconnect(self, table_id: str, client_id: str) -> None:
        self._connections[table_id].pop(client_id, None)
        if not self._connections[table_id]:
            del self._connections[table_id]

    async def broadcast(self, table_id: str, message: ActionMessage) -> None:
        """Send a composite action message to every client at a table."""
        connections = self._connections.get(table_id, {})
        dead: list[str] = []
        payload = message.model_dump_json()
        for client_id, ws in connections.items():
            try:
                await ws.send_text(payload)
            except Exception:
                logger.debug("Dropping dead connection %s at table %s", client_id, table_id)
                dead.append(client_id)
        for cid in dead:
            self.disconnect(table_id, cid)

    def get_connected_clients(self, table_id: str) -> list[str]:
        return list(self._connections.get(table_id, {}).keys())


# Module-level singleton
ws_manager = ConnectionManager()
