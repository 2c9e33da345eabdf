"""Web API — WebSocket feed of completed roll messages."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from quickroll.infra.ws_manager import ws_manager

router = APIRouter(prefix="/api/web", tags=["web"])


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "message": "Web API active."}


@router.websocket("/ws/{table_id}")
async def websocket_table(websocket: WebSocket, table_id: str) -> None:
    """WebSocket endpoint for a table's roll messages.

    Connect with: ws://host/api/web/ws/{table_id}?client_id=<id>

    Sends: ActionMessage JSON for every completed action rolled with this
    table_id. Incoming text is answered with a pong so clients can keep the
    connection alive.
    """
    client_id = websocket.query_params.get("client_id") or uuid.uuid4().hex
    await ws_manager.connect(table_id, client_id, websocket)

    try:
        while True:
            await websocket.receive_text()
            await websocket.send_json({"type": "pong", "table_id": table_id})
    except WebSocketDisconnect:
        ws_manager.disconnect(table_id, client_id)
