"""
WebSocket /ws -- state broadcast and command channel.

Server -> client: ``{"event": "state", "data": <ServerState snapshot>}`` once
on connect and after every state change.

Client -> server: ``{"cmd": "query", "data": <descriptor>}`` or
``{"cmd": "status", "data": {"id": <execution id>}}``.  Other commands are
ignored.
"""
from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from src.api.deps import get_manager
from src.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.websocket("/ws")
async def state_socket(websocket: WebSocket):
    manager = get_manager(websocket)
    await websocket.accept()

    async def send_state(state: dict[str, Any]) -> None:
        await websocket.send_json({"event": "state", "data": state})

    # subscribe first so a publish during the initial send is not missed
    manager.broadcaster.subscribe(send_state)
    try:
        await send_state(manager.snapshot())
        while True:
            text = await websocket.receive_text()
            try:
                envelope = json.loads(text)
            except ValueError:
                logger.debug("Ignoring non-JSON message")
                continue
            manager.handle_command(envelope)
    except WebSocketDisconnect:
        logger.info("Observer disconnected")
    finally:
        manager.broadcaster.unsubscribe(send_state)
