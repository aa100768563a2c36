from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from ..game_logic import attach, connection_lost, handle_ws_message
from ..registry import RoomRegistry
from ..state import get_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ws"])


@router.websocket("/ws/{room_code}")
async def websocket_endpoint(
    ws: WebSocket,
    room_code: str,
    client_id: Optional[str] = Query(default=None),
    registry: RoomRegistry = Depends(get_registry),
):
    await ws.accept()
    room = registry.find(room_code)
    if room is None:
        await ws.send_json({"type": "error", "code": "room_not_found", "message": "Room not found"})
        await ws.close(code=4004)
        return
    if not client_id:
        await ws.send_json({"type": "error", "code": "invalid_message", "message": "client_id is required"})
        await ws.close(code=4000)
        return

    # Known client ids are reconnections; newcomers have to send "join" first
    await attach(registry, room, client_id, ws)

    try:
        while True:
            data = await ws.receive_text()
            keep_open = await handle_ws_message(registry, room, client_id, ws, data)
            if not keep_open or registry.find(room.code) is not room:
                await ws.close(code=1000)
                return
    except WebSocketDisconnect:
        await connection_lost(registry, room, client_id, ws)
    except Exception as exc:
        logger.warning("[%s] websocket error for %s: %s", room.code, client_id, exc)
        await connection_lost(registry, room, client_id, ws)
