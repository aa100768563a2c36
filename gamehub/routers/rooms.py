from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException

from .. import game_logic
from ..errors import RoomNotFound
from ..projector import room_view
from ..registry import RoomRegistry, normalize_code
from ..schemas import (
    CheckRoomResponse,
    CreateRoomRequest,
    JoinRoomRequest,
    JoinRoomResponse,
    RoomResponse,
    RoomSummary,
    RoomView,
)
from ..state import get_registry

router = APIRouter(prefix="", tags=["rooms"])


def _room_or_404(registry: RoomRegistry, code: str):
    try:
        return registry.get(code)
    except RoomNotFound as exc:
        raise HTTPException(status_code=404, detail=exc.message)


@router.post("/rooms", response_model=RoomResponse, status_code=201)
async def create_room(
    req: CreateRoomRequest = Body(default=CreateRoomRequest()),
    registry: RoomRegistry = Depends(get_registry),
):
    """Create a room; the creator becomes its host and first player."""
    client_id = req.client_id or str(uuid.uuid4())
    room = await game_logic.open_room(registry, client_id, req.name)
    return RoomResponse(room_code=room.code, client_id=client_id)


@router.get("/rooms/{room_code}/exists", response_model=CheckRoomResponse)
async def check_room(room_code: str, registry: RoomRegistry = Depends(get_registry)):
    code = normalize_code(room_code)
    return CheckRoomResponse(exists=registry.exists(code), room_code=code)


@router.post("/rooms/{room_code}/join", response_model=JoinRoomResponse)
async def join_room(
    room_code: str,
    req: JoinRoomRequest = Body(default=JoinRoomRequest()),
    registry: RoomRegistry = Depends(get_registry),
):
    room = _room_or_404(registry, room_code)
    client_id = req.client_id or str(uuid.uuid4())
    player = await game_logic.join_room(registry, room, client_id, req.name)
    return JoinRoomResponse(room_code=room.code, client_id=client_id, player=player)


@router.get("/rooms", response_model=List[RoomSummary])
async def list_rooms(registry: RoomRegistry = Depends(get_registry)):
    return registry.summaries()


@router.get("/rooms/{room_code}", response_model=RoomView)
async def get_room(room_code: str, registry: RoomRegistry = Depends(get_registry)):
    return room_view(_room_or_404(registry, room_code))
