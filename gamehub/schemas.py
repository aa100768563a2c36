"""Pydantic data schemas used across the game server.

This module centralises all models so that other packages can import
from a single location instead of sprinkling the definitions across
multiple files.
"""
from __future__ import annotations

import time
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

# -----------------------------
# Runtime roster
# -----------------------------

class Player(BaseModel):
    """Represents a participant inside a room at runtime."""

    client_id: str
    name: str
    joined_at: float = Field(default_factory=time.time)
    ready: bool = False
    connected: bool = False
    disconnected_at: Optional[float] = None


# -----------------------------
# Game results
# -----------------------------

class InvestigationResult(BaseModel):
    target_id: str
    is_mafia: bool


class NightStartResult(BaseModel):
    phase: Literal["nightStart"] = "nightStart"
    round: int


class NightEndResult(BaseModel):
    phase: Literal["nightEnd"] = "nightEnd"
    killed: Optional[str] = None
    saved: List[str] = []


class DayEndResult(BaseModel):
    phase: Literal["dayEnd"] = "dayEnd"
    executed: Optional[str] = None
    votes_count: int = 0


LastResult = Annotated[
    Union[NightStartResult, NightEndResult, DayEndResult],
    Field(discriminator="phase"),
]


# -----------------------------
# Projections
# -----------------------------

class RoomPlayerView(BaseModel):
    client_id: str
    name: str
    is_host: bool
    ready: bool
    connected: bool


class RoomView(BaseModel):
    """Public room roster, safe to broadcast to every participant."""

    code: str
    host_id: str
    player_count: int
    players: List[RoomPlayerView]
    status: str  # waiting | playing
    selected_game: str
    created_at: float


class AlivePlayerView(BaseModel):
    client_id: str
    name: str
    alive: bool


class GameView(BaseModel):
    """Game state as seen by exactly one viewer.

    ``my_role`` and ``investigation_result`` belong to the viewer only; a
    ``GameView`` must never be reused for another connection.
    """

    room_code: str
    started: bool = False
    phase: Optional[str] = None  # role | night | day
    round: int = 0
    alive: List[AlivePlayerView] = []
    last_result: Optional[LastResult] = None
    winner_team: Optional[str] = None  # town | mafia
    my_role: Optional[str] = None
    investigation_result: Optional[InvestigationResult] = None
    can_advance: bool = False


class RoomSummary(BaseModel):
    code: str
    player_count: int
    status: str
    created_at: float


# -----------------------------
# Inbound websocket messages
# -----------------------------

class JoinMessage(BaseModel):
    type: Literal["join"]
    name: str = ""


class SetReadyMessage(BaseModel):
    type: Literal["set_ready"]
    ready: bool


class LeaveMessage(BaseModel):
    type: Literal["leave"]


class SetGameMessage(BaseModel):
    type: Literal["set_game"]
    game_id: str = ""


class StartGameMessage(BaseModel):
    type: Literal["start_game"]


class GetStateMessage(BaseModel):
    type: Literal["get_state"]


class NightActionMessage(BaseModel):
    type: Literal["night_action"]
    action: Literal["kill", "save", "check"]
    target_id: str


class VoteMessage(BaseModel):
    type: Literal["vote"]
    target_id: str


class AdvanceMessage(BaseModel):
    type: Literal["advance"]


class ResetLobbyMessage(BaseModel):
    type: Literal["reset_lobby"]


class PingMessage(BaseModel):
    type: Literal["ping"]


InboundMessage = Annotated[
    Union[
        JoinMessage,
        SetReadyMessage,
        LeaveMessage,
        SetGameMessage,
        StartGameMessage,
        GetStateMessage,
        NightActionMessage,
        VoteMessage,
        AdvanceMessage,
        ResetLobbyMessage,
        PingMessage,
    ],
    Field(discriminator="type"),
]

inbound_adapter: TypeAdapter = TypeAdapter(InboundMessage)


# -----------------------------
# REST request / response models
# -----------------------------

class CreateRoomRequest(BaseModel):
    name: str = ""
    client_id: Optional[str] = None


class JoinRoomRequest(BaseModel):
    name: str = ""
    client_id: Optional[str] = None


class RoomResponse(BaseModel):
    room_code: str
    client_id: str


class JoinRoomResponse(BaseModel):
    room_code: str
    client_id: str
    player: Player


class CheckRoomResponse(BaseModel):
    exists: bool
    room_code: str


class HealthResponse(BaseModel):
    status: str = "ok"
    rooms: int
    connections: int
    timestamp: float


__all__ = [
    # runtime
    "Player",
    "InvestigationResult",
    "NightStartResult",
    "NightEndResult",
    "DayEndResult",
    "LastResult",
    # projections
    "RoomPlayerView",
    "RoomView",
    "AlivePlayerView",
    "GameView",
    "RoomSummary",
    # websocket
    "JoinMessage",
    "SetReadyMessage",
    "LeaveMessage",
    "SetGameMessage",
    "StartGameMessage",
    "GetStateMessage",
    "NightActionMessage",
    "VoteMessage",
    "AdvanceMessage",
    "ResetLobbyMessage",
    "PingMessage",
    "InboundMessage",
    "inbound_adapter",
    # REST
    "CreateRoomRequest",
    "JoinRoomRequest",
    "RoomResponse",
    "JoinRoomResponse",
    "CheckRoomResponse",
    "HealthResponse",
]
