"""Room level operations and the websocket message dispatcher.

Every operation takes the room's lock for the whole read-modify-deliver
sequence, so two requests against the same room never interleave while
different rooms proceed independently. Game rules live in
``gamehub.mafia``; this module decides who is allowed to trigger them and
what gets delivered to whom afterwards.
"""
from __future__ import annotations

import logging
import random
from typing import Any, Dict, Optional, Union

from fastapi import WebSocket
from pydantic import ValidationError

from .config import settings
from .constants import DEFAULT_GAME
from .errors import GameError, NotAuthorized, InvalidPhase, SilentRejection
from .mafia import MafiaGame
from .registry import RoomRegistry
from .room import Room
from .schemas import (
    AdvanceMessage,
    GetStateMessage,
    JoinMessage,
    LeaveMessage,
    NightActionMessage,
    PingMessage,
    Player,
    ResetLobbyMessage,
    SetGameMessage,
    SetReadyMessage,
    StartGameMessage,
    VoteMessage,
    inbound_adapter,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------

async def _rebind(registry: RoomRegistry, room: Room, client_id: str, ws: WebSocket) -> None:
    """Bind *ws* to an existing player and replay what it may have missed."""
    previous = room.bind(client_id, ws)
    if registry.cancel_removal(room.code, client_id):
        logger.info("[%s] %s reconnected within grace", room.code, client_id)

    # Kick previous connection of same client
    if previous is not None:
        try:
            await previous.send_json({"type": "kicked", "reason": "Connected elsewhere"})
            await previous.close(code=4003)
        except Exception as exc:
            logger.debug("[%s] closing replaced connection failed: %s", room.code, exc)

    await room.broadcast_room()
    if room.game is not None and room.game.started:
        # Role and state are re-sent, never re-dealt
        await room.send_game_state(client_id)
        await room.send_role(client_id)


def _schedule_expiry(registry: RoomRegistry, room: Room, client_id: str) -> None:
    async def _expire() -> None:
        await expire_disconnected(registry, room.code, client_id)

    registry.schedule_removal(room.code, client_id, _expire)


def _await_connection(registry: RoomRegistry, room: Room, client_id: str) -> None:
    """Seats taken without a socket fall under the same grace rule as a lost one."""
    if room.connection_for(client_id) is None and not registry.removal_pending(room.code, client_id):
        _schedule_expiry(registry, room, client_id)


async def open_room(registry: RoomRegistry, host_id: str, host_name: Optional[str]) -> Room:
    """Create a room whose host has not connected yet."""
    room = registry.create_room(host_id, host_name)
    async with room.lock:
        _await_connection(registry, room, host_id)
    return room


async def join_room(
    registry: RoomRegistry,
    room: Room,
    client_id: str,
    name: Optional[str],
    ws: Optional[WebSocket] = None,
) -> Player:
    """Add *client_id* to the roster, or treat the call as a reconnection."""
    async with room.lock:
        known = client_id in room.players
        player = room.join(client_id, name, registry.max_name_length, registry.clock())
        if ws is not None:
            await _rebind(registry, room, client_id, ws)
            await room.send_to(client_id, {
                "type": "joined",
                "room_code": room.code,
                "player": player.model_dump(),
            })
        else:
            _await_connection(registry, room, client_id)
            if not known:
                await room.broadcast_room()
        if not known:
            logger.info("[%s] %s joined (%d players)", room.code, player.name, len(room.players))
        return player


async def attach(registry: RoomRegistry, room: Room, client_id: str, ws: WebSocket) -> bool:
    """Reconnect path: rebind *ws* if *client_id* is already on the roster."""
    async with room.lock:
        if client_id not in room.players:
            return False
        await _rebind(registry, room, client_id, ws)
        return True


async def set_ready(room: Room, client_id: str, ready: bool) -> None:
    async with room.lock:
        if client_id not in room.players:
            return
        room.set_ready(client_id, ready)
        await room.broadcast_room()
        if room.all_ready():
            await room.broadcast({"type": "all_ready", "room_code": room.code})


async def leave_room(registry: RoomRegistry, room: Room, client_id: str) -> None:
    async with room.lock:
        registry.cancel_removal(room.code, client_id)
        player = room.leave(client_id)
        if player is None:
            return
        logger.info("[%s] %s left", room.code, player.name)
        if room.is_empty:
            registry.discard(room.code)
            return
        await room.broadcast_room()
        await room.broadcast({"type": "player_left", "client_id": client_id, "name": player.name})


async def set_selected_game(room: Room, client_id: str, game_id: Optional[str]) -> None:
    async with room.lock:
        selected = room.set_selected_game(client_id, game_id)
        logger.info("[%s] selected game: %s", room.code, selected)
        await room.broadcast_room()


# ---------------------------------------------------------------------------
# Connection loss & grace
# ---------------------------------------------------------------------------

async def connection_lost(registry: RoomRegistry, room: Room, client_id: str, ws: WebSocket) -> None:
    """Mark the player disconnected and start the grace countdown."""
    async with room.lock:
        if not room.unbind(client_id, ws, registry.clock()):
            return
        if registry.find(room.code) is not room:
            return
        _schedule_expiry(registry, room, client_id)
        logger.info(
            "[%s] %s marked disconnected (grace %ss)", room.code, client_id, registry.grace_seconds
        )
        await room.broadcast_room()


async def expire_disconnected(registry: RoomRegistry, code: str, client_id: str) -> None:
    """Grace elapsed: drop the player unless they came back in the meantime."""
    room = registry.find(code)
    if room is None:
        return
    async with room.lock:
        if registry.find(code) is not room:
            return
        player = room.players.get(client_id)
        if player is None or player.connected:
            return
        room.remove_player(client_id)
        logger.info("[%s] %s removed after grace", code, player.name)
        if room.is_empty:
            registry.discard(code)
            return
        await room.broadcast_room()
        await room.broadcast({"type": "player_left", "client_id": client_id, "name": player.name})


# ---------------------------------------------------------------------------
# Game flow
# ---------------------------------------------------------------------------

async def start_game(
    room: Room,
    client_id: str,
    min_players: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> None:
    async with room.lock:
        if not room.is_host(client_id):
            raise NotAuthorized("Only the host can start the game")
        if room.game is not None and room.game.started and not room.game.finished:
            raise InvalidPhase("game already running")

        game_id = room.selected_game or DEFAULT_GAME
        if game_id == DEFAULT_GAME:
            game = MafiaGame(rng)
            players = [(p.client_id, p.name) for p in room.players.values()]
            game.start(players, settings.required_players if min_players is None else min_players)
            room.game = game
        else:
            room.game = None
        room.status = "playing"
        logger.info("[%s] game %s started", room.code, game_id)

        await room.broadcast({"type": "game_started", "room_code": room.code, "game_id": game_id})
        await room.broadcast_room()
        if room.game is not None:
            await room.broadcast_game_state()


async def send_state(room: Room, client_id: str) -> None:
    """Personalised snapshot to the requester only."""
    async with room.lock:
        await room.send_game_state(client_id)


async def night_action(room: Room, client_id: str, action: str, target_id: str) -> None:
    async with room.lock:
        if room.game is None:
            raise InvalidPhase("no game running")
        room.game.night_action(action, client_id, target_id)
        await room.broadcast_game_state()


async def vote(room: Room, client_id: str, target_id: str) -> None:
    async with room.lock:
        if room.game is None:
            raise InvalidPhase("no game running")
        room.game.vote(client_id, target_id)
        await room.broadcast_game_state()


async def advance_phase(room: Room, client_id: str) -> None:
    async with room.lock:
        # Non-hosts are ignored without a trace so they learn nothing about timing
        if not room.is_host(client_id) or room.game is None:
            return
        result = room.game.advance()
        logger.info("[%s] resolved to %s (round %d)", room.code, result.phase, room.game.round)
        await room.broadcast_game_state()


async def reset_lobby(room: Room, client_id: str) -> None:
    async with room.lock:
        if not room.is_host(client_id):
            return
        for p in room.players.values():
            p.ready = False
        room.game = None
        room.status = "waiting"
        await room.broadcast_room()
        await room.broadcast_game_state()


# ---------------------------------------------------------------------------
# Primary dispatcher used by websocket endpoint
# ---------------------------------------------------------------------------

async def handle_ws_message(
    registry: RoomRegistry,
    room: Room,
    client_id: str,
    ws: WebSocket,
    data: Union[str, bytes, Dict[str, Any]],
) -> bool:
    """Apply one inbound message; return ``False`` once the connection should end."""
    try:
        if isinstance(data, dict):
            msg = inbound_adapter.validate_python(data)
        else:
            msg = inbound_adapter.validate_json(data)
    except ValidationError as exc:
        logger.debug("[%s] malformed message from %s: %s", room.code, client_id, exc)
        await ws.send_json({"type": "error", "code": "invalid_message", "message": "Malformed message"})
        return True

    if isinstance(msg, PingMessage):
        await ws.send_json({"type": "pong"})
        return True
    if isinstance(msg, JoinMessage):
        await join_room(registry, room, client_id, msg.name, ws)
        return True
    if room.connection_for(client_id) is not ws:
        # Not joined yet, or replaced by a newer connection
        return True

    try:
        if isinstance(msg, SetReadyMessage):
            await set_ready(room, client_id, msg.ready)
        elif isinstance(msg, LeaveMessage):
            await leave_room(registry, room, client_id)
            return False
        elif isinstance(msg, SetGameMessage):
            await set_selected_game(room, client_id, msg.game_id)
        elif isinstance(msg, StartGameMessage):
            await start_game(room, client_id, registry.min_players, registry.game_rng)
        elif isinstance(msg, GetStateMessage):
            await send_state(room, client_id)
        elif isinstance(msg, NightActionMessage):
            await night_action(room, client_id, msg.action, msg.target_id)
        elif isinstance(msg, VoteMessage):
            await vote(room, client_id, msg.target_id)
        elif isinstance(msg, AdvanceMessage):
            await advance_phase(room, client_id)
        elif isinstance(msg, ResetLobbyMessage):
            await reset_lobby(room, client_id)
    except SilentRejection as exc:
        logger.debug("[%s] ignored %s from %s: %s", room.code, msg.type, client_id, exc.message)
    except GameError as exc:
        await ws.send_json({"type": "error", "code": exc.code, "message": exc.message})
    return True


__all__ = [
    "open_room",
    "join_room",
    "attach",
    "set_ready",
    "leave_room",
    "set_selected_game",
    "connection_lost",
    "expire_disconnected",
    "start_game",
    "send_state",
    "night_action",
    "vote",
    "advance_phase",
    "reset_lobby",
    "handle_ws_message",
]
