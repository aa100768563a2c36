from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from fastapi import WebSocket

from .constants import DEFAULT_GAME, DEFAULT_PLAYER_NAME
from .errors import NotAuthorized
from .mafia import MafiaGame
from .projector import game_view, room_view
from .schemas import Player

logger = logging.getLogger(__name__)

# NOTE: ``Room`` knows nothing about the registry. Timers and room
# destruction live in ``gamehub.registry``; the rules live in ``gamehub.mafia``.


def normalize_name(name: Optional[str], max_length: int = 24) -> str:
    """Trim and cap a display name; empty names get a placeholder."""
    cleaned = str(name or "").strip()[:max_length]
    return cleaned or DEFAULT_PLAYER_NAME


class Room:
    """Encapsulates the roster, host, active connections and game of one room."""

    def __init__(
        self,
        code: str,
        host_player: Player,
        selected_game: str = DEFAULT_GAME,
        created_at: Optional[float] = None,
    ):
        self.code = code
        self.host_id = host_player.client_id
        self.players: Dict[str, Player] = {host_player.client_id: host_player}
        self.status = "waiting"
        self.selected_game = selected_game
        self.created_at = created_at if created_at is not None else time.time()
        self.game: Optional[MafiaGame] = None
        # active connections: client_id -> websocket
        self.connections: Dict[str, WebSocket] = {}
        # Serialises every mutation of this room (membership, phases, buffers)
        self.lock = asyncio.Lock()

    # ---------------------------------------------------------------------
    # Player management
    # ---------------------------------------------------------------------

    def is_host(self, client_id: str) -> bool:
        return client_id == self.host_id

    def join(
        self,
        client_id: str,
        name: Optional[str],
        max_name_length: int = 24,
        now: Optional[float] = None,
    ) -> Player:
        """Add a player, or return the existing record when *client_id* is known.

        A known client id is a reconnection, never a second seat: the record
        comes back unchanged and the caller only rebinds the connection.
        New players start out disconnected until ``bind`` gives them a socket.
        """
        existing = self.players.get(client_id)
        if existing is not None:
            return existing
        now = now if now is not None else time.time()
        player = Player(
            client_id=client_id,
            name=normalize_name(name, max_name_length),
            joined_at=now,
            disconnected_at=now,
        )
        self.players[client_id] = player
        return player

    def set_ready(self, client_id: str, ready: bool) -> None:
        player = self.players.get(client_id)
        if player:
            player.ready = bool(ready)

    def set_selected_game(self, requester_id: str, game_id: Optional[str]) -> str:
        if not self.is_host(requester_id):
            raise NotAuthorized("Only the host can choose the game")
        self.selected_game = str(game_id or "").strip() or DEFAULT_GAME
        return self.selected_game

    def remove_player(self, client_id: str) -> Optional[Player]:
        player = self.players.pop(client_id, None)
        self.connections.pop(client_id, None)
        # Transfer host if host leaves
        if client_id == self.host_id and self.players:
            self.host_id = next(iter(self.players))
            logger.info("[%s] host passed to %s", self.code, self.host_id)
        return player

    def leave(self, client_id: str) -> Optional[Player]:
        """Explicit leave: removal is immediate, there is no grace period."""
        return self.remove_player(client_id)

    def all_ready(self) -> bool:
        return bool(self.players) and all(p.ready for p in self.players.values())

    @property
    def is_empty(self) -> bool:
        return not self.players

    # ---------------------------------------------------------------------
    # Connection binding
    # ---------------------------------------------------------------------

    def bind(self, client_id: str, ws: WebSocket) -> Optional[WebSocket]:
        """Make *ws* the live connection of *client_id*; return the replaced one."""
        previous = self.connections.get(client_id)
        self.connections[client_id] = ws
        player = self.players.get(client_id)
        if player:
            player.connected = True
            player.disconnected_at = None
        return previous if previous is not ws else None

    def unbind(self, client_id: str, ws: WebSocket, now: Optional[float] = None) -> bool:
        """Forget *ws* if it is still the live connection of *client_id*.

        Returns ``False`` when a newer connection already replaced it, in which
        case the loss must not count as a disconnect.
        """
        if self.connections.get(client_id) is not ws:
            return False
        self.connections.pop(client_id, None)
        player = self.players.get(client_id)
        if player:
            player.connected = False
            player.disconnected_at = now if now is not None else time.time()
        return True

    def connection_for(self, client_id: str) -> Optional[WebSocket]:
        return self.connections.get(client_id)

    # ---------------------------------------------------------------------
    # Delivery helpers
    # ---------------------------------------------------------------------

    async def send_to(self, client_id: str, payload: Dict[str, Any]) -> None:
        ws = self.connections.get(client_id)
        if ws is None:
            return
        try:
            await ws.send_json(payload)
        except Exception as exc:
            # The receive loop of that connection notices the loss and cleans up
            logger.warning("[%s] send to %s failed: %s", self.code, client_id, exc)

    async def broadcast(self, payload: Dict[str, Any]) -> None:
        """Send *payload* to every active connection in the room."""
        for client_id in list(self.connections):
            await self.send_to(client_id, payload)

    async def broadcast_room(self) -> None:
        await self.broadcast({"type": "room", "data": room_view(self).model_dump()})

    async def send_game_state(self, client_id: str) -> None:
        await self.send_to(client_id, {"type": "game_state", "data": game_view(self, client_id).model_dump()})

    async def send_role(self, client_id: str) -> None:
        if self.game is None or not self.game.started:
            return
        role = self.game.role_of(client_id)
        if role is not None:
            await self.send_to(client_id, {"type": "role", "role": role})

    async def broadcast_game_state(self) -> None:
        """Send every connected player their own view of the game.

        Roles and investigation results are personal, so there is no shared
        payload: each connection gets a projection built for its client id.
        """
        for client_id in list(self.connections):
            await self.send_game_state(client_id)
            await self.send_role(client_id)


__all__ = ["Room", "normalize_name"]
