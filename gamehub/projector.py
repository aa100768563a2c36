"""Projections of room and game state into client payloads.

``room_view`` is public and may be broadcast. ``game_view`` is personalised:
it carries the viewer's own role and investigation result, so it has to be
built and sent separately for every connection.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, List

from .schemas import AlivePlayerView, GameView, RoomPlayerView, RoomSummary, RoomView

if TYPE_CHECKING:
    from .room import Room


def room_view(room: "Room") -> RoomView:
    players: List[RoomPlayerView] = [
        RoomPlayerView(
            client_id=p.client_id,
            name=p.name,
            is_host=p.client_id == room.host_id,
            ready=p.ready,
            connected=p.connected,
        )
        for p in room.players.values()
    ]
    return RoomView(
        code=room.code,
        host_id=room.host_id,
        player_count=len(players),
        players=players,
        status=room.status,
        selected_game=room.selected_game,
        created_at=room.created_at,
    )


def game_view(room: "Room", viewer_id: str) -> GameView:
    """Return the game state as *viewer_id* is allowed to see it."""
    game = room.game
    if game is None:
        return GameView(room_code=room.code, can_advance=viewer_id == room.host_id)

    alive = [
        AlivePlayerView(client_id=cid, name=name, alive=game.is_alive(cid))
        for cid, name in game.names.items()
    ]
    return GameView(
        room_code=room.code,
        started=game.started,
        phase=game.phase,
        round=game.round,
        alive=alive,
        last_result=game.last_result,
        winner_team=game.winner_team,
        my_role=game.role_of(viewer_id),
        investigation_result=game.investigation_for(viewer_id),
        can_advance=viewer_id == room.host_id,
    )


def room_summary(room: "Room") -> RoomSummary:
    return RoomSummary(
        code=room.code,
        player_count=len(room.players),
        status=room.status,
        created_at=room.created_at,
    )


__all__ = ["room_view", "game_view", "room_summary"]
