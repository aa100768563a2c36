"""Error taxonomy shared by the room layer and the Mafia engine.

Errors derived from :class:`SilentRejection` are never reported back to the
client. Reporting them would let a player probe hidden state (who is alive,
who holds which role) through differential responses, so the dispatcher drops
them after a debug log line.
"""
from __future__ import annotations


class GameError(Exception):
    """Base class for every failure the core can report."""

    code = "game_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class RoomNotFound(GameError):
    code = "room_not_found"


class NotAuthorized(GameError):
    code = "not_authorized"


class InsufficientPlayers(GameError):
    code = "insufficient_players"


class SilentRejection(GameError):
    """Rejected request that must look exactly like an accepted one."""

    code = "ignored"


class InvalidPhase(SilentRejection):
    code = "invalid_phase"


class InvalidActor(SilentRejection):
    code = "invalid_actor"


class InvalidTarget(SilentRejection):
    code = "invalid_target"


__all__ = [
    "GameError",
    "RoomNotFound",
    "NotAuthorized",
    "InsufficientPlayers",
    "SilentRejection",
    "InvalidPhase",
    "InvalidActor",
    "InvalidTarget",
]
