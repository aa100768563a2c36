"""Access to the application's runtime state.

The ``RoomRegistry`` lives on ``app.state`` (created in ``gamehub.app``) so
routers receive it through a dependency instead of importing a module level
room map.
"""
from __future__ import annotations

from fastapi.requests import HTTPConnection

from .registry import RoomRegistry


def get_registry(conn: HTTPConnection) -> RoomRegistry:
    """FastAPI dependency usable from both HTTP and websocket routes."""
    return conn.app.state.registry


__all__ = ["get_registry"]
