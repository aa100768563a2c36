"""In-memory registry of live rooms.

The registry is the single owner of every ``Room``. It hands out room codes,
sweeps rooms that outlived their TTL and keeps the single-shot grace tasks
that remove players whose connection dropped and never came back.

One ``RoomRegistry`` is created per application (see ``gamehub.app``) and
injected into the routers; nothing else keeps a reference to the room map.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .config import settings
from .constants import ROOM_CODE_ALPHABET
from .errors import RoomNotFound
from .projector import room_summary
from .room import Room, normalize_name
from .schemas import Player, RoomSummary

logger = logging.getLogger(__name__)

RemovalCallback = Callable[[], Awaitable[None]]


def normalize_code(code: Optional[str]) -> str:
    return str(code or "").strip().upper()


class RoomRegistry:
    """Maps room codes to rooms and owns their time-driven lifecycle."""

    def __init__(
        self,
        code_length: int = settings.room_code_length,
        room_ttl: float = settings.room_ttl_seconds,
        sweep_interval: float = settings.sweep_interval_seconds,
        grace_seconds: float = settings.disconnect_grace_seconds,
        max_name_length: int = settings.max_name_length,
        min_players: int = settings.required_players,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
        game_rng: Optional[random.Random] = None,
    ):
        self.code_length = code_length
        self.room_ttl = room_ttl
        self.sweep_interval = sweep_interval
        self.grace_seconds = grace_seconds
        self.max_name_length = max_name_length
        self.min_players = min_players
        self.clock = clock
        self.rng = rng or random.SystemRandom()
        # Shared by the games of every room; None lets each game seed itself
        self.game_rng = game_rng
        self.rooms: Dict[str, Room] = {}
        # (room code, client id) -> pending removal task
        self._removals: Dict[Tuple[str, str], asyncio.Task] = {}
        self._sweeper: Optional[asyncio.Task] = None

    # -------------------- Lookup -------------------- #

    def exists(self, code: Optional[str]) -> bool:
        return normalize_code(code) in self.rooms

    def find(self, code: Optional[str]) -> Optional[Room]:
        return self.rooms.get(normalize_code(code))

    def get(self, code: Optional[str]) -> Room:
        room = self.find(code)
        if room is None:
            raise RoomNotFound(f"Room {normalize_code(code)!r} not found")
        return room

    @property
    def room_count(self) -> int:
        return len(self.rooms)

    @property
    def connection_count(self) -> int:
        return sum(len(room.connections) for room in self.rooms.values())

    def summaries(self) -> List[RoomSummary]:
        return [room_summary(room) for room in self.rooms.values()]

    # -------------------- Creation & destruction -------------------- #

    def generate_code(self) -> str:
        """Draw codes until one is not used by a live room."""
        while True:
            code = "".join(self.rng.choice(ROOM_CODE_ALPHABET) for _ in range(self.code_length))
            if code not in self.rooms:
                return code

    def create_room(self, host_id: str, host_name: Optional[str]) -> Room:
        code = self.generate_code()
        now = self.clock()
        host = Player(
            client_id=host_id,
            name=normalize_name(host_name or "Host", self.max_name_length),
            joined_at=now,
            disconnected_at=now,
        )
        room = Room(code, host, created_at=now)
        self.rooms[code] = room
        logger.info("Room created: %s by %s", code, host_id)
        return room

    def discard(self, code: str) -> Optional[Room]:
        """Destroy a room and every grace task still pending for it."""
        room = self.rooms.pop(code, None)
        for key in [k for k in self._removals if k[0] == code]:
            self._removals.pop(key).cancel()
        if room is not None:
            logger.info("Room deleted: %s", code)
        return room

    # -------------------- Expiry sweep -------------------- #

    async def sweep(self) -> List[str]:
        """Delete rooms older than the TTL; return the removed codes."""
        now = self.clock()
        removed: List[str] = []
        for code, room in list(self.rooms.items()):
            if now - room.created_at <= self.room_ttl:
                continue
            async with room.lock:
                if self.rooms.get(code) is room:
                    self.discard(code)
                    removed.append(code)
        if removed:
            logger.info("Swept %d expired room(s): %s", len(removed), ", ".join(removed))
        return removed

    async def run_sweeper(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            await self.sweep()

    def start_sweeper(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self.run_sweeper())

    async def shutdown(self) -> None:
        tasks = list(self._removals.values())
        if self._sweeper is not None:
            tasks.append(self._sweeper)
            self._sweeper = None
        self._removals.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # -------------------- Disconnect grace -------------------- #

    def schedule_removal(
        self,
        code: str,
        client_id: str,
        callback: RemovalCallback,
        delay: Optional[float] = None,
    ) -> asyncio.Task:
        """Run *callback* after the grace delay unless cancelled first.

        A pending task for the same (room, client) is replaced, so repeated
        loss events never stack up timers.
        """
        key = (code, client_id)
        self.cancel_removal(code, client_id)
        wait = self.grace_seconds if delay is None else delay

        async def _remove_after_grace() -> None:
            try:
                await asyncio.sleep(wait)
            except asyncio.CancelledError:
                return
            if self._removals.get(key) is task:
                del self._removals[key]
            await callback()

        task = asyncio.create_task(_remove_after_grace())
        self._removals[key] = task
        return task

    def cancel_removal(self, code: str, client_id: str) -> bool:
        task = self._removals.pop((code, client_id), None)
        if task is None:
            return False
        task.cancel()
        return True

    def removal_pending(self, code: str, client_id: str) -> bool:
        return (code, client_id) in self._removals


__all__ = ["RoomRegistry", "normalize_code"]
