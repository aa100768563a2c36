"""Core Mafia game mechanics.

This module implements the rules of Mafia while remaining completely
framework-agnostic. ``MafiaGame`` only knows client ids and names; the room
layer in ``gamehub.game_logic`` drives it and decides what gets delivered to
whom.

Phases cycle ``role -> night -> day -> night -> ...`` and are advanced by the
host. Once ``winner_team`` is set the game is over and every mutating call is
rejected.
"""
from __future__ import annotations

import logging
import random
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .constants import (
    MAFIA_ROLE,
    NIGHT_ACTION_ROLES,
    SPECIALISTS_MIN_PLAYERS,
    VILLAGER_ROLE,
    DOCTOR_ROLE,
    DETECTIVE_ROLE,
)
from .errors import InsufficientPlayers, InvalidActor, InvalidPhase, InvalidTarget
from .schemas import DayEndResult, InvestigationResult, NightEndResult, NightStartResult

logger = logging.getLogger(__name__)

ResultRecord = Union[NightStartResult, NightEndResult, DayEndResult]

# ---------------------------------------------------------------------------
# Role plan & tallying
# ---------------------------------------------------------------------------

def mafia_count(num_players: int) -> int:
    """Roughly one mafia member per three players, never fewer than one."""
    return max(1, num_players // 3)


def build_role_plan(num_players: int, rng: Optional[random.Random] = None) -> List[str]:
    """Return a shuffled list of roles for *num_players*.

    Doctor and detective are only dealt from ``SPECIALISTS_MIN_PLAYERS``
    upwards; every remaining seat is a villager.
    """
    roles: List[str] = [MAFIA_ROLE] * mafia_count(num_players)
    if num_players >= SPECIALISTS_MIN_PLAYERS:
        roles.extend([DOCTOR_ROLE, DETECTIVE_ROLE])
    roles.extend([VILLAGER_ROLE] * (num_players - len(roles)))

    # random.shuffle is a Fisher-Yates permutation
    (rng or random).shuffle(roles)
    return roles


def tally(choices: Iterable[str]) -> Tuple[Optional[str], int]:
    """Return the most chosen target and its count.

    Ties go to the target that *reached* the winning count first while walking
    the choices in submission order, so a given submission order always yields
    the same result.
    """
    counts: Dict[str, int] = {}
    leader: Optional[str] = None
    best = 0
    for target in choices:
        counts[target] = counts.get(target, 0) + 1
        if counts[target] > best:
            leader, best = target, counts[target]
    return leader, best


# ---------------------------------------------------------------------------
# Game state machine
# ---------------------------------------------------------------------------

class MafiaGame:
    """Runtime state of one Mafia game inside a room."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.started: bool = False
        self.phase: str = "role"
        self.round: int = 1
        # Frozen at start: client_id -> role / alive flag / display name
        self.roles: Dict[str, str] = {}
        self.alive: Dict[str, bool] = {}
        self.names: Dict[str, str] = {}
        # Night buffers: actor client_id -> target client_id
        self.kills: Dict[str, str] = {}
        self.saves: Dict[str, str] = {}
        self.checks: Dict[str, str] = {}
        self.day_votes: Dict[str, str] = {}
        # Detective client_id -> latest result, visible to that detective only
        self.investigations: Dict[str, InvestigationResult] = {}
        self.last_result: Optional[ResultRecord] = None
        self.winner_team: Optional[str] = None

    # -------------------- Helpers -------------------- #

    @property
    def finished(self) -> bool:
        return self.winner_team is not None

    def role_of(self, client_id: str) -> Optional[str]:
        return self.roles.get(client_id)

    def is_alive(self, client_id: str) -> bool:
        return self.alive.get(client_id, False)

    def investigation_for(self, client_id: str) -> Optional[InvestigationResult]:
        return self.investigations.get(client_id)

    def _ensure_running(self, phase: str) -> None:
        if not self.started or self.finished or self.phase != phase:
            raise InvalidPhase(f"not accepting actions for phase {phase}")

    def _ensure_alive(self, actor_id: str, target_id: str) -> None:
        if not self.is_alive(actor_id):
            raise InvalidActor(f"actor {actor_id!r} cannot act")
        if not self.is_alive(target_id):
            raise InvalidTarget(f"target {target_id!r} cannot be chosen")

    def _clear_buffers(self) -> None:
        self.kills = {}
        self.saves = {}
        self.checks = {}
        self.day_votes = {}

    # -------------------- Start -------------------- #

    def start(self, players: List[Tuple[str, str]], min_players: int) -> Dict[str, str]:
        """Deal roles to *players* (``(client_id, name)`` in roster order).

        Returns the ``client_id -> role`` mapping so the caller can deliver
        each role privately.
        """
        if len(players) < min_players:
            raise InsufficientPlayers(
                f"At least {min_players} players are needed, have {len(players)}"
            )

        roles = build_role_plan(len(players), self.rng)
        self.roles = {cid: role for (cid, _), role in zip(players, roles)}
        self.names = {cid: name for cid, name in players}
        self.alive = {cid: True for cid, _ in players}
        self._clear_buffers()
        self.investigations = {}
        self.started = True
        self.phase = "role"
        self.round = 1
        self.last_result = None
        self.winner_team = None
        logger.info("Mafia game started with %d players (%d mafia)", len(players), mafia_count(len(players)))
        return dict(self.roles)

    # -------------------- Night -------------------- #

    def night_action(self, action: str, actor_id: str, target_id: str) -> None:
        """Buffer a kill / save / check for the current night."""
        self._ensure_running("night")
        if NIGHT_ACTION_ROLES.get(action) is None:
            raise InvalidActor(f"unknown night action {action!r}")
        if self.role_of(actor_id) != NIGHT_ACTION_ROLES[action]:
            raise InvalidActor(f"actor {actor_id!r} may not {action}")
        self._ensure_alive(actor_id, target_id)

        if action == "kill":
            self.kills[actor_id] = target_id
        elif action == "save":
            self.saves[actor_id] = target_id
        else:
            self.checks[actor_id] = target_id
            self.investigations[actor_id] = InvestigationResult(
                target_id=target_id,
                is_mafia=self.role_of(target_id) == MAFIA_ROLE,
            )

    def kill(self, actor_id: str, target_id: str) -> None:
        self.night_action("kill", actor_id, target_id)

    def save(self, actor_id: str, target_id: str) -> None:
        self.night_action("save", actor_id, target_id)

    def check(self, actor_id: str, target_id: str) -> None:
        self.night_action("check", actor_id, target_id)

    # -------------------- Day -------------------- #

    def vote(self, actor_id: str, target_id: str) -> None:
        """Record (or replace) a living player's vote for a living target."""
        self._ensure_running("day")
        self._ensure_alive(actor_id, target_id)
        self.day_votes[actor_id] = target_id

    # -------------------- Resolution -------------------- #

    def advance(self) -> ResultRecord:
        """Resolve the current phase and move to the next one."""
        if not self.started or self.finished:
            raise InvalidPhase("game is not running")

        if self.phase == "role":
            self.phase = "night"
            self.last_result = NightStartResult(round=self.round)
        elif self.phase == "night":
            self.last_result = self._resolve_night()
            self.phase = "day"
        else:
            self.last_result = self._resolve_day()
            self.round += 1
            self.phase = "night"

        self.winner_team = self.compute_winner()
        if self.winner_team:
            logger.info("Mafia game over: %s wins", self.winner_team)
        return self.last_result

    def _resolve_night(self) -> NightEndResult:
        killed, _ = tally(self.kills.values())
        saved: List[str] = list(dict.fromkeys(self.saves.values()))
        if killed is not None and killed in saved:
            logger.debug("Kill on %s prevented by a save", killed)
            killed = None
        if killed is not None:
            self.alive[killed] = False
        self._clear_buffers()
        return NightEndResult(killed=killed, saved=saved)

    def _resolve_day(self) -> DayEndResult:
        votes = list(self.day_votes.values())
        executed, _ = tally(votes)
        if executed is not None:
            self.alive[executed] = False
        self._clear_buffers()
        return DayEndResult(executed=executed, votes_count=len(votes))

    def compute_winner(self) -> Optional[str]:
        living = [cid for cid, is_alive in self.alive.items() if is_alive]
        mafia_alive = sum(1 for cid in living if self.roles[cid] == MAFIA_ROLE)
        town_alive = len(living) - mafia_alive
        if mafia_alive == 0:
            return "town"
        if mafia_alive >= town_alive:
            return "mafia"
        return None


__all__ = [
    "MafiaGame",
    "build_role_plan",
    "mafia_count",
    "tally",
]
