MAFIA_ROLE = "mafia"
DOCTOR_ROLE = "doctor"
DETECTIVE_ROLE = "detective"
VILLAGER_ROLE = "villager"

# Night action kind -> the only role allowed to submit it.
NIGHT_ACTION_ROLES: dict[str, str] = {
    "kill": MAFIA_ROLE,
    "save": DOCTOR_ROLE,
    "check": DETECTIVE_ROLE,
}

# Doctor and detective join the table from this player count upwards.
SPECIALISTS_MIN_PLAYERS = 5

# Room code alphabet without the easily confused glyphs (I, O, 0, 1).
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

DEFAULT_GAME = "mafia"
DEFAULT_PLAYER_NAME = "Player"

__all__ = [
    "MAFIA_ROLE",
    "DOCTOR_ROLE",
    "DETECTIVE_ROLE",
    "VILLAGER_ROLE",
    "NIGHT_ACTION_ROLES",
    "SPECIALISTS_MIN_PLAYERS",
    "ROOM_CODE_ALPHABET",
    "DEFAULT_GAME",
    "DEFAULT_PLAYER_NAME",
]
