import random

import pytest

from gamehub.errors import NotAuthorized
from gamehub.mafia import MafiaGame
from gamehub.projector import game_view, room_view
from gamehub.room import Room, normalize_name
from gamehub.schemas import Player


@pytest.fixture
def room():
    return Room("ABCD", Player(client_id="host", name="Host"))


def test_join_appends_in_order(room):
    room.join("p1", "Ann")
    room.join("p2", "Ben")
    assert list(room.players) == ["host", "p1", "p2"]
    assert room.players["p1"].ready is False


def test_join_with_known_id_returns_existing_record(room):
    first = room.join("p1", "Ann")
    first.ready = True
    again = room.join("p1", "Somebody Else")
    assert again is first
    assert again.name == "Ann"
    assert again.ready is True
    assert len(room.players) == 2


def test_names_are_trimmed_and_capped():
    assert normalize_name("   Zed  ") == "Zed"
    assert normalize_name("x" * 40) == "x" * 24
    assert normalize_name("") == "Player"
    assert normalize_name(None) == "Player"


def test_set_ready_ignores_unknown_client(room):
    room.set_ready("ghost", True)
    room.set_ready("host", True)
    assert room.players["host"].ready is True
    assert "ghost" not in room.players


def test_only_host_selects_game(room):
    room.join("p1", "Ann")
    with pytest.raises(NotAuthorized):
        room.set_selected_game("p1", "trivia")
    assert room.set_selected_game("host", " trivia ") == "trivia"
    assert room.set_selected_game("host", "") == "mafia"


def test_host_failover_picks_next_in_roster_order(room):
    room.join("p1", "Ann")
    room.join("p2", "Ben")
    room.leave("host")
    assert room.host_id == "p1"
    room.leave("p2")
    assert room.host_id == "p1"


def test_all_ready(room):
    room.join("p1", "Ann")
    room.set_ready("host", True)
    assert room.all_ready() is False
    room.set_ready("p1", True)
    assert room.all_ready() is True


def test_unbind_ignores_replaced_connection(room, make_socket):
    old, new = make_socket("old"), make_socket("new")
    room.bind("host", old)
    assert room.bind("host", new) is old
    assert room.unbind("host", old, now=5.0) is False
    assert room.players["host"].connected is True

    assert room.unbind("host", new, now=6.0) is True
    assert room.players["host"].connected is False
    assert room.players["host"].disconnected_at == 6.0

    room.bind("host", new)
    assert room.players["host"].connected is True
    assert room.players["host"].disconnected_at is None


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------

def test_room_view_marks_host_and_keeps_order(room):
    room.join("p1", "Ann")
    view = room_view(room)
    assert view.code == "ABCD"
    assert view.player_count == 2
    assert [p.client_id for p in view.players] == ["host", "p1"]
    assert [p.is_host for p in view.players] == [True, False]


def test_game_view_only_shows_viewers_secrets(room):
    for cid in ("det", "m", "v"):
        room.join(cid, cid.upper())
    game = MafiaGame(random.Random(1))
    game.start([(cid, p.name) for cid, p in room.players.items()], min_players=1)
    game.roles = {"host": "villager", "det": "detective", "m": "mafia", "v": "villager"}
    room.game = game
    game.advance()
    game.check("det", "m")

    mine = game_view(room, "det")
    assert mine.my_role == "detective"
    assert mine.investigation_result.target_id == "m"
    assert mine.investigation_result.is_mafia is True
    assert mine.can_advance is False

    for other in ("host", "m", "v"):
        view = game_view(room, other)
        assert view.investigation_result is None
        assert view.my_role == game.roles[other]
        dumped = view.model_dump()
        assert "detective" not in str(dumped)
        assert all(set(p) == {"client_id", "name", "alive"} for p in dumped["alive"])

    assert game_view(room, "host").can_advance is True


def test_game_view_without_game(room):
    view = game_view(room, "host")
    assert view.started is False
    assert view.my_role is None
    assert view.alive == []
