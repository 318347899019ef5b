"""Tests for local PvC / PvP sessions."""

import random

from xorelay.ai import Difficulty
from xorelay.game import Mark
from xorelay.session import GameMode, LocalSession


def test_pvc_human_moves_then_computer_replies():
    session = LocalSession(mode=GameMode.PVC, difficulty=Difficulty.HARD)
    assert not session.computer_turn_due
    assert session.play(0)
    assert session.computer_turn_due

    # Human cannot move for the computer
    assert not session.play(1)
    assert session.game.board[1] is None

    assert session.play_computer() == 4
    assert session.game.board[4] == Mark.O
    assert session.game.current_mark == Mark.X


def test_play_computer_is_noop_when_not_due():
    session = LocalSession()
    assert session.play_computer() is None
    assert session.game.board == [None] * 9


def test_computer_starts_first():
    session = LocalSession(computer_starts_first=True, rng=random.Random(5))
    assert session.game.current_mark == Mark.O
    assert session.computer_turn_due
    index = session.play_computer()
    assert session.game.board[index] == Mark.O
    assert session.game.current_mark == Mark.X


def test_pvc_statistics_use_player_and_computer_labels():
    session = LocalSession(mode=GameMode.PVC)
    # X takes the top row while O's replies are placed directly
    session.play(0)
    session.game.apply_move(3)
    session.play(1)
    session.game.apply_move(4)
    session.play(2)
    assert session.game.stats.as_dict() == {
        "player": 1,
        "computer": 0,
        "draws": 0,
        "totalGames": 1,
    }


def test_pvp_alternates_and_counts_x_o_wins():
    session = LocalSession(mode=GameMode.PVP)
    for index in (3, 0, 4, 1, 8, 2):
        assert session.play(index)
    assert session.game.winner == Mark.O
    assert session.game.stats.as_dict()["oWins"] == 1
    assert not session.play(5)


def test_pvp_starter_toggle():
    session = LocalSession(mode=GameMode.PVP)
    assert session.game.current_mark == Mark.X
    session.toggle_starter()
    assert not session.x_starts_first
    assert session.game.current_mark == Mark.O
    session.play(4)
    assert session.game.board[4] == Mark.O


def test_new_game_keeps_stats_and_switch_mode_clears_them():
    session = LocalSession(mode=GameMode.PVP)
    for index in (0, 3, 1, 4, 2):
        session.play(index)
    session.new_game()
    assert session.game.active
    assert session.game.stats.as_dict()["xWins"] == 1

    session.switch_mode()
    assert session.mode is GameMode.PVC
    assert session.game.stats.as_dict() == {
        "player": 0,
        "computer": 0,
        "draws": 0,
        "totalGames": 0,
    }


def test_difficulty_cycle_and_set():
    session = LocalSession(difficulty=Difficulty.EASY)
    assert session.set_difficulty() is Difficulty.MEDIUM
    assert session.set_difficulty(Difficulty.EASY) is Difficulty.EASY


def test_snapshot_shape():
    session = LocalSession(mode=GameMode.PVP)
    for index in (0, 3, 1, 4, 2):
        session.play(index)
    state = session.snapshot()
    assert state["board"][:3] == ["X", "X", "X"]
    assert state["winner"] == "X"
    assert state["winningLine"] == [0, 1, 2]
    assert state["active"] is False
    assert state["status"] == "won"
    assert state["mode"] == "pvp"
