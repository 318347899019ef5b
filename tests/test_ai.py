"""Tests for the computer opponent strategies."""

import random

import pytest

from xorelay.ai import (
    ComputerPlayer,
    Difficulty,
    choose_move,
    find_critical_move,
    minimax,
)
from xorelay.game import GameState, Mark, empty_indices, is_full, winner

X, O = Mark.X, Mark.O


def _board(layout: str):
    return [None if c == "." else Mark(c) for c in layout]


def test_easy_picks_an_empty_cell():
    board = _board("XO.X.O...")
    rng = random.Random(3)
    for _ in range(20):
        assert choose_move(board, O, Difficulty.EASY, rng) in empty_indices(board)


def test_medium_prefers_win_over_block():
    # O can win on 5; X threatens 2
    board = _board("XX.OO....")
    assert choose_move(board, O, Difficulty.MEDIUM, random.Random(0)) == 5


def test_medium_blocks_when_no_win():
    board = _board("XX..O....")
    assert choose_move(board, O, Difficulty.MEDIUM, random.Random(0)) == 2


def test_medium_positional_fallbacks():
    assert choose_move(_board("X........"), O, Difficulty.MEDIUM) == 4
    corner = choose_move(_board("....X...."), O, Difficulty.MEDIUM, random.Random(1))
    assert corner in (0, 2, 6, 8)
    # centre and every corner taken, no critical lines
    side = choose_move(_board("X.OOXXX.O"), O, Difficulty.MEDIUM, random.Random(2))
    assert side in (1, 7)


def test_find_critical_move_scans_lines_in_order():
    board = _board("OO.X.X...")
    assert find_critical_move(board, O) == 2
    assert find_critical_move(board, X) == 4
    assert find_critical_move(_board("........."), X) is None


def test_hard_takes_immediate_win():
    board = _board("OO.XX....")
    assert choose_move(board, O, Difficulty.HARD) == 2


def test_hard_blocks_immediate_threat():
    board = _board("XX..O....")
    assert choose_move(board, O, Difficulty.HARD) == 2


def test_minimax_prefers_faster_win():
    board = _board("OO.XX.X..")
    score, move = minimax(list(board), 0, True, O)
    assert move == 2
    assert score == 9


def test_minimax_does_not_mutate_board():
    board = _board("X...O....")
    snapshot = list(board)
    choose_move(board, X, Difficulty.HARD)
    assert board == snapshot


def test_no_move_on_finished_board():
    assert choose_move(_board("XXXOO...."), O, Difficulty.HARD) is None
    assert choose_move(_board("XOXXOOOXX"), O, Difficulty.EASY) is None


_HARD_MOVES = {}


def _hard_move(board, mark):
    key = (tuple(board), mark)
    if key not in _HARD_MOVES:
        _HARD_MOVES[key] = choose_move(board, mark, Difficulty.HARD)
    return _HARD_MOVES[key]


def _hard_never_loses(board, to_move, hard_mark):
    """Walk every opponent reply; the hard player answers with its own choice."""
    won_by = winner(board)
    if won_by is not None:
        return won_by == hard_mark
    if is_full(board):
        return True
    if to_move == hard_mark:
        move = _hard_move(board, hard_mark)
        board[move] = hard_mark
        ok = _hard_never_loses(board, to_move.opponent, hard_mark)
        board[move] = None
        return ok
    for index in empty_indices(board):
        board[index] = to_move
        ok = _hard_never_loses(board, to_move.opponent, hard_mark)
        board[index] = None
        if not ok:
            return False
    return True


@pytest.mark.parametrize("hard_mark", [X, O])
def test_hard_never_loses_against_any_opponent(hard_mark):
    assert _hard_never_loses([None] * 9, X, hard_mark)


@pytest.mark.parametrize("opponent", [Difficulty.EASY, Difficulty.MEDIUM])
def test_hard_never_loses_against_computer_opponents(opponent):
    rng = random.Random(11)
    for game_no in range(40):
        hard_mark = X if game_no % 2 else O
        game = GameState()
        while game.active:
            mark = game.current_mark
            if mark == hard_mark:
                move = _hard_move(game.board, mark)
            else:
                move = choose_move(game.board, mark, opponent, rng)
            game.apply_move(move)
        assert game.winner != hard_mark.opponent


def test_difficulty_cycles():
    assert Difficulty.EASY.next() is Difficulty.MEDIUM
    assert Difficulty.MEDIUM.next() is Difficulty.HARD
    assert Difficulty.HARD.next() is Difficulty.EASY


def test_computer_player_refuses_out_of_turn():
    game = GameState()
    player = ComputerPlayer(mark=O, difficulty=Difficulty.HARD)
    with pytest.raises(ValueError):
        player.choose(game)
    game.apply_move(0)
    assert player.choose(game) == 4
