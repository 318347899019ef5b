"""Computer opponent: random, rule-cascade and full minimax move selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple
import math
import random

from loguru import logger

from .game import (
    WINNING_LINES,
    Cell,
    GameState,
    Mark,
    empty_indices,
    is_full,
    winner,
)

CENTER = 4
CORNERS: Tuple[int, ...] = (0, 2, 6, 8)
SIDES: Tuple[int, ...] = (1, 3, 5, 7)


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    def next(self) -> "Difficulty":
        order = list(Difficulty)
        return order[(order.index(self) + 1) % len(order)]


def find_critical_move(
    board: Sequence[Cell], target: Mark, count: int = 2
) -> Optional[int]:
    """Empty cell of the first line holding ``count`` of ``target`` and one gap."""
    for line in WINNING_LINES:
        trio = [board[i] for i in line]
        if trio.count(target) == count and trio.count(None) == 1:
            for i in line:
                if board[i] is None:
                    return i
    return None


def minimax(
    board: List[Cell], depth: int, maximizing: bool, max_mark: Mark
) -> Tuple[int, Optional[int]]:
    """Exhaustive minimax from ``board``; returns ``(score, best_index)``.

    Wins for ``max_mark`` score ``10 - depth``, losses ``depth - 10``, draws
    0. Ties keep the lowest index. ``board`` is restored before returning.
    """
    min_mark = max_mark.opponent
    won_by = winner(board)
    if won_by == max_mark:
        return 10 - depth, None
    if won_by == min_mark:
        return depth - 10, None
    if is_full(board):
        return 0, None

    mover = max_mark if maximizing else min_mark
    best_score = -math.inf if maximizing else math.inf
    best_index: Optional[int] = None

    for index in empty_indices(board):
        board[index] = mover
        score, _ = minimax(board, depth + 1, not maximizing, max_mark)
        board[index] = None
        if (maximizing and score > best_score) or (
            not maximizing and score < best_score
        ):
            best_score, best_index = score, index

    return int(best_score), best_index


def _choose_easy(board: Sequence[Cell], rng: random.Random) -> Optional[int]:
    empties = empty_indices(board)
    return rng.choice(empties) if empties else None


def _choose_medium(
    board: Sequence[Cell], mark: Mark, rng: random.Random
) -> Optional[int]:
    move = find_critical_move(board, mark)
    if move is None:
        move = find_critical_move(board, mark.opponent)
    if move is not None:
        return move

    if board[CENTER] is None:
        return CENTER
    free_corners = [i for i in CORNERS if board[i] is None]
    if free_corners:
        return rng.choice(free_corners)
    free_sides = [i for i in SIDES if board[i] is None]
    if free_sides:
        return rng.choice(free_sides)
    return None


def _choose_hard(board: Sequence[Cell], mark: Mark) -> Optional[int]:
    _, move = minimax(list(board), 0, True, mark)
    return move


def choose_move(
    board: Sequence[Cell],
    mark: Mark,
    difficulty: Difficulty,
    rng: Optional[random.Random] = None,
) -> Optional[int]:
    """Pick a cell for ``mark``; None when the game is won or the board is full."""
    if winner(board) is not None or not empty_indices(board):
        return None
    rng = rng or random.Random()
    difficulty = Difficulty(difficulty)

    if difficulty is Difficulty.EASY:
        move = _choose_easy(board, rng)
    elif difficulty is Difficulty.MEDIUM:
        move = _choose_medium(board, mark, rng)
    else:
        move = _choose_hard(board, mark)

    logger.debug(f"ai.choose difficulty={difficulty.value} mark={mark.value} move={move}")
    return move


@dataclass
class ComputerPlayer:
    """Computer opponent bound to one mark and difficulty.

    Holds no search state between calls; the only thing carried across moves
    is the random source used by the easy and medium tiers.
      - ComputerPlayer(mark=Mark.O, difficulty=Difficulty.HARD)
      - choose(state) -> cell index
    """

    mark: Mark = Mark.O
    difficulty: Difficulty = Difficulty.MEDIUM
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def choose(self, state: GameState) -> int:
        if not state.active:
            raise ValueError("Game already finished")
        if state.current_mark != self.mark:
            raise ValueError("It is not this computer player's turn")

        move = choose_move(state.board, self.mark, self.difficulty, self.rng)
        if move is None:
            raise RuntimeError("No valid moves available")
        return move
