"""Core rules for XO Relay: board model, win/draw detection and turn state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger


class Mark(str, Enum):
    X = "X"
    O = "O"

    @property
    def opponent(self) -> "Mark":
        return Mark.O if self is Mark.X else Mark.X


Cell = Optional[Mark]
Board = List[Cell]
Line = Tuple[int, int, int]

BOARD_SIZE = 9

WINNING_LINES: Tuple[Line, ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


def new_board() -> Board:
    return [None] * BOARD_SIZE


# ---------- Rules evaluator ----------


def winning_line(board: Sequence[Cell]) -> Optional[Line]:
    """Return the first fully matched line in table order, if any."""
    for line in WINNING_LINES:
        a, b, c = line
        v = board[a]
        if v is not None and v == board[b] == board[c]:
            return line
    return None


def winner(board: Sequence[Cell]) -> Optional[Mark]:
    line = winning_line(board)
    if line is None:
        return None
    return Mark(board[line[0]])


def is_full(board: Sequence[Cell]) -> bool:
    return all(c is not None for c in board)


def is_terminal_draw(board: Sequence[Cell]) -> bool:
    return is_full(board) and winner(board) is None


def empty_indices(board: Sequence[Cell]) -> List[int]:
    return [i for i, c in enumerate(board) if c is None]


def is_valid_index(index: object) -> bool:
    # bool is an int subclass; True must not address cell 1
    return (
        isinstance(index, int)
        and not isinstance(index, bool)
        and 0 <= index < BOARD_SIZE
    )


# ---------- Statistics ----------


X_O_LABELS: Dict[Mark, str] = {Mark.X: "xWins", Mark.O: "oWins"}


@dataclass
class Statistics:
    """Outcome counters that survive consecutive games in one session.

    ``win_labels`` maps each mark to the counter its wins go to, so the same
    object serves PvP/networked play (``xWins``/``oWins``) and PvC play
    (``player``/``computer``).
    """

    win_labels: Dict[Mark, str] = field(default_factory=lambda: dict(X_O_LABELS))
    counters: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.counters:
            self.reset()

    def reset(self) -> None:
        self.counters = {label: 0 for label in self.win_labels.values()}
        self.counters["draws"] = 0
        self.counters["totalGames"] = 0

    def record_win(self, mark: Mark) -> None:
        self.counters[self.win_labels[mark]] += 1
        self.counters["totalGames"] += 1

    def record_draw(self) -> None:
        self.counters["draws"] += 1
        self.counters["totalGames"] += 1

    def as_dict(self) -> Dict[str, int]:
        return dict(self.counters)


# ---------- Turn state machine ----------


class Status(str, Enum):
    IN_PROGRESS = "in_progress"
    WON = "won"
    DRAW = "draw"


@dataclass
class TurnState:
    current_mark: Mark = Mark.X
    active: bool = True


@dataclass
class GameState:
    board: Board = field(default_factory=new_board)
    turn: TurnState = field(default_factory=TurnState)
    stats: Statistics = field(default_factory=Statistics)
    winner: Optional[Mark] = None

    @property
    def current_mark(self) -> Mark:
        return self.turn.current_mark

    @property
    def active(self) -> bool:
        return self.turn.active

    @property
    def status(self) -> Status:
        if self.turn.active:
            return Status.IN_PROGRESS
        return Status.WON if self.winner is not None else Status.DRAW

    def winning_line(self) -> Optional[Line]:
        return winning_line(self.board) if self.winner is not None else None

    def can_move(self, index: object, mark: Optional[Mark] = None) -> bool:
        if not self.turn.active or not is_valid_index(index):
            return False
        if self.board[index] is not None:  # type: ignore[index]
            return False
        return mark is None or mark == self.turn.current_mark

    def apply_move(self, index: int, mark: Optional[Mark] = None) -> bool:
        """Place the current mark at ``index``.

        Returns False and changes nothing when the move is illegal (inactive
        game, bad index, occupied cell, or ``mark`` is not the one to move).
        """
        if not self.can_move(index, mark):
            logger.debug(
                f"game.move.ignored index={index!r} mark={mark} "
                f"current={self.turn.current_mark.value} active={self.turn.active}"
            )
            return False

        mover = self.turn.current_mark
        self.board[index] = mover

        won_by = winner(self.board)
        if won_by is not None:
            self.winner = won_by
            self.turn.active = False
            self.stats.record_win(won_by)
            logger.debug(f"game.won mark={won_by.value}")
        elif is_full(self.board):
            self.turn.active = False
            self.stats.record_draw()
            logger.debug("game.draw")
        else:
            self.turn.current_mark = mover.opponent
        return True

    def reset(self, starting_mark: Mark = Mark.X) -> None:
        """Clear the board for a new game; statistics are kept."""
        self.board = new_board()
        self.turn = TurnState(current_mark=starting_mark, active=True)
        self.winner = None

    def clone(self) -> "GameState":
        return GameState(
            board=list(self.board),
            turn=TurnState(self.turn.current_mark, self.turn.active),
            stats=Statistics(
                win_labels=dict(self.stats.win_labels),
                counters=dict(self.stats.counters),
            ),
            winner=self.winner,
        )


def serialize_board(board: Sequence[Cell]) -> List[Optional[str]]:
    return [c.value if c is not None else None for c in board]
