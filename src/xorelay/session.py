"""Local (single-client) game sessions for PvP and player-vs-computer play."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional
import random

from loguru import logger

from .ai import ComputerPlayer, Difficulty
from .game import X_O_LABELS, GameState, Mark, Statistics, serialize_board


class GameMode(str, Enum):
    PVC = "pvc"
    PVP = "pvp"

    def toggled(self) -> "GameMode":
        return GameMode.PVP if self is GameMode.PVC else GameMode.PVC


HUMAN_MARK = Mark.X
COMPUTER_MARK = Mark.O

PVC_LABELS: Dict[Mark, str] = {HUMAN_MARK: "player", COMPUTER_MARK: "computer"}


def _stats_for(mode: GameMode) -> Statistics:
    labels = PVC_LABELS if mode is GameMode.PVC else X_O_LABELS
    return Statistics(win_labels=dict(labels))


@dataclass
class LocalSession:
    """State of one local game: board, turn, statistics and mode options.

    In PvC the human always plays X and the computer O; when the computer
    starts, O moves first. In PvP the two humans share the input and the
    starting mark is chosen with ``x_starts_first``.
    """

    mode: GameMode = GameMode.PVC
    difficulty: Difficulty = Difficulty.MEDIUM
    computer_starts_first: bool = False
    x_starts_first: bool = True
    rng: random.Random = field(default_factory=random.Random, repr=False)
    game: GameState = field(init=False)

    def __post_init__(self) -> None:
        self.mode = GameMode(self.mode)
        self.difficulty = Difficulty(self.difficulty)
        self.game = GameState(stats=_stats_for(self.mode))
        self.new_game()

    # ---- derived ----

    @property
    def starting_mark(self) -> Mark:
        if self.mode is GameMode.PVC:
            return COMPUTER_MARK if self.computer_starts_first else HUMAN_MARK
        return Mark.X if self.x_starts_first else Mark.O

    @property
    def computer(self) -> Optional[ComputerPlayer]:
        if self.mode is not GameMode.PVC:
            return None
        return ComputerPlayer(mark=COMPUTER_MARK, difficulty=self.difficulty, rng=self.rng)

    @property
    def computer_turn_due(self) -> bool:
        return (
            self.mode is GameMode.PVC
            and self.game.active
            and self.game.current_mark == COMPUTER_MARK
        )

    # ---- moves ----

    def play(self, index: int) -> bool:
        """Apply a human move; False (and no change) when it is not allowed."""
        if self.mode is GameMode.PVC:
            return self.game.apply_move(index, HUMAN_MARK)
        return self.game.apply_move(index)

    def play_computer(self) -> Optional[int]:
        """Let the computer move if it is due; returns the chosen cell."""
        computer = self.computer
        if computer is None or not self.computer_turn_due:
            return None
        index = computer.choose(self.game)
        self.game.apply_move(index, COMPUTER_MARK)
        return index

    # ---- lifecycle ----

    def new_game(self) -> None:
        self.game.reset(self.starting_mark)

    def reset_stats(self) -> None:
        self.game.stats.reset()

    def switch_mode(self, mode: Optional[GameMode] = None) -> None:
        """Change between PvC and PvP; statistics start over."""
        self.mode = GameMode(mode) if mode is not None else self.mode.toggled()
        self.game.stats = _stats_for(self.mode)
        self.new_game()
        logger.debug(f"session.mode mode={self.mode.value}")

    def toggle_starter(self) -> None:
        if self.mode is GameMode.PVC:
            self.computer_starts_first = not self.computer_starts_first
        else:
            self.x_starts_first = not self.x_starts_first
        self.new_game()

    def set_difficulty(self, difficulty: Optional[Difficulty] = None) -> Difficulty:
        """Set the difficulty, or advance to the next tier when none is given."""
        if difficulty is None:
            self.difficulty = self.difficulty.next()
        else:
            self.difficulty = Difficulty(difficulty)
        return self.difficulty

    def snapshot(self) -> Dict[str, object]:
        game = self.game
        line = game.winning_line()
        return {
            "mode": self.mode.value,
            "difficulty": self.difficulty.value,
            "board": serialize_board(game.board),
            "currentMark": game.current_mark.value,
            "active": game.active,
            "status": game.status.value,
            "winner": game.winner.value if game.winner else None,
            "winningLine": list(line) if line else None,
            "stats": game.stats.as_dict(),
            "computerStartsFirst": self.computer_starts_first,
            "xStartsFirst": self.x_starts_first,
        }
