"""XO Relay package exposing the rules engine, computer opponent, and web application."""

from .ai import ComputerPlayer, Difficulty, choose_move
from .game import GameState, Mark, is_terminal_draw, winner
from .rooms import RoomManager
from .session import GameMode, LocalSession
from .ui import app

__all__ = [
    "ComputerPlayer",
    "Difficulty",
    "GameMode",
    "GameState",
    "LocalSession",
    "Mark",
    "RoomManager",
    "app",
    "choose_move",
    "is_terminal_draw",
    "winner",
]
