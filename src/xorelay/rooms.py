"""Server-authoritative lobbies for networked player-vs-player games."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from loguru import logger

from .game import GameState, Mark, serialize_board

DEFAULT_GRACE_SECONDS = 60.0


class RoomError(ValueError):
    """Base class for lobby requests that are reported back to the client."""


class LobbyIdRequired(RoomError):
    def __init__(self) -> None:
        super().__init__("Lobby ID required.")


ROOM_FULL_MESSAGE = "Room is full (2 players). Spectators not allowed."


@dataclass
class RoomSession:
    """One lobby: the shared game plus who is connected and who plays what."""

    lobby_id: str
    game: GameState = field(default_factory=GameState)
    participant_marks: Dict[str, Mark] = field(default_factory=dict)
    members: Set[str] = field(default_factory=set)
    created_at: float = field(default_factory=time.monotonic)
    vacated_at: Optional[float] = None

    def free_marks(self) -> List[Mark]:
        taken = set(self.participant_marks.values())
        return [m for m in (Mark.X, Mark.O) if m not in taken]

    def snapshot(self, your_mark: Optional[Mark] = None) -> Dict[str, object]:
        game = self.game
        line = game.winning_line()
        state: Dict[str, object] = {
            "lobbyId": self.lobby_id,
            "board": serialize_board(game.board),
            "currentMark": game.current_mark.value,
            "active": game.active,
            "winner": game.winner.value if game.winner else None,
            "winningLine": list(line) if line else None,
            "stats": game.stats.as_dict(),
        }
        if your_mark is not None:
            state["yourMark"] = your_mark.value
        return state


@dataclass
class JoinResult:
    lobby_id: str
    mark: Optional[Mark]
    snapshot: Dict[str, object]
    room_full: bool = False
    # False when the identity was already in this lobby
    newly_joined: bool = True


class RoomManager:
    """Owns every lobby and the identity -> lobby membership mapping.

    All public methods take the same lock, so requests against a lobby are
    applied one at a time in arrival order. Methods that change a lobby
    return the snapshot to broadcast, or None when the request was a no-op.
    """

    def __init__(
        self,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.grace_seconds = grace_seconds
        self._clock = clock
        self._rooms: Dict[str, RoomSession] = {}
        self._membership: Dict[str, str] = {}
        self._lock = threading.Lock()

    # ---- queries ----

    def get(self, lobby_id: str) -> Optional[RoomSession]:
        with self._lock:
            self._sweep_locked()
            return self._rooms.get(lobby_id.strip())

    def lobby_of(self, identity: str) -> Optional[str]:
        with self._lock:
            return self._membership.get(identity)

    def members(self, lobby_id: str) -> List[str]:
        with self._lock:
            room = self._rooms.get(lobby_id.strip())
            return sorted(room.members) if room else []

    def mark_of(self, identity: str) -> Optional[Mark]:
        with self._lock:
            room = self._room_for(identity)
            return room.participant_marks.get(identity) if room else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    # ---- operations ----

    def join(
        self,
        lobby_id: Optional[str],
        identity: str,
        requested_mark: Optional[Mark] = None,
    ) -> JoinResult:
        normalized = (lobby_id or "").strip()
        if not normalized:
            raise LobbyIdRequired()

        with self._lock:
            self._sweep_locked()
            previous = self._membership.get(identity)
            if previous is not None and previous != normalized:
                self._leave_locked(identity)

            room = self._rooms.get(normalized)
            if room is None:
                room = RoomSession(lobby_id=normalized, created_at=self._clock())
                self._rooms[normalized] = room
                logger.info(f"rooms.created lobby={normalized}")

            room.vacated_at = None
            newly_joined = identity not in room.members
            room.members.add(identity)
            self._membership[identity] = normalized

            mark = room.participant_marks.get(identity)
            if mark is None:
                free = room.free_marks()
                if requested_mark is not None and Mark(requested_mark) in free:
                    mark = Mark(requested_mark)
                elif free:
                    mark = free[0]
                if mark is not None:
                    room.participant_marks[identity] = mark

            room_full = mark is None
            if room_full:
                logger.warning(
                    f"rooms.full lobby={normalized} identity={identity} "
                    f"members={len(room.members)}"
                )
            logger.info(
                f"rooms.join lobby={normalized} identity={identity} "
                f"mark={mark.value if mark else None}"
            )
            return JoinResult(
                lobby_id=normalized,
                mark=mark,
                snapshot=room.snapshot(your_mark=mark),
                room_full=room_full,
                newly_joined=newly_joined,
            )

    def make_move(self, identity: str, index: object) -> Optional[Dict[str, object]]:
        with self._lock:
            room = self._room_for(identity)
            if room is None:
                return None
            mark = room.participant_marks.get(identity)
            if mark is None:
                return None
            if not room.game.apply_move(index, mark):  # type: ignore[arg-type]
                return None
            logger.debug(f"rooms.move lobby={room.lobby_id} mark={mark.value} index={index}")
            return room.snapshot()

    def new_game(self, identity: str) -> Optional[Dict[str, object]]:
        with self._lock:
            room = self._room_for(identity)
            if room is None:
                return None
            room.game.reset(Mark.X)
            return room.snapshot()

    def reset_stats(self, identity: str) -> Optional[Dict[str, object]]:
        # Any participant may reset; there is no host role.
        with self._lock:
            room = self._room_for(identity)
            if room is None:
                return None
            room.game.stats.reset()
            return room.snapshot()

    def leave(self, identity: str) -> Optional[str]:
        """Drop ``identity`` from its lobby; returns the lobby id it left."""
        with self._lock:
            return self._leave_locked(identity)

    def sweep(self) -> List[str]:
        """Dispose of lobbies that have been empty for the grace period."""
        with self._lock:
            return self._sweep_locked()

    # ---- helpers ----

    def _room_for(self, identity: str) -> Optional[RoomSession]:
        lobby_id = self._membership.get(identity)
        return self._rooms.get(lobby_id) if lobby_id is not None else None

    def _leave_locked(self, identity: str) -> Optional[str]:
        lobby_id = self._membership.pop(identity, None)
        if lobby_id is None:
            return None
        room = self._rooms.get(lobby_id)
        if room is None:
            return lobby_id
        room.members.discard(identity)
        room.participant_marks.pop(identity, None)
        if not room.members:
            room.vacated_at = self._clock()
            logger.info(
                f"rooms.vacated lobby={lobby_id} grace={self.grace_seconds}s"
            )
        return lobby_id

    def _sweep_locked(self) -> List[str]:
        now = self._clock()
        expired = [
            lobby_id
            for lobby_id, room in self._rooms.items()
            if not room.members
            and room.vacated_at is not None
            and now - room.vacated_at >= self.grace_seconds
        ]
        for lobby_id in expired:
            self._rooms.pop(lobby_id, None)
            logger.info(f"rooms.disposed lobby={lobby_id}")
        return expired
