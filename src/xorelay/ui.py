"""FastAPI application: local game API and the networked lobby relay."""

from __future__ import annotations

import asyncio
import random
import threading
import time
import uuid
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterable, Optional, Tuple

from fastapi import (
    BackgroundTasks,
    FastAPI,
    HTTPException,
    WebSocket,
    WebSocketDisconnect,
)
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .ai import Difficulty
from .config import settings
from .game import Mark
from .rooms import ROOM_FULL_MESSAGE, RoomError, RoomManager
from .session import GameMode, LocalSession


@dataclass
class LocalGame:
    """Container for a local game and the pending state of its computer reply."""

    session: LocalSession
    computer_pending: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


SESSIONS: Dict[str, LocalGame] = {}
ROOMS = RoomManager(grace_seconds=settings.room_grace_seconds)
CONNECTIONS: Dict[str, WebSocket] = {}

AI_THINK_DELAY: Tuple[float, float] = settings.think_delay


async def _sweep_rooms_periodically(interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            ROOMS.sweep()
        except Exception:
            logger.exception("ui.rooms.sweep_failed")


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    task = asyncio.create_task(_sweep_rooms_periodically(settings.sweep_interval_seconds))
    try:
        yield
    finally:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task


app = FastAPI(
    title="XO Relay",
    description="Tic-tac-toe rules engine, computer opponent and lobby relay",
    lifespan=lifespan,
)


# ---------- Local games ----------


class NewGameRequest(BaseModel):
    """Request payload for starting a local game."""

    model_config = ConfigDict(populate_by_name=True)

    mode: GameMode = GameMode.PVC
    difficulty: Difficulty = Difficulty.MEDIUM
    computer_starts_first: bool = Field(default=False, alias="computerStartsFirst")
    x_starts_first: bool = Field(default=True, alias="xStartsFirst")


class MoveRequest(BaseModel):
    """Request payload for submitting a move on an existing game."""

    index: int = Field(ge=0, le=8, strict=True)


class ModeRequest(BaseModel):
    mode: Optional[GameMode] = None


class DifficultyRequest(BaseModel):
    difficulty: Optional[Difficulty] = None


def _create_session(request: NewGameRequest) -> Tuple[str, LocalGame]:
    session = LocalSession(
        mode=request.mode,
        difficulty=request.difficulty,
        computer_starts_first=request.computer_starts_first,
        x_starts_first=request.x_starts_first,
    )
    game_id = uuid.uuid4().hex
    local = LocalGame(session=session)
    SESSIONS[game_id] = local
    logger.debug(f"ui.game.created id={game_id} mode={session.mode.value}")
    return game_id, local


def _get_session(game_id: str) -> LocalGame:
    try:
        return SESSIONS[game_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Game not found") from exc


def _run_computer_turn(game_id: str) -> None:
    local = SESSIONS.get(game_id)
    if not local:
        return

    time.sleep(max(0.0, random.uniform(*AI_THINK_DELAY)))

    with local.lock:
        try:
            local.session.play_computer()
        finally:
            local.computer_pending = False


def _schedule_computer(
    game_id: str, local: LocalGame, background_tasks: BackgroundTasks
) -> None:
    with local.lock:
        if local.computer_pending or not local.session.computer_turn_due:
            return
        local.computer_pending = True
    background_tasks.add_task(_run_computer_turn, game_id)


def _serialize_session(game_id: str, local: LocalGame) -> Dict[str, object]:
    with local.lock:
        state = local.session.snapshot()
        state["id"] = game_id
        state["computerPending"] = local.computer_pending
        return state


@app.post("/api/game")
def create_game(
    background_tasks: BackgroundTasks, request: Optional[NewGameRequest] = None
) -> Dict[str, object]:
    game_id, local = _create_session(request or NewGameRequest())
    _schedule_computer(game_id, local, background_tasks)
    return _serialize_session(game_id, local)


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    local = _get_session(game_id)
    return _serialize_session(game_id, local)


@app.post("/api/game/{game_id}/move")
def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    local = _get_session(game_id)
    with local.lock:
        # Input is locked while the computer is thinking
        if not local.computer_pending:
            local.session.play(request.index)
    _schedule_computer(game_id, local, background_tasks)
    return _serialize_session(game_id, local)


@app.post("/api/game/{game_id}/new")
def new_game(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    local = _get_session(game_id)
    with local.lock:
        local.session.new_game()
    _schedule_computer(game_id, local, background_tasks)
    return _serialize_session(game_id, local)


@app.post("/api/game/{game_id}/reset-stats")
def reset_stats(game_id: str) -> Dict[str, object]:
    local = _get_session(game_id)
    with local.lock:
        local.session.reset_stats()
    return _serialize_session(game_id, local)


@app.post("/api/game/{game_id}/mode")
def switch_mode(
    game_id: str,
    background_tasks: BackgroundTasks,
    request: Optional[ModeRequest] = None,
) -> Dict[str, object]:
    local = _get_session(game_id)
    with local.lock:
        local.session.switch_mode(request.mode if request else None)
    _schedule_computer(game_id, local, background_tasks)
    return _serialize_session(game_id, local)


@app.post("/api/game/{game_id}/starter")
def toggle_starter(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    local = _get_session(game_id)
    with local.lock:
        local.session.toggle_starter()
    _schedule_computer(game_id, local, background_tasks)
    return _serialize_session(game_id, local)


@app.post("/api/game/{game_id}/difficulty")
def change_difficulty(
    game_id: str, request: Optional[DifficultyRequest] = None
) -> Dict[str, object]:
    local = _get_session(game_id)
    with local.lock:
        local.session.set_difficulty(request.difficulty if request else None)
    return _serialize_session(game_id, local)


# ---------- Networked lobbies ----------


class Envelope(BaseModel):
    event: str
    data: Any = None


class JoinLobbyPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lobby_id: Optional[str] = Field(default=None, alias="lobbyId")
    requested_mark: Optional[Mark] = Field(default=None, alias="requestedMark")


class MoveIntent(BaseModel):
    index: int = Field(ge=0, le=8, strict=True)


async def _send(identity: str, event: str, data: object) -> None:
    websocket = CONNECTIONS.get(identity)
    if websocket is None:
        return
    try:
        await websocket.send_json({"event": event, "data": data})
    except (RuntimeError, WebSocketDisconnect) as exc:
        logger.debug(f"ui.ws.send_failed identity={identity} event={event} error={exc}")


async def _broadcast(
    lobby_id: str, event: str, data: object, exclude: Iterable[str] = ()
) -> None:
    skipped = set(exclude)
    for identity in ROOMS.members(lobby_id):
        if identity not in skipped:
            await _send(identity, event, data)


async def _broadcast_state(snapshot: Optional[Dict[str, object]]) -> None:
    if snapshot is None:
        return
    await _broadcast(str(snapshot["lobbyId"]), "roomState", snapshot)


async def _handle_join(identity: str, data: object) -> None:
    payload = JoinLobbyPayload.model_validate(data or {})
    try:
        result = ROOMS.join(payload.lobby_id, identity, payload.requested_mark)
    except RoomError as exc:
        await _send(identity, "errorMsg", str(exc))
        return

    await _send(identity, "roomState", result.snapshot)
    if result.newly_joined:
        await _broadcast(
            result.lobby_id, "playerJoined", {"playerId": identity}, exclude=[identity]
        )
    if result.room_full:
        await _send(identity, "errorMsg", ROOM_FULL_MESSAGE)


async def _dispatch(identity: str, envelope: Envelope) -> None:
    if envelope.event == "joinLobby":
        await _handle_join(identity, envelope.data)
    elif envelope.event == "makeMove":
        intent = MoveIntent.model_validate(envelope.data)
        await _broadcast_state(ROOMS.make_move(identity, intent.index))
    elif envelope.event == "newGame":
        await _broadcast_state(ROOMS.new_game(identity))
    elif envelope.event == "resetStats":
        await _broadcast_state(ROOMS.reset_stats(identity))
    else:
        logger.debug(f"ui.ws.unknown_event identity={identity} event={envelope.event}")


@app.websocket("/ws")
async def lobby_relay(websocket: WebSocket) -> None:
    await websocket.accept()
    identity = uuid.uuid4().hex
    CONNECTIONS[identity] = websocket
    logger.debug(f"ui.ws.connected identity={identity}")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                logger.debug(f"ui.ws.dropped identity={identity} reason=non-text frame")
                continue
            try:
                envelope = Envelope.model_validate_json(raw)
                await _dispatch(identity, envelope)
            except ValidationError as exc:
                logger.debug(
                    f"ui.ws.dropped identity={identity} errors={exc.error_count()}"
                )
    except WebSocketDisconnect:
        pass
    finally:
        CONNECTIONS.pop(identity, None)
        lobby_id = ROOMS.leave(identity)
        logger.debug(f"ui.ws.disconnected identity={identity} lobby={lobby_id}")


@app.get("/api/lobby/{lobby_id}")
def inspect_lobby(lobby_id: str) -> Dict[str, object]:
    room = ROOMS.get(lobby_id)
    if room is None:
        raise HTTPException(status_code=404, detail="Lobby not found")
    return {
        "lobbyId": room.lobby_id,
        "members": len(room.members),
        "availableMarks": [m.value for m in room.free_marks()],
        "active": room.game.active,
    }
