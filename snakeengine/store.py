"""Game store: locking, game lookup and frame storage."""

from __future__ import annotations

import copy
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from snakeengine.models import Game, GameFrame

#: Seconds after which a lock expires.
LOCK_EXPIRY = 5.0

#: Status of a game that workers should process.
RUNNING = "running"


class StoreError(Exception):
    """Base class of store errors."""

    code = "UNKNOWN"
    default_message = "controller: store error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class NotFoundError(StoreError):
    """The game does not exist."""

    code = "NOT_FOUND"
    default_message = "controller: game not found"


class LockedError(StoreError):
    """The game is locked by someone else."""

    code = "RESOURCE_EXHAUSTED"
    default_message = "controller: game is locked"


class InvalidSequenceError(StoreError):
    """A frame was pushed out of turn order."""

    code = "RESOURCE_EXHAUSTED"
    default_message = "controller: invalid game tick sequence"


class Store(ABC):
    """Game store with locking for the workers that process games."""

    @abstractmethod
    def lock(self, key: str, token: str = "") -> str:
        """Lock a game and return the token needed to write to it."""

    @abstractmethod
    def unlock(self, key: str, token: str = "") -> None:
        """Unlock a game if the token matches or the lock has expired."""

    @abstractmethod
    def pop_game_id(self) -> str:
        """Return the id of a running, unlocked game."""

    @abstractmethod
    def set_game_status(self, game_id: str, status: str) -> None:
        """Set a game's status atomically."""

    @abstractmethod
    def create_game(self, game: Game, frames: Optional[Iterable[GameFrame]] = None) -> None:
        """Insert a game with its initial frames."""

    @abstractmethod
    def push_game_frame(self, game_id: str, frame: GameFrame) -> None:
        """Append a frame to a game's frames."""

    @abstractmethod
    def list_game_frames(self, game_id: str, limit: int, offset: int = 0) -> List[GameFrame]:
        """List frames by offset and limit; a negative offset counts from the end."""

    @abstractmethod
    def get_game(self, game_id: str) -> Game:
        """Fetch a game."""

    @abstractmethod
    def game_queue_length(self) -> Tuple[int, int]:
        """Return (running games, running games still waiting for a first move)."""


@dataclass
class _Lock:
    token: str
    expires: float


class InMemoryStore(Store):
    """A thread-safe store held in memory."""

    def __init__(
        self,
        lock_expiry: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.lock_expiry = LOCK_EXPIRY if lock_expiry is None else lock_expiry
        self._clock = clock
        self._mutex = threading.Lock()
        self._games: Dict[str, Game] = {}
        self._frames: Dict[str, List[GameFrame]] = {}
        self._locks: Dict[str, _Lock] = {}

    def clear(self) -> None:
        """Drop all games, frames and locks."""
        with self._mutex:
            self._games = {}
            self._frames = {}
            self._locks = {}

    def lock(self, key: str, token: str = "") -> str:
        with self._mutex:
            now = self._clock()
            held = self._locks.get(key)
            if held is not None:
                if held.expires < now:
                    del self._locks[key]
                elif held.token == token:
                    held.expires = now + self.lock_expiry
                    return held.token
                else:
                    raise LockedError()
            token = token or str(uuid.uuid4())
            self._locks[key] = _Lock(token=token, expires=now + self.lock_expiry)
            return token

    def _is_locked(self, key: str) -> bool:
        held = self._locks.get(key)
        return held is not None and held.expires > self._clock()

    def unlock(self, key: str, token: str = "") -> None:
        with self._mutex:
            held = self._locks.get(key)
            if held is None:
                return
            if held.expires < self._clock() or held.token == token:
                del self._locks[key]
                return
            raise LockedError()

    def pop_game_id(self) -> str:
        with self._mutex:
            for game_id, game in self._games.items():
                if not self._is_locked(game_id) and game.status == RUNNING:
                    return game_id
        raise NotFoundError()

    def game_queue_length(self) -> Tuple[int, int]:
        with self._mutex:
            running = [g for g in self._games.values() if g.status == RUNNING]
            waiting = sum(1 for g in running if len(self._frames.get(g.id, [])) <= 1)
            return len(running), waiting

    def create_game(self, game: Game, frames: Optional[Iterable[GameFrame]] = None) -> None:
        with self._mutex:
            self._games[game.id] = copy.deepcopy(game)
            self._frames[game.id] = list(frames or [])

    def set_game_status(self, game_id: str, status: str) -> None:
        with self._mutex:
            game = self._games.get(game_id)
            if game is None:
                raise NotFoundError()
            game.status = status

    def push_game_frame(self, game_id: str, frame: GameFrame) -> None:
        with self._mutex:
            frames = self._frames.setdefault(game_id, [])
            expected = frames[-1].turn + 1 if frames else 0
            if frame.turn != expected:
                raise InvalidSequenceError()
            frames.append(frame)

    def list_game_frames(self, game_id: str, limit: int, offset: int = 0) -> List[GameFrame]:
        if limit < 0:
            raise ValueError(f"invalid limit {limit}")
        with self._mutex:
            if game_id not in self._games:
                raise NotFoundError()
            frames = self._frames.get(game_id, [])
            if offset < 0:
                offset = max(len(frames) + offset, 0)
            return frames[offset : offset + limit]

    def get_game(self, game_id: str) -> Game:
        with self._mutex:
            game = self._games.get(game_id)
            if game is None:
                raise NotFoundError()
            # A copy, so callers cannot change the stored state.
            return copy.deepcopy(game)