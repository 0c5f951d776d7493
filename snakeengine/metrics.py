"""Timing of store calls."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from snakeengine.models import Game, GameFrame
from snakeengine.store import Store


class CallRecorder:
    """Counts calls and sums their durations, per method."""

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._mutex = threading.Lock()
        self._counts: Dict[str, int] = {}
        self._totals: Dict[str, float] = {}

    def observe(self, method: str, duration: float) -> None:
        """Record one call of ``method`` that took ``duration`` seconds."""
        with self._mutex:
            self._counts[method] = self._counts.get(method, 0) + 1
            self._totals[method] = self._totals.get(method, 0.0) + duration

    def count(self, method: str) -> int:
        with self._mutex:
            return self._counts.get(method, 0)

    def total_duration(self, method: str) -> float:
        with self._mutex:
            return self._totals.get(method, 0.0)

    @contextmanager
    def time(self, method: str) -> Iterator[None]:
        """Time the enclosed block, recording it even when it raises."""
        start = self._clock()
        try:
            yield
        finally:
            self.observe(method, self._clock() - start)


_DEFAULT_RECORDER = CallRecorder()


class InstrumentedStore(Store):
    """A store that times every call made to the store it wraps."""

    def __init__(self, store: Store, recorder: Optional[CallRecorder] = None) -> None:
        self.store = store
        self.recorder = recorder if recorder is not None else _DEFAULT_RECORDER

    def lock(self, key: str, token: str = "") -> str:
        with self.recorder.time("Lock"):
            return self.store.lock(key, token)

    def unlock(self, key: str, token: str = "") -> None:
        with self.recorder.time("Unlock"):
            self.store.unlock(key, token)

    def pop_game_id(self) -> str:
        with self.recorder.time("PopGameID"):
            return self.store.pop_game_id()

    def set_game_status(self, game_id: str, status: str) -> None:
        with self.recorder.time("SetGameStatus"):
            self.store.set_game_status(game_id, status)

    def create_game(self, game: Game, frames: Optional[Iterable[GameFrame]] = None) -> None:
        with self.recorder.time("CreateGame"):
            self.store.create_game(game, frames)

    def push_game_frame(self, game_id: str, frame: GameFrame) -> None:
        with self.recorder.time("PushGameFrame"):
            self.store.push_game_frame(game_id, frame)

    def list_game_frames(self, game_id: str, limit: int, offset: int = 0) -> List[GameFrame]:
        with self.recorder.time("ListGameFrames"):
            return self.store.list_game_frames(game_id, limit, offset)

    def get_game(self, game_id: str) -> Game:
        with self.recorder.time("GetGame"):
            return self.store.get_game(game_id)

    def game_queue_length(self) -> Tuple[int, int]:
        # Not timed: this call itself feeds monitoring.
        return self.store.game_queue_length()


def instrument_store(store: Store, recorder: Optional[CallRecorder] = None) -> InstrumentedStore:
    """Wrap ``store`` so that its calls are timed by ``recorder``."""
    return InstrumentedStore(store, recorder)