"""Game store kept in Redis."""

from __future__ import annotations

import json
import uuid
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Optional, Tuple

import redis

from snakeengine.models import Game, GameFrame
from snakeengine.store import RUNNING, LockedError, NotFoundError, Store, StoreError

#: Seconds that game data is kept before Redis evicts it (30 days).
DEFAULT_DATA_TTL = 60 * 60 * 24 * 30

#: Seconds that a lock is held.
DEFAULT_LOCK_EXPIRY = 60

_UNLOCK_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    redis.call("DEL", KEYS[1])
    return true
end
return false
"""


def game_key(game_id: str) -> str:
    """The Redis key of a game's hash."""
    return f"game:{game_id}:state"


def frames_key(game_id: str) -> str:
    """The Redis key of a game's frame list."""
    return f"game:{game_id}:frames"


def game_lock_key(game_id: str) -> str:
    """The Redis key of a game's lock."""
    return f"game:{game_id}:locks"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


@contextmanager
def _redis_errors(message: str) -> Iterator[None]:
    try:
        yield
    except redis.RedisError as exc:
        raise StoreError(f"{message}: {exc}") from exc


class RedisStore(Store):
    """A store backed by a Redis server."""

    def __init__(self, client: Any, data_ttl: int = DEFAULT_DATA_TTL) -> None:
        self._client = client
        self.data_ttl = data_ttl

    @classmethod
    def from_url(cls, url: str) -> RedisStore:
        """Connect to the Redis server at ``url`` and check that it answers."""
        try:
            client = redis.Redis.from_url(url)
        except ValueError as exc:
            raise StoreError(f"unable to parse redis URL: {exc}") from exc
        with _redis_errors("unable to connect"):
            client.ping()
        return cls(client)

    def close(self) -> None:
        """Close the underlying client."""
        self._client.close()

    def __enter__(self) -> RedisStore:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def lock(self, key: str, token: str = "") -> str:
        token = token or str(uuid.uuid4())
        lock_key = game_lock_key(key)
        with _redis_errors("unexpected redis error during tx pipeline"):
            pipe = self._client.pipeline(transaction=True)
            pipe.set(lock_key, token, nx=True, ex=DEFAULT_LOCK_EXPIRY)
            pipe.get(lock_key)
            acquired, current = pipe.execute()
        current = _text(current)
        if acquired or current == token:
            return current
        raise LockedError()

    def unlock(self, key: str, token: str = "") -> None:
        if not token:
            raise NotFoundError()
        with _redis_errors("unexpected redis error during unlock"):
            result = self._client.eval(_UNLOCK_SCRIPT, 1, game_lock_key(key), token)
        if result != 1:
            raise NotFoundError()

    def pop_game_id(self) -> str:
        with _redis_errors("unexpected redis exception while popping game"):
            for key in self._client.scan_iter(match=game_key("*")):
                game_id = _text(self._client.hget(key, "id"))
                if not game_id or self._client.exists(game_lock_key(game_id)):
                    continue
                if _text(self._client.hget(key, "status")) == RUNNING:
                    return game_id
        raise NotFoundError()

    def game_queue_length(self) -> Tuple[int, int]:
        # Not tracked for this store.
        return 0, 0

    def set_game_status(self, game_id: str, status: str) -> None:
        with _redis_errors("unexpected redis error when setting game status"):
            self._client.hset(game_key(game_id), "status", status)

    def create_game(self, game: Game, frames: Optional[Iterable[GameFrame]] = None) -> None:
        if not game.id:
            raise ValueError("game must have a non-zero ID")
        key = game_key(game.id)
        frame_data = [json.dumps(f.to_dict()).encode("utf-8") for f in frames or []]
        with _redis_errors("unexpected redis error while saving game state"):
            pipe = self._client.pipeline(transaction=True)
            pipe.hset(
                key,
                mapping={
                    "state": json.dumps(game.to_dict()).encode("utf-8"),
                    "status": game.status,
                    "id": game.id,
                },
            )
            pipe.expire(key, self.data_ttl)
            if frame_data:
                fkey = frames_key(game.id)
                pipe.lpush(fkey, *frame_data)
                # Frames expire together with their game.
                pipe.expire(fkey, self.data_ttl)
            pipe.execute()

    def push_game_frame(self, game_id: str, frame: GameFrame) -> None:
        data = json.dumps(frame.to_dict()).encode("utf-8")
        # The expiry is left alone so frames never outlive their game.
        with _redis_errors("unexpected redis error"):
            self._client.rpush(frames_key(game_id), data)

    def list_game_frames(self, game_id: str, limit: int, offset: int = 0) -> List[GameFrame]:
        if limit <= 0:
            raise ValueError(f"invalid limit {limit}")
        start = offset
        end = limit + offset
        if offset <= 0:
            end -= 1
        with _redis_errors("unexpected redis error when getting frames"):
            raw_frames = self._client.lrange(frames_key(game_id), start, end)
        frames = []
        for data in raw_frames:
            try:
                frames.append(GameFrame.from_dict(json.loads(data)))
            except (ValueError, TypeError) as exc:
                raise StoreError(f"unable to unmarshal frame {_text(data)}") from exc
        return frames

    def get_game(self, game_id: str) -> Game:
        key = game_key(game_id)
        with _redis_errors("unexpected redis error"):
            pipe = self._client.pipeline(transaction=True)
            pipe.hget(key, "state")
            pipe.hget(key, "status")
            state, status = pipe.execute()
        if state is None:
            raise NotFoundError()
        try:
            game = Game.from_dict(json.loads(state))
        except (ValueError, TypeError) as exc:
            raise StoreError("unable to unmarshal game data") from exc
        game.status = _text(status)
        return game