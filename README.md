# snakeengine

Building blocks for a multiplayer snake game server:

- **Game model** (`snakeengine.models`): `Point`, `Death`, `Snake`,
  `GameFrame` and `Game` dataclasses, each with `to_dict()` and
  `from_dict()` for JSON. `Snake.move(direction)` grows a new head one cell
  `"up"`, `"down"`, `"left"` or `"right"`; any other direction falls back to
  `Snake.default_move()`, which keeps the snake heading the way it was going.
  The tail is not removed by a move. `GameFrame.alive_snakes()` and
  `GameFrame.dead_snakes()` split a frame's snakes by whether they have a
  `death`.
- **Game stores** (`snakeengine.store`): the abstract `Store` stores games
  and their frames and hands out short-lived locks, so that only one worker
  processes a game at a time.
  - `InMemoryStore` keeps everything in process memory and is thread-safe.
    Locks last `LOCK_EXPIRY` (5) seconds unless another `lock_expiry` is
    given. `clear()` drops all games, frames and locks.
  - `RedisStore` (`snakeengine.redis_store`) keeps games, frames and locks in
    Redis. Connect with `RedisStore.from_url(url)`; it can be used as a
    context manager and is closed with `close()`. Locks last 60 seconds and
    game data 30 days. Its `game_queue_length()` always returns `(0, 0)`.
- **Instrumentation** (`snakeengine.metrics`): `instrument_store(store,
  recorder)` wraps any store in an `InstrumentedStore`, which counts calls
  and sums their durations per method in a `CallRecorder` (`count()`,
  `total_duration()`). Calls that raise are recorded too;
  `game_queue_length()` is not timed.
- **HTTP client** (`snakeengine.client`): `EngineClient(api_url)` creates
  and starts a game on a running engine with `begin_game(create_request)`,
  which returns the new game's id, and reads back its status and frames with
  `game_status(game_id)`, which returns both JSON responses as dicts.

## Installation

```
pip install snakeengine
```

To run the tests:

```
pip install "snakeengine[test]"
pytest
```

## Example

```python
from snakeengine.models import Game, GameFrame, Point, Snake
from snakeengine.store import InMemoryStore, LockedError
from snakeengine.metrics import CallRecorder, instrument_store

recorder = CallRecorder()
store = instrument_store(InMemoryStore(), recorder)

store.create_game(Game(id="game-1", status="running"), [])
store.push_game_frame("game-1", GameFrame(turn=0))

game_id = store.pop_game_id()          # "game-1": running and unlocked
lock_handle = store.lock(game_id, "")  # a new lock is generated
try:
    store.lock(game_id, "")            # a second worker cannot take it
except LockedError:
    pass
store.unlock(game_id, lock_handle)

snake = Snake(body=[Point(5, 5), Point(5, 6)])
snake.default_move()                   # keeps heading up
print(snake.head())                    # Point(x=5, y=4)

print(recorder.count("Lock"))          # 2
```

## Errors

All store errors derive from `StoreError`:

| Error                  | Raised when                                       |
|------------------------|---------------------------------------------------|
| `NotFoundError`        | the game does not exist or nothing can be popped  |
| `LockedError`          | someone else holds the game's lock                |
| `InvalidSequenceError` | a frame's turn does not follow the last one       |

`InMemoryStore.push_game_frame` checks the turn order; `RedisStore` does not.
`RedisStore.unlock` raises `NotFoundError` when no token is given or the
token does not match. A `limit` that is out of range raises `ValueError`, as
does `RedisStore.create_game` for a game without an id. Redis failures are
raised as `StoreError`.

## Frame listing

`list_game_frames(game_id, limit, offset)` returns up to `limit` frames,
starting at `offset`. A negative offset counts back from the newest frame, so
`list_game_frames(game_id, 1, -1)` returns the latest frame. For a game that
does not exist, `InMemoryStore` raises `NotFoundError` and `RedisStore`
returns an empty list.

## What is not included

This package holds no game rules, no worker that plays games turn by turn,
no HTTP or RPC server and no command-line program. `EngineClient` needs an
engine server that is already running.