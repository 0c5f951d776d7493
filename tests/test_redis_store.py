import fnmatch
import uuid
from unittest import mock

import pytest
import redis

from snakeengine.models import Game, GameFrame, Point, Snake
from snakeengine.redis_store import (
    DEFAULT_DATA_TTL,
    DEFAULT_LOCK_EXPIRY,
    RedisStore,
    frames_key,
    game_key,
    game_lock_key,
)
from snakeengine.store import LockedError, NotFoundError, StoreError


def _key(name):
    return name.decode("utf-8") if isinstance(name, bytes) else str(name)


def _enc(value):
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


class FakePipeline:
    def __init__(self, client):
        self._client = client
        self._calls = []

    def __getattr__(self, name):
        method = getattr(self._client, name)

        def queue(*args, **kwargs):
            self._calls.append((method, args, kwargs))
            return self

        return queue

    def execute(self):
        results = [method(*a, **kw) for method, a, kw in self._calls]
        self._calls = []
        return results


class FakeRedis:
    def __init__(self):
        self.strings = {}
        self.hashes = {}
        self.lists = {}
        self.expiries = {}
        self.closed = False

    def ping(self):
        return True

    def close(self):
        self.closed = True

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    def set(self, name, value, nx=False, ex=None):
        name = _key(name)
        if nx and name in self.strings:
            return None
        self.strings[name] = _enc(value)
        if ex is not None:
            self.expiries[name] = ex
        return True

    def get(self, name):
        return self.strings.get(_key(name))

    def delete(self, *names):
        removed = 0
        for name in map(_key, names):
            for store in (self.strings, self.hashes, self.lists):
                if store.pop(name, None) is not None:
                    removed += 1
        return removed

    def exists(self, *names):
        return sum(
            1
            for name in map(_key, names)
            if name in self.strings or name in self.hashes or name in self.lists
        )

    def hset(self, name, key=None, value=None, mapping=None):
        h = self.hashes.setdefault(_key(name), {})
        items = dict(mapping or {})
        if key is not None:
            items[key] = value
        for k, v in items.items():
            h[_key(k)] = _enc(v)
        return len(items)

    def hget(self, name, key):
        return self.hashes.get(_key(name), {}).get(_key(key))

    def expire(self, name, time):
        self.expiries[_key(name)] = time
        return True

    def lpush(self, name, *values):
        lst = self.lists.setdefault(_key(name), [])
        for v in values:
            lst.insert(0, _enc(v))
        return len(lst)

    def rpush(self, name, *values):
        lst = self.lists.setdefault(_key(name), [])
        lst.extend(_enc(v) for v in values)
        return len(lst)

    def lrange(self, name, start, end):
        lst = self.lists.get(_key(name), [])
        n = len(lst)
        if start < 0:
            start = max(n + start, 0)
        if end < 0:
            end = n + end
        end = min(end, n - 1)
        if start > end:
            return []
        return lst[start : end + 1]

    def scan_iter(self, match=None):
        keys = list(self.strings) + list(self.hashes) + list(self.lists)
        for key in keys:
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key.encode("utf-8")

    def eval(self, script, numkeys, *args):
        keys, argv = args[:numkeys], args[numkeys:]
        if self.get(keys[0]) == _enc(argv[0]):
            self.delete(keys[0])
            return 1
        return None


class BrokenRedis(FakeRedis):
    def pipeline(self, transaction=True):
        raise redis.exceptions.ConnectionError("connection refused")

    def rpush(self, name, *values):
        raise redis.exceptions.ConnectionError("connection refused")


@pytest.fixture
def fake():
    return FakeRedis()


@pytest.fixture
def store(fake):
    return RedisStore(fake)


def _new_id():
    return str(uuid.uuid4())


TEST_FRAMES = [
    GameFrame(
        turn=0,
        food=[Point(10, 10)],
        snakes=[
            Snake(id=_new_id(), url="http://example.com/snek1", health=26, color="blue"),
            Snake(id=_new_id(), url="http://example.com/snek2", health=33, color="red"),
        ],
    ),
    GameFrame(
        turn=1,
        food=[Point(1, 0)],
        snakes=[Snake(id=_new_id(), url="http://example.com/snek", health=1, color="orange")],
    ),
    GameFrame(
        turn=2,
        food=[Point(2, 22)],
        snakes=[Snake(id=_new_id(), url="http://example.com/snek", health=10, color="green")],
    ),
]

GAME_CASES = [
    (Game(id=_new_id()), None),
    (
        Game(id=_new_id(), status="Test status", width=10, height=10, snake_timeout=10, mode="Test"),
        [
            GameFrame(
                turn=0,
                food=[Point(0, 0)],
                snakes=[
                    Snake(id=_new_id(), url="http://example.com/snek", health=50, color="red")
                ],
            )
        ],
    ),
    (
        Game(
            id=_new_id(),
            status="ᚠᛇᚻ᛫ᛒᛦᚦ᛫ᚠᚱᚩᚠᚢᚱ᛫ᚠᛁᚱᚪ᛫ᚷᛖᚻᚹᛦᛚᚳᚢᛗ",
            width=10,
            height=10,
            snake_timeout=10,
            mode="Test",
        ),
        None,
    ),
    (Game(id=_new_id(), status="Test status", width=10, height=10, snake_timeout=10), None),
    (Game(id=_new_id(), status="Test status", width=10, height=10, mode="🐍"), TEST_FRAMES),
    (Game(id=_new_id(), status="Snek 🐍🐍🐍🐍🐍", snake_timeout=100, mode="🐍🐍🐍🐍🐍"), None),
]


def test_key_helpers():
    assert game_key("abc") == "game:abc:state"
    assert frames_key("abc") == "game:abc:frames"
    assert game_lock_key("abc") == "game:abc:locks"


def test_lock(store):
    key = _new_id()
    token = store.lock(key, "")
    assert uuid.UUID(token)

    with pytest.raises(LockedError):
        store.lock(key, "")

    assert store.lock(key, token) == token


def test_lock_sets_expiry(store, fake):
    key = _new_id()
    store.lock(key, "")
    assert fake.expiries[game_lock_key(key)] == DEFAULT_LOCK_EXPIRY


def test_lock_with_other_token_is_refused(store):
    key = _new_id()
    store.lock(key, "")
    with pytest.raises(LockedError):
        store.lock(key, "token")


def test_unlock(store):
    key = _new_id()
    token = store.lock(key, "")
    store.unlock(key, token)

    again = store.lock(key, "")
    assert uuid.UUID(again)
    assert again != token


def test_unlock_empty_token_is_not_found(store):
    key = _new_id()
    store.lock(key, "")
    with pytest.raises(NotFoundError):
        store.unlock(key, "")


def test_unlock_wrong_token_keeps_lock(store):
    key = _new_id()
    token = store.lock(key, "")
    with pytest.raises(NotFoundError):
        store.unlock(key, "token")
    assert store.lock(key, token) == token


def test_pop_game_id(store):
    with pytest.raises(NotFoundError):
        store.pop_game_id()

    game = Game(id=_new_id(), status="running")
    store.create_game(game, None)
    assert store.pop_game_id() == game.id

    store.lock(game.id, "")
    with pytest.raises(NotFoundError):
        store.pop_game_id()


def test_pop_skips_games_not_running(store):
    store.create_game(Game(id=_new_id(), status="complete"), None)
    with pytest.raises(NotFoundError):
        store.pop_game_id()


def test_set_game_status(store):
    game = Game(id=_new_id(), status="old")
    store.create_game(game, None)
    store.set_game_status(game.id, "running")
    assert store.get_game(game.id).status == "running"


@pytest.mark.parametrize("game,frames", GAME_CASES)
def test_create_game(store, game, frames):
    store.create_game(game, frames)
    assert store.get_game(game.id) == game


def test_create_game_requires_id(store):
    with pytest.raises(ValueError):
        store.create_game(Game(), None)


def test_create_game_sets_ttl(store, fake):
    game = Game(id=_new_id())
    store.create_game(game, TEST_FRAMES[:1])
    assert fake.expiries[game_key(game.id)] == DEFAULT_DATA_TTL
    assert fake.expiries[frames_key(game.id)] == DEFAULT_DATA_TTL


def test_get_missing_game(store):
    with pytest.raises(NotFoundError):
        store.get_game(_new_id())


def test_push_game_frame(store):
    game = Game(id=_new_id())
    store.create_game(game, None)

    assert store.list_game_frames(game.id, 10, 0) == []

    store.push_game_frame(game.id, TEST_FRAMES[0])
    frames = store.list_game_frames(game.id, 10, 0)
    assert TEST_FRAMES[0] in frames
    assert len(frames) == 1

    store.push_game_frame(game.id, TEST_FRAMES[1])
    store.push_game_frame(game.id, TEST_FRAMES[2])
    frames = store.list_game_frames(game.id, 10, 0)
    assert sorted(frames, key=lambda f: f.turn) == TEST_FRAMES

    for limit in range(1, 4):
        assert len(store.list_game_frames(game.id, limit, 0)) == limit

    frames = store.list_game_frames(game.id, 2, 1)
    assert len(frames) == 2
    assert TEST_FRAMES[1] in frames
    assert TEST_FRAMES[2] in frames

    frames = store.list_game_frames(game.id, 1, -1)
    assert frames == [TEST_FRAMES[2]]

    assert len(store.list_game_frames(game.id, 1000000000, 0)) == 3

    assert store.list_game_frames(_new_id(), 10, 0) == []


def test_list_game_frames_rejects_bad_limit(store):
    with pytest.raises(ValueError):
        store.list_game_frames(_new_id(), 0, 0)


def test_game_queue_length_is_untracked(store):
    store.create_game(Game(id=_new_id(), status="running"), None)
    assert store.game_queue_length() == (0, 0)


def test_redis_errors_become_store_errors():
    store = RedisStore(BrokenRedis())
    with pytest.raises(StoreError):
        store.get_game(_new_id())
    with pytest.raises(StoreError):
        store.push_game_frame(_new_id(), GameFrame())


def test_from_url_rejects_bad_url():
    with pytest.raises(StoreError):
        RedisStore.from_url("not-a-url")


def test_from_url_and_close():
    fake = FakeRedis()
    with mock.patch.object(redis.Redis, "from_url", return_value=fake):
        with RedisStore.from_url("redis://localhost:6379") as store:
            game = Game(id=_new_id(), status="running")
            store.create_game(game, None)
            assert store.get_game(game.id) == game
    assert fake.closed is True