"""Shared pytest fixtures for FoodRAG tests.

``FakeRedis`` implements the subset of ``redis.asyncio.Redis`` the app uses,
in memory, with key expiry driven by a controllable clock so tests can
simulate time passing without sleeping.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.observability import ErrorReporter


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """In-memory async stand-in for the Redis commands the app uses."""

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self._data: dict = {}
        self._expiry: dict[str, float] = {}
        self.calls: list[str] = []

    def _live(self, name: str):
        deadline = self._expiry.get(name)
        if deadline is not None and self._clock() >= deadline:
            self._data.pop(name, None)
            self._expiry.pop(name, None)
        return self._data.get(name)

    def ttl_of(self, name: str) -> float | None:
        if self._live(name) is None or name not in self._expiry:
            return None
        return self._expiry[name] - self._clock()

    # ── sorted sets ──

    async def zremrangebyscore(self, name, min, max):
        self.calls.append("zremrangebyscore")
        zset = self._live(name) or {}
        doomed = [m for m, s in zset.items() if float(min) <= s <= float(max)]
        for m in doomed:
            del zset[m]
        return len(doomed)

    async def zcard(self, name):
        self.calls.append("zcard")
        return len(self._live(name) or {})

    async def zrange(self, name, start, end, withscores=False):
        self.calls.append("zrange")
        items = sorted((self._live(name) or {}).items(), key=lambda kv: (kv[1], kv[0]))
        stop = None if end == -1 else end + 1
        items = items[start:stop]
        return [(m, s) for m, s in items] if withscores else [m for m, _ in items]

    async def zadd(self, name, mapping):
        self.calls.append("zadd")
        zset = self._live(name)
        if zset is None:
            zset = self._data[name] = {}
        added = sum(1 for m in mapping if m not in zset)
        zset.update({m: float(s) for m, s in mapping.items()})
        return added

    # ── keys ──

    async def expire(self, name, time):
        self.calls.append("expire")
        if self._live(name) is None:
            return False
        self._expiry[name] = self._clock() + time
        return True

    async def get(self, name):
        self.calls.append("get")
        return self._live(name)

    async def set(self, name, value, ex=None):
        self.calls.append("set")
        self._data[name] = value
        self._expiry.pop(name, None)
        if ex is not None:
            self._expiry[name] = self._clock() + ex
        return True

    async def delete(self, *names):
        self.calls.append("delete")
        removed = 0
        for name in names:
            if self._live(name) is not None:
                removed += 1
            self._data.pop(name, None)
            self._expiry.pop(name, None)
        return removed

    async def exists(self, *names):
        self.calls.append("exists")
        return sum(1 for n in names if self._live(n) is not None)

    async def incr(self, name, amount=1):
        self.calls.append("incr")
        value = int(self._live(name) or 0) + amount
        self._data[name] = str(value)
        return value

    # ── hashes ──

    async def hincrby(self, name, key, amount=1):
        self.calls.append("hincrby")
        h = self._live(name)
        if h is None:
            h = self._data[name] = {}
        h[key] = str(int(h.get(key, 0)) + amount)
        return int(h[key])

    async def hgetall(self, name):
        self.calls.append("hgetall")
        return dict(self._live(name) or {})

    # ── lists ──

    async def lpush(self, name, *values):
        self.calls.append("lpush")
        lst = self._live(name)
        if lst is None:
            lst = self._data[name] = []
        for v in values:
            lst.insert(0, v)
        return len(lst)

    async def ltrim(self, name, start, end):
        self.calls.append("ltrim")
        lst = self._live(name)
        if lst is not None:
            stop = None if end == -1 else end + 1
            self._data[name] = lst[start:stop]
        return True

    async def lrange(self, name, start, end):
        self.calls.append("lrange")
        lst = self._live(name) or []
        stop = None if end == -1 else end + 1
        return list(lst[start:stop])


class BrokenRedis:
    """Every command raises, as if the Redis server were down."""

    def __init__(self):
        self.calls: list[str] = []

    def __getattr__(self, name):
        async def _fail(*args, **kwargs):
            self.calls.append(name)
            raise RedisConnectionError("Connection refused")

        return _fail


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def broken_redis() -> BrokenRedis:
    return BrokenRedis()


@pytest.fixture
def reporter() -> ErrorReporter:
    return ErrorReporter()
