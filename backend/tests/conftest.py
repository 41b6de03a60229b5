"""
cacheall test configuration

Fixtures shared by the store, facade and HTTP tests:
- clock: simulated time, advanced explicitly by the tests
- cache_dir: throwaway FileStore root
- fake_redis: in-process stand-in for a redis.asyncio client

No test needs a running Redis server; RedisStore is handed the fake
client through RedisConfig(client=...).
"""

import fnmatch
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))


# ============================================
# Time
# ============================================

class FakeClock:
    """Callable time source, seconds since epoch"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ============================================
# Filesystem
# ============================================

@pytest.fixture
def cache_dir(tmp_path):
    """Root directory for a FileStore (not created yet)"""
    return tmp_path / "storage" / "cache"


# ============================================
# Redis
# ============================================

class FakeRedis:
    """
    Minimal async Redis client

    Implements the commands RedisStore issues (PING, GET, SET, SETEX,
    DEL, KEYS). Values come back as bytes like a real client without
    decode_responses. Expiry follows the shared clock.

    Failures can be injected:
    - fail_ping: PING raises ConnectionError
    - fail_keys: GET/SET/SETEX/DEL on these physical keys raise ConnectionError
    """

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self._data: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self.fail_ping = False
        self.fail_keys: Set[str] = set()
        self.closed = False
        self.commands: List[str] = []

    def _check(self, name: str) -> None:
        if name in self.fail_keys:
            raise RedisConnectionError(f"Connection lost while handling {name}")

    def _live(self, name: str) -> Optional[bytes]:
        item = self._data.get(name)
        if item is None:
            return None
        value, expire_at = item
        if expire_at is not None and self._clock() >= expire_at:
            del self._data[name]
            return None
        return value

    def ttl_of(self, name: str) -> Optional[float]:
        """Remaining seconds, None when the key never expires"""
        _, expire_at = self._data[name]
        return None if expire_at is None else expire_at - self._clock()

    def raw(self, name: str) -> Optional[bytes]:
        return self._live(name)

    async def ping(self) -> bool:
        self.commands.append("PING")
        if self.fail_ping:
            raise RedisConnectionError("Error connecting to 127.0.0.1:6379")
        return True

    async def get(self, name: str) -> Optional[bytes]:
        self.commands.append("GET")
        self._check(name)
        return self._live(name)

    async def set(self, name: str, value: Any) -> bool:
        self.commands.append("SET")
        self._check(name)
        self._data[name] = (str(value).encode("utf-8"), None)
        return True

    async def setex(self, name: str, time: int, value: Any) -> bool:
        self.commands.append("SETEX")
        self._check(name)
        self._data[name] = (str(value).encode("utf-8"), self._clock() + time)
        return True

    async def delete(self, *names: str) -> int:
        self.commands.append("DEL")
        removed = 0
        for name in names:
            self._check(name)
            if self._data.pop(name, None) is not None:
                removed += 1
        return removed

    async def keys(self, pattern: str = "*") -> List[bytes]:
        self.commands.append("KEYS")
        return [
            name.encode("utf-8")
            for name in list(self._data)
            if self._live(name) is not None and fnmatch.fnmatchcase(name, pattern)
        ]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_redis(clock):
    return FakeRedis(clock)


# ============================================
# Helper Functions
# ============================================

def keys_of(entries: List[Dict[str, Any]]) -> List[str]:
    """Sorted keys of a get_all() result"""
    return sorted(entry["key"] for entry in entries)


def as_mapping(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {entry["key"]: entry["value"] for entry in entries}
