"""
Store Contract

Every backend (memory, file, redis) implements BaseStore. All operations
are coroutines; bulk operations are aggregated with asyncio.gather so a
zero-key walk completes immediately and a failure is reported once.
"""

import abc
import asyncio
import json
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, Sequence, Union

from ..errors import BackendIOError, SerializationError


NEVER_EXPIRE = -1
FALLBACK_TTL_SECONDS = 60

KeyPattern = Union[str, Pattern[str]]
Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """
    Stored entry.

    ``value`` is the JSON text of the payload, ``expire_at`` is epoch
    milliseconds or NEVER_EXPIRE.
    """
    key: str
    value: str
    expire_at: int = NEVER_EXPIRE

    def is_expired(self, now_ms: int) -> bool:
        """Absent once now >= expire_at, unless it never expires"""
        return self.expire_at != NEVER_EXPIRE and now_ms >= self.expire_at


def matches_pattern(pattern: KeyPattern, key: str) -> bool:
    """Regex search; plain strings are treated as regular expressions"""
    return re.search(pattern, key) is not None


def serialize(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot serialize value of type {type(value).__name__}: {e}") from e


def deserialize(text: Union[str, bytes]) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot deserialize cached value: {e}") from e


async def gather_per_key(
    keys: Sequence[str],
    action: Callable[[str], Awaitable[Any]],
    operation: str,
) -> List[Any]:
    """
    Run ``action`` for every key concurrently and wait for all of them.

    Raises a single BackendIOError naming every failed key. Results are
    returned in key order when everything succeeded.
    """
    if not keys:
        return []

    results = await asyncio.gather(*(action(key) for key in keys), return_exceptions=True)

    failed = [key for key, result in zip(keys, results) if isinstance(result, BaseException)]
    if failed:
        first_error = next(r for r in results if isinstance(r, BaseException))
        raise BackendIOError(
            f"{operation} failed for {len(failed)} of {len(keys)} keys: {first_error}",
            failed_keys=failed,
        ) from first_error
    return list(results)


class BaseStore(abc.ABC):
    """Capability set shared by every cache backend"""

    #: engine tag used by the factory
    engine: str = ""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock: Clock = clock or time.time

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def expire_at(self, ttl: Optional[float]) -> int:
        """Absolute expiry for a ttl in seconds (-1 never, None/0 -> 60s)"""
        if ttl == NEVER_EXPIRE:
            return NEVER_EXPIRE
        return self.now_ms() + int((ttl or FALLBACK_TTL_SECONDS) * 1000)

    async def init(self) -> None:
        """Backend specific initialization (directory, handshake)"""

    async def close(self) -> None:
        """Release backend resources"""

    @abc.abstractmethod
    async def get(self, key: str) -> Any:
        """Cached value, or None when missing / expired"""

    @abc.abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value; ttl in seconds, -1 never expires, None defaults to 60s"""

    @abc.abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a single key"""

    @abc.abstractmethod
    async def remove_by_pattern(self, pattern: KeyPattern) -> None:
        """Remove every key matching the regex pattern"""

    @abc.abstractmethod
    async def clear(self) -> None:
        """Remove every entry"""

    @abc.abstractmethod
    async def get_all(self) -> List[Dict[str, Any]]:
        """Every live entry as {"key": ..., "value": ...}"""
