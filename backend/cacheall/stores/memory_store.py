"""
Memory Store Implementation

In-process storage for cached values.

Features:
- LRU eviction when max entries exceeded
- TTL-based expiration (-1 never expires)
- remove() writes a null tombstone instead of deleting
- Values kept as JSON text, decoded on every read
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_MAX_ENTRIES
from .base import NEVER_EXPIRE, BaseStore, CacheEntry, Clock, KeyPattern, deserialize, matches_pattern, serialize

logger = logging.getLogger(__name__)


class MemoryStore(BaseStore):
    """
    Capacity-bounded in-memory store

    Two independent mechanisms make entries disappear:
    - TTL expiry, checked lazily on read
    - LRU eviction once more than ``max_entries`` keys are held
    """

    engine = "memory"

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, clock: Optional[Clock] = None):
        """
        Initialize memory store

        Args:
            max_entries: Maximum number of entries to keep
            clock: Time source in seconds (defaults to time.time)
        """
        super().__init__(clock)
        self._store: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._max_entries = max_entries

    @property
    def size(self) -> int:
        """Number of entries held, expired ones included until read"""
        return len(self._store)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    async def get(self, key: str) -> Any:
        """
        Get cached value

        Returns:
            Decoded value, or None if missing or expired

        Raises:
            SerializationError: stored text is not valid JSON
        """
        entry = self._store.get(key)
        if entry is None:
            return None

        if entry.is_expired(self.now_ms()):
            del self._store[key]
            logger.debug(f"[MemoryStore] Expired: {key}")
            return None

        self._store.move_to_end(key)
        return deserialize(entry.value)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store value

        Args:
            key: Cache key
            value: Any JSON-serializable value (None is stored as null)
            ttl: Seconds to live, -1 for never, None/0 for 60s
        """
        entry = CacheEntry(key=key, value=serialize(value), expire_at=self.expire_at(ttl))

        self._store[key] = entry
        self._store.move_to_end(key)
        self._evict_overflow()

        # Let other queued work run between mutations
        await asyncio.sleep(0)

    async def remove(self, key: str) -> None:
        await self.set(key, None, NEVER_EXPIRE)

    async def clear(self) -> None:
        count = len(self._store)
        self._store.clear()
        logger.info(f"[MemoryStore] Cleared {count} entries")
        await asyncio.sleep(0)

    async def get_all(self) -> List[Dict[str, Any]]:
        """
        List all live entries

        The whole map is walked without refreshing LRU order.
        Tombstoned keys are reported with a None value.
        """
        now = self.now_ms()
        return [
            {"key": entry.key, "value": deserialize(entry.value)}
            for entry in list(self._store.values())
            if not entry.is_expired(now)
        ]

    async def remove_by_pattern(self, pattern: KeyPattern) -> None:
        matched = [key for key in list(self._store.keys()) if matches_pattern(pattern, key)]
        for key in matched:
            await self.remove(key)
        logger.info(f"[MemoryStore] Removed {len(matched)} entries matching {pattern!r}")

    def _evict_overflow(self) -> int:
        """Drop least recently used entries beyond capacity"""
        evicted = 0
        while len(self._store) > self._max_entries:
            oldest_key, _ = self._store.popitem(last=False)
            evicted += 1
            logger.debug(f"[MemoryStore] LRU evicted: {oldest_key}")
        return evicted
