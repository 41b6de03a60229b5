"""
Redis Store Implementation

Cache entries live in Redis as JSON strings under a key prefix
(``cacheall:`` by default, an empty prefix disables namespacing).
Expiry is delegated to Redis through SETEX.
"""

import logging
import math
import re
from typing import Any, Dict, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..config import RedisConfig
from ..errors import BackendIOError, ConfigurationError
from .base import (
    FALLBACK_TTL_SECONDS,
    NEVER_EXPIRE,
    BaseStore,
    Clock,
    KeyPattern,
    deserialize,
    gather_per_key,
    matches_pattern,
    serialize,
)

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def _escape_glob(text: str) -> str:
    return _GLOB_SPECIAL.sub(r"\\\1", text)


def _to_text(raw: Any) -> str:
    return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)


class RedisStore(BaseStore):
    """
    Key-value operations against a Redis server

    Usage:
        store = RedisStore(RedisConfig(host="127.0.0.1", prefix="app:"))
        await store.init()
        await store.set("foo", "bar", -1)   # stored as app:foo
    """

    engine = "redis"

    def __init__(self, config: Optional[RedisConfig] = None, clock: Optional[Clock] = None):
        super().__init__(clock)
        self.config = config or RedisConfig()
        self.prefix = self.config.key_prefix
        self._owns_client = self.config.client is None

        if self.config.client is not None:
            self._client = self.config.client
        elif self.config.url:
            self._client = aioredis.from_url(self.config.url)
        else:
            self._client = aioredis.Redis(
                host=self.config.host,
                port=self.config.port,
                password=self.config.password,
                db=self.config.database or 0,
            )

    @property
    def client(self) -> Any:
        return self._client

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _strip_prefix(self, full_key: str) -> str:
        return full_key[len(self.prefix):]

    @staticmethod
    def _ttl_seconds(ttl: Optional[float]) -> int:
        """Whole seconds for SETEX, which rejects 0; sub-second ttls round up"""
        return max(1, math.ceil(ttl or FALLBACK_TTL_SECONDS))

    # ============================================
    # Lifecycle
    # ============================================

    async def init(self) -> None:
        """
        Handshake before any operation is issued.

        The first round trip authenticates and selects the configured
        database, so bad credentials surface here.
        """
        try:
            await self._client.ping()
        except RedisError as e:
            raise ConfigurationError(f"Redis handshake failed: {e}") from e
        logger.info(f"[RedisStore] Connected (prefix={self.prefix!r})")

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ============================================
    # Single Key Operations
    # ============================================

    async def get(self, key: str) -> Any:
        try:
            raw = await self._client.get(self._full_key(key))
        except RedisError as e:
            raise BackendIOError(f"Redis GET failed for {key!r}: {e}", failed_keys=[key]) from e

        if raw is None:
            return None
        return deserialize(_to_text(raw))

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store value (SET for ttl -1, SETEX otherwise, 60s when ttl is None/0,
        fractional ttls rounded up to whole seconds)
        """
        text = serialize(value)
        full_key = self._full_key(key)
        try:
            if ttl == NEVER_EXPIRE:
                await self._client.set(full_key, text)
            else:
                await self._client.setex(full_key, self._ttl_seconds(ttl), text)
        except RedisError as e:
            raise BackendIOError(f"Redis SET failed for {key!r}: {e}", failed_keys=[key]) from e

    async def remove(self, key: str) -> None:
        try:
            await self._client.delete(self._full_key(key))
        except RedisError as e:
            raise BackendIOError(f"Redis DEL failed for {key!r}: {e}", failed_keys=[key]) from e

    # ============================================
    # Bulk Operations
    # ============================================

    async def _scan_keys(self) -> List[str]:
        """Every physical key under this store's prefix"""
        try:
            raw_keys = await self._client.keys(f"{_escape_glob(self.prefix)}*")
        except RedisError as e:
            raise BackendIOError(f"Redis KEYS failed: {e}") from e
        return [_to_text(k) for k in raw_keys]

    async def _delete_full_key(self, full_key: str) -> None:
        try:
            await self._client.delete(full_key)
        except RedisError as e:
            raise BackendIOError(f"Redis DEL failed for {full_key!r}: {e}") from e

    async def clear(self) -> None:
        full_keys = await self._scan_keys()
        await gather_per_key(full_keys, self._delete_full_key, "clear")
        logger.info(f"[RedisStore] Cleared {len(full_keys)} entries")

    async def remove_by_pattern(self, pattern: KeyPattern) -> None:
        """Delete keys whose unprefixed name matches the pattern"""
        full_keys = await self._scan_keys()
        matched = [k for k in full_keys if matches_pattern(pattern, self._strip_prefix(k))]
        await gather_per_key(matched, self._delete_full_key, "remove_by_pattern")
        logger.info(f"[RedisStore] Removed {len(matched)} of {len(full_keys)} entries matching {pattern!r}")

    async def get_all(self) -> List[Dict[str, Any]]:
        """
        Fetch and decode every key under the prefix.

        Keys that vanish between enumeration and fetch are skipped.
        """
        full_keys = await self._scan_keys()

        async def _fetch(full_key: str) -> Optional[str]:
            try:
                raw = await self._client.get(full_key)
            except RedisError as e:
                raise BackendIOError(f"Redis GET failed for {full_key!r}: {e}") from e
            return None if raw is None else _to_text(raw)

        texts = await gather_per_key(full_keys, _fetch, "get_all")
        return [
            {"key": self._strip_prefix(full_key), "value": deserialize(text)}
            for full_key, text in zip(full_keys, texts)
            if text is not None
        ]
