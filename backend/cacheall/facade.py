"""
Cache Facade

Single entry point wrapping exactly one active store.

- init() selects and initializes the backend from a config
- every operation degrades silently while no store is active
  (before init, or when the cache is disabled): mutations answer
  {"status": 0}, reads answer None / False
- backend errors are logged and re-raised, never encoded in the status

Re-initializing while requests are in flight against the previous store
is not synchronized; callers must not re-init concurrently with traffic.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from starlette.middleware import Middleware

from .config import CacheConfig, load_config
from .errors import CacheError
from .factory import create_store
from .middleware import RequestCacheMiddleware
from .stores import BaseStore
from .stores.base import Clock, KeyPattern

logger = logging.getLogger(__name__)

STATUS_APPLIED = 1
STATUS_NOT_APPLIED = 0

StatusResult = Dict[str, int]


def _status(value: int) -> StatusResult:
    return {"status": value}


class CacheFacade:
    """
    Caller-facing cache object

    Usage:
        cache = CacheFacade()
        await cache.init({"engine": "file", "ttl": 60})
        await cache.set("foo", {"bar": "baz"})
        value = await cache.get("foo")
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._store: Optional[BaseStore] = None
        self._config: Optional[CacheConfig] = None
        self._clock = clock

    # ============================================
    # Lifecycle
    # ============================================

    @property
    def is_active(self) -> bool:
        return self._store is not None

    @property
    def config(self) -> Optional[CacheConfig]:
        return self._config

    @property
    def store(self) -> Optional[BaseStore]:
        return self._store

    @property
    def engine(self) -> Optional[str]:
        return self._store.engine if self._store else None

    @property
    def default_ttl(self) -> Optional[int]:
        return self._config.ttl if self._config else None

    async def init(self, config: Union[CacheConfig, Dict[str, Any], None] = None) -> None:
        """
        Build and initialize the configured store

        Args:
            config: CacheConfig, or a dict merged over the defaults

        Raises:
            ConfigurationError: backend initialization failed; the facade
                is left inactive
        """
        resolved = load_config(config)

        await self.close()
        self._config = resolved

        if not resolved.is_enable:
            logger.info("[CacheAll] Cache disabled, operations will be no-ops")
            return

        store = create_store(resolved, clock=self._clock)
        try:
            await store.init()
        except CacheError:
            await store.close()
            raise
        self._store = store
        logger.info(f"[CacheAll] Initialized {resolved.engine} cache (ttl={resolved.ttl}s)")

    async def close(self) -> None:
        """Release the active store, leaving the facade inactive"""
        store, self._store = self._store, None
        if store is not None:
            await store.close()

    async def __aenter__(self) -> "CacheFacade":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ============================================
    # Operations
    # ============================================

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> StatusResult:
        """
        Cache a value

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Seconds to live; None/0 uses the configured default, -1 never expires

        Returns:
            {"status": 1} when stored, {"status": 0} when the cache is inactive
        """
        if self._store is None:
            return _status(STATUS_NOT_APPLIED)

        try:
            await self._store.set(key, value, ttl or self._config.ttl)
        except CacheError as e:
            logger.error(f"[CacheAll] set failed for {key!r}: {e}")
            raise
        return _status(STATUS_APPLIED)

    async def get(self, key: str) -> Any:
        if self._store is None:
            return None

        try:
            return await self._store.get(key)
        except CacheError as e:
            logger.error(f"[CacheAll] get failed for {key!r}: {e}")
            raise

    async def get_all(self) -> Optional[List[Dict[str, Any]]]:
        if self._store is None:
            return None

        try:
            return await self._store.get_all()
        except CacheError as e:
            logger.error(f"[CacheAll] get_all failed: {e}")
            raise

    async def has(self, key: str) -> bool:
        """
        True when the key holds a value.

        Implemented as a full get (value is read and decoded), not as a
        dedicated existence check.
        """
        return await self.get(key) is not None

    async def remove(self, key: str) -> StatusResult:
        if self._store is None:
            return _status(STATUS_NOT_APPLIED)

        try:
            await self._store.remove(key)
        except CacheError as e:
            logger.error(f"[CacheAll] remove failed for {key!r}: {e}")
            raise
        return _status(STATUS_APPLIED)

    async def remove_by_pattern(self, pattern: KeyPattern) -> StatusResult:
        """Remove every key matching a regex (str or compiled pattern)"""
        if self._store is None:
            return _status(STATUS_NOT_APPLIED)

        try:
            await self._store.remove_by_pattern(pattern)
        except CacheError as e:
            logger.error(f"[CacheAll] remove_by_pattern failed for {pattern!r}: {e}")
            raise
        return _status(STATUS_APPLIED)

    async def clear(self) -> StatusResult:
        if self._store is None:
            return _status(STATUS_NOT_APPLIED)

        try:
            await self._store.clear()
        except CacheError as e:
            logger.error(f"[CacheAll] clear failed: {e}")
            raise
        return _status(STATUS_APPLIED)

    # ============================================
    # HTTP
    # ============================================

    def middleware(
        self,
        ttl: Optional[float] = None,
        prefix: Optional[str] = None,
        methods: Optional[Sequence[str]] = None,
        paths: Optional[Sequence[str]] = None,
    ) -> Middleware:
        """
        Response caching middleware bound to this facade

        Usage:
            app = FastAPI(middleware=[cache.middleware(60, "user", methods=["GET"], paths=["/api/user"])])

        Args:
            ttl: Seconds to keep responses (facade default when None)
            prefix: Key prefix, enables remove_by_pattern(prefix) invalidation
            methods: Only cache these HTTP methods (all when None)
            paths: Only cache requests under these path prefixes (all when None)
        """
        return Middleware(RequestCacheMiddleware, cache=self, ttl=ttl, prefix=prefix, methods=methods, paths=paths)
