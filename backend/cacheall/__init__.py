"""
Cache-All

Pluggable caching layer with one uniform async interface over
three backends (memory, file, redis) plus response caching
middleware for FastAPI / Starlette applications.
"""

from .config import CacheConfig, FileConfig, MemoryConfig, RedisConfig, load_config
from .errors import (
    BackendIOError,
    CacheError,
    ConfigurationError,
    InvalidKeyError,
    SerializationError,
)
from .facade import STATUS_APPLIED, STATUS_NOT_APPLIED, CacheFacade
from .factory import create_store
from .middleware import RequestCacheMiddleware, build_cache_key, route_fingerprint
from .routes import create_cache_router
from .stores import NEVER_EXPIRE, BaseStore, FileStore, MemoryStore, RedisStore

__all__ = [
    "CacheFacade",
    "STATUS_APPLIED",
    "STATUS_NOT_APPLIED",
    "CacheConfig",
    "FileConfig",
    "MemoryConfig",
    "RedisConfig",
    "load_config",
    "create_store",
    "BaseStore",
    "MemoryStore",
    "FileStore",
    "RedisStore",
    "NEVER_EXPIRE",
    "RequestCacheMiddleware",
    "build_cache_key",
    "route_fingerprint",
    "create_cache_router",
    "CacheError",
    "ConfigurationError",
    "SerializationError",
    "InvalidKeyError",
    "BackendIOError",
]
