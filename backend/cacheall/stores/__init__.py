"""
Cache Stores

Interchangeable backends behind the BaseStore contract:
- MemoryStore: in-process LRU map
- FileStore: one JSON document per key
- RedisStore: Redis, namespaced by a key prefix
"""

from .base import NEVER_EXPIRE, BaseStore, CacheEntry, matches_pattern
from .file_store import FileStore, sanitize_key
from .memory_store import MemoryStore
from .redis_store import RedisStore

__all__ = [
    "NEVER_EXPIRE",
    "BaseStore",
    "CacheEntry",
    "matches_pattern",
    "MemoryStore",
    "FileStore",
    "sanitize_key",
    "RedisStore",
]
