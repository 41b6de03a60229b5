"""
Store Factory

Selects the concrete store for a config's ``engine`` tag.
"""

import logging
from typing import Callable, Dict, Optional

from .config import CacheConfig
from .errors import ConfigurationError
from .stores import BaseStore, FileStore, MemoryStore, RedisStore
from .stores.base import Clock

logger = logging.getLogger(__name__)


def _memory(config: CacheConfig, clock: Optional[Clock]) -> BaseStore:
    return MemoryStore(max_entries=config.memory.max_entries, clock=clock)


def _file(config: CacheConfig, clock: Optional[Clock]) -> BaseStore:
    return FileStore(config.file.path, clock=clock)


def _redis(config: CacheConfig, clock: Optional[Clock]) -> BaseStore:
    return RedisStore(config.redis, clock=clock)


STORE_BUILDERS: Dict[str, Callable[[CacheConfig, Optional[Clock]], BaseStore]] = {
    "memory": _memory,
    "file": _file,
    "redis": _redis,
}


def create_store(config: CacheConfig, clock: Optional[Clock] = None) -> BaseStore:
    """
    Build (but do not initialize) the store selected by ``config.engine``

    Raises:
        ConfigurationError: unknown engine
    """
    builder = STORE_BUILDERS.get(config.engine)
    if builder is None:
        raise ConfigurationError(f"Unknown cache engine: {config.engine!r}")

    logger.debug(f"[CacheAll] Creating {config.engine} store")
    return builder(config, clock)
