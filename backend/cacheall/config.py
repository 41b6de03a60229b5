"""
Cache Configuration

Pydantic models describing how a CacheFacade builds its store.
Configuration is immutable once a facade has been initialized with it.

Plain dicts are accepted everywhere a config is expected; missing keys
(nested sections included) fall back to the defaults below. The camelCase
option names ``isEnable`` and ``expireIn`` are accepted as aliases.
"""

import os
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================
# Defaults
# ============================================

DEFAULT_TTL_SECONDS = 90
DEFAULT_MAX_ENTRIES = 100
DEFAULT_REDIS_HOST = "127.0.0.1"
DEFAULT_REDIS_PORT = 6379
DEFAULT_REDIS_PREFIX = "cacheall:"

StoreEngine = Literal["memory", "file", "redis"]


def default_file_path() -> str:
    """<cwd>/storage/cache, resolved when the config is built"""
    return os.path.join(os.getcwd(), "storage", "cache")


# ============================================
# Backend Sections
# ============================================

class FileConfig(BaseModel):
    """FileStore location"""
    model_config = ConfigDict(frozen=True)

    path: str = Field(default_factory=default_file_path, description="Cache root directory")


class MemoryConfig(BaseModel):
    """MemoryStore sizing"""
    model_config = ConfigDict(frozen=True)

    max_entries: int = Field(DEFAULT_MAX_ENTRIES, ge=1, description="LRU capacity")


class RedisConfig(BaseModel):
    """
    RedisStore connection parameters.

    ``prefix`` of None means the default namespace (``cacheall:``);
    an empty string disables namespacing entirely.
    """
    model_config = ConfigDict(frozen=True)

    host: str = DEFAULT_REDIS_HOST
    port: int = DEFAULT_REDIS_PORT
    password: Optional[str] = None
    database: Optional[int] = Field(None, ge=0)
    prefix: Optional[str] = None
    url: Optional[str] = Field(None, description="redis:// URL, takes precedence over host/port")
    client: Optional[Any] = Field(None, repr=False, description="Existing redis.asyncio client to reuse")

    @property
    def key_prefix(self) -> str:
        return DEFAULT_REDIS_PREFIX if self.prefix is None else self.prefix


# ============================================
# Cache Config
# ============================================

class CacheConfig(BaseModel):
    """Top-level cache configuration"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_enable: bool = Field(True, alias="isEnable", description="False leaves the cache inactive")
    engine: StoreEngine = "memory"
    ttl: int = Field(DEFAULT_TTL_SECONDS, ge=-1, description="Default TTL in seconds, -1 never expires")
    file: FileConfig = Field(default_factory=FileConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)

    @model_validator(mode="before")
    @classmethod
    def _apply_expire_in(cls, data: Any) -> Any:
        # expireIn is the deprecated name of ttl and wins when both are given
        if isinstance(data, dict):
            legacy = data.get("expire_in", data.get("expireIn"))
            if legacy is not None:
                data = {**data, "ttl": legacy}
        return data

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """
        Build a config from environment variables.

        Recognized: CACHE_ENABLE, CACHE_ENGINE, CACHE_TTL, CACHE_FILE_PATH,
        CACHE_MEMORY_MAX_ENTRIES, REDIS_URL, REDIS_HOST, REDIS_PORT,
        REDIS_PASSWORD, REDIS_DATABASE, CACHE_REDIS_PREFIX
        """
        redis_section: Dict[str, Any] = {
            "host": os.getenv("REDIS_HOST", DEFAULT_REDIS_HOST),
            "port": int(os.getenv("REDIS_PORT", str(DEFAULT_REDIS_PORT))),
            "password": os.getenv("REDIS_PASSWORD") or None,
            "url": os.getenv("REDIS_URL") or None,
        }
        database = os.getenv("REDIS_DATABASE")
        if database:
            redis_section["database"] = int(database)
        # An explicitly empty prefix is meaningful, so only a missing variable falls back
        prefix = os.getenv("CACHE_REDIS_PREFIX")
        if prefix is not None:
            redis_section["prefix"] = prefix

        return cls(
            is_enable=os.getenv("CACHE_ENABLE", "true").strip().lower() in ("1", "true", "yes", "on"),
            engine=os.getenv("CACHE_ENGINE", "memory").strip().lower(),
            ttl=int(os.getenv("CACHE_TTL", str(DEFAULT_TTL_SECONDS))),
            file=FileConfig(path=os.getenv("CACHE_FILE_PATH") or default_file_path()),
            memory=MemoryConfig(
                max_entries=int(os.getenv("CACHE_MEMORY_MAX_ENTRIES", str(DEFAULT_MAX_ENTRIES)))
            ),
            redis=RedisConfig(**redis_section),
        )


def load_config(config: Union[CacheConfig, Dict[str, Any], None] = None) -> CacheConfig:
    """Merge a user supplied config over the defaults"""
    if config is None:
        return CacheConfig()
    if isinstance(config, CacheConfig):
        return config
    return CacheConfig.model_validate(config)
