"""
File Store Implementation

File-based cache with one JSON document per key:

cache_dir/
├── foo.json        {"value": "\"bar\"", "expire": "1700000000000"}
├── user_1a2b.json
└── ...

An in-memory index of known keys is built from the directory listing at
init time and kept in step with every operation. The index is
authoritative: a document present on disk but missing from the index
(written outside this store's lifecycle) is never served.

Documents are written to a temp file (".<hex>.tmp") and renamed into place,
so a reader never sees a partially written document.
"""

import asyncio
import json
import logging
import os
import re
import shutil
import uuid
from typing import Any, Dict, List, Optional, Set

import aiofiles
import aiofiles.os

from ..errors import BackendIOError, ConfigurationError, InvalidKeyError, SerializationError
from .base import (
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

FILE_SUFFIX = ".json"
TEMP_SUFFIX = ".tmp"

# Leaves room for the suffix inside the usual 255 byte name limit
MAX_KEY_BYTES = 255 - len(FILE_SUFFIX)

_ILLEGAL_CHARS = re.compile(r'[/?<>\\:*|"]')
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x80-\x9f]")
_WINDOWS_RESERVED = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE)
_WINDOWS_TRAILING = re.compile(r"[. ]+$")


def sanitize_key(key: str) -> str:
    """
    Make a cache key safe to use as a file name.

    Strips path separators, reserved and control characters, truncates,
    then drops trailing dots/spaces ("." and ".." included) and Windows
    device names. Sanitizing a sanitized key returns it unchanged.

    Raises:
        InvalidKeyError: nothing usable is left
    """
    name = _ILLEGAL_CHARS.sub("", str(key))
    name = _CONTROL_CHARS.sub("", name)
    name = name.encode("utf-8")[:MAX_KEY_BYTES].decode("utf-8", errors="ignore")
    # Also removes "." and ".."
    name = _WINDOWS_TRAILING.sub("", name)
    name = _WINDOWS_RESERVED.sub("", name)

    if not name:
        raise InvalidKeyError(f"Cache key {key!r} is empty after sanitizing")
    return name


def _is_clean_key(name: str) -> bool:
    """True when a file name could have been produced by sanitize_key"""
    try:
        return sanitize_key(name) == name
    except InvalidKeyError:
        return False


class FileStore(BaseStore):
    """
    Stores each entry as <root>/<sanitized-key>.json

    Usage:
        store = FileStore("./storage/cache")
        await store.init()
        await store.set("foo", {"bar": "baz"}, 60)
    """

    engine = "file"

    def __init__(self, path: str, clock: Optional[Clock] = None):
        super().__init__(clock)
        self.path = os.path.abspath(path)
        self._index: Set[str] = set()

    @property
    def keys(self) -> List[str]:
        """Indexed keys (sanitized form)"""
        return sorted(self._index)

    def _file_path(self, key: str) -> str:
        return os.path.join(self.path, key + FILE_SUFFIX)

    def _temp_path(self) -> str:
        # Independent of the key so long keys still fit the name limit
        return os.path.join(self.path, f".{uuid.uuid4().hex}{TEMP_SUFFIX}")

    # ============================================
    # Lifecycle
    # ============================================

    async def init(self) -> None:
        """Create the root directory and index the documents already in it"""
        try:
            await aiofiles.os.makedirs(self.path, exist_ok=True)
            names = await aiofiles.os.listdir(self.path)
        except OSError as e:
            raise ConfigurationError(f"Cache directory {self.path} is not usable: {e}") from e

        self._index = {
            name[: -len(FILE_SUFFIX)]
            for name in names
            if name.endswith(FILE_SUFFIX) and _is_clean_key(name[: -len(FILE_SUFFIX)])
        }
        logger.info(f"[FileStore] Cache directory: {self.path} ({len(self._index)} indexed entries)")

    # ============================================
    # Single Key Operations
    # ============================================

    async def get(self, key: str) -> Any:
        """
        Get cached value

        Returns:
            Decoded value, or None if not indexed, missing on disk or expired

        Raises:
            SerializationError: document or value is not valid JSON
            BackendIOError: document could not be read
        """
        key = sanitize_key(key)
        if key not in self._index:
            return None

        try:
            async with aiofiles.open(self._file_path(key), "r", encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            logger.warning(f"[FileStore] Cache file missing: {key}")
            self._index.discard(key)
            return None
        except OSError as e:
            raise BackendIOError(f"Failed to read cache file for {key!r}: {e}", failed_keys=[key]) from e

        document = deserialize(raw)
        if not isinstance(document, dict) or "value" not in document or "expire" not in document:
            raise SerializationError(f"Cache file for {key!r} is not a cache document")

        expire = document["expire"]
        if isinstance(expire, str):
            expire = deserialize(expire)
        if isinstance(expire, bool) or not isinstance(expire, (int, float)):
            raise SerializationError(f"Cache file for {key!r} has an invalid expire value: {expire!r}")

        if expire != NEVER_EXPIRE and self.now_ms() >= expire:
            logger.debug(f"[FileStore] Cache expired for: {key}")
            await self.remove(key)
            return None

        return deserialize(document["value"])

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Write a cache document

        Raises:
            SerializationError: value is None or not JSON-serializable
            BackendIOError: document could not be written
        """
        if value is None:
            raise SerializationError("value not set")

        key = sanitize_key(key)
        document = {
            "value": serialize(value),
            "expire": json.dumps(self.expire_at(ttl)),
        }

        # Readers only ever see a complete document: write aside, then rename over
        temp_path = self._temp_path()
        try:
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(document, indent=4))
            await aiofiles.os.replace(temp_path, self._file_path(key))
        except OSError as e:
            await self._discard_temp(temp_path)
            raise BackendIOError(f"Failed to write cache file for {key!r}: {e}", failed_keys=[key]) from e

        self._index.add(key)
        logger.debug(f"[FileStore] Cached: {key}")

    async def remove(self, key: str) -> None:
        key = sanitize_key(key)
        await self._delete_file(key)
        self._index.discard(key)

    async def _delete_file(self, key: str) -> None:
        try:
            await aiofiles.os.remove(self._file_path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise BackendIOError(f"Failed to remove cache file for {key!r}: {e}", failed_keys=[key]) from e

    async def _discard_temp(self, temp_path: str) -> None:
        """Drop a half-written temp file; the write error is what gets reported"""
        try:
            await aiofiles.os.remove(temp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[FileStore] Could not remove temp file {temp_path}: {e}")

    # ============================================
    # Bulk Operations
    # ============================================

    async def clear(self) -> None:
        """Delete and recreate the root directory"""
        try:
            await asyncio.to_thread(shutil.rmtree, self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise BackendIOError(f"Failed to clear cache directory {self.path}: {e}") from e

        try:
            await aiofiles.os.makedirs(self.path, exist_ok=True)
        except OSError as e:
            raise BackendIOError(f"Failed to recreate cache directory {self.path}: {e}") from e

        count = len(self._index)
        self._index = set()
        logger.info(f"[FileStore] Cleared all {count} entries")

    async def get_all(self) -> List[Dict[str, Any]]:
        """Read every indexed key concurrently; expired entries are left out"""
        keys = sorted(self._index)
        values = await gather_per_key(keys, self.get, "get_all")
        return [
            {"key": key, "value": value}
            for key, value in zip(keys, values)
            if value is not None
        ]

    async def remove_by_pattern(self, pattern: KeyPattern) -> None:
        """
        Delete every document whose key matches the pattern.

        Works from the directory listing rather than the index, so
        documents unknown to the index are removed too.
        """
        try:
            names = await aiofiles.os.listdir(self.path)
        except OSError as e:
            raise BackendIOError(f"Failed to list cache directory {self.path}: {e}") from e

        matched = [
            name[: -len(FILE_SUFFIX)]
            for name in names
            if name.endswith(FILE_SUFFIX) and matches_pattern(pattern, name[: -len(FILE_SUFFIX)])
        ]

        async def _clear_key(key: str) -> None:
            await self._delete_file(key)
            self._index.discard(key)

        await gather_per_key(matched, _clear_key, "remove_by_pattern")
        logger.info(f"[FileStore] Removed {len(matched)} entries matching {pattern!r}")
