"""
Cache Errors

Exception hierarchy shared by every store and the facade.

- ConfigurationError: backend cannot be initialized (fatal, not retried)
- SerializationError: value cannot be encoded or decoded
- InvalidKeyError: key cannot be used by the backend
- BackendIOError: a single filesystem / Redis operation failed

"Cache not initialized" is deliberately not an error: the facade answers
with an inert status instead.
"""

from typing import List, Optional


class CacheError(Exception):
    """Base class for all cache errors"""


class ConfigurationError(CacheError):
    """Raised when a backend cannot be initialized"""


class SerializationError(CacheError):
    """Raised when a value cannot be serialized or deserialized"""


class InvalidKeyError(CacheError, ValueError):
    """Raised when a key is unusable (e.g. empty after sanitizing)"""


class BackendIOError(CacheError):
    """
    Raised when a filesystem or Redis operation fails.

    Bulk operations (clear, remove_by_pattern, get_all) report every
    key that failed through ``failed_keys``.
    """

    def __init__(self, message: str, failed_keys: Optional[List[str]] = None):
        super().__init__(message)
        self.failed_keys: List[str] = list(failed_keys or [])
