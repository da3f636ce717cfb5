"""Infrastructure-specific exceptions for academia-commons.

Cache errors never reach business callers: they are raised inside the cache
layer and converted to neutral values or uncached execution at its boundary.
"""

from .base import AcademiaCommonsError


class CacheError(AcademiaCommonsError):
    """Base class for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """Raised when the cache backend is not reachable or not configured."""
    pass


class CacheKeyError(CacheError):
    """Raised when a cache key cannot be built."""
    pass


class CacheSerializationError(CacheError):
    """Raised when cache value serialization/deserialization fails."""
    pass
