"""Academia-Commons - shared caching library for the Academia Pro platform.

Provides the Redis key-value store, the cache-aside CacheService, caching
decorators, and HTTP response caching middleware.
"""

# Initialize logging configuration on import
from .config.logging_config import setup_logging
setup_logging()

from .__version__ import __version__

from .config import RedisSettings, get_redis_settings

from .core.exceptions import (
    AcademiaCommonsError,
    CacheError,
    CacheConnectionError,
    CacheKeyError,
    CacheSerializationError,
    create_error_response,
)

from .cache import (
    RedisService,
    CacheService,
    CacheOptions,
    CacheContext,
    cached,
    cached_with_key,
    user_cached,
    school_cached,
    invalidate_cache,
    cache_endpoint,
    api_cached,
    with_cache,
    cache_lifespan,
    create_cache_lifespan,
    get_cache_service,
)

from .infrastructure import CacheMiddleware

__all__ = [
    "__version__",
    "setup_logging",
    "RedisSettings",
    "get_redis_settings",
    "AcademiaCommonsError",
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
    "create_error_response",
    "RedisService",
    "CacheService",
    "CacheOptions",
    "CacheContext",
    "cached",
    "cached_with_key",
    "user_cached",
    "school_cached",
    "invalidate_cache",
    "cache_endpoint",
    "api_cached",
    "with_cache",
    "cache_lifespan",
    "create_cache_lifespan",
    "get_cache_service",
    "CacheMiddleware",
]
