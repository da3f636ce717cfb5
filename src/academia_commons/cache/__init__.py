"""Redis-backed caching for Academia Pro services.

RedisService is the best-effort key-value store, CacheService adds the
cache-aside policy on top, and the decorators apply it declaratively.
"""

from .client import RedisService
from .service import CacheOptions, CacheService
from .keys import (
    make_key,
    method_cache_key,
    api_cache_key,
    query_cache_key,
)
from .decorators import (
    CacheContext,
    CacheEndpoint,
    cached,
    cached_with_key,
    user_cached,
    school_cached,
    invalidate_cache,
    cache_endpoint,
    get_cache_endpoint,
    api_cached,
    with_cache,
)
from .lifecycle import cache_lifespan, create_cache_lifespan, get_cache_service

__all__ = [
    "RedisService",
    "CacheService",
    "CacheOptions",
    "make_key",
    "method_cache_key",
    "api_cache_key",
    "query_cache_key",
    "CacheContext",
    "CacheEndpoint",
    "cached",
    "cached_with_key",
    "user_cached",
    "school_cached",
    "invalidate_cache",
    "cache_endpoint",
    "get_cache_endpoint",
    "api_cached",
    "with_cache",
    "cache_lifespan",
    "create_cache_lifespan",
    "get_cache_service",
]
