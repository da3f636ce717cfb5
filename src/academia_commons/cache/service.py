"""
Cache Service

High-level caching for Academia Pro services: namespaced keys, TTL policy,
cache-aside loading, pattern invalidation, and user/school scoped caches on
top of RedisService.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, TypeVar, Union
from loguru import logger

from ..core.exceptions import CacheError
from .client import RedisService
from .keys import (
    API_PREFIX,
    QUERY_PREFIX,
    api_cache_key,
    make_key,
    query_cache_key,
)

T = TypeVar("T")


@dataclass
class CacheOptions:
    """Per-operation cache options."""
    ttl: Optional[int] = None
    key_prefix: Optional[str] = None


async def _call_fallback(fallback: Callable[[], Union[T, Awaitable[T]]]) -> T:
    result = fallback()
    if inspect.isawaitable(result):
        result = await result
    return result


class CacheService:
    """
    Cache-aside policy layer over RedisService.

    Every logical key is stored as ``<prefix>:<key>`` (prefix defaults to
    ``cache``); user and school namespaces are just different prefixes.
    The store's global key prefix is added underneath by RedisService.

    Cache failures never propagate: reads degrade to misses and writes to
    no-ops. Exceptions raised by caller-supplied fallbacks do propagate.
    """

    def __init__(
        self,
        redis_service: RedisService,
        default_ttl: Optional[int] = None,
        api_ttl: Optional[int] = None,
        query_ttl: Optional[int] = None
    ):
        """
        Initialize cache service.

        Args:
            redis_service: Underlying key-value store
            default_ttl: TTL used when no option overrides it (defaults to REDIS_TTL)
            api_ttl: Default TTL for API responses (defaults to CACHE_API_TTL)
            query_ttl: Default TTL for query results (defaults to CACHE_QUERY_TTL)
        """
        settings = redis_service.settings
        self.redis_service = redis_service
        self.default_ttl = default_ttl or settings.redis_ttl
        self.api_ttl = api_ttl or settings.cache_api_ttl
        self.query_ttl = query_ttl or settings.cache_query_ttl
        self.key_prefix = redis_service.key_prefix

    def generate_key(self, key: str, prefix: Optional[str] = None) -> str:
        """Build the namespaced key ``<prefix>:<key>``."""
        return make_key(key, prefix)

    async def set(self, key: str, data: Any, options: Optional[CacheOptions] = None) -> None:
        """
        Store a value.

        Args:
            key: Logical cache key
            data: JSON-serializable value
            options: TTL and key prefix overrides
        """
        options = options or CacheOptions()
        try:
            cache_key = self.generate_key(key, options.key_prefix)
            ttl = options.ttl or self.default_ttl
            await self.redis_service.set_json(cache_key, data, ttl)
            logger.debug(f"Cache set: {cache_key} (TTL: {ttl}s)")
        except Exception as e:
            logger.error(f"Cache set error for key {key}: {e}")

    async def get(self, key: str, prefix: Optional[str] = None) -> Optional[Any]:
        """
        Read a value.

        Args:
            key: Logical cache key
            prefix: Namespace prefix (defaults to ``cache``)

        Returns:
            Decoded value, or None on miss or failure
        """
        try:
            cache_key = self.generate_key(key, prefix)
            data = await self.redis_service.get_json(cache_key)
            if data is not None:
                logger.debug(f"Cache hit: {cache_key}")
            else:
                logger.debug(f"Cache miss: {cache_key}")
            return data
        except Exception as e:
            logger.error(f"Cache get error for key {key}: {e}")
            return None

    async def delete(self, key: str, prefix: Optional[str] = None) -> None:
        try:
            cache_key = self.generate_key(key, prefix)
            await self.redis_service.delete(cache_key)
            logger.debug(f"Cache deleted: {cache_key}")
        except Exception as e:
            logger.error(f"Cache delete error for key {key}: {e}")

    async def exists(self, key: str, prefix: Optional[str] = None) -> bool:
        try:
            return await self.redis_service.exists(self.generate_key(key, prefix))
        except Exception as e:
            logger.error(f"Cache exists error for key {key}: {e}")
            return False

    async def get_ttl(self, key: str, prefix: Optional[str] = None) -> int:
        """Remaining TTL in seconds (-1 no expiry, -2 missing)."""
        try:
            return await self.redis_service.ttl(self.generate_key(key, prefix))
        except Exception as e:
            logger.error(f"Cache TTL error for key {key}: {e}")
            return -1

    async def set_ttl(self, key: str, ttl: int, prefix: Optional[str] = None) -> None:
        try:
            cache_key = self.generate_key(key, prefix)
            await self.redis_service.expire(cache_key, ttl)
            logger.debug(f"Cache TTL set: {cache_key} ({ttl}s)")
        except Exception as e:
            logger.error(f"Cache set TTL error for key {key}: {e}")

    async def get_or_set(
        self,
        key: str,
        fallback: Callable[[], Union[T, Awaitable[T]]],
        options: Optional[CacheOptions] = None
    ) -> T:
        """
        Return the cached value, or compute it with ``fallback`` and cache it.

        On a hit the fallback is not called. Concurrent misses for the same
        key each call their own fallback and the last write wins; callers
        needing single-flight loading must lock around this call.

        Args:
            key: Logical cache key
            fallback: Zero-argument callable (sync or async) producing the value
            options: TTL and key prefix overrides

        Returns:
            Cached or freshly computed value

        Raises:
            Whatever ``fallback`` raises, unchanged
        """
        options = options or CacheOptions()

        try:
            cached = await self.get(key, options.key_prefix)
        except Exception as e:
            logger.error(f"Cache getOrSet error for key {key}: {e}")
            return await _call_fallback(fallback)

        if cached is not None:
            return cached

        logger.debug(f"Executing fallback function for key: {key}")
        data = await _call_fallback(fallback)

        try:
            await self.set(key, data, options)
        except Exception as e:
            logger.error(f"Cache getOrSet write error for key {key}: {e}")

        return data

    async def invalidate_pattern(self, pattern: str) -> None:
        """Delete every key matching a logical glob pattern, e.g. ``user:42:*``."""
        try:
            await self.redis_service.invalidate_pattern(f"{self.key_prefix}{pattern}")
        except Exception as e:
            logger.error(f"Cache invalidate pattern error for {pattern}: {e}")

    async def clear_all(self) -> None:
        """Flush the whole Redis database. Operator use only."""
        try:
            await self.redis_service.flushdb()
            logger.warning("All cache cleared")
        except Exception as e:
            logger.error(f"Cache clear all error: {e}")

    async def get_stats(self) -> Dict[str, Any]:
        """
        Cache statistics.

        Returns:
            ``total_keys`` in the database, ``memory_usage`` as reported by
            ``INFO memory`` (``"N/A"`` when unavailable) and ``connected``
        """
        try:
            keys = await self.redis_service.keys("*")
            connected = await self.redis_service.ping()
            memory = await self.redis_service.info("memory")

            return {
                "total_keys": len(keys),
                "memory_usage": memory.get("used_memory_human", "N/A"),
                "connected": connected,
            }
        except Exception as e:
            logger.error(f"Cache stats error: {e}")
            return {
                "total_keys": 0,
                "memory_usage": "N/A",
                "connected": False,
            }

    async def health_check(self) -> bool:
        return await self.redis_service.ping()

    # User-specific cache methods
    async def get_user_cache(self, user_id: Any, key: str) -> Optional[Any]:
        return await self.get(key, f"user:{user_id}")

    async def set_user_cache(self, user_id: Any, key: str, data: Any, ttl: Optional[int] = None) -> None:
        await self.set(key, data, CacheOptions(ttl=ttl, key_prefix=f"user:{user_id}"))

    async def clear_user_cache(self, user_id: Any) -> None:
        await self.invalidate_pattern(f"user:{user_id}:*")

    # School-specific cache methods
    async def get_school_cache(self, school_id: Any, key: str) -> Optional[Any]:
        return await self.get(key, f"school:{school_id}")

    async def set_school_cache(self, school_id: Any, key: str, data: Any, ttl: Optional[int] = None) -> None:
        await self.set(key, data, CacheOptions(ttl=ttl, key_prefix=f"school:{school_id}"))

    async def clear_school_cache(self, school_id: Any) -> None:
        await self.invalidate_pattern(f"school:{school_id}:*")

    # API response caching
    async def cache_api_response(
        self,
        method: str,
        url: str,
        params: Mapping[str, Any],
        data: Any,
        ttl: Optional[int] = None
    ) -> None:
        """Cache an API response; TTL defaults to the (short) API TTL."""
        try:
            key = api_cache_key(method, url, params)
        except CacheError as e:
            logger.error(f"Cache API key error for {method} {url}: {e}")
            return
        await self.set(key, data, CacheOptions(ttl=ttl or self.api_ttl, key_prefix=API_PREFIX))

    async def get_api_response(self, method: str, url: str, params: Mapping[str, Any]) -> Optional[Any]:
        try:
            key = api_cache_key(method, url, params)
        except CacheError as e:
            logger.error(f"Cache API key error for {method} {url}: {e}")
            return None
        return await self.get(key, API_PREFIX)

    # Database query result caching
    async def cache_query_result(
        self,
        query: str,
        params: Iterable[Any],
        result: Any,
        ttl: Optional[int] = None
    ) -> None:
        """Cache a query result keyed by query text and a hash of its parameters."""
        try:
            key = query_cache_key(query, params)
        except CacheError as e:
            logger.error(f"Cache query key error for {query}: {e}")
            return
        await self.set(key, result, CacheOptions(ttl=ttl or self.query_ttl, key_prefix=QUERY_PREFIX))

    async def get_query_result(self, query: str, params: Iterable[Any]) -> Optional[Any]:
        try:
            key = query_cache_key(query, params)
        except CacheError as e:
            logger.error(f"Cache query key error for {query}: {e}")
            return None
        return await self.get(key, QUERY_PREFIX)
