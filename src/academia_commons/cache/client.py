"""
Redis client wrapper for the Academia Pro cache layer.

Every operation is best-effort: failures are logged and converted to a
neutral return value, so an unavailable Redis degrades to cache misses
instead of failing requests.
"""
import json
from typing import Optional, Any, List, Dict
from redis.asyncio import Redis, ConnectionPool
from loguru import logger

from ..config.settings import RedisSettings, get_redis_settings
from ..core.exceptions import CacheConnectionError, CacheSerializationError
from .serialization import dumps


class RedisService:
    """Best-effort Redis store with key prefixing and a default TTL.

    Single-key operations apply the global key prefix. Pattern operations
    (``keys``, ``invalidate_pattern``) work on physical key patterns and
    return or delete physical keys.
    """

    def __init__(
        self,
        settings: Optional[RedisSettings] = None,
        client: Optional[Redis] = None
    ):
        self.settings = settings or get_redis_settings()
        self.key_prefix = self.settings.get_cache_key_prefix()
        self.default_ttl = self.settings.redis_ttl
        self.redis_client: Optional[Redis] = client
        self.pool: Optional[ConnectionPool] = None
        self.is_available = client is not None
        self._owns_client = client is None

    def _create_client(self) -> Redis:
        """Build the connection pool and client. No I/O happens here."""
        if self.settings.redis_url:
            self.pool = ConnectionPool.from_url(
                self.settings.redis_url,
                max_connections=self.settings.redis_pool_size,
                socket_timeout=self.settings.redis_socket_timeout,
                decode_responses=True,
                health_check_interval=30
            )
        else:
            self.pool = ConnectionPool(**self.settings.get_connection_kwargs())
        return Redis(connection_pool=self.pool)

    async def connect(self) -> Redis:
        """Create the client and verify it with a ping.

        The client is kept even when the ping fails so later calls can
        recover once Redis comes back.

        Raises:
            CacheConnectionError: if an injected client was already released
        """
        if self.redis_client is None:
            if not self._owns_client:
                raise CacheConnectionError("Redis client has been released")
            logger.info("Creating Redis connection pool...")
            self.redis_client = self._create_client()

        try:
            await self.redis_client.ping()
            self.is_available = True
            logger.info("Redis connection established successfully")
        except Exception as e:
            self.is_available = False
            logger.warning(
                f"Redis connection failed: {e}. "
                "Running without cache - this will impact performance!"
            )

        return self.redis_client

    async def disconnect(self) -> None:
        """Release the Redis connection.

        Injected clients are owned by the caller and are only dropped, not closed.
        """
        if self.redis_client is not None and self._owns_client:
            await self.redis_client.aclose()
            if self.pool:
                await self.pool.disconnect()
            logger.info("Redis connection closed")
        self.redis_client = None
        self.pool = None
        self.is_available = False

    @property
    def client(self) -> Redis:
        """Raw client for advanced operations."""
        if self.redis_client is None:
            if not self._owns_client:
                raise CacheConnectionError("Redis client has been released")
            self.redis_client = self._create_client()
        return self.redis_client

    def _make_key(self, key: str) -> str:
        """Apply the global key prefix."""
        return f"{self.key_prefix}{key}"

    # Basic operations
    async def get(self, key: str) -> Optional[str]:
        """Get a string value."""
        try:
            return await self.client.get(self._make_key(key))
        except Exception as e:
            logger.error(f"Redis GET error for key {key}: {e}")
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Set a string value with expiry (defaults to ``REDIS_TTL``)."""
        ttl = ttl or self.default_ttl
        try:
            if ttl > 0:
                await self.client.set(self._make_key(key), value, ex=ttl)
            else:
                await self.client.set(self._make_key(key), value)
        except Exception as e:
            logger.error(f"Redis SET error for key {key}: {e}")

    async def delete(self, key: str) -> None:
        """Delete a key."""
        try:
            await self.client.delete(self._make_key(key))
        except Exception as e:
            logger.error(f"Redis DEL error for key {key}: {e}")

    async def exists(self, key: str) -> bool:
        """Check if key exists."""
        try:
            return await self.client.exists(self._make_key(key)) == 1
        except Exception as e:
            logger.error(f"Redis EXISTS error for key {key}: {e}")
            return False

    # Hash operations
    async def hget(self, key: str, field: str) -> Optional[str]:
        try:
            return await self.client.hget(self._make_key(key), field)
        except Exception as e:
            logger.error(f"Redis HGET error for key {key}, field {field}: {e}")
            return None

    async def hset(self, key: str, field: str, value: str) -> None:
        try:
            await self.client.hset(self._make_key(key), field, value)
        except Exception as e:
            logger.error(f"Redis HSET error for key {key}, field {field}: {e}")

    async def hgetall(self, key: str) -> Optional[Dict[str, str]]:
        try:
            return await self.client.hgetall(self._make_key(key))
        except Exception as e:
            logger.error(f"Redis HGETALL error for key {key}: {e}")
            return None

    async def hdel(self, key: str, field: str) -> None:
        try:
            await self.client.hdel(self._make_key(key), field)
        except Exception as e:
            logger.error(f"Redis HDEL error for key {key}, field {field}: {e}")

    # List operations
    async def lpush(self, key: str, *values: str) -> None:
        try:
            await self.client.lpush(self._make_key(key), *values)
        except Exception as e:
            logger.error(f"Redis LPUSH error for key {key}: {e}")

    async def rpush(self, key: str, *values: str) -> None:
        try:
            await self.client.rpush(self._make_key(key), *values)
        except Exception as e:
            logger.error(f"Redis RPUSH error for key {key}: {e}")

    async def lrange(self, key: str, start: int, end: int) -> List[str]:
        try:
            return await self.client.lrange(self._make_key(key), start, end)
        except Exception as e:
            logger.error(f"Redis LRANGE error for key {key}: {e}")
            return []

    async def lpop(self, key: str) -> Optional[str]:
        try:
            return await self.client.lpop(self._make_key(key))
        except Exception as e:
            logger.error(f"Redis LPOP error for key {key}: {e}")
            return None

    # Set operations
    async def sadd(self, key: str, *members: str) -> None:
        try:
            await self.client.sadd(self._make_key(key), *members)
        except Exception as e:
            logger.error(f"Redis SADD error for key {key}: {e}")

    async def srem(self, key: str, *members: str) -> None:
        try:
            await self.client.srem(self._make_key(key), *members)
        except Exception as e:
            logger.error(f"Redis SREM error for key {key}: {e}")

    async def smembers(self, key: str) -> List[str]:
        try:
            return list(await self.client.smembers(self._make_key(key)))
        except Exception as e:
            logger.error(f"Redis SMEMBERS error for key {key}: {e}")
            return []

    async def sismember(self, key: str, member: str) -> bool:
        try:
            return bool(await self.client.sismember(self._make_key(key), member))
        except Exception as e:
            logger.error(f"Redis SISMEMBER error for key {key}, member {member}: {e}")
            return False

    # Utility methods
    async def expire(self, key: str, seconds: int) -> None:
        """Set or overwrite the TTL of an existing key."""
        try:
            await self.client.expire(self._make_key(key), seconds)
        except Exception as e:
            logger.error(f"Redis EXPIRE error for key {key}: {e}")

    async def ttl(self, key: str) -> int:
        """Remaining TTL: -1 when the key has no expiry, -2 when it is missing."""
        try:
            return await self.client.ttl(self._make_key(key))
        except Exception as e:
            logger.error(f"Redis TTL error for key {key}: {e}")
            return -1

    async def keys(self, pattern: str) -> List[str]:
        """Physical keys matching a glob pattern.

        Walks the whole keyspace with SCAN. Meant for invalidation and
        maintenance, not for request hot paths.
        """
        try:
            return [key async for key in self.client.scan_iter(match=pattern)]
        except Exception as e:
            logger.error(f"Redis KEYS error for pattern {pattern}: {e}")
            return []

    async def flushdb(self) -> None:
        """Delete every key in the current database."""
        try:
            await self.client.flushdb()
            logger.warning("Redis database flushed")
        except Exception as e:
            logger.error(f"Redis FLUSHDB error: {e}")

    # JSON operations
    async def set_json(self, key: str, data: Any, ttl: Optional[int] = None) -> None:
        """Serialize ``data`` to JSON and store it."""
        try:
            json_string = dumps(data)
        except CacheSerializationError as e:
            logger.error(f"Redis set_json error for key {key}: {e}")
            return
        await self.set(key, json_string, ttl)

    async def get_json(self, key: str) -> Optional[Any]:
        """Load and decode a JSON value. Malformed JSON reads as a miss."""
        json_string = await self.get(key)
        if not json_string:
            return None
        try:
            return json.loads(json_string)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Redis get_json error for key {key}: {e}")
            return None

    # Cache management
    async def invalidate_pattern(self, pattern: str) -> None:
        """Delete every physical key matching ``pattern`` in one batch."""
        try:
            keys = await self.keys(pattern)
            if keys:
                await self.client.delete(*keys)
                logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
        except Exception as e:
            logger.error(f"Redis invalidatePattern error for pattern {pattern}: {e}")

    # Health and telemetry
    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.error(f"Redis ping error: {e}")
            return False

    async def info(self, section: Optional[str] = None) -> Dict[str, Any]:
        """Server INFO output, optionally restricted to one section."""
        try:
            if section:
                return await self.client.info(section)
            return await self.client.info()
        except Exception as e:
            logger.error(f"Redis INFO error: {e}")
            return {}
