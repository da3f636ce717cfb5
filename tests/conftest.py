"""Pytest configuration and fixtures for academia-commons tests."""

import pytest
import pytest_asyncio
import fakeredis
import fakeredis.aioredis
from unittest.mock import AsyncMock, MagicMock

from academia_commons.config.settings import RedisSettings
from academia_commons.cache.client import RedisService
from academia_commons.cache.service import CacheService


@pytest.fixture
def redis_settings():
    """Settings isolated from the developer's environment files."""
    return RedisSettings(_env_file=None)


@pytest_asyncio.fixture
async def fake_redis():
    """In-memory Redis with its own keyspace."""
    client = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def redis_service(redis_settings, fake_redis):
    """RedisService backed by fakeredis."""
    return RedisService(settings=redis_settings, client=fake_redis)


@pytest.fixture
def cache_service(redis_service):
    """CacheService backed by fakeredis."""
    return CacheService(redis_service)


@pytest.fixture
def failing_redis():
    """Redis client whose every command fails."""
    client = AsyncMock()
    error = ConnectionError("Redis is down")
    for command in (
        "get", "set", "delete", "exists", "hget", "hset", "hgetall", "hdel",
        "lpush", "rpush", "lrange", "lpop", "sadd", "srem", "smembers",
        "sismember", "expire", "ttl", "flushdb", "ping", "info",
    ):
        getattr(client, command).side_effect = error
    client.scan_iter = MagicMock(side_effect=error)
    return client


@pytest.fixture
def failing_redis_service(redis_settings, failing_redis):
    """RedisService whose backend is unreachable."""
    return RedisService(settings=redis_settings, client=failing_redis)


@pytest.fixture
def failing_cache_service(failing_redis_service):
    """CacheService whose backend is unreachable."""
    return CacheService(failing_redis_service)
