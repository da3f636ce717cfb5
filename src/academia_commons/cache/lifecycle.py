"""
Cache lifecycle management.

One RedisService/CacheService pair per process, created on startup and
released on shutdown:

    app = FastAPI(lifespan=create_cache_lifespan())

    @router.get("/stats")
    async def stats(cache: CacheService = Depends(get_cache_service)):
        return await cache.get_stats()
"""

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable, Optional
from fastapi import FastAPI, Request
from redis.asyncio import Redis
from loguru import logger

from ..config.settings import RedisSettings
from ..core.exceptions import CacheConnectionError
from .client import RedisService
from .service import CacheService


@asynccontextmanager
async def cache_lifespan(
    settings: Optional[RedisSettings] = None,
    client: Optional[Redis] = None
) -> AsyncIterator[CacheService]:
    """
    Connect the store, yield a CacheService, and disconnect on exit.

    A failed connection does not abort startup; the service runs degraded
    and every cache read is a miss until Redis becomes reachable.
    """
    redis_service = RedisService(settings=settings, client=client)
    await redis_service.connect()
    try:
        yield CacheService(redis_service)
    finally:
        await redis_service.disconnect()


def create_cache_lifespan(
    settings: Optional[RedisSettings] = None
) -> Callable[[FastAPI], AsyncContextManager[None]]:
    """Build a FastAPI lifespan exposing ``app.state.cache_service``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with cache_lifespan(settings) as cache_service:
            app.state.cache_service = cache_service
            app.state.redis_service = cache_service.redis_service
            logger.info("Cache services initialized")
            try:
                yield
            finally:
                app.state.cache_service = None
                app.state.redis_service = None
                logger.info("Cache services shut down")

    return lifespan


def get_cache_service(request: Request) -> CacheService:
    """FastAPI dependency returning the process-wide CacheService."""
    cache_service = getattr(request.app.state, "cache_service", None)
    if cache_service is None:
        raise CacheConnectionError("Cache service is not initialized; is the cache lifespan installed?")
    return cache_service
