"""Response caching middleware for FastAPI applications.

Serves repeated GET requests for cache-marked routes from CacheService.
Entries are isolated per user, so install authentication middleware
outside this one (i.e. add it afterwards) to have the user on
``request.state`` by the time the cache key is built.
"""

from typing import Any, AsyncIterator, Dict, List, Optional
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.routing import Match
from loguru import logger

from ...cache.decorators import CacheEndpoint, get_cache_endpoint
from ...cache.keys import api_cache_key
from ...cache.service import CacheOptions, CacheService

HTTP_PREFIX = "http"
CACHE_HEADER = "X-Cache"
ANONYMOUS_USER = "anonymous"
# Headers never replayed from a cached entry
UNCACHED_HEADERS = (b"content-length", b"set-cookie", b"x-cache")


async def _replay(body: bytes) -> AsyncIterator[bytes]:
    yield body


class CacheMiddleware(BaseHTTPMiddleware):
    """Cache successful GET responses of routes marked with ``cache_endpoint``."""

    def __init__(
        self,
        app,
        cache_service: Optional[CacheService] = None,
        cache_all_get: bool = False,
        default_ttl: Optional[int] = None,
        exempt_paths: Optional[List[str]] = None
    ):
        """
        Args:
            app: ASGI application
            cache_service: Cache to use; falls back to ``app.state.cache_service``
            cache_all_get: Cache every GET route, not only marked ones
            default_ttl: TTL for routes whose marker sets none
                (defaults to the service's API TTL)
            exempt_paths: Path prefixes that are never cached
        """
        super().__init__(app)
        self.cache_service = cache_service
        self.cache_all_get = cache_all_get
        self.default_ttl = default_ttl
        self.exempt_paths = exempt_paths or [
            "/health", "/metrics", "/docs", "/redoc", "/openapi.json"
        ]

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method != "GET":
            return await call_next(request)

        if any(request.url.path.startswith(path) for path in self.exempt_paths):
            return await call_next(request)

        marker = self._resolve_marker(request)
        if marker is None and not self.cache_all_get:
            return await call_next(request)

        cache_service = self._get_cache_service(request)
        if cache_service is None:
            return await call_next(request)

        try:
            cache_key = self._build_cache_key(request, marker)
            cached = await cache_service.get(cache_key, HTTP_PREFIX)
        except Exception as e:
            logger.error(f"Response cache lookup failed for {request.url.path}: {e}")
            return await call_next(request)

        if cached is not None:
            logger.debug(f"Serving cached response for {request.url.path}")
            return self._cached_response(cached)

        response = await call_next(request)
        response.headers[CACHE_HEADER] = "MISS"

        if response.status_code != 200:
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])
        ttl = (marker.ttl if marker else None) or self.default_ttl or cache_service.api_ttl
        await self._store(cache_service, cache_key, response, body, ttl)

        # The body was consumed; hand the same response back so repeated headers survive
        response.body_iterator = _replay(body)
        return response

    async def _store(
        self,
        cache_service: CacheService,
        cache_key: str,
        response: Response,
        body: bytes,
        ttl: int
    ) -> None:
        try:
            entry = {
                "status_code": response.status_code,
                "headers": [
                    [name.decode("latin-1"), value.decode("latin-1")]
                    for name, value in response.raw_headers
                    if name.lower() not in UNCACHED_HEADERS
                ],
                "body": body.decode("utf-8"),
            }
        except UnicodeDecodeError:
            logger.debug(f"Skipping response cache for non-text body: {cache_key}")
            return

        await cache_service.set(cache_key, entry, CacheOptions(ttl=ttl, key_prefix=HTTP_PREFIX))

    @staticmethod
    def _cached_response(entry: Dict[str, Any]) -> Response:
        """Rebuild a stored response with its original headers."""
        response = Response(content=entry["body"], status_code=entry["status_code"])
        response.raw_headers.extend(
            (name.encode("latin-1"), value.encode("latin-1")) for name, value in entry.get("headers", [])
        )
        response.headers[CACHE_HEADER] = "HIT"
        return response

    def _get_cache_service(self, request: Request) -> Optional[CacheService]:
        if self.cache_service is not None:
            return self.cache_service
        return getattr(request.app.state, "cache_service", None)

    def _resolve_marker(self, request: Request) -> Optional[CacheEndpoint]:
        """Find the route that will handle the request and read its cache marker."""
        app = request.scope.get("app")
        for route in getattr(app, "routes", []):
            match, _ = route.matches(request.scope)
            if match == Match.FULL:
                return get_cache_endpoint(getattr(route, "endpoint", None))
        return None

    def _build_cache_key(self, request: Request, marker: Optional[CacheEndpoint]) -> str:
        namespace = marker.key if marker else "route"
        query = self._query_params(request)
        return f"{namespace}:{self._get_user_id(request)}:{api_cache_key(request.method, request.url.path, query)}"

    @staticmethod
    def _query_params(request: Request) -> Dict[str, str]:
        params = request.query_params
        return {name: ",".join(params.getlist(name)) for name in params.keys()}

    @staticmethod
    def _get_user_id(request: Request) -> str:
        """User identity for key isolation; ``anonymous`` when unauthenticated."""
        state = request.state

        user_context = getattr(state, "user_context", None)
        if user_context is not None and getattr(user_context, "user_id", None) is not None:
            return str(user_context.user_id)

        user: Any = getattr(state, "user", None)
        if isinstance(user, dict) and user.get("id") is not None:
            return str(user["id"])
        if user is not None and getattr(user, "id", None) is not None:
            return str(user.id)

        user_id = getattr(state, "user_id", None)
        if user_id is not None:
            return str(user_id)

        return ANONYMOUS_USER
