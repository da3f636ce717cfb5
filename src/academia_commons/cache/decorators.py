"""
Cache Decorators

Declarative cache-aside for async service methods:

    class StudentService:
        def __init__(self, cache_service: CacheService):
            self.cache_service = cache_service

        @cached("students", ttl=600)
        async def list_students(self, filters: dict): ...

        @invalidate_cache(lambda student_id, data: f"cache:students:*")
        async def update_student(self, student_id: str, data: dict): ...

The cache service is taken from the ``cache_service`` argument of the
decorator, otherwise from the ``cache_service`` attribute of the instance.
Caching is advisory: any failure in the caching path runs the wrapped call
uncached, while exceptions from the wrapped call itself always propagate.
"""

import inspect
from dataclasses import dataclass
from functools import partial, wraps
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union
from uuid import UUID
from loguru import logger

from .keys import method_cache_key
from .serialization import round_trips
from .service import CacheOptions, CacheService

CacheServiceSource = Union[CacheService, Callable[[], Optional[CacheService]], None]
PatternSource = Union[str, Callable[..., str]]

CONTEXT_KWARG = "cache_context"
ENDPOINT_ATTR = "_cache_endpoint"


@dataclass(frozen=True)
class CacheContext:
    """Explicit key/scope for scoped caching.

    Pass as ``cache_context=CacheContext(scope=user_id)`` to a
    ``user_cached``/``school_cached`` method instead of relying on argument
    inspection. ``key`` overrides the key derived from the call arguments.
    """
    key: Optional[str] = None
    scope: Optional[Any] = None


@dataclass(frozen=True)
class CacheEndpoint:
    """Route-level cache marker read by CacheMiddleware."""
    key: str
    ttl: Optional[int] = None


def _is_method(func: Callable) -> bool:
    params = list(inspect.signature(func).parameters)
    return bool(params) and params[0] in ("self", "cls")


def _split_call(func: Callable, args: Tuple[Any, ...]) -> Tuple[Any, Tuple[Any, ...]]:
    """Separate the bound instance from the real call arguments."""
    if args and _is_method(func):
        return args[0], args[1:]
    return None, args


def _resolve_cache_service(source: CacheServiceSource, instance: Any) -> Optional[CacheService]:
    if source is not None:
        return source if isinstance(source, CacheService) else source()
    return getattr(instance, "cache_service", None)


async def _invoke(func: Callable, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


async def _read_through(
    name: str,
    read: Callable[[], Awaitable[Any]],
    write: Callable[[Any], Awaitable[None]],
    call: Callable[[], Awaitable[Any]]
) -> Any:
    """Cache-aside around ``call`` with cache failures isolated from call failures.

    Results that would not read back as the same value are returned but not
    stored, so a hit never changes the type the caller sees.
    """
    try:
        cached_result = await read()
    except Exception as e:
        logger.error(f"Cache read failed for {name}, executing uncached: {e}")
        return await call()

    if cached_result is not None:
        return cached_result

    result = await call()

    if not round_trips(result):
        logger.debug(f"Result of {name} does not survive JSON encoding, not caching")
        return result

    try:
        await write(result)
    except Exception as e:
        logger.error(f"Cache write failed for {name}: {e}")

    return result


def cached(key_prefix: str, ttl: Optional[int] = None, cache_service: CacheServiceSource = None) -> Callable:
    """
    Memoize an async method under ``<key_prefix>:<method>:<args>``.

    Arguments are serialized with sorted keys, so ``{"a": 1, "b": 2}`` and
    ``{"b": 2, "a": 1}`` share an entry.

    Args:
        key_prefix: Logical namespace for the method's entries
        ttl: TTL in seconds, fixed at decoration time (service default when None)
        cache_service: CacheService, or a zero-argument provider returning one
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            instance, call_args = _split_call(func, args)
            service = _resolve_cache_service(cache_service, instance)
            if service is None:
                logger.warning(f"Cache service not available for {func.__name__}")
                return await _invoke(func, args, kwargs)

            try:
                key = f"{key_prefix}:{method_cache_key(func.__name__, call_args, kwargs)}"
            except Exception as e:
                logger.warning(f"Cannot derive cache key for {func.__name__}: {e}")
                return await _invoke(func, args, kwargs)

            return await _read_through(
                func.__name__,
                lambda: service.get(key),
                lambda result: service.set(key, result, CacheOptions(ttl=ttl)),
                lambda: _invoke(func, args, kwargs),
            )

        return wrapper
    return decorator


def cached_with_key(
    key_generator: Callable[..., str],
    ttl: Optional[int] = None,
    cache_service: CacheServiceSource = None
) -> Callable:
    """Memoize an async method under the key returned by ``key_generator(*args, **kwargs)``."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            instance, call_args = _split_call(func, args)
            service = _resolve_cache_service(cache_service, instance)
            if service is None:
                logger.warning(f"Cache service not available for {func.__name__}")
                return await _invoke(func, args, kwargs)

            try:
                key = key_generator(*call_args, **kwargs)
            except Exception as e:
                logger.warning(f"Cache key generator failed for {func.__name__}: {e}")
                return await _invoke(func, args, kwargs)

            return await _read_through(
                func.__name__,
                lambda: service.get(key),
                lambda result: service.set(key, result, CacheOptions(ttl=ttl)),
                lambda: _invoke(func, args, kwargs),
            )

        return wrapper
    return decorator


def _request_user(instance: Any) -> Any:
    request = getattr(instance, "request", None)
    if request is None:
        return None
    state = getattr(request, "state", None)
    return getattr(state, "user", None) or getattr(request, "user", None)


def _resolve_scope(
    context: Optional[CacheContext],
    call_args: Tuple[Any, ...],
    instance: Any,
    attribute: str,
    request_attribute: str
) -> Optional[str]:
    """Scope ID from the explicit context, first argument, instance, or request user."""
    if context is not None and context.scope is not None:
        return str(context.scope)

    if call_args and isinstance(call_args[0], (str, int, UUID)) and not isinstance(call_args[0], bool):
        return str(call_args[0])

    value = getattr(instance, attribute, None)
    if value is not None and value != "":
        return str(value)

    user = _request_user(instance)
    value = getattr(user, request_attribute, None) if user is not None else None
    if value is None and isinstance(user, dict):
        value = user.get(request_attribute)
    if value is None or value == "":
        return None
    return str(value)


def _scoped_cache(scope_name: str, attribute: str, request_attribute: str, ttl: Optional[int],
                  cache_service: CacheServiceSource) -> Callable:
    def decorator(func: Callable) -> Callable:
        accepts_context = CONTEXT_KWARG in inspect.signature(func).parameters

        @wraps(func)
        async def wrapper(*args, **kwargs):
            context = kwargs.get(CONTEXT_KWARG) if accepts_context else kwargs.pop(CONTEXT_KWARG, None)
            instance, call_args = _split_call(func, args)

            service = _resolve_cache_service(cache_service, instance)
            if service is None:
                logger.warning(f"Cache service not available for {func.__name__}")
                return await _invoke(func, args, kwargs)

            scope_id = _resolve_scope(context, call_args, instance, attribute, request_attribute)
            if scope_id is None:
                return await _invoke(func, args, kwargs)

            key_kwargs = {k: v for k, v in kwargs.items() if k != CONTEXT_KWARG}
            try:
                key = (context.key if context and context.key
                       else method_cache_key(func.__name__, call_args, key_kwargs))
            except Exception as e:
                logger.warning(f"Cannot derive cache key for {func.__name__}: {e}")
                return await _invoke(func, args, kwargs)

            if scope_name == "user":
                read = partial(service.get_user_cache, scope_id, key)
                write = partial(service.set_user_cache, scope_id, key, ttl=ttl)
            else:
                read = partial(service.get_school_cache, scope_id, key)
                write = partial(service.set_school_cache, scope_id, key, ttl=ttl)

            return await _read_through(func.__name__, read, write, lambda: _invoke(func, args, kwargs))

        return wrapper
    return decorator


def user_cached(ttl: Optional[int] = None, cache_service: CacheServiceSource = None) -> Callable:
    """
    Memoize an async method in the calling user's namespace (``user:<id>``).

    The user ID comes from ``cache_context=CacheContext(scope=...)``, else the
    first positional argument, else ``self.user_id``, else
    ``self.request.state.user.id``. Without a user ID the call runs uncached.
    """
    return _scoped_cache("user", "user_id", "id", ttl, cache_service)


def school_cached(ttl: Optional[int] = None, cache_service: CacheServiceSource = None) -> Callable:
    """
    Memoize an async method in a school's namespace (``school:<id>``).

    Scope resolution mirrors ``user_cached`` using ``self.school_id`` and
    the request user's ``school_id``.
    """
    return _scoped_cache("school", "school_id", "school_id", ttl, cache_service)


def invalidate_cache(pattern: PatternSource, cache_service: CacheServiceSource = None) -> Callable:
    """
    Invalidate a key pattern after the wrapped method succeeds.

    Args:
        pattern: Glob pattern, or a callable building it from the call arguments
        cache_service: CacheService, or a zero-argument provider returning one

    Nothing is invalidated when the wrapped method raises.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            result = await _invoke(func, args, kwargs)

            instance, call_args = _split_call(func, args)
            service = _resolve_cache_service(cache_service, instance)
            if service is None:
                return result

            try:
                resolved = pattern(*call_args, **kwargs) if callable(pattern) else pattern
                await service.invalidate_pattern(resolved)
            except Exception as e:
                logger.error(f"Cache invalidation failed after {func.__name__}: {e}")

            return result

        return wrapper
    return decorator


def cache_endpoint(key: str, ttl: Optional[int] = None) -> Callable:
    """
    Mark a route handler as cacheable by CacheMiddleware.

    Only metadata is attached; the handler itself is returned unchanged so
    FastAPI still sees its real signature.

    Usage:
        @router.get("/students")
        @cache_endpoint("students", ttl=120)
        async def list_students(...): ...
    """
    def decorator(func: Callable) -> Callable:
        setattr(func, ENDPOINT_ATTR, CacheEndpoint(key=key, ttl=ttl))
        logger.debug(f"Marked {func.__name__} as cached endpoint (key={key}, ttl={ttl})")
        return func
    return decorator


def get_cache_endpoint(func: Any) -> Optional[CacheEndpoint]:
    """Read the ``cache_endpoint`` marker, looking through wrapper layers."""
    while func is not None:
        marker = getattr(func, ENDPOINT_ATTR, None)
        if marker is not None:
            return marker
        func = getattr(func, "__wrapped__", None)
    return None


def _find_request(instance: Any, call_args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
    candidates = [kwargs.get("request"), *call_args, getattr(instance, "request", None)]
    for candidate in candidates:
        if hasattr(candidate, "method") and hasattr(candidate, "url"):
            return candidate
    return None


async def _request_params(request: Any) -> Dict[str, Any]:
    """Query, path and JSON body parameters identifying an API call."""
    params: Dict[str, Any] = {}
    query_params = getattr(request, "query_params", None)
    if query_params is not None:
        for name in query_params.keys():
            params[name] = ",".join(query_params.getlist(name))
    params.update(getattr(request, "path_params", None) or {})

    if request.method not in ("GET", "HEAD") and hasattr(request, "json"):
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            params.update(body)
    return params


def api_cached(ttl: Optional[int] = None, cache_service: CacheServiceSource = None) -> Callable:
    """
    Memoize an API handler under ``api:<method>:<path>:<params>``.

    The request is taken from a ``request`` keyword, the positional
    arguments, or ``self.request``. Its query string, path parameters and,
    for non-GET methods, JSON body object make up the key. Entries are shared
    by every caller of the same URL and parameters, so handlers whose output
    depends on the caller belong under ``user_cached`` instead.

    Args:
        ttl: TTL in seconds (the service's API TTL when None)
        cache_service: CacheService, or a zero-argument provider returning one
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            instance, call_args = _split_call(func, args)
            service = _resolve_cache_service(cache_service, instance)
            if service is None:
                logger.warning(f"Cache service not available for {func.__name__}")
                return await _invoke(func, args, kwargs)

            request = _find_request(instance, call_args, kwargs)
            if request is None:
                logger.debug(f"No request found for {func.__name__}, executing uncached")
                return await _invoke(func, args, kwargs)

            try:
                method = request.method
                path = request.url.path
                params = await _request_params(request)
            except Exception as e:
                logger.warning(f"Cannot derive API cache key for {func.__name__}: {e}")
                return await _invoke(func, args, kwargs)

            return await _read_through(
                func.__name__,
                partial(service.get_api_response, method, path, params),
                partial(service.cache_api_response, method, path, params, ttl=ttl),
                lambda: _invoke(func, args, kwargs),
            )

        return wrapper
    return decorator


def with_cache(
    fn: Callable[..., Awaitable[Any]],
    key_fn: Optional[Callable[..., str]] = None,
    ttl: Optional[int] = None,
    *,
    cache_service: CacheServiceSource,
    prefix: Optional[str] = None
) -> Callable[..., Awaitable[Any]]:
    """
    Wrap ``fn`` in cache-aside lookups without decorator syntax.

        load_dashboard = with_cache(
            repository.dashboard,
            key_fn=lambda school_id: f"dashboard:{school_id}",
            ttl=60,
            cache_service=cache_service,
        )

    Args:
        fn: Async callable to wrap
        key_fn: Builds the logical key from the call arguments
            (defaults to the function name plus serialized arguments)
        ttl: TTL in seconds
        cache_service: CacheService, or a zero-argument provider returning one
        prefix: Namespace prefix for the key (defaults to ``cache``)
    """
    name = getattr(fn, "__name__", "cached_call")

    @wraps(fn)
    async def cached_call(*args, **kwargs):
        service = _resolve_cache_service(cache_service, None)
        if service is None:
            logger.warning(f"Cache service not available for {name}")
            return await _invoke(fn, args, kwargs)

        try:
            key = key_fn(*args, **kwargs) if key_fn else method_cache_key(name, args, kwargs)
        except Exception as e:
            logger.warning(f"Cannot derive cache key for {name}: {e}")
            return await _invoke(fn, args, kwargs)

        return await _read_through(
            name,
            partial(service.get, key, prefix),
            lambda result: service.set(key, result, CacheOptions(ttl=ttl, key_prefix=prefix)),
            lambda: _invoke(fn, args, kwargs),
        )

    return cached_call
