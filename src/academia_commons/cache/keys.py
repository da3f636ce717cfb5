"""
Deterministic cache key derivation.

Structurally equal arguments always produce the same key: mappings are
encoded with recursively sorted keys and keyword arguments are ordered by
name.
"""
import dataclasses
import hashlib
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Optional, Sequence

from pydantic import BaseModel

from ..core.exceptions import CacheKeyError
from .serialization import dumps

DEFAULT_PREFIX = "cache"
API_PREFIX = "api"
QUERY_PREFIX = "query"
ARG_SEPARATOR = "|"


def make_key(key: str, prefix: Optional[str] = None) -> str:
    """Build ``<prefix>:<key>``; the prefix defaults to ``cache``."""
    if key is None or key == "":
        raise CacheKeyError("Cache key must be a non-empty string")
    return f"{prefix or DEFAULT_PREFIX}:{key}"


def serialize_argument(arg: Any) -> str:
    """Stable string form of a single call argument."""
    if dataclasses.is_dataclass(arg) and not isinstance(arg, type):
        arg = dataclasses.asdict(arg)
    if isinstance(arg, (Mapping, list, tuple, set, frozenset, BaseModel)):
        return dumps(arg, sort_keys=True, compact=True, for_key=True)
    return str(arg)


def method_cache_key(
    method_name: str,
    args: Sequence[Any] = (),
    kwargs: Optional[Dict[str, Any]] = None
) -> str:
    """Key for a memoized call: ``<method>:{"args":[...],"kwargs":{...}}``.

    The whole call is one JSON document, so separators inside arguments and
    the difference between ``1`` and ``"1"`` survive in the key.
    """
    call = {"args": list(args), "kwargs": dict(kwargs or {})}
    return f"{method_name}:{dumps(call, sort_keys=True, compact=True, for_key=True)}"


def api_cache_key(method: str, url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Key for an API response: ``<method>:<url>:<k>:<v>|<k>:<v>`` sorted by name."""
    params = params or {}
    param_string = ARG_SEPARATOR.join(
        f"{name}:{serialize_argument(params[name])}" for name in sorted(params)
    )
    return f"{method}:{url}:{param_string}"


def query_cache_key(query: str, params: Optional[Iterable[Any]] = None) -> str:
    """Key for a query result: the query text plus an MD5 of its parameters."""
    encoded = dumps(list(params or []), compact=True, for_key=True)
    param_hash = hashlib.md5(encoded.encode("utf-8")).hexdigest()
    return f"{query}:{param_hash}"
