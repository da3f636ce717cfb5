"""
JSON serialization rules for cached values.

Values are stored as JSON text. Dates become ISO-8601 strings and are not
turned back into dates on read; pydantic models and dataclasses are stored
as plain dicts. Values of any other type are rejected rather than stored as
their ``str()``, so a cache read never yields a silently different type.
"""
import dataclasses
import json
from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel

from ..core.exceptions import CacheSerializationError


def _structured(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _key_default(value: Any) -> Any:
    """Key derivation only needs a stable form, so unknown scalars use ``str()``."""
    try:
        return _structured(value)
    except TypeError:
        return str(value)


def dumps(value: Any, sort_keys: bool = False, compact: bool = False, for_key: bool = False) -> str:
    """Encode ``value`` as JSON text.

    Args:
        value: Value to encode
        sort_keys: Sort mapping keys recursively
        compact: Use separators without whitespace
        for_key: Encode for key derivation, accepting any type via ``str()``

    Raises:
        CacheSerializationError: if the value cannot be encoded
    """
    try:
        return json.dumps(
            value,
            default=_key_default if for_key else _structured,
            sort_keys=sort_keys,
            separators=(",", ":") if compact else None
        )
    except (TypeError, ValueError) as e:
        raise CacheSerializationError(
            f"Value of type {type(value).__name__} is not JSON serializable",
            details={"reason": str(e)}
        ) from e


def round_trips(value: Any) -> bool:
    """Whether ``value`` reads back from the cache equal to itself.

    Tuples, dataclasses, models, dates and non-string dict keys all come back
    as different types, so memoized results of that shape are not stored.
    """
    try:
        return json.loads(dumps(value)) == value
    except CacheSerializationError:
        return False
