"""Exception hierarchy for academia-commons."""

from .base import AcademiaCommonsError, create_error_response
from .infrastructure import (
    CacheError,
    CacheConnectionError,
    CacheKeyError,
    CacheSerializationError,
)

__all__ = [
    "AcademiaCommonsError",
    "create_error_response",
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
]
