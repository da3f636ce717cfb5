"""Infrastructure-level middleware for FastAPI applications."""

from .cache_middleware import CacheMiddleware

__all__ = ["CacheMiddleware"]
