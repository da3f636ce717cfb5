"""HTTP infrastructure for FastAPI applications."""

from .middleware import CacheMiddleware

__all__ = ["CacheMiddleware"]
