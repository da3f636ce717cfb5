"""Configuration module for academia-commons."""

from .settings import RedisSettings, get_redis_settings
from .logging_config import setup_logging, LogFormat, LoggingConfig

__all__ = [
    "RedisSettings",
    "get_redis_settings",
    "setup_logging",
    "LogFormat",
    "LoggingConfig",
]
