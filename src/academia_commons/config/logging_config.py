"""Centralized logging configuration for academia-commons.

Configures loguru sinks from environment variables so every service that
imports the library logs in the same shape.
"""

import os
import sys
from enum import Enum
from loguru import logger


class LogFormat(str, Enum):
    """Log format options."""
    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"


FORMATS = {
    LogFormat.SIMPLE: "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
    LogFormat.DETAILED: (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    ),
}


class LoggingConfig:
    """Centralized logging configuration manager."""
    
    _configured = False
    
    @classmethod
    def configure(cls) -> None:
        """Configure loguru based on environment variables."""
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_format = os.getenv("LOG_FORMAT", LogFormat.SIMPLE.value).lower()
        log_file = os.getenv("LOG_FILE")
        log_rotation = os.getenv("LOG_ROTATION", "10 MB")
        log_retention = os.getenv("LOG_RETENTION", "7 days")
        
        try:
            fmt = LogFormat(log_format)
        except ValueError:
            fmt = LogFormat.SIMPLE
        
        logger.remove()
        
        if fmt == LogFormat.JSON:
            logger.add(sys.stdout, level=log_level, serialize=True)
        else:
            logger.add(sys.stdout, level=log_level, format=FORMATS[fmt])
        
        if log_file:
            logger.add(
                log_file,
                level=log_level,
                rotation=log_rotation,
                retention=log_retention,
                serialize=fmt == LogFormat.JSON,
            )
        
        cls._configured = True
        logger.debug(f"Logging configured: level={log_level}, format={fmt.value}")
    
    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured


def setup_logging() -> None:
    """Setup logging configuration from environment variables.
    
    This is the main entry point for configuring logging in the application.
    It is called once when academia_commons is imported.
    """
    LoggingConfig.configure()
