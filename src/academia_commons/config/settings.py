"""
Cache configuration for academia-commons.

Settings are read from the environment (and an optional ``.env`` file) using
the same variable names as the rest of the Academia Pro platform.
"""
from typing import Optional, Dict, Any
from functools import lru_cache
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Redis connection and cache TTL settings."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Connection
    redis_host: str = Field(default="localhost")
    redis_port: int = Field(default=6379, ge=1, le=65535)
    redis_password: Optional[SecretStr] = Field(default=None)
    redis_db: int = Field(default=0, ge=0)
    redis_url: Optional[str] = Field(default=None)  # overrides host/port/db when set
    redis_pool_size: int = Field(default=10, ge=1)
    redis_socket_timeout: float = Field(default=5.0, gt=0)
    
    # Keys and expiry
    redis_key_prefix: str = Field(default="academia_pro:")
    redis_ttl: int = Field(default=3600, ge=0)  # 1 hour
    cache_api_ttl: int = Field(default=300, ge=0)  # 5 minutes
    cache_query_ttl: int = Field(default=600, ge=0)  # 10 minutes
    
    def get_cache_key_prefix(self) -> str:
        """Get the global physical key prefix."""
        return self.redis_key_prefix
    
    def get_connection_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``redis.asyncio.ConnectionPool``."""
        return {
            "host": self.redis_host,
            "port": self.redis_port,
            "db": self.redis_db,
            "password": self.redis_password.get_secret_value() if self.redis_password else None,
            "max_connections": self.redis_pool_size,
            "socket_timeout": self.redis_socket_timeout,
            "decode_responses": True,
            "health_check_interval": 30,
        }


@lru_cache()
def get_redis_settings() -> RedisSettings:
    """Get cached settings instance built from the environment."""
    return RedisSettings()
