"""Tests for cache settings and logging configuration."""

import pytest
from loguru import logger

from academia_commons.config.logging_config import LoggingConfig, setup_logging
from academia_commons.config.settings import RedisSettings, get_redis_settings


class TestRedisSettings:

    def test_defaults(self, monkeypatch):
        for name in ("REDIS_HOST", "REDIS_PORT", "REDIS_TTL", "REDIS_KEY_PREFIX", "REDIS_URL"):
            monkeypatch.delenv(name, raising=False)

        settings = RedisSettings(_env_file=None)

        assert settings.redis_host == "localhost"
        assert settings.redis_port == 6379
        assert settings.redis_db == 0
        assert settings.redis_ttl == 3600
        assert settings.cache_api_ttl == 300
        assert settings.cache_query_ttl == 600
        assert settings.get_cache_key_prefix() == "academia_pro:"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("REDIS_HOST", "cache.internal")
        monkeypatch.setenv("REDIS_PORT", "6380")
        monkeypatch.setenv("REDIS_PASSWORD", "s3cret")
        monkeypatch.setenv("REDIS_DB", "3")
        monkeypatch.setenv("REDIS_TTL", "120")
        monkeypatch.setenv("REDIS_KEY_PREFIX", "academia_test:")

        settings = RedisSettings(_env_file=None)

        assert settings.redis_host == "cache.internal"
        assert settings.redis_port == 6380
        assert settings.redis_db == 3
        assert settings.redis_ttl == 120
        assert settings.get_cache_key_prefix() == "academia_test:"
        assert settings.redis_password.get_secret_value() == "s3cret"
        assert "s3cret" not in repr(settings)

    def test_connection_kwargs(self, monkeypatch):
        monkeypatch.setenv("REDIS_PASSWORD", "s3cret")
        monkeypatch.setenv("REDIS_POOL_SIZE", "25")

        kwargs = RedisSettings(_env_file=None).get_connection_kwargs()

        assert kwargs["password"] == "s3cret"
        assert kwargs["max_connections"] == 25
        assert kwargs["decode_responses"] is True

    def test_connection_kwargs_without_password(self, monkeypatch):
        monkeypatch.delenv("REDIS_PASSWORD", raising=False)

        assert RedisSettings(_env_file=None).get_connection_kwargs()["password"] is None

    def test_invalid_port_rejected(self, monkeypatch):
        monkeypatch.setenv("REDIS_PORT", "70000")

        with pytest.raises(ValueError):
            RedisSettings(_env_file=None)

    def test_settings_are_cached(self):
        assert get_redis_settings() is get_redis_settings()


class TestLoggingConfig:

    def test_json_logging_to_file(self, monkeypatch, tmp_path):
        log_file = tmp_path / "cache.log"
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.setenv("LOG_FILE", str(log_file))

        setup_logging()
        logger.info("cache warmed")
        logger.remove()

        assert LoggingConfig.is_configured()
        assert '"cache warmed"' in log_file.read_text()

    def test_unknown_format_falls_back_to_simple(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "fancy")
        monkeypatch.delenv("LOG_FILE", raising=False)

        setup_logging()

        assert LoggingConfig.is_configured()
