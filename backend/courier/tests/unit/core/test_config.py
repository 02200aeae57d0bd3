"""Tests for environment-driven settings."""

import os

import pytest

from courier.core.config import (
    DeliveryConfig,
    EnvironmentLoader,
    RenderingConfig,
    Settings,
    get_settings,
)
from courier.core.enums import Environment, LogFormat, LogLevel
from courier.core.errors import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove every COURIER_ variable and return a path for a private .env file."""
    for key in list(os.environ):
        if key.startswith("COURIER_"):
            monkeypatch.delenv(key)

    yield tmp_path / ".env"

    # Values merged from a .env file bypass monkeypatch
    for key in list(os.environ):
        if key.startswith("COURIER_"):
            del os.environ[key]


class TestSettings:
    """Test suite for Settings loading."""

    def test_defaults(self, clean_env):
        settings = Settings(env_file=str(clean_env))

        assert settings.app_name == "courier"
        assert settings.environment == Environment.DEVELOPMENT
        assert settings.log_level == LogLevel.INFO
        assert settings.rendering.cache_ttl_seconds == 300.0
        assert settings.delivery.retry_base_delay_seconds == 60.0
        assert settings.delivery.bulk_batch_size == 100

    def test_environment_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("COURIER_ENVIRONMENT", "prod")
        monkeypatch.setenv("COURIER_LOG_LEVEL", "debug")
        monkeypatch.setenv("COURIER_LOG_FORMAT", "PLAIN")
        monkeypatch.setenv("COURIER_RENDER_CACHE_TTL", "0")
        monkeypatch.setenv("COURIER_BULK_BATCH_SIZE", "25")
        monkeypatch.setenv("COURIER_BULK_BATCH_DELAY", "0.5")

        settings = Settings(env_file=str(clean_env))

        assert settings.environment == Environment.PRODUCTION
        assert settings.log_level == LogLevel.DEBUG
        assert settings.log_format == LogFormat.PLAIN
        assert settings.rendering.cache_ttl_seconds == 0.0
        assert settings.delivery.bulk_batch_size == 25
        assert settings.delivery.bulk_delay_between_batches == 0.5

    def test_env_file_is_merged(self, clean_env, monkeypatch):
        clean_env.write_text(
            "# courier settings\n"
            'COURIER_APP_NAME="notifier"\n'
            "COURIER_RETRY_BASE_DELAY=5\n"
            "not a setting\n"
        )
        monkeypatch.setenv("COURIER_RETRY_BASE_DELAY", "7")

        settings = Settings(env_file=str(clean_env))

        assert settings.app_name == "notifier"
        assert settings.delivery.retry_base_delay_seconds == 7.0

    @pytest.mark.parametrize(
        "key,value,message",
        [
            ("COURIER_BULK_BATCH_SIZE", "lots", "must be an integer"),
            ("COURIER_BULK_BATCH_SIZE", "0", "must be >= 1"),
            ("COURIER_RETRY_BASE_DELAY", "soon", "must be a number"),
            ("COURIER_ENVIRONMENT", "moon", "must be one of"),
        ],
    )
    def test_invalid_values(self, clean_env, monkeypatch, key, value, message):
        monkeypatch.setenv(key, value)

        with pytest.raises(ConfigurationError, match=message) as exc_info:
            Settings(env_file=str(clean_env))

        assert exc_info.value.details["config_key"] == key.removeprefix("COURIER_")
        assert exc_info.value.retryable is False

    def test_get_settings_is_cached(self, clean_env):
        get_settings.cache_clear()
        try:
            assert get_settings(str(clean_env)) is get_settings(str(clean_env))
        finally:
            get_settings.cache_clear()


class TestEnvironmentLoader:
    @pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("no", False)])
    def test_boolean(self, clean_env, monkeypatch, raw, expected):
        monkeypatch.setenv("COURIER_FLAG", raw)

        assert EnvironmentLoader(str(clean_env)).get_boolean("FLAG", False) is expected

    def test_upper_bound(self, clean_env, monkeypatch):
        monkeypatch.setenv("COURIER_LIMIT", "11")

        with pytest.raises(ConfigurationError, match="must be <= 10"):
            EnvironmentLoader(str(clean_env)).get_integer("LIMIT", 1, max_value=10)


class TestSectionConfigs:
    def test_rendering_validation(self):
        with pytest.raises(ConfigurationError, match="cannot be negative"):
            RenderingConfig(cache_ttl_seconds=-1)

        with pytest.raises(ConfigurationError, match="at least 1"):
            RenderingConfig(bulk_concurrency=0)

    def test_delivery_validation(self):
        with pytest.raises(ConfigurationError, match="Bulk batch size"):
            DeliveryConfig(bulk_batch_size=0)

    def test_delivery_to_dict(self):
        assert DeliveryConfig(bulk_delay_between_batches=0).to_dict() == {
            "retry_base_delay_seconds": 60.0,
            "bulk_batch_size": 100,
            "bulk_delay_between_batches": 0,
            "bulk_concurrency": 10,
        }
