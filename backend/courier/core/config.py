"""Application configuration management.

Settings are read from environment variables (``COURIER_`` prefix), after an
optional ``.env`` file has been merged into the process environment. Every
value is type-converted and validated on load; a bad value raises
``ConfigurationError`` naming the offending key.

Architecture:
- EnvironmentLoader: typed environment variable access
- RenderingConfig: template rendering cache and concurrency settings
- DeliveryConfig: retry, timeout and bulk batching settings
- Settings: main configuration object, cached by ``get_settings``
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any

from courier.core.enums import Environment, LogFormat, LogLevel
from courier.core.errors import ConfigurationError

ENV_PREFIX = "COURIER_"

# =====================================================================================
# ENVIRONMENT LOADER
# =====================================================================================


class EnvironmentLoader:
    """
    Environment variable loader with type conversion and validation.

    Values already present in the process environment win over the ones in
    the ``.env`` file.
    """

    def __init__(self, env_file: str = ".env", prefix: str = ENV_PREFIX):
        self.env_file = env_file
        self.prefix = prefix
        self._load_env_file()

    def _load_env_file(self) -> None:
        """Load environment variables from file if it exists."""
        if not os.path.exists(self.env_file):
            return

        try:
            with open(self.env_file, encoding="utf-8") as f:
                for raw_line in f:
                    line = raw_line.strip()

                    if not line or line.startswith("#") or "=" not in line:
                        continue

                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip()

                    if (value.startswith('"') and value.endswith('"')) or (
                        value.startswith("'") and value.endswith("'")
                    ):
                        value = value[1:-1]

                    if key not in os.environ:
                        os.environ[key] = value

        except OSError as e:
            raise ConfigurationError(
                f"Failed to load environment file {self.env_file}: {e}"
            ) from e

    def _raw(self, key: str) -> str | None:
        return os.environ.get(f"{self.prefix}{key}")

    def get_string(self, key: str, default: str | None = None) -> str | None:
        """Get string value from environment."""
        value = self._raw(key)
        return default if value is None else value

    def get_integer(
        self,
        key: str,
        default: int,
        min_value: int | None = None,
        max_value: int | None = None,
    ) -> int:
        """Get integer value from environment."""
        value = self._raw(key)
        if value is None:
            return default
        try:
            result = int(value)
        except ValueError as e:
            raise ConfigurationError(
                f"{self.prefix}{key} must be an integer", config_key=key
            ) from e
        return self._check_range(key, result, min_value, max_value)

    def get_float(
        self,
        key: str,
        default: float,
        min_value: float | None = None,
        max_value: float | None = None,
    ) -> float:
        """Get float value from environment."""
        value = self._raw(key)
        if value is None:
            return default
        try:
            result = float(value)
        except ValueError as e:
            raise ConfigurationError(
                f"{self.prefix}{key} must be a number", config_key=key
            ) from e
        return self._check_range(key, result, min_value, max_value)

    def get_boolean(self, key: str, default: bool) -> bool:
        """Get boolean value from environment."""
        value = self._raw(key)
        if value is None:
            return default
        return value.strip().lower() in ("true", "1", "yes", "on")

    def get_enum(self, key: str, enum_class: type[Enum], default: Enum) -> Any:
        """Get enum value from environment, matching values or names."""
        value = self._raw(key)
        if value is None:
            return default
        for member in enum_class:
            candidates = {member.name.lower()}
            if isinstance(member.value, str):
                candidates.add(member.value.lower())
            if value.strip().lower() in candidates:
                return member
        allowed = ", ".join(member.name.lower() for member in enum_class)
        raise ConfigurationError(
            f"{self.prefix}{key} must be one of: {allowed}", config_key=key
        )

    def _check_range(self, key, value, min_value, max_value):
        if min_value is not None and value < min_value:
            raise ConfigurationError(
                f"{self.prefix}{key} must be >= {min_value}", config_key=key
            )
        if max_value is not None and value > max_value:
            raise ConfigurationError(
                f"{self.prefix}{key} must be <= {max_value}", config_key=key
            )
        return value


# =====================================================================================
# SECTION CONFIGS
# =====================================================================================


@dataclass
class RenderingConfig:
    """Template rendering settings."""

    cache_ttl_seconds: float = field(default=300.0)
    bulk_concurrency: int = field(default=10)
    default_locale: str = field(default="en")
    default_timezone: str = field(default="UTC")

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.cache_ttl_seconds < 0:
            raise ConfigurationError(
                "Render cache TTL cannot be negative", config_key="cache_ttl_seconds"
            )
        if self.bulk_concurrency < 1:
            raise ConfigurationError(
                "Bulk rendering concurrency must be at least 1",
                config_key="bulk_concurrency",
            )


@dataclass
class DeliveryConfig:
    """Delivery retry and bulk batching settings."""

    retry_base_delay_seconds: float = field(default=60.0)
    bulk_batch_size: int = field(default=100)
    bulk_delay_between_batches: float = field(default=1.0)
    bulk_concurrency: int = field(default=10)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.retry_base_delay_seconds < 0:
            raise ConfigurationError(
                "Retry base delay cannot be negative",
                config_key="retry_base_delay_seconds",
            )
        if self.bulk_batch_size < 1:
            raise ConfigurationError(
                "Bulk batch size must be at least 1", config_key="bulk_batch_size"
            )
        if self.bulk_delay_between_batches < 0:
            raise ConfigurationError(
                "Delay between batches cannot be negative",
                config_key="bulk_delay_between_batches",
            )
        if self.bulk_concurrency < 1:
            raise ConfigurationError(
                "Bulk delivery concurrency must be at least 1",
                config_key="bulk_concurrency",
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "retry_base_delay_seconds": self.retry_base_delay_seconds,
            "bulk_batch_size": self.bulk_batch_size,
            "bulk_delay_between_batches": self.bulk_delay_between_batches,
            "bulk_concurrency": self.bulk_concurrency,
        }


# =====================================================================================
# SETTINGS
# =====================================================================================


class Settings:
    """
    Main application settings.

    Usage Example:
        settings = get_settings()
        ttl = settings.rendering.cache_ttl_seconds
        batch_size = settings.delivery.bulk_batch_size
    """

    def __init__(self, env_file: str = ".env"):
        self.env_loader = EnvironmentLoader(env_file)

        self._load_application_config()
        self._load_rendering_config()
        self._load_delivery_config()

    def _load_application_config(self) -> None:
        self.app_name = self.env_loader.get_string("APP_NAME", "courier")
        self.environment = self.env_loader.get_enum(
            "ENVIRONMENT", Environment, Environment.DEVELOPMENT
        )
        self.log_level = self.env_loader.get_enum("LOG_LEVEL", LogLevel, LogLevel.INFO)
        self.log_format = self.env_loader.get_enum(
            "LOG_FORMAT", LogFormat, LogFormat.JSON
        )

    def _load_rendering_config(self) -> None:
        self.rendering = RenderingConfig(
            cache_ttl_seconds=self.env_loader.get_float(
                "RENDER_CACHE_TTL", 300.0, min_value=0
            ),
            bulk_concurrency=self.env_loader.get_integer(
                "RENDER_CONCURRENCY", 10, min_value=1
            ),
            default_locale=self.env_loader.get_string("DEFAULT_LOCALE", "en"),
            default_timezone=self.env_loader.get_string("DEFAULT_TIMEZONE", "UTC"),
        )

    def _load_delivery_config(self) -> None:
        self.delivery = DeliveryConfig(
            retry_base_delay_seconds=self.env_loader.get_float(
                "RETRY_BASE_DELAY", 60.0, min_value=0
            ),
            bulk_batch_size=self.env_loader.get_integer(
                "BULK_BATCH_SIZE", 100, min_value=1
            ),
            bulk_delay_between_batches=self.env_loader.get_float(
                "BULK_BATCH_DELAY", 1.0, min_value=0
            ),
            bulk_concurrency=self.env_loader.get_integer(
                "BULK_CONCURRENCY", 10, min_value=1
            ),
        )


@lru_cache
def get_settings(env_file: str = ".env") -> Settings:
    """Get cached settings instance."""
    return Settings(env_file)
