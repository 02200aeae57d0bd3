# ruff: noqa: A005
"""Structured logging configuration.

Provides the structlog setup used by every courier module: a validated
``LogConfig``, a processor that masks sensitive fields, a thin
``StructuredLogger`` wrapper that keeps per-logger counters, and the
``get_logger`` / ``log_context`` helpers.

Note: This module name intentionally shadows the standard library 'logging'
module inside the ``courier.core`` package.
"""

import logging
import re
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars

from courier.core.enums import Environment, LogFormat, LogLevel
from courier.core.errors import ConfigurationError

# =====================================================================================
# CONFIGURATION
# =====================================================================================


@dataclass
class LogConfig:
    """
    Logging configuration with validation and environment defaults.

    Usage Example:
        config = LogConfig(level=LogLevel.DEBUG, environment=Environment.TESTING)
        configure_logging(config)
    """

    level: LogLevel = field(default=LogLevel.INFO)
    format: LogFormat = field(default=LogFormat.JSON)
    environment: Environment = field(default=Environment.DEVELOPMENT)

    enable_timestamps: bool = field(default=True)
    enable_caller_info: bool = field(default=False)
    enable_sensitive_data_filtering: bool = field(default=True)
    max_message_length: int = field(default=10_000)

    def __post_init__(self):
        self.validate()
        self.apply_environment_defaults()

    def validate(self) -> None:
        """
        Validate logging configuration parameters.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.max_message_length < 1000:
            raise ConfigurationError(
                "Maximum message length must be at least 1000 characters",
                config_key="max_message_length",
            )

    def apply_environment_defaults(self) -> None:
        """Apply environment-specific defaults."""
        self.format = self.environment.log_format
        if self.environment.logs_callsites:
            self.enable_caller_info = True
        elif self.environment == Environment.PRODUCTION:
            self.enable_caller_info = False
            self.enable_sensitive_data_filtering = True

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "level": self.level.value,
            "format": self.format.value,
            "environment": self.environment.value,
            "enable_timestamps": self.enable_timestamps,
            "enable_caller_info": self.enable_caller_info,
            "enable_sensitive_data_filtering": self.enable_sensitive_data_filtering,
            "max_message_length": self.max_message_length,
        }


# =====================================================================================
# PROCESSORS
# =====================================================================================


class SensitiveDataFilter:
    """
    structlog processor that masks sensitive values.

    Field names such as ``password`` or ``token`` are masked outright. Channel
    addresses (email, phone, webhook url) are masked so delivery logs never
    carry a recipient's contact details.
    """

    sensitive_patterns = [
        re.compile(r"password", re.IGNORECASE),
        re.compile(r"token", re.IGNORECASE),
        re.compile(r"secret", re.IGNORECASE),
        re.compile(r"credential", re.IGNORECASE),
        re.compile(r"auth", re.IGNORECASE),
        re.compile(r"address", re.IGNORECASE),
    ]

    def __init__(self, mask_char: str = "*"):
        self.mask_char = mask_char

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        return self.filter(event_dict)

    def filter(self, record: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of the record with sensitive values masked."""
        filtered = {}
        for key, value in record.items():
            if self._is_sensitive_field(key):
                filtered[key] = self._mask_value(value)
            elif isinstance(value, dict):
                filtered[key] = self.filter(value)
            else:
                filtered[key] = value
        return filtered

    def _is_sensitive_field(self, field_name: str) -> bool:
        return any(pattern.search(field_name) for pattern in self.sensitive_patterns)

    def _mask_value(self, value: Any) -> Any:
        if value is None:
            return None
        return f"{self.mask_char * 3}[MASKED]"


class MessageLengthFilter:
    """structlog processor truncating overly long event messages."""

    def __init__(self, max_length: int):
        self.max_length = max_length

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event = event_dict.get("event")
        if isinstance(event, str) and len(event) > self.max_length:
            event_dict["event"] = event[: self.max_length] + "...[truncated]"
        return event_dict


# =====================================================================================
# LOGGER
# =====================================================================================


class StructuredLogger:
    """
    Structured logger wrapping a structlog bound logger.

    Accepts keyword context on every call:

        logger.info("Notification delivered", notification_id=nid, channel="sms")
    """

    def __init__(self, name: str, config: LogConfig):
        self.name = name
        self.config = config
        self._logger = structlog.get_logger(name)
        self._log_count = 0
        self._error_count = 0
        self._last_log_time: datetime | None = None

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.ERROR, message, **kwargs)
        self._error_count += 1

    def critical(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.CRITICAL, message, **kwargs)
        self._error_count += 1

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        kwargs["exc_info"] = True
        self.error(message, **kwargs)

    def bind(self, **kwargs: Any) -> structlog.stdlib.BoundLogger:
        """Return a structlog logger with context bound."""
        return self._logger.bind(**kwargs)

    def _log(self, level: LogLevel, message: str, **kwargs: Any) -> None:
        if not self.config.level.allows(level):
            return

        getattr(self._logger, level.value.lower())(message, **kwargs)
        self._log_count += 1
        self._last_log_time = datetime.now(UTC)

    def get_stats(self) -> dict[str, Any]:
        """Get logger statistics."""
        return {
            "logger_name": self.name,
            "log_count": self._log_count,
            "error_count": self._error_count,
            "last_log_time": self._last_log_time.isoformat()
            if self._last_log_time
            else None,
        }


class LoggerFactory:
    """Creates and caches structured loggers for one configuration."""

    def __init__(self, config: LogConfig):
        self.config = config
        self._loggers: dict[str, StructuredLogger] = {}
        self._configured = False

    def configure_logging(self) -> None:
        """Configure structlog and the standard logging module."""
        if self._configured:
            return

        processors: list[Any] = [
            merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
        ]

        if self.config.enable_timestamps:
            processors.append(structlog.processors.TimeStamper(fmt="iso"))

        if self.config.enable_caller_info:
            processors.append(
                structlog.processors.CallsiteParameterAdder(
                    parameters=[
                        structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO,
                        structlog.processors.CallsiteParameter.FUNC_NAME,
                    ]
                )
            )

        if self.config.enable_sensitive_data_filtering:
            processors.append(SensitiveDataFilter())

        processors.extend(
            [
                MessageLengthFilter(self.config.max_message_length),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
            ]
        )

        if self.config.format == LogFormat.JSON:
            processors.append(structlog.processors.JSONRenderer(default=str))
        elif self.config.format == LogFormat.CONSOLE:
            processors.append(structlog.dev.ConsoleRenderer(colors=False))
        else:
            processors.append(structlog.processors.KeyValueRenderer())

        structlog.configure(
            processors=processors,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        logging.basicConfig(
            format="%(message)s",
            stream=sys.stdout,
            level=self.config.level.numeric,
        )

        self._configured = True

    def get_logger(self, name: str) -> StructuredLogger:
        """Get or create structured logger."""
        if not self._configured:
            self.configure_logging()

        if name not in self._loggers:
            self._loggers[name] = StructuredLogger(name, self.config)

        return self._loggers[name]

    def get_all_logger_stats(self) -> dict[str, dict[str, Any]]:
        return {name: logger.get_stats() for name, logger in self._loggers.items()}


# =====================================================================================
# GLOBAL CONFIGURATION AND FACTORY
# =====================================================================================

_logger_factory: LoggerFactory | None = None


def configure_logging(config: LogConfig | None = None) -> None:
    """
    Configure global logging system.

    Args:
        config: Logging configuration (read from settings if not provided)
    """
    global _logger_factory  # noqa: PLW0603

    if config is None:
        from courier.core.config import get_settings

        settings = get_settings()
        config = LogConfig(
            level=settings.log_level,
            environment=settings.environment,
        )
        config.format = settings.log_format

    _logger_factory = LoggerFactory(config)
    _logger_factory.configure_logging()


def get_logger(name: str) -> StructuredLogger:
    """
    Get structured logger instance.

    Args:
        name: Logger name (usually __name__)
    """
    if _logger_factory is None:
        configure_logging()

    return _logger_factory.get_logger(name)


def get_logging_stats() -> dict[str, Any]:
    """Get logging statistics for every logger created so far."""
    if _logger_factory is None:
        return {"error": "Logging not configured"}

    return {
        "configuration": _logger_factory.config.to_dict(),
        "logger_stats": _logger_factory.get_all_logger_stats(),
    }


def log_context(**kwargs: Any) -> None:
    """Add context variables to all subsequent logs in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all context variables."""
    structlog.contextvars.clear_contextvars()


__all__ = [
    "LogConfig",
    "LogFormat",
    "LogLevel",
    "LoggerFactory",
    "MessageLengthFilter",
    "SensitiveDataFilter",
    "StructuredLogger",
    "clear_context",
    "configure_logging",
    "get_logger",
    "get_logging_stats",
    "log_context",
]
