"""Enumerations for runtime settings: deployment environment and log output."""

import logging
from enum import Enum


class LogFormat(Enum):
    """How log events are rendered."""

    JSON = "json"
    CONSOLE = "console"
    PLAIN = "plain"


class LogLevel(Enum):
    """Severity threshold for courier loggers."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def numeric(self) -> int:
        return logging.getLevelName(self.value)

    def allows(self, other: "LogLevel") -> bool:
        """True when events at ``other`` pass a threshold of this level."""
        return other.numeric >= self.numeric


class Environment(Enum):
    """Deployment environment of the notification service."""

    DEVELOPMENT = "dev"
    TESTING = "test"
    STAGING = "staging"
    PRODUCTION = "prod"

    @property
    def log_format(self) -> LogFormat:
        """Renderer used when the environment does not override it."""
        if self == Environment.DEVELOPMENT:
            return LogFormat.CONSOLE
        if self == Environment.TESTING:
            return LogFormat.PLAIN
        return LogFormat.JSON

    @property
    def logs_callsites(self) -> bool:
        # Only local development pays for file/line lookups
        return self == Environment.DEVELOPMENT
