"""Error classes and error handling shared by every courier module."""

import logging
import time
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import Any


class ErrorSeverity(Enum):
    """Error severity levels for monitoring and alerting."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SENSITIVE_KEYS = frozenset(
    {"password", "token", "secret", "credential", "authorization", "api_key"}
)


class CourierError(Exception):
    """
    Base exception for all courier errors.

    Every error carries a stable code, a correlation id, optional details and
    a retry hint. Errors log themselves on construction at a level matching
    their severity.
    """

    default_code: str = "ERROR"
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    retryable: bool = False

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message
        self.code = kwargs.get("code") or self.default_code
        self.details = kwargs.get("details") or {}
        self.correlation_id = kwargs.get("correlation_id") or str(uuid.uuid4())
        self.error_id = str(uuid.uuid4())
        self.timestamp = time.time()
        self.user_message = kwargs.get("user_message") or message
        self.recovery_hint = kwargs.get("recovery_hint")
        self.context = kwargs.get("context") or {}
        if kwargs.get("cause") is not None:
            self.__cause__ = kwargs["cause"]

        self._log_error()

    def _log_error(self) -> None:
        """Log error with structured data."""
        logger = logging.getLogger(f"courier.errors.{self.__class__.__name__}")
        log_data = {
            "error_id": self.error_id,
            "correlation_id": self.correlation_id,
            "code": self.code,
            "error_message": self.message,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "details": self._sanitize(self.details),
            "error_class": self.__class__.__name__,
        }

        if self.severity == ErrorSeverity.CRITICAL:
            logger.critical("Critical error occurred", extra=log_data)
        elif self.severity == ErrorSeverity.HIGH:
            logger.error("High severity error", extra=log_data)
        elif self.severity == ErrorSeverity.MEDIUM:
            logger.warning("Medium severity error", extra=log_data)
        else:
            logger.info("Low severity error", extra=log_data)

    def _sanitize(self, details: dict) -> dict:
        """Mask values whose keys look sensitive."""
        sanitized = {}
        for key, value in (details or {}).items():
            if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
                sanitized[key] = "***REDACTED***"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize(value)
            else:
                sanitized[key] = value
        return sanitized

    def to_dict(self, include_internal: bool = False) -> dict[str, Any]:
        """Serialize error for results and logs."""
        data: dict[str, Any] = {
            "error": self.code,
            "message": self.user_message,
            "timestamp": self.timestamp,
        }

        if self.details:
            data["details"] = {
                k: v for k, v in self._sanitize(self.details).items()
                if not k.startswith("_")
            }

        if self.recovery_hint:
            data["recovery_hint"] = self.recovery_hint

        if self.retryable:
            data["retryable"] = True

        if include_internal:
            data.update(
                {
                    "error_id": self.error_id,
                    "correlation_id": self.correlation_id,
                    "severity": self.severity.value,
                    "internal_message": self.message,
                    "context": self.context,
                }
            )

        return data

    def with_context(self, **context: Any) -> "CourierError":
        """Add context to error and return self for chaining."""
        self.context.update(context)
        return self

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class DomainError(CourierError):
    """Base class for domain errors."""

    default_code = "DOMAIN_ERROR"
    severity = ErrorSeverity.MEDIUM


class ApplicationError(CourierError):
    """Base class for application layer errors."""

    default_code = "APPLICATION_ERROR"
    severity = ErrorSeverity.MEDIUM


class InfrastructureError(CourierError):
    """Base class for infrastructure errors."""

    default_code = "INFRASTRUCTURE_ERROR"
    severity = ErrorSeverity.HIGH
    retryable = True


class ValidationError(ApplicationError):
    """Validation error with support for multiple field errors."""

    default_code = "VALIDATION_ERROR"
    severity = ErrorSeverity.LOW

    def __init__(
        self,
        message: str,
        field: str | None = None,
        field_errors: dict[str, list[str]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.field = field
        if field:
            self.details["field"] = field
        if field_errors:
            self.details["field_errors"] = field_errors

    @classmethod
    def from_fields(
        cls, field_errors: dict[str, list[str]], **kwargs: Any
    ) -> "ValidationError":
        """Create validation error from field errors dictionary."""
        total_errors = sum(len(errors) for errors in field_errors.values())
        message = (
            f"Validation failed for {len(field_errors)} field(s) "
            f"with {total_errors} error(s)"
        )
        return cls(message, field_errors=field_errors, **kwargs)


class NotFoundError(ApplicationError):
    """Resource not found error."""

    default_code = "NOT_FOUND"
    severity = ErrorSeverity.LOW

    def __init__(self, resource: str, identifier: Any, **kwargs: Any) -> None:
        message = f"{resource} not found: {identifier}"
        user_message = f"The requested {resource.lower()} was not found"
        super().__init__(message, user_message=user_message, **kwargs)
        self.details.update({"resource": resource, "identifier": str(identifier)})


class OperationTimeoutError(InfrastructureError):
    """Operation timeout error."""

    default_code = "TIMEOUT"
    severity = ErrorSeverity.HIGH
    retryable = True

    def __init__(self, operation: str, timeout_seconds: float, **kwargs: Any) -> None:
        message = kwargs.pop(
            "message", f"{operation} timed out after {timeout_seconds:g}s"
        )
        super().__init__(message, **kwargs)
        self.details.update(
            {"operation": operation, "timeout_seconds": timeout_seconds}
        )


class ConfigurationError(InfrastructureError):
    """Configuration error."""

    default_code = "CONFIGURATION_ERROR"
    severity = ErrorSeverity.CRITICAL
    retryable = False

    def __init__(
        self, message: str, config_key: str | None = None, **kwargs: Any
    ) -> None:
        super().__init__(message, user_message="Service configuration issue", **kwargs)
        if config_key:
            self.details["config_key"] = config_key


class BusinessRuleError(DomainError):
    """Business rule violation error."""

    default_code = "BUSINESS_RULE_VIOLATION"

    def __init__(self, rule: str, message: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.details["rule"] = rule


@contextmanager
def error_context(correlation_id: str | None = None, **context: Any) -> Any:
    """Attach a correlation id and context to courier errors raised inside."""
    correlation_id = correlation_id or str(uuid.uuid4())
    try:
        yield correlation_id
    except CourierError as e:
        e.correlation_id = correlation_id
        e.context.update(context)
        raise
