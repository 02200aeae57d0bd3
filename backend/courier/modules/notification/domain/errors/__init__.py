"""Notification domain errors.

Error taxonomy of the notification module:

- ``NotificationValidationError``: a static constraint is violated. Never retried.
- ``EligibilityError``: the recipient's subscription does not allow delivery
  right now. ``QuietHoursError`` is the policy-driven case.
- ``DeliveryError``: a transport failed or timed out. Recorded per attempt
  and retried with backoff until the priority's retry ceiling is reached.
- ``TemplateRenderingError``: content could not be produced. Never retried.
"""

from typing import Any

from courier.core.errors import (
    DomainError,
    ErrorSeverity,
    NotFoundError,
    ValidationError,
)


class NotificationError(DomainError):
    """Base error for notification domain."""

    default_code = "NOTIFICATION_ERROR"


class NotificationValidationError(ValidationError):
    """Raised when notification, template or subscription data is invalid."""

    default_code = "NOTIFICATION_VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: list[str] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, field=field, **kwargs)
        self.errors = list(errors) if errors else [message]
        if errors:
            self.details["errors"] = self.errors


class InvalidStateTransitionError(NotificationError):
    """Raised when an operation is not legal in the entity's current state."""

    default_code = "INVALID_STATE_TRANSITION"

    def __init__(self, message: str, current_status: str, operation: str, **kwargs: Any):
        super().__init__(
            message=message,
            details={"current_status": current_status, "operation": operation},
            **kwargs,
        )
        self.current_status = current_status
        self.operation = operation


class ChannelRequiredError(NotificationError):
    """Raised when a change would leave no (enabled) channel."""

    default_code = "CHANNEL_REQUIRED"

    def __init__(self, message: str, channel: str | None = None, **kwargs: Any):
        super().__init__(
            message=message,
            details={"channel": channel},
            recovery_hint="Add or enable another channel first.",
            **kwargs,
        )


class TemplateSizeExceededError(NotificationValidationError):
    """Raised when a channel template body is larger than the channel allows."""

    default_code = "TEMPLATE_SIZE_EXCEEDED"

    def __init__(self, channel: str, size: int, max_size: int, **kwargs: Any):
        super().__init__(
            f"Template body exceeds maximum size for {channel} ({max_size} characters)",
            field="body",
            **kwargs,
        )
        self.details.update({"channel": channel, "size": size, "max_size": max_size})
        self.channel = channel
        self.size = size
        self.max_size = max_size


# =====================================================================================
# ELIGIBILITY
# =====================================================================================


class EligibilityError(NotificationError):
    """Raised when a subscription does not allow delivery."""

    default_code = "NOT_ELIGIBLE"
    severity = ErrorSeverity.LOW

    def __init__(
        self,
        message: str,
        user_id: str | None = None,
        reason: str | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        details.update({"user_id": user_id, "reason": reason})
        super().__init__(message=message, details=details, **kwargs)
        self.reason = reason


class QuietHoursError(EligibilityError):
    """Raised when a non-urgent notification falls inside the quiet hours."""

    default_code = "QUIET_HOURS"

    def __init__(self, user_id: str, start_time: str, end_time: str, timezone: str, **kwargs: Any):
        super().__init__(
            "Cannot deliver notification during quiet hours",
            user_id=user_id,
            reason="quiet_hours",
            details={"start_time": start_time, "end_time": end_time, "timezone": timezone},
            recovery_hint="Send with urgent priority or retry after the quiet hours end.",
            **kwargs,
        )


# =====================================================================================
# DELIVERY
# =====================================================================================


class DeliveryError(NotificationError):
    """Raised when a notification could not be delivered on a channel."""

    default_code = "DELIVERY_FAILED"
    severity = ErrorSeverity.HIGH
    retryable = True

    def __init__(
        self,
        message: str,
        channel: str | None = None,
        notification_id: str | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        details.update({"channel": channel, "notification_id": notification_id})
        super().__init__(
            message=message,
            details=details,
            user_message="Failed to send notification. Please try again later.",
            **kwargs,
        )
        self.channel = channel


class DeliveryTimeoutError(DeliveryError):
    """Raised when a transport does not answer within the channel timeout."""

    default_code = "DELIVERY_TIMEOUT"

    def __init__(self, channel: str, timeout_seconds: float, **kwargs: Any):
        super().__init__(
            f"Delivery via {channel} timed out after {timeout_seconds:g}s",
            channel=channel,
            details={"timeout_seconds": timeout_seconds},
            **kwargs,
        )
        self.timeout_seconds = timeout_seconds


class TransportError(DeliveryError):
    """Raised by channel transports when the provider rejects a message."""

    default_code = "TRANSPORT_ERROR"

    def __init__(
        self,
        message: str,
        channel: str | None = None,
        error_code: str | None = None,
        is_retryable: bool = True,
        provider_response: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            channel=channel,
            details={"error_code": error_code, "provider_response": provider_response},
            **kwargs,
        )
        self.error_code = error_code
        self.provider_response = provider_response
        self.retryable = is_retryable


class ChannelNotConfiguredError(DeliveryError):
    """Raised when no transport is registered for a channel."""

    default_code = "CHANNEL_NOT_CONFIGURED"
    retryable = False

    def __init__(self, channel: str, **kwargs: Any):
        super().__init__(
            f"No transport configured for channel '{channel}'",
            channel=channel,
            recovery_hint="Register a transport for the channel.",
            **kwargs,
        )


# =====================================================================================
# RENDERING
# =====================================================================================


class TemplateRenderingError(NotificationError):
    """Raised when a template cannot be rendered."""

    default_code = "TEMPLATE_RENDERING_ERROR"

    def __init__(
        self,
        message: str,
        template_id: str | None = None,
        channel: str | None = None,
        errors: list[str] | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            message=message,
            details={
                "template_id": template_id,
                "channel": channel,
                "errors": list(errors or []),
            },
            **kwargs,
        )
        self.template_id = template_id
        self.channel = channel
        self.errors = list(errors or [])


# =====================================================================================
# NOT FOUND
# =====================================================================================


class NotificationNotFoundError(NotFoundError):
    """Raised when a notification is not found."""

    def __init__(self, notification_id: str, **kwargs: Any):
        super().__init__(resource="Notification", identifier=notification_id, **kwargs)


class TemplateNotFoundError(NotFoundError):
    """Raised when a notification template is not found."""

    def __init__(self, template_id: str, **kwargs: Any):
        super().__init__(resource="NotificationTemplate", identifier=template_id, **kwargs)


class SubscriptionNotFoundError(NotFoundError):
    """Raised when no subscription exists for a user and notification type."""

    def __init__(self, user_id: str, notification_type: str, **kwargs: Any):
        super().__init__(
            resource="Subscription",
            identifier=f"{user_id}/{notification_type}",
            **kwargs,
        )


__all__ = [
    "ChannelNotConfiguredError",
    "ChannelRequiredError",
    "DeliveryError",
    "DeliveryTimeoutError",
    "EligibilityError",
    "InvalidStateTransitionError",
    "NotificationError",
    "NotificationNotFoundError",
    "NotificationValidationError",
    "QuietHoursError",
    "SubscriptionNotFoundError",
    "TemplateNotFoundError",
    "TemplateRenderingError",
    "TemplateSizeExceededError",
    "TransportError",
]
