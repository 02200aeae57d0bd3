"""Notification application DTOs.

This module contains Data Transfer Objects used in the notification application layer
for passing rendering and delivery data between services, handlers and callers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from courier.modules.notification.domain.enums import ChannelType, TemplateFormat


# =====================================================================================
# RENDERING
# =====================================================================================


@dataclass(frozen=True)
class RenderingContext:
    """Variables and locale settings for one render."""

    variables: dict[str, Any] = field(default_factory=dict)
    locale: str | None = None
    timezone: str | None = None
    user_preferences: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RenderedTemplate:
    """Channel-ready output of the rendering service."""

    body: str
    format: TemplateFormat
    subject: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        metadata = dict(self.metadata)
        if isinstance(metadata.get("rendered_at"), datetime):
            metadata["rendered_at"] = metadata["rendered_at"].isoformat()
        return {
            "subject": self.subject,
            "body": self.body,
            "format": self.format.value,
            "metadata": metadata,
        }


@dataclass(frozen=True)
class RenderingFailure:
    """A single failed item of a bulk render."""

    type: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}


# =====================================================================================
# DELIVERY
# =====================================================================================


@dataclass(frozen=True)
class DeliveryOptions:
    """Per-call overrides for the delivery service.

    ``retry_on_failure=False`` leaves a notification with no successful
    channel in its current status. ``retry_delay`` is the backoff base in
    seconds and ``delivery_timeout`` caps every channel dispatch.
    """

    retry_on_failure: bool = True
    retry_delay: float | None = None
    delivery_timeout: float | None = None


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one channel dispatch."""

    channel: ChannelType
    success: bool
    response_time: float
    delivery_id: str | None = None
    error_message: str | None = None
    timed_out: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "success": self.success,
            "delivery_id": self.delivery_id,
            "response_time": self.response_time,
            "error_message": self.error_message,
            "timed_out": self.timed_out,
        }


@dataclass(frozen=True)
class BulkDeliveryRequest:
    """Many notifications sent over one channel in throttled user batches."""

    notifications: list[Any]
    channel: ChannelType
    batch_size: int | None = None
    delay_between_batches: float | None = None


# =====================================================================================
# COMMAND RESULTS
# =====================================================================================


@dataclass(frozen=True)
class NotificationResultDTO:
    """Result of sending a single notification."""

    notification_id: str
    status: str
    delivery_results: list[DeliveryResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "notification_id": self.notification_id,
            "status": self.status,
            "delivery_results": [r.to_dict() for r in self.delivery_results],
        }


@dataclass(frozen=True)
class BulkNotificationResultDTO:
    """Result of a bulk send."""

    total_notifications: int
    successful_deliveries: int
    failed_deliveries: int
    results: dict[str, list[DeliveryResult]] = field(default_factory=dict)
    pending_notifications: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_notifications": self.total_notifications,
            "successful_deliveries": self.successful_deliveries,
            "failed_deliveries": self.failed_deliveries,
            "pending_notifications": list(self.pending_notifications),
            "results": {
                notification_id: [r.to_dict() for r in results]
                for notification_id, results in self.results.items()
            },
        }


@dataclass(frozen=True)
class ScheduledNotificationDTO:
    """Result of scheduling a notification."""

    notification_id: str
    scheduled_at: datetime
    estimated_delivery: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "notification_id": self.notification_id,
            "scheduled_at": self.scheduled_at.isoformat(),
            "estimated_delivery": self.estimated_delivery.isoformat(),
        }


@dataclass(frozen=True)
class TemplateDTO:
    """DTO for notification template."""

    template_id: str
    name: str
    version: int
    is_active: bool
    channels: list[str] = field(default_factory=list)

    @classmethod
    def from_template(cls, template: Any) -> "TemplateDTO":
        return cls(
            template_id=template.id,
            name=template.name,
            version=template.current_version,
            is_active=template.is_active,
            channels=[channel.value for channel in template.get_enabled_channels()],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "template_id": self.template_id,
            "name": self.name,
            "version": self.version,
            "is_active": self.is_active,
            "channels": list(self.channels),
        }


@dataclass(frozen=True)
class TemplatePreviewDTO:
    """Rendered preview with authoring warnings."""

    rendered: RenderedTemplate
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"rendered": self.rendered.to_dict(), "warnings": list(self.warnings)}


@dataclass(frozen=True)
class ContentValidationDTO:
    """Per-channel validation of raw notification content."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


__all__ = [
    "BulkDeliveryRequest",
    "BulkNotificationResultDTO",
    "ContentValidationDTO",
    "DeliveryOptions",
    "DeliveryResult",
    "NotificationResultDTO",
    "RenderedTemplate",
    "RenderingContext",
    "RenderingFailure",
    "ScheduledNotificationDTO",
    "TemplateDTO",
    "TemplatePreviewDTO",
]
