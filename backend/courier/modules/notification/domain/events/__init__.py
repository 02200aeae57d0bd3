"""Notification domain events.

Events recorded on the notification and template aggregates. They are
collected by whoever persists the aggregate (``clear_events``) and handed to
an event publisher outside this module.
"""

from datetime import datetime
from typing import Any

from courier.core.domain.base import DomainEvent


class NotificationCreated(DomainEvent):
    """Emitted when a new notification is created."""

    def __init__(self, notification_id: str, user_id: str, notification_type: str, priority: str):
        super().__init__()
        self.notification_id = notification_id
        self.user_id = user_id
        self.notification_type = notification_type
        self.priority = priority

    def __str__(self) -> str:
        return f"NotificationCreated({self.notification_id})"


class NotificationStatusChanged(DomainEvent):
    """Emitted on every status transition of a notification."""

    def __init__(
        self,
        notification_id: str,
        old_status: str,
        new_status: str,
        reason: str | None = None,
    ):
        super().__init__()
        self.notification_id = notification_id
        self.old_status = old_status
        self.new_status = new_status
        self.reason = reason

    def __str__(self) -> str:
        return (
            f"NotificationStatusChanged({self.notification_id}: "
            f"{self.old_status} -> {self.new_status})"
        )


class NotificationRetryScheduled(DomainEvent):
    """Emitted when a failed notification is scheduled for another attempt."""

    def __init__(self, notification_id: str, retry_count: int, next_retry_at: datetime):
        super().__init__()
        self.notification_id = notification_id
        self.retry_count = retry_count
        self.next_retry_at = next_retry_at

    def __str__(self) -> str:
        return f"NotificationRetryScheduled({self.notification_id} at {self.next_retry_at.isoformat()})"


class TemplateVersionCreated(DomainEvent):
    """Emitted when a template gets a new version."""

    def __init__(self, template_id: str, version: int, created_by: str, changelog: str | None):
        super().__init__()
        self.template_id = template_id
        self.version = version
        self.created_by = created_by
        self.changelog = changelog

    def __str__(self) -> str:
        return f"TemplateVersionCreated({self.template_id} v{self.version})"


def event_to_dict(event: DomainEvent) -> dict[str, Any]:
    """Flatten an event for logging or publishing."""
    payload = {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in event.__dict__.items()
        if not key.startswith("_")
    }
    payload["event_type"] = event.event_type
    return payload


__all__ = [
    "NotificationCreated",
    "NotificationRetryScheduled",
    "NotificationStatusChanged",
    "TemplateVersionCreated",
    "event_to_dict",
]
