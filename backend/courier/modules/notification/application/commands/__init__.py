"""Notification application commands.

This module contains command classes for the notification module,
representing intents to send notifications and manage templates.
"""

from datetime import datetime
from typing import Any

from courier.core.cqrs.base import Command
from courier.core.errors import ValidationError
from courier.modules.notification.domain.enums import ChannelType, NotificationType
from courier.modules.notification.domain.value_objects import (
    ChannelTemplate,
    TemplateVariable,
)

# Constants
MAX_BATCH_SIZE = 10000
DEFAULT_BULK_BATCH_SIZE = 50
DEFAULT_BULK_DELAY_SECONDS = 2.0


class SendNotificationCommand(Command):
    """Command to send a notification.

    The notification content comes from the template when both
    ``template_id`` and ``template_variables`` are given, otherwise from
    ``title`` and ``content``.
    """

    def __init__(
        self,
        user_id: str,
        title: str,
        content: str,
        notification_type: NotificationType | str,
        priority: str = "normal",
        channels: list[ChannelType | str] | None = None,
        template_id: str | None = None,
        template_variables: dict[str, Any] | None = None,
        scheduled_at: datetime | None = None,
        expires_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        """Initialize send notification command."""
        super().__init__()

        self.user_id = str(user_id) if user_id is not None else ""
        self.title = title
        self.content = content
        self.notification_type = notification_type
        self.priority = priority
        self.channels = list(channels) if channels else [ChannelType.IN_APP.value]
        self.template_id = template_id
        self.template_variables = template_variables
        self.scheduled_at = scheduled_at
        self.expires_at = expires_at
        self.metadata = metadata or {}

        self._freeze()

    @property
    def uses_template(self) -> bool:
        return bool(self.template_id) and self.template_variables is not None

    def _validate_command(self) -> None:
        """Validate command state."""
        if not self.user_id:
            raise ValidationError("User ID is required", field="user_id")

        if self.scheduled_at and self.expires_at and self.scheduled_at > self.expires_at:
            raise ValidationError(
                "Scheduled time cannot be after expiration time", field="scheduled_at"
            )


class ScheduleNotificationCommand(SendNotificationCommand):
    """Command to schedule a notification for later delivery."""

    def _validate_command(self) -> None:
        """Validate command state."""
        super()._validate_command()
        if self.scheduled_at is None:
            raise ValidationError(
                "Scheduled time is required for scheduled notifications",
                field="scheduled_at",
            )


class SendBulkNotificationCommand(Command):
    """Command to send many notifications over the first command's channel."""

    def __init__(
        self,
        notifications: list[SendNotificationCommand],
        batch_size: int = DEFAULT_BULK_BATCH_SIZE,
        delay_between_batches: float = DEFAULT_BULK_DELAY_SECONDS,
    ):
        """Initialize bulk send command."""
        super().__init__()

        self.notifications = list(notifications)
        self.batch_size = batch_size
        self.delay_between_batches = delay_between_batches

        self._freeze()

    def _validate_command(self) -> None:
        """Validate command state."""
        if not self.notifications:
            raise ValidationError("At least one notification is required")

        if len(self.notifications) > MAX_BATCH_SIZE:
            raise ValidationError(f"Batch size cannot exceed {MAX_BATCH_SIZE}")

        if self.batch_size < 1:
            raise ValidationError("Batch size must be positive", field="batch_size")

        if self.delay_between_batches < 0:
            raise ValidationError(
                "Delay between batches cannot be negative", field="delay_between_batches"
            )


class CreateTemplateCommand(Command):
    """Command to create a notification template."""

    def __init__(
        self,
        name: str,
        description: str,
        template_type: NotificationType | str,
        created_by: str,
        variables: list[TemplateVariable] | None = None,
        channel_templates: list[ChannelTemplate] | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        """Initialize create template command."""
        super().__init__()

        self.name = name
        self.description = description
        self.template_type = template_type
        self.created_by = str(created_by) if created_by is not None else ""
        self.variables = list(variables or [])
        self.channel_templates = list(channel_templates or [])
        self.tags = list(tags or [])
        self.metadata = metadata or {}

        self._freeze()

    def _validate_command(self) -> None:
        """Validate command state."""
        if not self.created_by:
            raise ValidationError("Template author is required", field="created_by")


class UpdateTemplateCommand(Command):
    """Command to update a notification template.

    Only the given fields change. Variables are upserted by name and channel
    templates replace the template of their channel.
    """

    def __init__(
        self,
        template_id: str,
        updated_by: str | None = None,
        name: str | None = None,
        description: str | None = None,
        variables: list[TemplateVariable] | None = None,
        channel_templates: list[ChannelTemplate] | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        is_active: bool | None = None,
        changelog: str | None = None,
    ):
        """Initialize update template command."""
        super().__init__()

        self.template_id = template_id
        self.updated_by = updated_by
        self.name = name
        self.description = description
        self.variables = variables
        self.channel_templates = channel_templates
        self.tags = tags
        self.metadata = metadata
        self.is_active = is_active
        self.changelog = changelog

        self._freeze()

    @property
    def changes_content(self) -> bool:
        return bool(self.variables) or bool(self.channel_templates)

    def _validate_command(self) -> None:
        """Validate command state."""
        if not self.template_id:
            raise ValidationError("Template ID is required", field="template_id")


class DeleteTemplateCommand(Command):
    """Command to delete (deactivate) a notification template."""

    def __init__(self, template_id: str):
        """Initialize delete template command."""
        super().__init__()

        self.template_id = template_id

        self._freeze()

    def _validate_command(self) -> None:
        """Validate command state."""
        if not self.template_id:
            raise ValidationError("Template ID is required", field="template_id")


__all__ = [
    "CreateTemplateCommand",
    "DeleteTemplateCommand",
    "ScheduleNotificationCommand",
    "SendBulkNotificationCommand",
    "SendNotificationCommand",
    "UpdateTemplateCommand",
]
