"""Notification command handlers.

This module contains handlers for processing notification commands,
implementing the business logic for notification operations. Handlers never
raise for domain failures; they return ``CommandResult.failure_result``.
"""

from datetime import timedelta
from typing import Any

from courier.core.cqrs.base import CommandBus, CommandHandler, CommandResult
from courier.core.domain.base import utc_now
from courier.core.errors import CourierError
from courier.core.logging import get_logger
from courier.modules.notification.application.commands import (
    CreateTemplateCommand,
    DeleteTemplateCommand,
    ScheduleNotificationCommand,
    SendBulkNotificationCommand,
    SendNotificationCommand,
    UpdateTemplateCommand,
)
from courier.modules.notification.application.dto import (
    BulkDeliveryRequest,
    BulkNotificationResultDTO,
    ContentValidationDTO,
    DeliveryOptions,
    NotificationResultDTO,
    RenderingContext,
    ScheduledNotificationDTO,
    TemplateDTO,
    TemplatePreviewDTO,
)
from courier.modules.notification.application.services import (
    NotificationDeliveryService,
    TemplateRenderingService,
)
from courier.modules.notification.domain.aggregates import NotificationTemplate
from courier.modules.notification.domain.entities import Notification, Subscription
from courier.modules.notification.domain.errors import (
    NotificationValidationError,
    TemplateNotFoundError,
)
from courier.modules.notification.domain.interfaces.repositories import (
    INotificationRepository,
    INotificationTemplateRepository,
    ISubscriptionRepository,
)
from courier.modules.notification.domain.value_objects import Channel

logger = get_logger(__name__)

# Constants
PREVIEW_LENGTH_WARNING_THRESHOLD = 5000
MAX_TITLE_LENGTH = Notification.MAX_TITLE_LENGTH
MAX_CONTENT_LENGTH = Notification.MAX_CONTENT_LENGTH


def _failure(error: Exception, operation: str) -> CommandResult:
    """Turn an exception into a failed command result."""
    if isinstance(error, CourierError):
        return CommandResult.failure_result(error.message, error_code=error.code)
    logger.exception("Unexpected command failure", operation=operation, error=str(error))
    return CommandResult.failure_result(str(error) or f"Failed to {operation}")


class NotificationBuilder:
    """Builds notifications from send commands, rendering templates when asked."""

    def __init__(
        self,
        template_repository: INotificationTemplateRepository,
        rendering_service: TemplateRenderingService,
    ):
        self.template_repository = template_repository
        self.rendering_service = rendering_service

    async def build(self, command: SendNotificationCommand) -> Notification:
        if command.uses_template:
            return await self._build_from_template(command)
        return Notification.create(
            user_id=command.user_id,
            title=command.title,
            content=command.content,
            notification_type=command.notification_type,
            priority=command.priority,
            channels=command.channels,
            scheduled_at=command.scheduled_at,
            expires_at=command.expires_at,
            metadata=command.metadata,
        )

    async def _build_from_template(self, command: SendNotificationCommand) -> Notification:
        template = await self.template_repository.find_by_id(command.template_id)
        if template is None:
            raise TemplateNotFoundError(command.template_id)

        rendered = await self.rendering_service.render_template(
            template,
            command.channels[0],
            RenderingContext(variables=command.template_variables),
        )
        return Notification.create(
            user_id=command.user_id,
            title=rendered.subject or command.title,
            content=rendered.body,
            notification_type=command.notification_type,
            priority=command.priority,
            channels=command.channels,
            scheduled_at=command.scheduled_at,
            expires_at=command.expires_at,
            metadata={
                "template_id": template.id,
                "template_version": template.current_version,
                "template_variables": command.template_variables,
                **command.metadata,
            },
        )


class SendNotificationCommandHandler(
    CommandHandler[SendNotificationCommand, CommandResult]
):
    """Handler for sending notifications."""

    def __init__(
        self,
        notification_repository: INotificationRepository,
        subscription_repository: ISubscriptionRepository,
        builder: NotificationBuilder,
        delivery_service: NotificationDeliveryService,
    ):
        """Initialize handler with dependencies."""
        super().__init__()
        self.notification_repository = notification_repository
        self.subscription_repository = subscription_repository
        self.builder = builder
        self.delivery_service = delivery_service

    async def handle(self, command: SendNotificationCommand) -> CommandResult:
        """Handle send notification command."""
        try:
            notification = await self.builder.build(command)
            await self.notification_repository.save(notification)

            if not notification.is_ready_to_send():
                logger.info(
                    "Notification stored for later delivery",
                    notification_id=notification.id,
                    scheduled_at=notification.scheduled_at.isoformat()
                    if notification.scheduled_at
                    else None,
                )
                return CommandResult.success_result(
                    NotificationResultDTO(
                        notification_id=notification.id,
                        status=notification.effective_status.value,
                    )
                )

            subscription = await self._get_subscription(notification)
            results = await self.delivery_service.deliver_notification(
                notification, subscription, DeliveryOptions(retry_on_failure=True)
            )

            await self.notification_repository.save(notification)
            await self.subscription_repository.save(subscription)

            return CommandResult.success_result(
                NotificationResultDTO(
                    notification_id=notification.id,
                    status=notification.status.value,
                    delivery_results=results,
                )
            )
        except Exception as e:
            return _failure(e, "send notification")

    async def _get_subscription(self, notification: Notification) -> Subscription:
        subscription = await self.subscription_repository.find_by_user_and_type(
            notification.user_id, notification.type
        )
        if subscription is None:
            subscription = Subscription.create(notification.user_id, notification.type)
            await self.subscription_repository.save(subscription)
            logger.info(
                "Default subscription created",
                user_id=notification.user_id,
                notification_type=notification.type.value,
            )
        return subscription

    @property
    def command_type(self) -> type[SendNotificationCommand]:
        return SendNotificationCommand


class SendBulkNotificationCommandHandler(
    CommandHandler[SendBulkNotificationCommand, CommandResult]
):
    """Handler for bulk notification sends."""

    def __init__(
        self,
        notification_repository: INotificationRepository,
        subscription_repository: ISubscriptionRepository,
        builder: NotificationBuilder,
        delivery_service: NotificationDeliveryService,
    ):
        """Initialize handler with dependencies."""
        super().__init__()
        self.notification_repository = notification_repository
        self.subscription_repository = subscription_repository
        self.builder = builder
        self.delivery_service = delivery_service

    async def handle(self, command: SendBulkNotificationCommand) -> CommandResult:
        """Handle bulk send command."""
        try:
            notifications = [await self.builder.build(item) for item in command.notifications]
            ready = [n for n in notifications if n.is_ready_to_send()]
            pending = [n.id for n in notifications if not n.is_ready_to_send()]

            results: dict[str, list] = {}
            if ready:
                results = await self.delivery_service.deliver_bulk(
                    BulkDeliveryRequest(
                        notifications=ready,
                        channel=ready[0].channels[0].type,
                        batch_size=command.batch_size,
                        delay_between_batches=command.delay_between_batches,
                    ),
                    subscription_lookup=self.subscription_repository.find_by_user_and_type,
                )
            if pending:
                logger.info(
                    "Bulk notifications stored for later delivery",
                    pending_count=len(pending),
                )

            for notification in notifications:
                await self.notification_repository.save(notification)

            successful = sum(
                1 for item in results.values() if any(result.success for result in item)
            )
            return CommandResult.success_result(
                BulkNotificationResultDTO(
                    total_notifications=len(notifications),
                    successful_deliveries=successful,
                    failed_deliveries=len(results) - successful,
                    results=results,
                    pending_notifications=pending,
                )
            )
        except Exception as e:
            return _failure(e, "send bulk notifications")

    @property
    def command_type(self) -> type[SendBulkNotificationCommand]:
        return SendBulkNotificationCommand


class ScheduleNotificationCommandHandler(
    CommandHandler[ScheduleNotificationCommand, CommandResult]
):
    """Handler for scheduling notifications."""

    def __init__(
        self,
        notification_repository: INotificationRepository,
        builder: NotificationBuilder,
    ):
        """Initialize handler with dependencies."""
        super().__init__()
        self.notification_repository = notification_repository
        self.builder = builder

    async def handle(self, command: ScheduleNotificationCommand) -> CommandResult:
        """Handle schedule notification command."""
        try:
            notification = await self.builder.build(command)
            await self.notification_repository.save(notification)

            logger.info(
                "Notification scheduled",
                notification_id=notification.id,
                scheduled_at=notification.scheduled_at.isoformat(),
            )
            return CommandResult.success_result(
                ScheduledNotificationDTO(
                    notification_id=notification.id,
                    scheduled_at=notification.scheduled_at,
                    estimated_delivery=self.estimate_delivery(notification),
                )
            )
        except Exception as e:
            return _failure(e, "schedule notification")

    @staticmethod
    def estimate_delivery(notification: Notification):
        """Scheduled time plus a tenth of the priority's delivery timeout."""
        start = notification.scheduled_at or utc_now()
        return start + timedelta(seconds=notification.priority.delivery_timeout / 10)

    @property
    def command_type(self) -> type[ScheduleNotificationCommand]:
        return ScheduleNotificationCommand


class CreateTemplateCommandHandler(CommandHandler[CreateTemplateCommand, CommandResult]):
    """Handler for creating notification templates."""

    def __init__(self, template_repository: INotificationTemplateRepository):
        """Initialize handler with dependencies."""
        super().__init__()
        self.template_repository = template_repository

    async def handle(self, command: CreateTemplateCommand) -> CommandResult:
        """Handle create template command."""
        try:
            template = NotificationTemplate.create(
                name=command.name,
                description=command.description,
                template_type=command.template_type,
                created_by=command.created_by,
                variables=command.variables,
                channel_templates=command.channel_templates,
                tags=command.tags,
                metadata=command.metadata,
            )
            await self.template_repository.save(template)

            logger.info("Template created", template_id=template.id, name=template.name)
            return CommandResult.success_result(TemplateDTO.from_template(template))
        except Exception as e:
            return _failure(e, "create template")

    @property
    def command_type(self) -> type[CreateTemplateCommand]:
        return CreateTemplateCommand


class UpdateTemplateCommandHandler(CommandHandler[UpdateTemplateCommand, CommandResult]):
    """Handler for updating notification templates.

    Changing variables or channel templates creates a new template version,
    so cached renders of the previous version are never served again.
    """

    def __init__(self, template_repository: INotificationTemplateRepository):
        """Initialize handler with dependencies."""
        super().__init__()
        self.template_repository = template_repository

    async def handle(self, command: UpdateTemplateCommand) -> CommandResult:
        """Handle update template command."""
        try:
            template = await self.template_repository.find_by_id(command.template_id)
            if template is None:
                raise TemplateNotFoundError(command.template_id)

            if command.name is not None:
                template.update_name(command.name)
            if command.description is not None:
                template.update_description(command.description)
            if command.is_active is not None:
                if command.is_active:
                    template.activate()
                else:
                    template.deactivate()

            for variable in command.variables or []:
                if template.has_variable(variable.name):
                    template.update_variable(
                        variable.name,
                        var_type=variable.var_type,
                        required=variable.required,
                        default_value=variable.default_value,
                        description=variable.description,
                        validation=variable.validation,
                    )
                else:
                    template.add_variable(variable)

            for channel_template in command.channel_templates or []:
                template.add_channel_template(channel_template)

            for tag in command.tags or []:
                template.add_tag(tag)

            if command.metadata:
                template.update_metadata(command.metadata)

            if command.changes_content:
                template.create_version(
                    created_by=command.updated_by or template.created_by,
                    changelog=command.changelog,
                )

            await self.template_repository.save(template)

            logger.info(
                "Template updated",
                template_id=template.id,
                version=template.current_version,
            )
            return CommandResult.success_result(TemplateDTO.from_template(template))
        except Exception as e:
            return _failure(e, "update template")

    @property
    def command_type(self) -> type[UpdateTemplateCommand]:
        return UpdateTemplateCommand


class DeleteTemplateCommandHandler(CommandHandler[DeleteTemplateCommand, CommandResult]):
    """Handler for deleting templates; templates are deactivated, never removed."""

    def __init__(self, template_repository: INotificationTemplateRepository):
        """Initialize handler with dependencies."""
        super().__init__()
        self.template_repository = template_repository

    async def handle(self, command: DeleteTemplateCommand) -> CommandResult:
        """Handle delete template command."""
        try:
            template = await self.template_repository.find_by_id(command.template_id)
            if template is None:
                raise TemplateNotFoundError(command.template_id)

            template.deactivate()
            await self.template_repository.save(template)

            logger.info("Template deactivated", template_id=template.id)
            return CommandResult.success_result(
                {
                    "template_id": template.id,
                    "deleted_at": template.updated_at.isoformat(),
                    "message": "Template deactivated successfully",
                }
            )
        except Exception as e:
            return _failure(e, "delete template")

    @property
    def command_type(self) -> type[DeleteTemplateCommand]:
        return DeleteTemplateCommand


class NotificationCommandHandler:
    """Entry point for notification commands.

    Wires the per-command handlers onto a ``CommandBus`` and adds the
    template preview and content validation utilities.
    """

    def __init__(
        self,
        notification_repository: INotificationRepository,
        template_repository: INotificationTemplateRepository,
        subscription_repository: ISubscriptionRepository,
        delivery_service: NotificationDeliveryService,
        rendering_service: TemplateRenderingService,
    ):
        self.template_repository = template_repository
        self.rendering_service = rendering_service

        builder = NotificationBuilder(template_repository, rendering_service)
        self.bus = CommandBus()
        for handler in (
            SendNotificationCommandHandler(
                notification_repository, subscription_repository, builder, delivery_service
            ),
            SendBulkNotificationCommandHandler(
                notification_repository, subscription_repository, builder, delivery_service
            ),
            ScheduleNotificationCommandHandler(notification_repository, builder),
            CreateTemplateCommandHandler(template_repository),
            UpdateTemplateCommandHandler(template_repository),
            DeleteTemplateCommandHandler(template_repository),
        ):
            self.bus.register(handler)

    async def handle_send_notification(self, command: SendNotificationCommand) -> CommandResult:
        return await self.bus.execute(command)

    async def handle_send_bulk_notification(
        self, command: SendBulkNotificationCommand
    ) -> CommandResult:
        return await self.bus.execute(command)

    async def handle_schedule_notification(
        self, command: ScheduleNotificationCommand
    ) -> CommandResult:
        return await self.bus.execute(command)

    async def handle_create_template(self, command: CreateTemplateCommand) -> CommandResult:
        return await self.bus.execute(command)

    async def handle_update_template(self, command: UpdateTemplateCommand) -> CommandResult:
        return await self.bus.execute(command)

    async def handle_delete_template(self, command: DeleteTemplateCommand) -> CommandResult:
        return await self.bus.execute(command)

    async def preview_template(
        self,
        template_id: str,
        channel: str,
        sample_variables: dict[str, Any] | None = None,
    ) -> CommandResult:
        """Render a template with sample values and report authoring warnings."""
        try:
            template = await self.template_repository.find_by_id(template_id)
            if template is None:
                raise TemplateNotFoundError(template_id)

            preview = await self.rendering_service.preview_template(
                template, Channel.from_string(channel), sample_variables
            )
            return CommandResult.success_result(
                TemplatePreviewDTO(rendered=preview, warnings=self._preview_warnings(preview.body))
            )
        except Exception as e:
            return _failure(e, "preview template")

    @staticmethod
    def _preview_warnings(body: str) -> list[str]:
        warnings = []
        if len(body) > PREVIEW_LENGTH_WARNING_THRESHOLD:
            warnings.append(
                "Template content is quite long - consider shortening for better readability"
            )
        if "{{" in body and "}}" in body:
            warnings.append(
                "Template contains unresolved variables - "
                "ensure all required variables are provided"
            )
        return warnings

    @staticmethod
    def validate_notification_content(
        title: str, content: str, channels: list[str]
    ) -> ContentValidationDTO:
        """Check raw content against notification and per-channel limits."""
        errors = []

        if not title or not title.strip():
            errors.append("Title is required")
        elif len(title) > MAX_TITLE_LENGTH:
            errors.append(f"Title cannot exceed {MAX_TITLE_LENGTH} characters")

        if not content or not content.strip():
            errors.append("Content is required")
        elif len(content) > MAX_CONTENT_LENGTH:
            errors.append(f"Content cannot exceed {MAX_CONTENT_LENGTH} characters")

        if not channels:
            errors.append("At least one delivery channel is required")

        for name in channels or []:
            try:
                channel = Channel.from_string(name)
            except NotificationValidationError:
                errors.append(f"Invalid channel: {name}")
                continue
            if len(content or "") > channel.max_message_size:
                errors.append(
                    f"Content exceeds maximum size for {channel.value} "
                    f"({channel.max_message_size} characters)"
                )

        return ContentValidationDTO(valid=not errors, errors=errors)
