"""Tests for notification commands and their handlers."""

from datetime import timedelta

import pytest

from courier.core.domain.base import utc_now
from courier.core.errors import ValidationError
from courier.modules.notification.application.commands import (
    CreateTemplateCommand,
    DeleteTemplateCommand,
    ScheduleNotificationCommand,
    SendBulkNotificationCommand,
    SendNotificationCommand,
    UpdateTemplateCommand,
)
from courier.modules.notification.application.commands.handlers import (
    NotificationCommandHandler,
    ScheduleNotificationCommandHandler,
)
from courier.modules.notification.application.dto import RenderingContext, TemplateDTO
from courier.modules.notification.domain.enums import ChannelType, NotificationType
from courier.modules.notification.domain.value_objects import (
    ChannelTemplate,
    TemplateVariable,
)


@pytest.fixture
def handler(
    notification_repository,
    template_repository,
    subscription_repository,
    delivery_service,
    rendering_service,
):
    return NotificationCommandHandler(
        notification_repository=notification_repository,
        template_repository=template_repository,
        subscription_repository=subscription_repository,
        delivery_service=delivery_service,
        rendering_service=rendering_service,
    )


def _send(**overrides) -> SendNotificationCommand:
    values = {
        "user_id": "user-1",
        "title": "Deploy finished",
        "content": "Build 42 is live",
        "notification_type": NotificationType.ALERT,
    }
    values.update(overrides)
    return SendNotificationCommand(**values)


class TestCommandValidation:
    """Test suite for command construction rules."""

    def test_user_is_required(self):
        with pytest.raises(ValidationError, match="User ID is required"):
            _send(user_id="")

    def test_schedule_must_precede_expiry(self, future):
        with pytest.raises(ValidationError, match="cannot be after expiration"):
            _send(scheduled_at=future, expires_at=future - timedelta(minutes=1))

    def test_schedule_command_needs_a_time(self):
        with pytest.raises(ValidationError, match="Scheduled time is required"):
            ScheduleNotificationCommand(
                user_id="user-1",
                title="Later",
                content="Body",
                notification_type="reminder",
            )

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"notifications": []}, "At least one notification is required"),
            ({"batch_size": 0}, "Batch size must be positive"),
            ({"delay_between_batches": -1}, "cannot be negative"),
        ],
    )
    def test_bulk_limits(self, kwargs, message):
        values = {"notifications": [_send()]}
        values.update(kwargs)

        with pytest.raises(ValidationError, match=message):
            SendBulkNotificationCommand(**values)

    def test_commands_are_immutable(self):
        command = _send()

        with pytest.raises(AttributeError):
            command.title = "Changed"

        command.correlation_id = "corr-1"
        assert command.correlation_id == "corr-1"

    def test_default_channel_is_in_app(self):
        assert _send().channels == ["in_app"]


class TestSendNotification:
    """Test suite for the send notification flow."""

    @pytest.mark.asyncio
    async def test_plain_send_delivers_and_persists(
        self, handler, notification_repository, subscription_repository
    ):
        result = await handler.handle_send_notification(_send())

        assert result.success
        assert result.data.status == "sent"
        assert [r.success for r in result.data.delivery_results] == [True]

        stored = await notification_repository.find_by_id(result.data.notification_id)
        assert stored.status.value == "sent"
        assert stored.retry_count == 1

        subscription = await subscription_repository.find_by_user_and_type(
            "user-1", NotificationType.ALERT
        )
        assert subscription is not None
        assert subscription.last_notification_at is not None

    @pytest.mark.asyncio
    async def test_existing_subscription_is_used(
        self, handler, subscription_repository, make_subscription, email_transport
    ):
        await subscription_repository.save(make_subscription())

        result = await handler.handle_send_notification(_send(channels=["email"]))

        assert result.data.status == "delivered"
        assert email_transport.sent[0][1].address == "user@example.com"

    @pytest.mark.asyncio
    async def test_default_subscription_only_allows_in_app(self, handler):
        result = await handler.handle_send_notification(_send(channels=["email"]))

        assert result.is_failure()
        assert result.error == "No eligible delivery channels"
        assert result.error_code == "NOT_ELIGIBLE"

    @pytest.mark.asyncio
    async def test_template_send(
        self, handler, template_repository, notification_repository, welcome_template
    ):
        await template_repository.save(welcome_template)

        result = await handler.handle_send_notification(
            _send(
                notification_type=NotificationType.WELCOME,
                template_id=welcome_template.id,
                template_variables={"userName": "Ada"},
                metadata={"campaign": "spring"},
            )
        )

        assert result.success
        notification = await notification_repository.find_by_id(
            result.data.notification_id
        )
        assert notification.title == "Welcome Ada"
        assert notification.content == "Hello Ada, you are on the free plan."
        assert notification.metadata["template_id"] == welcome_template.id
        assert notification.metadata["template_version"] == 1
        assert notification.metadata["template_variables"] == {"userName": "Ada"}
        assert notification.metadata["campaign"] == "spring"

    @pytest.mark.asyncio
    async def test_template_not_found(self, handler):
        result = await handler.handle_send_notification(
            _send(template_id="tmpl_missing", template_variables={})
        )

        assert result.is_failure()
        assert result.error == "NotificationTemplate not found: tmpl_missing"
        assert result.error_code == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_template_rendering_failure(
        self, handler, template_repository, welcome_template
    ):
        await template_repository.save(welcome_template)

        result = await handler.handle_send_notification(
            _send(template_id=welcome_template.id, template_variables={})
        )

        assert result.is_failure()
        assert result.error_code == "TEMPLATE_RENDERING_ERROR"

    @pytest.mark.asyncio
    async def test_future_send_is_stored_not_delivered(
        self, handler, notification_repository, future, in_app_adapter
    ):
        result = await handler.handle_send_notification(_send(scheduled_at=future))

        assert result.success
        assert result.data.status == "pending"
        assert result.data.delivery_results == []
        assert await in_app_adapter.get_unread_count("user-1") == 0
        assert notification_repository.count() == 1

    @pytest.mark.asyncio
    async def test_expired_send_reports_expired(self, handler):
        result = await handler.handle_send_notification(
            _send(expires_at=utc_now() - timedelta(minutes=1))
        )

        assert result.success
        assert result.data.status == "expired"

    @pytest.mark.asyncio
    async def test_invalid_priority(self, handler):
        result = await handler.handle_send_notification(_send(priority="critical"))

        assert result.is_failure()
        assert "Invalid priority" in result.error


class TestSendBulkNotification:
    @pytest.mark.asyncio
    async def test_bulk_send(self, handler, notification_repository):
        command = SendBulkNotificationCommand(
            notifications=[_send(user_id=f"user-{index}") for index in range(3)],
            batch_size=2,
            delay_between_batches=0,
        )

        result = await handler.handle_send_bulk_notification(command)

        assert result.success
        assert result.data.total_notifications == 3
        assert result.data.successful_deliveries == 3
        assert result.data.failed_deliveries == 0
        assert notification_repository.count() == 3

    @pytest.mark.asyncio
    async def test_bulk_counts_failures(self, handler, subscription_repository, make_subscription):
        paused = make_subscription("user-paused")
        paused.pause()
        await subscription_repository.save(paused)

        command = SendBulkNotificationCommand(
            notifications=[_send(user_id="user-paused"), _send(user_id="user-ok")],
            delay_between_batches=0,
        )

        result = await handler.handle_send_bulk_notification(command)

        assert result.data.successful_deliveries == 1
        assert result.data.failed_deliveries == 1
        assert result.to_dict()["data"]["failed_deliveries"] == 1

    @pytest.mark.asyncio
    async def test_bulk_keeps_scheduled_items_pending(
        self, handler, notification_repository, future
    ):
        command = SendBulkNotificationCommand(
            notifications=[
                _send(user_id="user-now"),
                _send(user_id="user-later", scheduled_at=future),
            ],
            delay_between_batches=0,
        )

        result = await handler.handle_send_bulk_notification(command)

        assert result.success
        assert result.data.total_notifications == 2
        assert result.data.successful_deliveries == 1
        assert len(result.data.pending_notifications) == 1

        later = await notification_repository.find_by_id(result.data.pending_notifications[0])
        assert later.user_id == "user-later"
        assert later.status.value == "pending"
        assert later.sent_at is None
        assert later.id not in result.data.results

    @pytest.mark.asyncio
    async def test_bulk_of_only_scheduled_items(self, handler, future):
        command = SendBulkNotificationCommand(
            notifications=[_send(scheduled_at=future)],
            delay_between_batches=0,
        )

        result = await handler.handle_send_bulk_notification(command)

        assert result.success
        assert result.data.successful_deliveries == 0
        assert result.data.failed_deliveries == 0
        assert result.data.results == {}


class TestScheduleNotification:
    @pytest.mark.asyncio
    async def test_schedule_returns_estimate(self, handler, notification_repository, future):
        command = ScheduleNotificationCommand(
            user_id="user-1",
            title="Reminder",
            content="Stand-up in 10 minutes",
            notification_type="reminder",
            priority="high",
            scheduled_at=future,
        )

        result = await handler.handle_schedule_notification(command)

        assert result.success
        assert result.data.scheduled_at == future
        assert result.data.estimated_delivery == future + timedelta(seconds=30)

        stored = await notification_repository.find_by_id(result.data.notification_id)
        assert stored.status.value == "pending"
        assert stored.is_ready_to_send() is False

    def test_estimate_uses_priority_timeout(self, make_notification, future):
        notification = make_notification(priority="low", scheduled_at=future)

        estimate = ScheduleNotificationCommandHandler.estimate_delivery(notification)

        assert estimate == future + timedelta(seconds=720)


class TestTemplateCommands:
    """Test suite for template create, update and delete."""

    @pytest.mark.asyncio
    async def test_create(self, handler, template_repository):
        command = CreateTemplateCommand(
            name="Password reset",
            description="Sent on reset request",
            template_type="security",
            created_by="admin-1",
            variables=[TemplateVariable(name="link")],
            channel_templates=[
                ChannelTemplate(channel=ChannelType.IN_APP, body="Reset: {{link}}"),
                ChannelTemplate(channel=ChannelType.EMAIL, subject="Reset", body="{{link}}"),
            ],
            tags=["Security"],
        )

        result = await handler.handle_create_template(command)

        assert result.success
        assert result.data == TemplateDTO(
            template_id=result.data.template_id,
            name="Password reset",
            version=1,
            is_active=True,
            channels=["email", "in_app"],
        )
        assert await template_repository.find_by_id(result.data.template_id) is not None

    @pytest.mark.asyncio
    async def test_create_rejects_empty_description(self, handler):
        result = await handler.handle_create_template(
            CreateTemplateCommand(
                name="Broken",
                description="  ",
                template_type="alert",
                created_by="admin-1",
            )
        )

        assert result.is_failure()
        assert result.error == "Template description cannot be empty"

    @pytest.mark.asyncio
    async def test_update_content_creates_version(
        self, handler, template_repository, welcome_template
    ):
        await template_repository.save(welcome_template)

        result = await handler.handle_update_template(
            UpdateTemplateCommand(
                template_id=welcome_template.id,
                updated_by="editor-1",
                variables=[
                    TemplateVariable(name="plan", required=False, default_value="pro"),
                    TemplateVariable(name="team", required=False, default_value="core"),
                ],
                channel_templates=[
                    ChannelTemplate(
                        channel=ChannelType.IN_APP, body="{{userName}} joined {{team}}"
                    ),
                ],
                changelog="Mention team",
            )
        )

        assert result.success
        assert result.data.version == 2

        stored = await template_repository.find_by_id(welcome_template.id)
        assert stored.get_variable("plan").default_value == "pro"
        assert stored.has_variable("team")
        assert stored.versions[-1].changelog == "Mention team"
        assert stored.versions[-1].created_by == "editor-1"

        rendered = await handler.rendering_service.render_template(
            stored, "in_app", RenderingContext(variables={"userName": "Ada"})
        )
        assert rendered.body == "Ada joined core"

    @pytest.mark.asyncio
    async def test_metadata_only_update_keeps_version(
        self, handler, template_repository, welcome_template
    ):
        await template_repository.save(welcome_template)

        result = await handler.handle_update_template(
            UpdateTemplateCommand(
                template_id=welcome_template.id,
                name="Welcome v2",
                tags=["onboarding"],
                is_active=False,
            )
        )

        assert result.data.version == 1
        assert result.data.name == "Welcome v2"
        assert result.data.is_active is False

        stored = await template_repository.find_by_id(welcome_template.id)
        assert stored.has_tag("onboarding")

    @pytest.mark.asyncio
    async def test_update_missing_template(self, handler):
        result = await handler.handle_update_template(
            UpdateTemplateCommand(template_id="tmpl_missing", name="x")
        )

        assert result.error_code == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_delete_deactivates(self, handler, template_repository, welcome_template):
        await template_repository.save(welcome_template)

        result = await handler.handle_delete_template(DeleteTemplateCommand(welcome_template.id))

        assert result.success
        assert result.data["template_id"] == welcome_template.id
        assert result.data["message"] == "Template deactivated successfully"

        stored = await template_repository.find_by_id(welcome_template.id)
        assert stored is not None
        assert stored.is_active is False

    def test_delete_requires_id(self):
        with pytest.raises(ValidationError, match="Template ID is required"):
            DeleteTemplateCommand("")


class TestPreviewTemplate:
    """Test suite for template previews."""

    @pytest.mark.asyncio
    async def test_preview_uses_samples(self, handler, template_repository, welcome_template):
        await template_repository.save(welcome_template)

        result = await handler.preview_template(
            welcome_template.id, "in_app", {"userName": "Ada"}
        )

        assert result.success
        assert result.data.rendered.body == "Hello Ada, you are on the Sample plan plan."
        assert result.data.warnings == []

    @pytest.mark.asyncio
    async def test_unresolved_placeholders_warn(
        self, handler, template_repository, welcome_template
    ):
        welcome_template.add_channel_template(
            ChannelTemplate(channel=ChannelType.PUSH, body="Hi {{userName}} aka {{nickname}}")
        )
        await template_repository.save(welcome_template)

        result = await handler.preview_template(welcome_template.id, "push")

        assert result.data.rendered.body == "Hi Sample userName aka {{nickname}}"
        assert result.data.warnings == [
            "Template contains unresolved variables - "
            "ensure all required variables are provided"
        ]

    @pytest.mark.asyncio
    async def test_long_content_warns(self, handler, template_repository, welcome_template):
        welcome_template.add_channel_template(
            ChannelTemplate(channel=ChannelType.WEBHOOK, body="x" * 5001)
        )
        await template_repository.save(welcome_template)

        result = await handler.preview_template(welcome_template.id, "webhook")

        assert len(result.data.warnings) == 1
        assert result.data.warnings[0].startswith("Template content is quite long")

    @pytest.mark.asyncio
    async def test_missing_template(self, handler):
        result = await handler.preview_template("tmpl_missing", "email")

        assert result.is_failure()
        assert result.error_code == "NOT_FOUND"


class TestValidateNotificationContent:
    def test_valid(self):
        validation = NotificationCommandHandler.validate_notification_content(
            "Hello", "World", ["email", "sms"]
        )

        assert validation.valid is True
        assert validation.errors == []

    def test_missing_fields(self):
        validation = NotificationCommandHandler.validate_notification_content("", " ", [])

        assert validation.valid is False
        assert validation.errors == [
            "Title is required",
            "Content is required",
            "At least one delivery channel is required",
        ]

    def test_limits(self):
        validation = NotificationCommandHandler.validate_notification_content(
            "t" * 201, "c" * 200, ["sms", "fax", "push"]
        )

        assert validation.errors == [
            "Title cannot exceed 200 characters",
            "Content exceeds maximum size for sms (160 characters)",
            "Invalid channel: fax",
        ]

    def test_content_limit(self):
        validation = NotificationCommandHandler.validate_notification_content(
            "Title", "c" * 10001, ["webhook"]
        )

        assert validation.errors == ["Content cannot exceed 10000 characters"]
