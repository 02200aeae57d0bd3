"""Tests for channel adapters and in-memory repositories."""

import pytest

from courier.modules.notification.domain.enums import ChannelType, NotificationType
from courier.modules.notification.domain.errors import TransportError
from courier.modules.notification.domain.interfaces.services import OutboundMessage
from courier.modules.notification.domain.value_objects import Channel
from courier.modules.notification.infrastructure.adapters import (
    BaseChannelAdapter,
    InAppChannelAdapter,
)


def _message(notification_id: str = "notif_1", user_id: str = "user-1") -> OutboundMessage:
    return OutboundMessage(
        notification_id=notification_id,
        user_id=user_id,
        subject="Title",
        body="Body",
    )


class ExplodingAdapter(BaseChannelAdapter):
    channel_type = ChannelType.PUSH

    async def _deliver(self, message: OutboundMessage) -> str | None:
        raise RuntimeError("socket closed")


class TestInAppChannelAdapter:
    """Test suite for the in-app inbox adapter."""

    @pytest.mark.asyncio
    async def test_send_stores_message(self):
        adapter = InAppChannelAdapter()

        receipt = await adapter.send(Channel.in_app(), _message())

        assert receipt.delivery_id == "in_app_notif_1"
        assert receipt.response_time >= 0
        assert await adapter.get_unread_count("user-1") == 1

        recent = await adapter.get_recent_notifications("user-1")
        assert recent[0]["title"] == "Title"
        assert recent[0]["read"] is False

    @pytest.mark.asyncio
    async def test_newest_first_and_bounded(self):
        adapter = InAppChannelAdapter(max_inbox_size=2)

        for index in range(3):
            await adapter.send(Channel.in_app(), _message(f"notif_{index}"))

        recent = await adapter.get_recent_notifications("user-1")
        assert [entry["id"] for entry in recent] == ["notif_2", "notif_1"]

    @pytest.mark.asyncio
    async def test_mark_as_read(self):
        adapter = InAppChannelAdapter()
        await adapter.send(Channel.in_app(), _message())

        assert await adapter.mark_as_read("notif_1", "user-1") is True
        assert await adapter.mark_as_read("notif_missing", "user-1") is False
        assert await adapter.get_unread_count("user-1") == 0

    @pytest.mark.asyncio
    async def test_wrong_channel_is_rejected(self):
        adapter = InAppChannelAdapter()

        with pytest.raises(TransportError) as exc_info:
            await adapter.send(Channel.email(), _message())

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_health_check(self):
        health = await InAppChannelAdapter().health_check()

        assert health.available is True
        assert health.error_message is None


class TestBaseChannelAdapter:
    @pytest.mark.asyncio
    async def test_unexpected_errors_become_transport_errors(self):
        with pytest.raises(TransportError, match="socket closed") as exc_info:
            await ExplodingAdapter().send(Channel.push(), _message())

        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_sanitize_provider_response(self):
        sanitized = BaseChannelAdapter.sanitize_provider_response(
            {"id": "abc", "Authorization": "Bearer x", "nested": {"api_key": "k"}}
        )

        assert sanitized == {
            "id": "abc",
            "Authorization": "[REDACTED]",
            "nested": {"api_key": "[REDACTED]"},
        }


class TestInMemoryRepositories:
    """Test suite for the snapshot-based repositories."""

    @pytest.mark.asyncio
    async def test_notification_snapshot_isolation(self, notification_repository, make_notification):
        notification = make_notification()
        await notification_repository.save(notification)

        assert notification.get_events() == []

        notification.mark_as_sent()
        stored = await notification_repository.find_by_id(notification.id)

        assert stored.status.value == "pending"
        assert notification_repository.count() == 1

    @pytest.mark.asyncio
    async def test_missing_notification(self, notification_repository):
        assert await notification_repository.find_by_id("notif_missing") is None

    @pytest.mark.asyncio
    async def test_template_round_trip(self, template_repository, welcome_template):
        await template_repository.save(welcome_template)

        stored = await template_repository.find_by_id(welcome_template.id)

        assert stored.name == "Welcome"
        assert stored.get_enabled_channels() == welcome_template.get_enabled_channels()

    @pytest.mark.asyncio
    async def test_subscription_lookup_by_user_and_type(
        self, subscription_repository, make_subscription
    ):
        await subscription_repository.save(make_subscription("user-7"))

        found = await subscription_repository.find_by_user_and_type(
            "user-7", NotificationType.ALERT
        )
        missing = await subscription_repository.find_by_user_and_type(
            "user-7", NotificationType.REPORT
        )

        assert found.user_id == "user-7"
        assert missing is None
