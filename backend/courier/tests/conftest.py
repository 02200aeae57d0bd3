"""
Global pytest configuration and fixtures for all tests.

Provides:
- Deterministic fake channel transports
- Notification, template and subscription factories
- Wired services and in-memory repositories
"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from courier.core.config import DeliveryConfig, RenderingConfig
from courier.core.domain.base import utc_now
from courier.modules.notification.application.services import (
    NotificationDeliveryService,
    TemplateRenderingService,
)
from courier.modules.notification.domain.aggregates import NotificationTemplate
from courier.modules.notification.domain.entities import Notification, Subscription
from courier.modules.notification.domain.enums import (
    ChannelType,
    FrequencyType,
    NotificationType,
    VariableType,
)
from courier.modules.notification.domain.errors import TransportError
from courier.modules.notification.domain.interfaces.services import (
    ChannelTransport,
    OutboundMessage,
    TransportReceipt,
)
from courier.modules.notification.domain.value_objects import (
    Channel,
    ChannelPreference,
    ChannelTemplate,
    TemplateVariable,
)
from courier.modules.notification.infrastructure.adapters import InAppChannelAdapter
from courier.modules.notification.infrastructure.repositories import (
    InMemoryNotificationRepository,
    InMemoryNotificationTemplateRepository,
    InMemorySubscriptionRepository,
)

# Fixed daytime clock so quiet-hours checks never depend on the wall clock
NOON_UTC = datetime(2024, 6, 3, 12, 0, 0, tzinfo=UTC)


# ============================================================================
# Fake Transports
# ============================================================================


class FakeTransport(ChannelTransport):
    """Transport that records every message and succeeds or fails on demand."""

    def __init__(self, fail: bool = False, error_message: str = "Provider rejected message"):
        self.fail = fail
        self.error_message = error_message
        self.sent: list[tuple[Channel, OutboundMessage]] = []

    async def send(self, channel: Channel, message: OutboundMessage) -> TransportReceipt:
        self.sent.append((channel, message))
        if self.fail:
            raise TransportError(self.error_message, channel=channel.value)
        return TransportReceipt(
            delivery_id=f"{channel.value}_{len(self.sent)}",
            response_time=0.001,
        )


class BlockingTransport(ChannelTransport):
    """Transport whose send only returns once ``release`` is set."""

    def __init__(self):
        self.release = asyncio.Event()
        self.completed = 0

    async def send(self, channel: Channel, message: OutboundMessage) -> TransportReceipt:
        await self.release.wait()
        self.completed += 1
        return TransportReceipt(delivery_id=f"{channel.value}_late", response_time=1.0)


class UnavailableTransport(FakeTransport):
    """Transport whose health probe fails."""

    async def ping(self) -> None:
        raise ConnectionError("Provider unreachable")


@pytest.fixture
def fake_transport_class():
    return FakeTransport


@pytest.fixture
def email_transport():
    return FakeTransport()


@pytest.fixture
def failing_transport():
    return FakeTransport(fail=True)


@pytest.fixture
def blocking_transport():
    return BlockingTransport()


@pytest.fixture
def unavailable_transport():
    return UnavailableTransport()


@pytest.fixture
def in_app_adapter():
    return InAppChannelAdapter()


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def delivery_config():
    return DeliveryConfig(
        retry_base_delay_seconds=60.0,
        bulk_batch_size=100,
        bulk_delay_between_batches=0.0,
        bulk_concurrency=4,
    )


@pytest.fixture
def delivery_service(in_app_adapter, email_transport, delivery_config):
    """Delivery service with working in-app and email transports."""
    return NotificationDeliveryService(
        transports={
            ChannelType.IN_APP: in_app_adapter,
            ChannelType.EMAIL: email_transport,
        },
        config=delivery_config,
        clock=lambda: NOON_UTC,
    )


@pytest.fixture
def rendering_service():
    return TemplateRenderingService(config=RenderingConfig(cache_ttl_seconds=300.0))


# ============================================================================
# Repositories
# ============================================================================


@pytest.fixture
def notification_repository():
    return InMemoryNotificationRepository()


@pytest.fixture
def template_repository():
    return InMemoryNotificationTemplateRepository()


@pytest.fixture
def subscription_repository():
    return InMemorySubscriptionRepository()


# ============================================================================
# Domain Factories
# ============================================================================


@pytest.fixture
def make_notification():
    """Factory for pending notifications with sensible defaults."""

    def _make(**overrides) -> Notification:
        values = {
            "user_id": "user-1",
            "title": "Test",
            "content": "Hi",
            "notification_type": NotificationType.ALERT,
            "priority": "normal",
            "channels": ["in_app"],
        }
        values.update(overrides)
        return Notification.create(**values)

    return _make


@pytest.fixture
def make_subscription():
    """Factory for active subscriptions on in-app and email."""

    def _make(user_id: str = "user-1", **overrides) -> Subscription:
        values = {
            "user_id": user_id,
            "notification_type": NotificationType.ALERT,
            "channel_preferences": [
                ChannelPreference(channel=ChannelType.IN_APP),
                ChannelPreference(
                    channel=ChannelType.EMAIL,
                    frequency=FrequencyType.IMMEDIATE,
                    address="user@example.com",
                ),
            ],
        }
        values.update(overrides)
        return Subscription.create(**values)

    return _make


@pytest.fixture
def welcome_template():
    """Active template with in-app, email and SMS channels."""
    return NotificationTemplate.create(
        name="Welcome",
        description="Sent after sign-up",
        template_type=NotificationType.WELCOME,
        created_by="admin-1",
        variables=[
            TemplateVariable(name="userName", var_type=VariableType.STRING, required=True),
            TemplateVariable(
                name="plan",
                var_type=VariableType.STRING,
                required=False,
                default_value="free",
            ),
        ],
        channel_templates=[
            ChannelTemplate(
                channel=ChannelType.IN_APP,
                subject="Welcome {{userName}}",
                body="Hello {{userName}}, you are on the {{plan}} plan.",
            ),
            ChannelTemplate(
                channel=ChannelType.EMAIL,
                subject="Welcome aboard, {{userName}}",
                body="<p>Hello {{userName}}</p><script>alert(1)</script>",
                format="html",
            ),
            ChannelTemplate(channel=ChannelType.SMS, body="Hi {{userName}}!"),
        ],
    )


@pytest.fixture
def future():
    """Time one hour from now."""
    return utc_now() + timedelta(hours=1)
