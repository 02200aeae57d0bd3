"""Notification infrastructure layer.

This module contains the infrastructure implementations for the notification domain:
the template grammar engine, channel adapters and in-memory repositories.
"""

from courier.modules.notification.infrastructure.adapters import InAppChannelAdapter
from courier.modules.notification.infrastructure.engines import (
    RenderCache,
    TextTemplateEngine,
)
from courier.modules.notification.infrastructure.repositories import (
    InMemoryNotificationRepository,
    InMemoryNotificationTemplateRepository,
    InMemorySubscriptionRepository,
)

__all__ = [
    "InAppChannelAdapter",
    "InMemoryNotificationRepository",
    "InMemoryNotificationTemplateRepository",
    "InMemorySubscriptionRepository",
    "RenderCache",
    "TextTemplateEngine",
]
