"""Notification repository implementations."""

from courier.modules.notification.infrastructure.repositories.in_memory import (
    InMemoryNotificationRepository,
    InMemoryNotificationTemplateRepository,
    InMemorySubscriptionRepository,
)

__all__ = [
    "InMemoryNotificationRepository",
    "InMemoryNotificationTemplateRepository",
    "InMemorySubscriptionRepository",
]
