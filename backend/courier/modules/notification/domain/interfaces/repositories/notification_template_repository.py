"""Notification Template Repository Interface.

Domain contract for template data access operations.
"""

from abc import ABC, abstractmethod

from courier.modules.notification.domain.aggregates.notification_template import (
    NotificationTemplate,
)


class INotificationTemplateRepository(ABC):
    """Repository interface for NotificationTemplate aggregate operations."""

    @abstractmethod
    async def find_by_id(self, template_id: str) -> NotificationTemplate | None:
        """Find a template by ID, active or not."""

    @abstractmethod
    async def save(self, template: NotificationTemplate) -> NotificationTemplate:
        """Insert or replace a template."""
