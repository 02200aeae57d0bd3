"""Notification Repository Interface.

Domain contract for notification data access operations.
"""

from abc import ABC, abstractmethod

from courier.modules.notification.domain.entities.notification import Notification


class INotificationRepository(ABC):
    """Repository interface for Notification entity operations."""

    @abstractmethod
    async def find_by_id(self, notification_id: str) -> Notification | None:
        """Find a notification by ID."""

    @abstractmethod
    async def save(self, notification: Notification) -> Notification:
        """Insert or replace a notification."""
