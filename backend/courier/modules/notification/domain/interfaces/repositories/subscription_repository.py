"""Subscription Repository Interface.

Domain contract for subscription data access operations.
"""

from abc import ABC, abstractmethod

from courier.modules.notification.domain.entities.subscription import Subscription
from courier.modules.notification.domain.enums import NotificationType


class ISubscriptionRepository(ABC):
    """Repository interface for Subscription entity operations."""

    @abstractmethod
    async def find_by_user_and_type(
        self, user_id: str, notification_type: NotificationType
    ) -> Subscription | None:
        """Find the subscription of a user for one notification type."""

    @abstractmethod
    async def save(self, subscription: Subscription) -> Subscription:
        """Insert or replace a subscription."""
