"""
Notification Delivery Service Interface

Port for notification delivery operations including channel selection,
delivery orchestration, and statistics.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from courier.modules.notification.application.dto import (
        BulkDeliveryRequest,
        DeliveryOptions,
        DeliveryResult,
    )
    from courier.modules.notification.domain.entities import Notification, Subscription
    from courier.modules.notification.domain.value_objects import Channel


class INotificationDeliveryService(ABC):
    """Port for notification delivery operations."""

    @abstractmethod
    async def deliver_notification(
        self,
        notification: "Notification",
        subscription: "Subscription",
        options: "DeliveryOptions | None" = None,
    ) -> list["DeliveryResult"]:
        """
        Deliver a notification over every eligible channel.

        Args:
            notification: Notification to deliver
            subscription: Recipient's subscription for the notification type
            options: Retry and timeout overrides

        Returns:
            One result per attempted channel, in channel order

        Raises:
            NotificationValidationError: If the notification is not deliverable
            EligibilityError: If the subscription blocks delivery
        """
        ...

    @abstractmethod
    async def deliver_bulk(
        self, request: "BulkDeliveryRequest", subscription_lookup: Any = None
    ) -> dict[str, list["DeliveryResult"]]:
        """
        Deliver many notifications in throttled user batches.

        Returns:
            Results keyed by notification ID
        """
        ...

    @abstractmethod
    def get_optimal_channel(
        self, notification: "Notification", subscription: "Subscription"
    ) -> "Channel | None":
        """Pick the best-scoring eligible channel, or None."""
        ...

    @abstractmethod
    def get_delivery_stats(self) -> dict[str, Any]:
        """Snapshot of the delivery statistics."""
        ...
