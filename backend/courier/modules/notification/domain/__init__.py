"""Notification domain layer.

This layer contains the core business logic for the notification module,
including aggregates, entities, value objects, domain events, and business rules.
All components are framework-agnostic.
"""

from .aggregates import NotificationTemplate
from .entities import Notification, Subscription

__all__ = [
    "Notification",
    "NotificationTemplate",
    "Subscription",
]
