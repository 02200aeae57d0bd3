"""
Notification Repository Interfaces

Persistence contracts for notifications, templates and subscriptions.
"""

from .notification_repository import INotificationRepository
from .notification_template_repository import INotificationTemplateRepository
from .subscription_repository import ISubscriptionRepository

__all__ = [
    "INotificationRepository",
    "INotificationTemplateRepository",
    "ISubscriptionRepository",
]
