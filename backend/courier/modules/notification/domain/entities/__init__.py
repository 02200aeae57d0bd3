"""Notification domain entities."""

from .notification import Notification
from .subscription import Subscription

__all__ = ["Notification", "Subscription"]
