"""Notification domain aggregates."""

from .notification_template import NotificationTemplate

__all__ = ["NotificationTemplate"]
