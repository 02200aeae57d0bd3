"""Notification channel adapters.

This module contains adapter implementations of the channel transport port.
Only the in-app channel ships here; email, SMS, push and webhook providers
are wired in by the host application.
"""

from courier.modules.notification.infrastructure.adapters.base import BaseChannelAdapter
from courier.modules.notification.infrastructure.adapters.in_app_adapter import (
    InAppChannelAdapter,
)

__all__ = [
    "BaseChannelAdapter",
    "InAppChannelAdapter",
]
