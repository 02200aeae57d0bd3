"""Notification application services.

This module contains application services that orchestrate template rendering
and multi-channel delivery across domain entities and channel transports.
"""

from courier.modules.notification.application.services.delivery_service import (
    DeliveryStatistics,
    NotificationDeliveryService,
)
from courier.modules.notification.application.services.rendering_service import (
    TemplateRenderingService,
)

__all__ = [
    "DeliveryStatistics",
    "NotificationDeliveryService",
    "TemplateRenderingService",
]
