"""
Notification Domain Service Interfaces

Ports for channel transports and the rendering and delivery services.
"""

from .channel_transport import (
    ChannelTransport,
    OutboundMessage,
    TransportHealth,
    TransportReceipt,
)
from .notification_delivery_service import INotificationDeliveryService
from .template_rendering_service import ITemplateRenderingService

__all__ = [
    "ChannelTransport",
    "INotificationDeliveryService",
    "ITemplateRenderingService",
    "OutboundMessage",
    "TransportHealth",
    "TransportReceipt",
]
