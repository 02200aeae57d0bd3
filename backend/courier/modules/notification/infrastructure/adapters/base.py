"""Base channel adapter and utilities."""

import time
from abc import abstractmethod
from uuid import uuid4

from courier.core.logging import get_logger
from courier.modules.notification.domain.enums import ChannelType
from courier.modules.notification.domain.errors import TransportError
from courier.modules.notification.domain.interfaces.services import (
    ChannelTransport,
    OutboundMessage,
    TransportReceipt,
)
from courier.modules.notification.domain.value_objects import Channel

logger = get_logger(__name__)

SENSITIVE_FIELDS = (
    "api_key",
    "secret",
    "token",
    "password",
    "authorization",
    "x-api-key",
    "bearer",
)


class BaseChannelAdapter(ChannelTransport):
    """Base class for channel transports bound to one channel type.

    Subclasses implement ``_deliver``; this class checks the channel,
    measures response time and wraps unexpected errors in ``TransportError``.
    """

    channel_type: ChannelType

    def __init__(self, provider: str = "internal"):
        self.provider = provider

    async def send(self, channel: Channel, message: OutboundMessage) -> TransportReceipt:
        if channel.type != self.channel_type:
            raise TransportError(
                f"{self.__class__.__name__} cannot deliver over '{channel.value}'",
                channel=channel.value,
                is_retryable=False,
            )

        started = time.perf_counter()
        try:
            delivery_id = await self._deliver(message)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(
                f"Failed to send {channel.value} notification: {e!s}",
                channel=channel.value,
                is_retryable=True,
            ) from e

        receipt = TransportReceipt(
            delivery_id=delivery_id or f"{channel.value}_{uuid4().hex[:12]}",
            response_time=time.perf_counter() - started,
        )
        logger.debug(
            "Transport delivered message",
            channel=channel.value,
            provider=self.provider,
            notification_id=message.notification_id,
            delivery_id=receipt.delivery_id,
        )
        return receipt

    @abstractmethod
    async def _deliver(self, message: OutboundMessage) -> str | None:
        """Move the message to the provider and return its delivery ID."""

    @classmethod
    def sanitize_provider_response(cls, response: dict) -> dict:
        """Redact credentials from a provider response before it is stored."""
        sanitized = {}
        for key, value in response.items():
            if key.lower() in SENSITIVE_FIELDS:
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = cls.sanitize_provider_response(value)
            else:
                sanitized[key] = value
        return sanitized
