"""
Channel Transport Interface

Port implemented by the adapters that actually move a message over a
channel (email, SMS, push, in-app, webhook). Network I/O lives behind this
contract; the delivery service only sees receipts and transport errors.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from courier.modules.notification.domain.value_objects import Channel


@dataclass(frozen=True)
class OutboundMessage:
    """Rendered content handed to a transport."""

    notification_id: str
    user_id: str
    body: str
    subject: str | None = None
    address: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransportReceipt:
    """Acknowledgement returned by a transport after a successful send."""

    delivery_id: str
    response_time: float


@dataclass(frozen=True)
class TransportHealth:
    """Result of probing a transport."""

    available: bool
    response_time: float
    error_message: str | None = None


class ChannelTransport(ABC):
    """Port for a single delivery channel."""

    @abstractmethod
    async def send(self, channel: Channel, message: OutboundMessage) -> TransportReceipt:
        """
        Deliver a message over the channel.

        Args:
            channel: Channel the message goes out on
            message: Rendered content and recipient address

        Returns:
            Receipt carrying the provider delivery ID and response time

        Raises:
            TransportError: If the provider rejects or fails the delivery
        """
        ...

    async def ping(self) -> None:
        """Probe the provider; raise when it is unavailable."""

    async def health_check(self) -> TransportHealth:
        """Report whether the transport can currently deliver."""
        started = time.perf_counter()
        try:
            await self.ping()
        except Exception as e:
            return TransportHealth(
                available=False,
                response_time=time.perf_counter() - started,
                error_message=str(e),
            )
        return TransportHealth(available=True, response_time=time.perf_counter() - started)
