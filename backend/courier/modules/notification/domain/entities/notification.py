"""Notification entity representing an individual notification instance.

This aggregate manages the lifecycle of a single notification: its content,
the channels it goes out on, its status transitions and the append-only log
of delivery attempts.
"""

from datetime import datetime, timedelta
from typing import Any

from dateutil import parser as date_parser

from courier.core.domain.base import AggregateRoot, utc_now
from courier.modules.notification.domain.enums import (
    ChannelType,
    NotificationStatus,
    NotificationType,
)
from courier.modules.notification.domain.errors import (
    ChannelRequiredError,
    InvalidStateTransitionError,
    NotificationValidationError,
)
from courier.modules.notification.domain.events import (
    NotificationCreated,
    NotificationRetryScheduled,
    NotificationStatusChanged,
)
from courier.modules.notification.domain.value_objects import (
    Channel,
    DeliveryAttempt,
    NotificationId,
    Priority,
)


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return date_parser.isoparse(value)


class Notification(AggregateRoot):
    """Individual notification with status tracking and delivery history.

    Status moves ``pending -> sent -> delivered -> read``; ``failed`` can be
    reached from any state except ``read``. ``expired`` is never stored, see
    ``effective_status``.
    """

    MAX_TITLE_LENGTH = 200
    MAX_CONTENT_LENGTH = 10_000

    def __init__(
        self,
        notification_id: NotificationId,
        user_id: str,
        title: str,
        content: str,
        notification_type: NotificationType,
        priority: Priority,
        channels: list[Channel],
        status: NotificationStatus = NotificationStatus.PENDING,
        created_at: datetime | None = None,
        scheduled_at: datetime | None = None,
        sent_at: datetime | None = None,
        delivered_at: datetime | None = None,
        read_at: datetime | None = None,
        expires_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
        delivery_attempts: list[DeliveryAttempt] | None = None,
    ):
        """Build a notification from already-validated parts.

        Use ``create`` for new notifications and ``from_persistence`` to
        rebuild stored ones.
        """
        self.notification_id = notification_id
        super().__init__(notification_id.value, created_at)

        self.user_id = user_id
        self.title = title
        self.content = content
        self.type = notification_type
        self.priority = priority
        self._channels: list[Channel] = list(channels)
        self.status = status
        self.scheduled_at = scheduled_at
        self.sent_at = sent_at
        self.delivered_at = delivered_at
        self.read_at = read_at
        self.expires_at = expires_at
        self.metadata: dict[str, Any] = dict(metadata or {})
        self.metadata.setdefault("custom_data", {})
        self._delivery_attempts: tuple[DeliveryAttempt, ...] = tuple(
            delivery_attempts or ()
        )

    def _validate_entity(self) -> None:
        super()._validate_entity()
        if not isinstance(self.notification_id, NotificationId):
            raise NotificationValidationError(
                "Notification ID must be a NotificationId", field="notification_id"
            )

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        user_id: str,
        title: str,
        content: str,
        notification_type: NotificationType | str,
        priority: Priority | str | None = None,
        channels: list[Channel | ChannelType | str] | None = None,
        scheduled_at: datetime | None = None,
        expires_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
        notification_id: str | None = None,
    ) -> "Notification":
        """Create a new pending notification.

        Raises:
            NotificationValidationError: If any field violates its constraint
        """
        if not user_id:
            raise NotificationValidationError("User ID is required", field="user_id")

        if scheduled_at is not None and scheduled_at <= utc_now():
            raise NotificationValidationError(
                "Scheduled time must be in the future", field="scheduled_at"
            )

        notification = cls(
            notification_id=NotificationId.create(notification_id),
            user_id=str(user_id),
            title=cls._validate_title(title),
            content=cls._validate_content(content),
            notification_type=cls._parse_type(notification_type),
            priority=Priority.from_string(priority) if priority else Priority.normal(),
            channels=cls._normalize_channels(channels or [ChannelType.IN_APP]),
            scheduled_at=scheduled_at,
            expires_at=expires_at,
            metadata=metadata,
        )
        notification.add_event(
            NotificationCreated(
                notification_id=notification.id,
                user_id=notification.user_id,
                notification_type=notification.type.value,
                priority=notification.priority.value,
            )
        )
        return notification

    @classmethod
    def from_persistence(cls, data: dict[str, Any]) -> "Notification":
        """Rebuild a stored notification.

        Content limits are not re-checked; identifiers, enums and the
        channel list still are.
        """
        try:
            status = NotificationStatus(data["status"])
        except ValueError:
            raise NotificationValidationError(
                f"Invalid notification status: {data['status']}", field="status"
            ) from None
        if status == NotificationStatus.EXPIRED:
            raise NotificationValidationError(
                "Expired is a derived status and cannot be stored", field="status"
            )

        return cls(
            notification_id=NotificationId.from_string(data["id"]),
            user_id=str(data["user_id"]),
            title=data["title"],
            content=data["content"],
            notification_type=cls._parse_type(data["type"]),
            priority=Priority.from_string(data["priority"]),
            channels=cls._normalize_channels(data.get("channels") or []),
            status=status,
            created_at=_parse_datetime(data.get("created_at")),
            scheduled_at=_parse_datetime(data.get("scheduled_at")),
            sent_at=_parse_datetime(data.get("sent_at")),
            delivered_at=_parse_datetime(data.get("delivered_at")),
            read_at=_parse_datetime(data.get("read_at")),
            expires_at=_parse_datetime(data.get("expires_at")),
            metadata=data.get("metadata"),
            delivery_attempts=[
                DeliveryAttempt.from_dict(attempt)
                for attempt in data.get("delivery_attempts", [])
            ],
        )

    # -------------------------------------------------------------------------
    # Validation helpers
    # -------------------------------------------------------------------------

    @classmethod
    def _validate_title(cls, title: str) -> str:
        if not title or not title.strip():
            raise NotificationValidationError("Title cannot be empty", field="title")
        if len(title) > cls.MAX_TITLE_LENGTH:
            raise NotificationValidationError(
                f"Title cannot exceed {cls.MAX_TITLE_LENGTH} characters", field="title"
            )
        return title.strip()

    @classmethod
    def _validate_content(cls, content: str) -> str:
        if not content or not content.strip():
            raise NotificationValidationError("Content cannot be empty", field="content")
        if len(content) > cls.MAX_CONTENT_LENGTH:
            raise NotificationValidationError(
                f"Content cannot exceed {cls.MAX_CONTENT_LENGTH} characters",
                field="content",
            )
        return content.strip()

    @staticmethod
    def _parse_type(value: NotificationType | str) -> NotificationType:
        if isinstance(value, NotificationType):
            return value
        try:
            return NotificationType(value)
        except ValueError:
            raise NotificationValidationError(
                f"Invalid notification type: {value}", field="type"
            ) from None

    @staticmethod
    def _normalize_channels(channels) -> list[Channel]:
        normalized: list[Channel] = []
        for channel in channels:
            parsed = Channel.from_string(channel)
            if parsed not in normalized:
                normalized.append(parsed)
        if not normalized:
            raise ChannelRequiredError("Notification must have at least one channel")
        return normalized

    def _require_pending(self, operation: str) -> None:
        if self.status != NotificationStatus.PENDING:
            raise InvalidStateTransitionError(
                f"Cannot {operation} of non-pending notification",
                current_status=self.status.value,
                operation=operation,
            )

    # -------------------------------------------------------------------------
    # Mutators (pending only)
    # -------------------------------------------------------------------------

    @property
    def channels(self) -> tuple[Channel, ...]:
        return tuple(self._channels)

    @property
    def channel_types(self) -> list[ChannelType]:
        return [channel.type for channel in self._channels]

    def update_title(self, title: str) -> None:
        self._require_pending("update title")
        self.title = self._validate_title(title)
        self.mark_modified()

    def update_content(self, content: str) -> None:
        self._require_pending("update content")
        self.content = self._validate_content(content)
        self.mark_modified()

    def update_priority(self, priority: Priority | str) -> None:
        self._require_pending("update priority")
        self.priority = Priority.from_string(priority)
        self.mark_modified()

    def add_channel(self, channel: Channel | ChannelType | str) -> None:
        self._require_pending("add channels")
        channel = Channel.from_string(channel)
        if channel not in self._channels:
            self._channels.append(channel)
            self.mark_modified()

    def remove_channel(self, channel: Channel | ChannelType | str) -> None:
        """Remove a channel; the last remaining channel cannot be removed."""
        self._require_pending("remove channels")
        channel = Channel.from_string(channel)
        remaining = [c for c in self._channels if c != channel]
        if not remaining:
            raise ChannelRequiredError(
                "Notification must have at least one channel", channel=channel.value
            )
        self._channels = remaining
        self.mark_modified()

    def schedule(self, scheduled_at: datetime) -> None:
        self._require_pending("schedule")
        if scheduled_at <= utc_now():
            raise NotificationValidationError(
                "Scheduled time must be in the future", field="scheduled_at"
            )
        self.scheduled_at = scheduled_at
        self.mark_modified()

    def update_metadata(self, metadata: dict[str, Any]) -> None:
        self.metadata.update(metadata)
        self.mark_modified()

    # -------------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------------

    def _transition(
        self, new_status: NotificationStatus, message: str, reason: str | None = None
    ) -> None:
        if not self.status.can_transition_to(new_status):
            raise InvalidStateTransitionError(
                message, current_status=self.status.value, operation=new_status.value
            )
        old_status = self.status
        self.status = new_status
        self.mark_modified()
        self.add_event(
            NotificationStatusChanged(
                notification_id=self.id,
                old_status=old_status.value,
                new_status=new_status.value,
                reason=reason,
            )
        )

    def mark_as_sent(self) -> None:
        self._transition(NotificationStatus.SENT, "Can only mark pending notifications as sent")
        self.sent_at = utc_now()

    def mark_as_delivered(self) -> None:
        self._transition(
            NotificationStatus.DELIVERED, "Can only mark sent notifications as delivered"
        )
        self.delivered_at = utc_now()

    def mark_as_read(self) -> None:
        self._transition(
            NotificationStatus.READ, "Can only mark sent or delivered notifications as read"
        )
        self.read_at = utc_now()

    def mark_as_failed(self, reason: str | None = None) -> None:
        """Mark the notification failed, recording ``reason`` in custom data."""
        self._transition(
            NotificationStatus.FAILED, "Cannot mark read notifications as failed", reason
        )
        if reason:
            custom_data = dict(self.metadata.get("custom_data") or {})
            custom_data["last_error"] = reason
            custom_data["failed_at"] = utc_now().isoformat()
            self.metadata["custom_data"] = custom_data

    def schedule_retry(self, base_delay: float = 60.0) -> datetime:
        """Record when the next delivery attempt is due.

        The delay grows as ``base_delay * 2 ** retry_count``. The retry is
        not performed here; an external scheduler re-invokes delivery.
        """
        if not self.can_retry():
            raise InvalidStateTransitionError(
                "Notification cannot be retried",
                current_status=self.status.value,
                operation="schedule_retry",
            )
        delay = base_delay * (2**self.retry_count)
        next_retry_at = utc_now() + timedelta(seconds=delay)
        self.metadata["next_retry_at"] = next_retry_at.isoformat()
        self.metadata["retry_scheduled"] = True
        self.mark_modified()
        self.add_event(
            NotificationRetryScheduled(
                notification_id=self.id,
                retry_count=self.retry_count,
                next_retry_at=next_retry_at,
            )
        )
        return next_retry_at

    @property
    def is_retry_scheduled(self) -> bool:
        return bool(self.metadata.get("retry_scheduled"))

    @property
    def next_retry_at(self) -> datetime | None:
        return _parse_datetime(self.metadata.get("next_retry_at"))

    def requeue_for_retry(self) -> None:
        """Move a failed notification with a scheduled retry back to pending."""
        if not (self.is_retry_scheduled and self.can_retry() and self.sent_at is None):
            raise InvalidStateTransitionError(
                "Only failed notifications with a scheduled retry can be requeued",
                current_status=self.status.value,
                operation="requeue",
            )
        self._transition(NotificationStatus.PENDING, "Cannot requeue notification")
        self.metadata["retry_scheduled"] = False

    # -------------------------------------------------------------------------
    # Delivery history
    # -------------------------------------------------------------------------

    def add_delivery_attempt(self, attempt: DeliveryAttempt) -> None:
        """Append an attempt to the delivery log."""
        self._delivery_attempts = self._delivery_attempts + (attempt,)
        self.mark_modified()

    @property
    def delivery_attempts(self) -> tuple[DeliveryAttempt, ...]:
        return self._delivery_attempts

    @property
    def retry_count(self) -> int:
        return len(self._delivery_attempts)

    def get_last_delivery_attempt(self) -> DeliveryAttempt | None:
        return self._delivery_attempts[-1] if self._delivery_attempts else None

    def has_successful_delivery(self) -> bool:
        return any(attempt.success for attempt in self._delivery_attempts)

    def get_successful_channels(self) -> list[ChannelType]:
        return [a.channel for a in self._delivery_attempts if a.success]

    def get_failed_channels(self) -> list[ChannelType]:
        return [a.channel for a in self._delivery_attempts if not a.success]

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_expired(self, now: datetime | None = None) -> bool:
        if not self.expires_at:
            return False
        return self.expires_at <= (now or utc_now())

    @property
    def effective_status(self) -> NotificationStatus:
        """Stored status, or ``EXPIRED`` for a pending notification past expiry."""
        if self.status == NotificationStatus.PENDING and self.is_expired():
            return NotificationStatus.EXPIRED
        return self.status

    def is_ready_to_send(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        if self.status != NotificationStatus.PENDING or self.is_expired(now):
            return False
        return self.scheduled_at is None or self.scheduled_at <= now

    def has_channel(self, channel: Channel | ChannelType | str) -> bool:
        return Channel.from_string(channel) in self._channels

    @property
    def has_retry_budget(self) -> bool:
        return self.retry_count < self.priority.max_retries

    def can_retry(self) -> bool:
        return self.status == NotificationStatus.FAILED and self.has_retry_budget

    @property
    def last_error(self) -> str | None:
        return (self.metadata.get("custom_data") or {}).get("last_error")

    def validate_for_delivery(self) -> list[str]:
        """Return every reason this notification cannot be delivered."""
        errors = []

        if not self.title or not self.title.strip():
            errors.append("Title is required")

        if not self.content or not self.content.strip():
            errors.append("Content is required")

        if not self._channels:
            errors.append("At least one channel is required")

        if self.is_expired():
            errors.append("Notification has expired")

        content_length = len(self.content or "")
        for channel in self._channels:
            max_size = channel.max_message_size
            if content_length > max_size:
                errors.append(
                    f"Content exceeds maximum size for {channel.value} channel "
                    f"({max_size} characters)"
                )

        return errors

    def to_dict(self) -> dict[str, Any]:
        def iso(value: datetime | None) -> str | None:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "content": self.content,
            "type": self.type.value,
            "priority": self.priority.value,
            "status": self.status.value,
            "channels": [channel.value for channel in self._channels],
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "scheduled_at": iso(self.scheduled_at),
            "sent_at": iso(self.sent_at),
            "delivered_at": iso(self.delivered_at),
            "read_at": iso(self.read_at),
            "expires_at": iso(self.expires_at),
            "metadata": dict(self.metadata),
            "delivery_attempts": [a.to_dict() for a in self._delivery_attempts],
        }

    def __str__(self) -> str:
        channels = ", ".join(channel.value for channel in self._channels)
        return f"Notification({self.id}) to {self.user_id} via {channels} - {self.status.value}"
