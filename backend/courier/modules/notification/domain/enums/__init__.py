"""Notification domain enums.

This module contains all enumeration types used in the notification domain,
providing type-safe constants for channels, priorities, statuses, template
variable types and subscription preferences.
"""

from enum import Enum


class ChannelType(Enum):
    """Available notification delivery channels."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"
    WEBHOOK = "webhook"

    def requires_configuration(self) -> bool:
        """Check if this channel needs a recipient address to deliver."""
        return self != ChannelType.IN_APP

    def max_message_size(self) -> int:
        """Get maximum message size in characters for this channel."""
        sizes = {
            ChannelType.SMS: 160,
            ChannelType.PUSH: 500,
            ChannelType.IN_APP: 10_000,
            ChannelType.EMAIL: 50_000,
            ChannelType.WEBHOOK: 100_000,
        }
        return sizes[self]

    def typical_delivery_time(self) -> float:
        """Get typical delivery latency in seconds."""
        latencies = {
            ChannelType.IN_APP: 0.1,
            ChannelType.PUSH: 1.0,
            ChannelType.SMS: 5.0,
            ChannelType.WEBHOOK: 10.0,
            ChannelType.EMAIL: 30.0,
        }
        return latencies[self]

    def cost_factor(self) -> float:
        """Get relative delivery cost (in-app is free, SMS the most expensive)."""
        costs = {
            ChannelType.IN_APP: 0.0,
            ChannelType.PUSH: 0.1,
            ChannelType.WEBHOOK: 0.2,
            ChannelType.EMAIL: 0.5,
            ChannelType.SMS: 5.0,
        }
        return costs[self]

    def supports_rich_content(self) -> bool:
        return self in (ChannelType.EMAIL, ChannelType.IN_APP, ChannelType.WEBHOOK)

    def supports_scheduled_delivery(self) -> bool:
        return self in (ChannelType.EMAIL, ChannelType.SMS, ChannelType.PUSH)

    def supports_bulk_delivery(self) -> bool:
        return self in (ChannelType.EMAIL, ChannelType.PUSH, ChannelType.WEBHOOK)

    def supports_immediate_delivery(self) -> bool:
        return self != ChannelType.WEBHOOK


class PriorityLevel(Enum):
    """Notification priority levels."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    def rank(self) -> int:
        """Numeric rank used for ordering and channel scoring."""
        ranks = {
            PriorityLevel.LOW: 1,
            PriorityLevel.NORMAL: 2,
            PriorityLevel.HIGH: 3,
            PriorityLevel.URGENT: 4,
        }
        return ranks[self]

    def delivery_timeout(self) -> float:
        """Get delivery timeout in seconds."""
        timeouts = {
            PriorityLevel.URGENT: 30.0,
            PriorityLevel.HIGH: 5 * 60.0,
            PriorityLevel.NORMAL: 30 * 60.0,
            PriorityLevel.LOW: 2 * 60 * 60.0,
        }
        return timeouts[self]

    def max_retries(self) -> int:
        """Get maximum retry attempts based on priority."""
        attempts = {
            PriorityLevel.URGENT: 5,
            PriorityLevel.HIGH: 3,
            PriorityLevel.NORMAL: 2,
            PriorityLevel.LOW: 1,
        }
        return attempts[self]


class NotificationStatus(Enum):
    """Notification lifecycle status.

    ``EXPIRED`` is never stored; it is reported by
    ``Notification.effective_status`` for pending notifications past their
    expiry.
    """

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"
    EXPIRED = "expired"

    def is_final(self) -> bool:
        return self in (NotificationStatus.READ, NotificationStatus.EXPIRED)

    def can_transition_to(self, new_status: "NotificationStatus") -> bool:
        """Check if transition to new status is valid."""
        valid_transitions: dict[NotificationStatus, tuple[NotificationStatus, ...]] = {
            NotificationStatus.PENDING: (
                NotificationStatus.SENT,
                NotificationStatus.FAILED,
            ),
            NotificationStatus.SENT: (
                NotificationStatus.DELIVERED,
                NotificationStatus.READ,
                NotificationStatus.FAILED,
            ),
            NotificationStatus.DELIVERED: (
                NotificationStatus.READ,
                NotificationStatus.FAILED,
            ),
            NotificationStatus.FAILED: (
                NotificationStatus.FAILED,
                NotificationStatus.PENDING,
            ),
            NotificationStatus.READ: (),
            NotificationStatus.EXPIRED: (),
        }
        return new_status in valid_transitions[self]


class NotificationType(Enum):
    """Kinds of notification a user can subscribe to."""

    WELCOME = "welcome"
    ALERT = "alert"
    REMINDER = "reminder"
    REPORT = "report"
    WORKFLOW_STATUS = "workflow_status"
    INTEGRATION_STATUS = "integration_status"
    SYSTEM_UPDATE = "system_update"
    SECURITY = "security"


class SubscriptionStatus(Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    UNSUBSCRIBED = "unsubscribed"


class FrequencyType(Enum):
    """How often a channel preference receives notifications."""

    IMMEDIATE = "immediate"
    DIGEST_HOURLY = "digest_hourly"
    DIGEST_DAILY = "digest_daily"
    DIGEST_WEEKLY = "digest_weekly"
    DIGEST_MONTHLY = "digest_monthly"

    def is_digest(self) -> bool:
        return self != FrequencyType.IMMEDIATE


class VariableType(Enum):
    """Declared type of a template variable."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    OBJECT = "object"


class TemplateFormat(Enum):
    """Output format of a channel template body."""

    TEXT = "text"
    HTML = "html"
    MARKDOWN = "markdown"


class FilterOperator(Enum):
    """Comparison applied by a subscription filter rule."""

    EQUALS = "equals"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    REGEX = "regex"


__all__ = [
    "ChannelType",
    "FilterOperator",
    "FrequencyType",
    "NotificationStatus",
    "NotificationType",
    "PriorityLevel",
    "SubscriptionStatus",
    "TemplateFormat",
    "VariableType",
]
