"""Notification domain value objects.

This module contains immutable value objects that represent domain concepts
without identity: identifiers, the priority and channel descriptors with their
fixed constants, and the small records embedded in notifications, templates
and subscriptions.
"""

import math
import random
import re
import string
import time
from datetime import date, datetime
from functools import total_ordering
from typing import Any

import pytz
from dateutil import parser as date_parser

from courier.core.domain.base import ValueObject, utc_now
from courier.modules.notification.domain.enums import (
    ChannelType,
    FilterOperator,
    FrequencyType,
    PriorityLevel,
    TemplateFormat,
    VariableType,
)
from courier.modules.notification.domain.errors import (
    NotificationValidationError,
    TemplateSizeExceededError,
)

_BASE36 = string.digits + string.ascii_lowercase


def to_base36(number: int) -> str:
    """Encode a non-negative integer in lower-case base 36."""
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def random_base36(length: int) -> str:
    return "".join(random.choices(_BASE36, k=length))


def generate_prefixed_id(prefix: str, random_length: int = 9) -> str:
    """Build ``<prefix>_<epoch millis>_<random base36>`` identifiers."""
    return f"{prefix}_{int(time.time() * 1000)}_{random_base36(random_length)}"


def _enum_value(enum_class, value, field_name):
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_class)
        raise NotificationValidationError(
            f"Invalid {field_name}: {value}. Must be one of: {allowed}",
            field=field_name,
        ) from None


# =====================================================================================
# IDENTIFIERS AND DESCRIPTORS
# =====================================================================================


class NotificationId(ValueObject):
    """Opaque notification identifier (``notif_<ts36>_<rand6>``)."""

    MAX_LENGTH = 50
    PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

    def __init__(self, value: str):
        super().__init__()

        if not isinstance(value, str) or not value.strip():
            raise NotificationValidationError(
                "Notification ID cannot be empty", field="notification_id"
            )
        if len(value) > self.MAX_LENGTH:
            raise NotificationValidationError(
                f"Notification ID cannot exceed {self.MAX_LENGTH} characters",
                field="notification_id",
            )
        if not self.PATTERN.match(value):
            raise NotificationValidationError(
                "Notification ID contains invalid characters", field="notification_id"
            )

        self.value = value
        self._freeze()

    @classmethod
    def create(cls, value: str | None = None) -> "NotificationId":
        if value is not None:
            return cls(value)
        timestamp = to_base36(int(time.time() * 1000))
        return cls(f"notif_{timestamp}_{random_base36(6)}")

    @classmethod
    def from_string(cls, value: str) -> "NotificationId":
        return cls(value)

    def __str__(self) -> str:
        return self.value


@total_ordering
class Priority(ValueObject):
    """Notification priority with its derived delivery constants."""

    def __init__(self, level: PriorityLevel):
        super().__init__()
        if not isinstance(level, PriorityLevel):
            raise NotificationValidationError(
                f"Invalid priority level: {level}", field="priority"
            )
        self.level = level
        self._freeze()

    @classmethod
    def low(cls) -> "Priority":
        return cls(PriorityLevel.LOW)

    @classmethod
    def normal(cls) -> "Priority":
        return cls(PriorityLevel.NORMAL)

    @classmethod
    def high(cls) -> "Priority":
        return cls(PriorityLevel.HIGH)

    @classmethod
    def urgent(cls) -> "Priority":
        return cls(PriorityLevel.URGENT)

    @classmethod
    def from_string(cls, value: str) -> "Priority":
        """
        Parse a priority level.

        Raises:
            NotificationValidationError: If the level is unknown
        """
        if isinstance(value, Priority):
            return value
        normalized = value.strip().lower() if isinstance(value, str) else value
        return cls(_enum_value(PriorityLevel, normalized, "priority"))

    @property
    def value(self) -> str:
        return self.level.value

    @property
    def rank(self) -> int:
        return self.level.rank()

    @property
    def delivery_timeout(self) -> float:
        """Delivery timeout in seconds."""
        return self.level.delivery_timeout()

    @property
    def max_retries(self) -> int:
        return self.level.max_retries()

    @property
    def is_urgent(self) -> bool:
        return self.level == PriorityLevel.URGENT

    def is_higher_than(self, other: "Priority") -> bool:
        return self.rank > other.rank

    def is_lower_than(self, other: "Priority") -> bool:
        return self.rank < other.rank

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank < other.rank

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Priority) and self.level == other.level

    def __hash__(self) -> int:
        return hash(("Priority", self.level))

    def __str__(self) -> str:
        return self.level.value


class Channel(ValueObject):
    """Delivery channel with its capability, size, latency and cost constants."""

    def __init__(self, channel_type: ChannelType):
        super().__init__()
        if not isinstance(channel_type, ChannelType):
            raise NotificationValidationError(
                f"Invalid channel type: {channel_type}", field="channel"
            )
        self.type = channel_type
        self._freeze()

    @classmethod
    def email(cls) -> "Channel":
        return cls(ChannelType.EMAIL)

    @classmethod
    def sms(cls) -> "Channel":
        return cls(ChannelType.SMS)

    @classmethod
    def push(cls) -> "Channel":
        return cls(ChannelType.PUSH)

    @classmethod
    def in_app(cls) -> "Channel":
        return cls(ChannelType.IN_APP)

    @classmethod
    def webhook(cls) -> "Channel":
        return cls(ChannelType.WEBHOOK)

    @classmethod
    def from_string(cls, value: "str | ChannelType | Channel") -> "Channel":
        """
        Parse a channel type (case-insensitive).

        Raises:
            NotificationValidationError: If the channel type is unknown
        """
        if isinstance(value, Channel):
            return value
        if isinstance(value, str):
            value = value.strip().lower()
        return cls(_enum_value(ChannelType, value, "channel"))

    @property
    def value(self) -> str:
        return self.type.value

    @property
    def requires_configuration(self) -> bool:
        return self.type.requires_configuration()

    @property
    def max_message_size(self) -> int:
        return self.type.max_message_size()

    @property
    def typical_delivery_time(self) -> float:
        """Typical delivery latency in seconds."""
        return self.type.typical_delivery_time()

    @property
    def cost_factor(self) -> float:
        return self.type.cost_factor()

    @property
    def supports_rich_content(self) -> bool:
        return self.type.supports_rich_content()

    @property
    def supports_scheduled_delivery(self) -> bool:
        return self.type.supports_scheduled_delivery()

    @property
    def supports_bulk_delivery(self) -> bool:
        return self.type.supports_bulk_delivery()

    @property
    def supports_immediate_delivery(self) -> bool:
        return self.type.supports_immediate_delivery()

    def __str__(self) -> str:
        return self.type.value


# =====================================================================================
# NOTIFICATION RECORDS
# =====================================================================================


class DeliveryAttempt(ValueObject):
    """One recorded try to deliver a notification on one channel."""

    def __init__(
        self,
        channel: ChannelType,
        success: bool,
        response_time: float,
        attempted_at: datetime | None = None,
        error_message: str | None = None,
        delivery_id: str | None = None,
    ):
        super().__init__()
        self.channel = channel
        self.success = bool(success)
        self.response_time = float(response_time)
        self.attempted_at = attempted_at or utc_now()
        self.error_message = error_message
        self.delivery_id = delivery_id
        self._freeze()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeliveryAttempt":
        attempted_at = data.get("attempted_at")
        if isinstance(attempted_at, str):
            attempted_at = date_parser.isoparse(attempted_at)
        return cls(
            channel=Channel.from_string(data["channel"]).type,
            success=data["success"],
            response_time=data.get("response_time", 0.0),
            attempted_at=attempted_at,
            error_message=data.get("error_message"),
            delivery_id=data.get("delivery_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "success": self.success,
            "response_time": self.response_time,
            "attempted_at": self.attempted_at.isoformat(),
            "error_message": self.error_message,
            "delivery_id": self.delivery_id,
        }

    def __str__(self) -> str:
        outcome = "ok" if self.success else "failed"
        return f"{self.channel.value} {outcome} at {self.attempted_at.isoformat()}"


# =====================================================================================
# TEMPLATE RECORDS
# =====================================================================================


class VariableValidation(ValueObject):
    """Optional constraints on a string template variable."""

    def __init__(
        self,
        min_length: int | None = None,
        max_length: int | None = None,
        pattern: str | None = None,
        options: list[str] | None = None,
    ):
        super().__init__()
        if pattern is not None:
            try:
                re.compile(pattern)
            except re.error as e:
                raise NotificationValidationError(
                    f"Invalid validation pattern: {e}", field="pattern"
                ) from e
        self.min_length = min_length
        self.max_length = max_length
        self.pattern = pattern
        self.options = tuple(options) if options else None
        self._freeze()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "VariableValidation | None":
        if not data:
            return None
        return cls(
            min_length=data.get("min_length"),
            max_length=data.get("max_length"),
            pattern=data.get("pattern"),
            options=data.get("options"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "min_length": self.min_length,
            "max_length": self.max_length,
            "pattern": self.pattern,
            "options": list(self.options) if self.options else None,
        }

    def __str__(self) -> str:
        return ", ".join(f"{k}={v}" for k, v in self.to_dict().items() if v)


class TemplateVariable(ValueObject):
    """Represents a template variable definition."""

    NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")

    def __init__(
        self,
        name: str,
        var_type: VariableType | str = VariableType.STRING,
        required: bool = True,
        default_value: Any | None = None,
        description: str | None = None,
        validation: VariableValidation | None = None,
    ):
        super().__init__()

        if not name or not name.strip():
            raise NotificationValidationError("Variable name cannot be empty", field="name")
        if not self.NAME_PATTERN.match(name):
            raise NotificationValidationError(
                "Variable name must start with a letter and contain only letters, "
                "numbers, and underscores",
                field="name",
            )

        self.name = name
        self.var_type = _enum_value(VariableType, var_type, "variable type")
        self.required = required
        self.default_value = default_value
        self.description = description
        self.validation = validation
        self._freeze()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemplateVariable":
        return cls(
            name=data["name"],
            var_type=data.get("type", VariableType.STRING.value),
            required=data.get("required", True),
            default_value=data.get("default_value"),
            description=data.get("description"),
            validation=VariableValidation.from_dict(data.get("validation")),
        )

    def validate_value(self, value: Any) -> list[str]:
        """Return every problem with ``value`` for this variable."""
        if self.required and (value is None or value == ""):
            return [f"Required variable '{self.name}' is missing"]

        if value is None:
            return []

        errors = []
        if not self.matches_type(value):
            errors.append(
                f"Variable '{self.name}' has invalid type. Expected {self.var_type.value}"
            )

        if self.validation and isinstance(value, str):
            errors.extend(self._check_constraints(value))

        return errors

    def matches_type(self, value: Any) -> bool:
        if self.var_type == VariableType.STRING:
            return isinstance(value, str)
        if self.var_type == VariableType.NUMBER:
            return (
                isinstance(value, int | float)
                and not isinstance(value, bool)
                and not (isinstance(value, float) and math.isnan(value))
            )
        if self.var_type == VariableType.BOOLEAN:
            return isinstance(value, bool)
        if self.var_type == VariableType.DATE:
            if isinstance(value, datetime | date):
                return True
            if isinstance(value, str):
                try:
                    date_parser.parse(value)
                except (ValueError, OverflowError):
                    return False
                return True
            return False
        if self.var_type == VariableType.OBJECT:
            return isinstance(value, dict | list)
        return False

    def _check_constraints(self, value: str) -> list[str]:
        rules = self.validation
        errors = []
        if rules.min_length and len(value) < rules.min_length:
            errors.append(
                f"Variable '{self.name}' is too short "
                f"(minimum {rules.min_length} characters)"
            )
        if rules.max_length and len(value) > rules.max_length:
            errors.append(
                f"Variable '{self.name}' is too long "
                f"(maximum {rules.max_length} characters)"
            )
        if rules.pattern and not re.search(rules.pattern, value):
            errors.append(f"Variable '{self.name}' does not match required pattern")
        if rules.options and value not in rules.options:
            errors.append(
                f"Variable '{self.name}' must be one of: {', '.join(rules.options)}"
            )
        return errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.var_type.value,
            "required": self.required,
            "default_value": self.default_value,
            "description": self.description,
            "validation": self.validation.to_dict() if self.validation else None,
        }

    def __str__(self) -> str:
        return f"{self.name} ({self.var_type.value})"


class ChannelTemplate(ValueObject):
    """Channel-specific body (and optional subject) of a template."""

    def __init__(
        self,
        channel: ChannelType,
        body: str,
        subject: str | None = None,
        format: TemplateFormat | str = TemplateFormat.TEXT,
        enabled: bool = True,
    ):
        super().__init__()

        channel = Channel.from_string(channel).type
        if not body or not body.strip():
            raise NotificationValidationError(
                "Channel template body cannot be empty", field="body"
            )
        max_size = channel.max_message_size()
        if len(body) > max_size:
            raise TemplateSizeExceededError(channel.value, len(body), max_size)

        self.channel = channel
        self.body = body
        self.subject = subject
        self.format = _enum_value(TemplateFormat, format, "template format")
        self.enabled = enabled
        self._freeze()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChannelTemplate":
        return cls(
            channel=data["channel"],
            body=data["body"],
            subject=data.get("subject"),
            format=data.get("format", TemplateFormat.TEXT.value),
            enabled=data.get("enabled", True),
        )

    def with_changes(self, **changes: Any) -> "ChannelTemplate":
        """Return a copy with the given fields replaced."""
        values = {
            "channel": self.channel,
            "body": self.body,
            "subject": self.subject,
            "format": self.format,
            "enabled": self.enabled,
        }
        values.update({k: v for k, v in changes.items() if k in values})
        return ChannelTemplate(**values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "subject": self.subject,
            "body": self.body,
            "format": self.format.value,
            "enabled": self.enabled,
        }

    def __str__(self) -> str:
        return f"{self.channel.value} template ({self.format.value})"


class TemplateVersion(ValueObject):
    """Immutable entry of a template's version history."""

    def __init__(
        self,
        version: int,
        created_by: str,
        created_at: datetime | None = None,
        changelog: str | None = None,
    ):
        super().__init__()
        if version < 1:
            raise NotificationValidationError(
                "Template version must be a positive integer", field="version"
            )
        self.version = version
        self.created_by = created_by
        self.created_at = created_at or utc_now()
        self.changelog = changelog
        self._freeze()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemplateVersion":
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = date_parser.isoparse(created_at)
        return cls(
            version=data["version"],
            created_by=data["created_by"],
            created_at=created_at,
            changelog=data.get("changelog"),
        )

    def __str__(self) -> str:
        return f"v{self.version}"


class RenderedContent(ValueObject):
    """Channel-ready content produced by simple template substitution."""

    def __init__(self, body: str, format: TemplateFormat, subject: str | None = None):
        super().__init__()
        self.subject = subject
        self.body = body
        self.format = format
        self._freeze()

    def __str__(self) -> str:
        return self.body


# =====================================================================================
# SUBSCRIPTION RECORDS
# =====================================================================================


class ChannelPreference(ValueObject):
    """A user's delivery preference for one channel."""

    EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
    URL_PATTERN = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)

    def __init__(
        self,
        channel: ChannelType,
        enabled: bool = True,
        frequency: FrequencyType | str = FrequencyType.IMMEDIATE,
        address: str | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        super().__init__()

        channel = Channel.from_string(channel).type
        frequency = _enum_value(FrequencyType, frequency, "frequency")

        if channel.requires_configuration() and not address:
            raise NotificationValidationError(
                f"Channel '{channel.value}' requires an address", field="address"
            )
        if address:
            self._validate_address(channel, address)

        self.channel = channel
        self.enabled = enabled
        self.frequency = frequency
        self.address = address
        self.metadata = dict(metadata or {})
        self._freeze()

    def _validate_address(self, channel: ChannelType, address: str) -> None:
        if channel == ChannelType.EMAIL:
            if not self.EMAIL_PATTERN.match(address):
                raise NotificationValidationError(
                    "Invalid email address format", field="address"
                )
        elif channel == ChannelType.SMS:
            normalized = re.sub(r"[\s\-()]", "", address)
            if not self.PHONE_PATTERN.match(normalized):
                raise NotificationValidationError(
                    "Invalid phone number format", field="address"
                )
        elif channel == ChannelType.WEBHOOK:
            if not self.URL_PATTERN.match(address):
                raise NotificationValidationError(
                    "Invalid webhook URL format", field="address"
                )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChannelPreference":
        return cls(
            channel=data["channel"],
            enabled=data.get("enabled", True),
            frequency=data.get("frequency", FrequencyType.IMMEDIATE.value),
            address=data.get("address"),
            metadata=data.get("metadata"),
        )

    def with_enabled(self, enabled: bool) -> "ChannelPreference":
        return ChannelPreference(
            channel=self.channel,
            enabled=enabled,
            frequency=self.frequency,
            address=self.address,
            metadata=self.metadata,
        )

    @property
    def is_immediate(self) -> bool:
        return self.frequency == FrequencyType.IMMEDIATE

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "enabled": self.enabled,
            "frequency": self.frequency.value,
            "address": self.address,
            "metadata": dict(self.metadata),
        }

    def __str__(self) -> str:
        state = "enabled" if self.enabled else "disabled"
        return f"{self.channel.value} ({state}, {self.frequency.value})"


class QuietHours(ValueObject):
    """Local time window during which non-urgent delivery is suppressed.

    Bounds are inclusive. When ``start_time`` is later than ``end_time`` the
    window wraps past midnight (``22:00``-``08:00``).
    """

    TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")

    def __init__(
        self,
        enabled: bool = False,
        start_time: str = "22:00",
        end_time: str = "08:00",
        timezone: str = "UTC",
    ):
        super().__init__()
        self.enabled = enabled
        self.start_time = self._normalize_time(start_time, "start")
        self.end_time = self._normalize_time(end_time, "end")
        if timezone not in pytz.all_timezones_set:
            raise NotificationValidationError(
                f"Invalid timezone: {timezone}", field="timezone"
            )
        self.timezone = timezone
        self._freeze()

    @classmethod
    def _normalize_time(cls, value: str, which: str) -> str:
        match = cls.TIME_PATTERN.match(value or "")
        if not match:
            raise NotificationValidationError(
                f"Invalid {which} time format. Use HH:MM", field=f"{which}_time"
            )
        return f"{int(match.group(1)):02d}:{match.group(2)}"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "QuietHours":
        data = data or {}
        return cls(
            enabled=data.get("enabled", False),
            start_time=data.get("start_time", "22:00"),
            end_time=data.get("end_time", "08:00"),
            timezone=data.get("timezone", "UTC"),
        )

    def with_changes(self, **changes: Any) -> "QuietHours":
        values = self.to_dict()
        values.update({k: v for k, v in changes.items() if k in values and v is not None})
        return QuietHours(**values)

    def local_time(self, now: datetime) -> str:
        """Render ``now`` as ``HH:MM`` in the window's timezone."""
        if now.tzinfo is None:
            now = pytz.utc.localize(now)
        return now.astimezone(pytz.timezone(self.timezone)).strftime("%H:%M")

    def contains(self, now: datetime) -> bool:
        if not self.enabled:
            return False

        current = self.local_time(now)
        if self.start_time > self.end_time:
            return current >= self.start_time or current <= self.end_time
        return self.start_time <= current <= self.end_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "timezone": self.timezone,
        }

    def __str__(self) -> str:
        return f"{self.start_time}-{self.end_time} {self.timezone}"


class FilterRule(ValueObject):
    """Condition a notification payload must satisfy for a subscription."""

    def __init__(
        self,
        field: str,
        operator: FilterOperator | str,
        value: str,
        case_sensitive: bool = False,
    ):
        super().__init__()
        if not field or not field.strip():
            raise NotificationValidationError(
                "Filter rule field cannot be empty", field="field"
            )
        if value is None:
            raise NotificationValidationError(
                "Filter rule value cannot be None", field="value"
            )
        self.field = field
        self.operator = _enum_value(FilterOperator, operator, "filter operator")
        self.value = str(value)
        self.case_sensitive = case_sensitive
        self._freeze()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FilterRule":
        return cls(
            field=data["field"],
            operator=data["operator"],
            value=data["value"],
            case_sensitive=data.get("case_sensitive", False),
        )

    def matches(self, payload: dict[str, Any]) -> bool:
        """Evaluate the rule; an invalid regex fails the rule."""
        raw = payload.get(self.field)
        if isinstance(raw, bool):
            raw = str(raw).lower() if raw else ""
        field_value = str(raw) if raw else ""

        if self.operator == FilterOperator.REGEX:
            flags = 0 if self.case_sensitive else re.IGNORECASE
            try:
                return re.search(self.value, field_value, flags) is not None
            except re.error:
                return False

        rule_value = self.value if self.case_sensitive else self.value.lower()
        compare = field_value if self.case_sensitive else field_value.lower()

        if self.operator == FilterOperator.EQUALS:
            return compare == rule_value
        if self.operator == FilterOperator.CONTAINS:
            return rule_value in compare
        if self.operator == FilterOperator.STARTS_WITH:
            return compare.startswith(rule_value)
        if self.operator == FilterOperator.ENDS_WITH:
            return compare.endswith(rule_value)
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "operator": self.operator.value,
            "value": self.value,
            "case_sensitive": self.case_sensitive,
        }

    def __str__(self) -> str:
        return f"{self.field} {self.operator.value} {self.value!r}"


__all__ = [
    "Channel",
    "ChannelPreference",
    "ChannelTemplate",
    "DeliveryAttempt",
    "FilterRule",
    "NotificationId",
    "Priority",
    "QuietHours",
    "RenderedContent",
    "TemplateVariable",
    "TemplateVersion",
    "VariableValidation",
    "generate_prefixed_id",
    "random_base36",
    "to_base36",
]
