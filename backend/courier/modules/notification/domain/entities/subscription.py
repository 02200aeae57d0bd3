"""Subscription entity holding a user's delivery preferences for one notification type."""

import math
from datetime import datetime
from typing import Any

from dateutil import parser as date_parser

from courier.core.domain.base import Entity, utc_now
from courier.modules.notification.domain.enums import (
    ChannelType,
    FrequencyType,
    NotificationType,
    SubscriptionStatus,
)
from courier.modules.notification.domain.errors import (
    ChannelRequiredError,
    InvalidStateTransitionError,
    NotificationValidationError,
)
from courier.modules.notification.domain.value_objects import (
    Channel,
    ChannelPreference,
    FilterRule,
    QuietHours,
    generate_prefixed_id,
)


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return date_parser.isoparse(value)


class Subscription(Entity):
    """Per-user, per-notification-type delivery preferences.

    Holds one ``ChannelPreference`` per channel, an optional quiet-hours
    window and an ordered list of filter rules. At least one channel stays
    enabled at all times; a mutation that would break this raises and
    leaves the subscription untouched.
    """

    def __init__(
        self,
        subscription_id: str,
        user_id: str,
        notification_type: NotificationType,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        channel_preferences: list[ChannelPreference] | None = None,
        quiet_hours: QuietHours | None = None,
        filter_rules: list[FilterRule] | None = None,
        created_at: datetime | None = None,
        last_notification_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        super().__init__(subscription_id, created_at)

        self.user_id = user_id
        self.notification_type = notification_type
        self.status = status
        self._preferences: dict[ChannelType, ChannelPreference] = {}
        for preference in channel_preferences or []:
            self._preferences[preference.channel] = preference
        self.quiet_hours = quiet_hours or QuietHours()
        self._filter_rules: list[FilterRule] = list(filter_rules or [])
        self.last_notification_at = last_notification_at
        self.metadata: dict[str, Any] = dict(metadata or {})

    @classmethod
    def create(
        cls,
        user_id: str,
        notification_type: NotificationType | str,
        channel_preferences: list[ChannelPreference] | None = None,
        quiet_hours: QuietHours | dict[str, Any] | None = None,
        filter_rules: list[FilterRule] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "Subscription":
        """Create an active subscription.

        With no channel preferences the subscription gets a single immediate
        in-app preference.
        """
        if not user_id:
            raise NotificationValidationError("User ID is required", field="user_id")

        if isinstance(quiet_hours, dict):
            quiet_hours = QuietHours.from_dict(quiet_hours)

        preferences = list(channel_preferences or [])
        if not preferences:
            preferences = [
                ChannelPreference(
                    channel=ChannelType.IN_APP,
                    enabled=True,
                    frequency=FrequencyType.IMMEDIATE,
                )
            ]
        elif not any(preference.enabled for preference in preferences):
            raise ChannelRequiredError("At least one channel must be enabled")

        return cls(
            subscription_id=generate_prefixed_id("sub"),
            user_id=str(user_id),
            notification_type=cls._parse_type(notification_type),
            status=SubscriptionStatus.ACTIVE,
            channel_preferences=preferences,
            quiet_hours=quiet_hours,
            filter_rules=filter_rules,
            metadata=metadata,
        )

    @classmethod
    def from_persistence(cls, data: dict[str, Any]) -> "Subscription":
        try:
            status = SubscriptionStatus(data.get("status", SubscriptionStatus.ACTIVE.value))
        except ValueError:
            raise NotificationValidationError(
                f"Invalid subscription status: {data.get('status')}", field="status"
            ) from None

        subscription = cls(
            subscription_id=data["id"],
            user_id=str(data["user_id"]),
            notification_type=cls._parse_type(data["notification_type"]),
            status=status,
            channel_preferences=[
                ChannelPreference.from_dict(p) for p in data.get("channel_preferences", [])
            ],
            quiet_hours=QuietHours.from_dict(data.get("quiet_hours")),
            filter_rules=[FilterRule.from_dict(r) for r in data.get("filter_rules", [])],
            created_at=_parse_datetime(data.get("created_at")),
            last_notification_at=_parse_datetime(data.get("last_notification_at")),
            metadata=data.get("metadata"),
        )
        updated_at = _parse_datetime(data.get("updated_at"))
        if updated_at:
            subscription.updated_at = updated_at
        return subscription

    @staticmethod
    def _parse_type(value: NotificationType | str) -> NotificationType:
        if isinstance(value, NotificationType):
            return value
        try:
            return NotificationType(value)
        except ValueError:
            raise NotificationValidationError(
                f"Invalid notification type: {value}", field="notification_type"
            ) from None

    # Status

    def activate(self) -> None:
        if self.is_unsubscribed:
            raise InvalidStateTransitionError(
                "Cannot activate unsubscribed subscription",
                current_status=self.status.value,
                operation="activate",
            )
        self.status = SubscriptionStatus.ACTIVE
        self.mark_modified()

    def pause(self) -> None:
        if self.is_unsubscribed:
            raise InvalidStateTransitionError(
                "Cannot pause unsubscribed subscription",
                current_status=self.status.value,
                operation="pause",
            )
        self.status = SubscriptionStatus.PAUSED
        self.mark_modified()

    def unsubscribe(self) -> None:
        self.status = SubscriptionStatus.UNSUBSCRIBED
        self.mark_modified()

    # Channel preferences

    @property
    def channel_preferences(self) -> list[ChannelPreference]:
        return list(self._preferences.values())

    def get_channel_preference(self, channel) -> ChannelPreference | None:
        return self._preferences.get(Channel.from_string(channel).type)

    def update_channel_preference(self, preference: ChannelPreference) -> None:
        """Insert or replace a channel preference.

        Addresses are validated when the ``ChannelPreference`` is built.
        """
        candidate = dict(self._preferences)
        candidate[preference.channel] = preference
        self._commit_preferences(candidate)

    def remove_channel_preference(self, channel) -> None:
        channel_type = Channel.from_string(channel).type
        if channel_type not in self._preferences:
            raise NotificationValidationError(
                f"Channel preference for '{channel_type.value}' not found",
                field="channel_preferences",
            )
        candidate = {k: v for k, v in self._preferences.items() if k != channel_type}
        self._commit_preferences(candidate, channel_type)

    def enable_channel(self, channel) -> None:
        channel_type = Channel.from_string(channel).type
        existing = self._preferences.get(channel_type)
        if existing is not None:
            self._preferences[channel_type] = existing.with_enabled(True)
        else:
            self._preferences[channel_type] = ChannelPreference(
                channel=channel_type, enabled=True, frequency=FrequencyType.IMMEDIATE
            )
        self.mark_modified()

    def disable_channel(self, channel) -> None:
        channel_type = Channel.from_string(channel).type
        existing = self._preferences.get(channel_type)
        if existing is None:
            return
        candidate = dict(self._preferences)
        candidate[channel_type] = existing.with_enabled(False)
        self._commit_preferences(candidate, channel_type)

    def _commit_preferences(
        self,
        candidate: dict[ChannelType, ChannelPreference],
        channel: ChannelType | None = None,
    ) -> None:
        if not any(preference.enabled for preference in candidate.values()):
            raise ChannelRequiredError(
                "At least one channel must remain enabled",
                channel=channel.value if channel else None,
            )
        self._preferences = candidate
        self.mark_modified()

    # Quiet hours, filters and metadata

    def update_quiet_hours(
        self,
        enabled: bool | None = None,
        start_time: str | None = None,
        end_time: str | None = None,
        timezone: str | None = None,
    ) -> None:
        self.quiet_hours = self.quiet_hours.with_changes(
            enabled=enabled,
            start_time=start_time,
            end_time=end_time,
            timezone=timezone,
        )
        self.mark_modified()

    @property
    def filter_rules(self) -> tuple[FilterRule, ...]:
        return tuple(self._filter_rules)

    def add_filter_rule(self, rule: FilterRule) -> None:
        self._filter_rules.append(rule)
        self.mark_modified()

    def update_filter_rule(self, index: int, rule: FilterRule) -> None:
        self._check_rule_index(index)
        self._filter_rules[index] = rule
        self.mark_modified()

    def remove_filter_rule(self, index: int) -> None:
        self._check_rule_index(index)
        del self._filter_rules[index]
        self.mark_modified()

    def _check_rule_index(self, index: int) -> None:
        if index < 0 or index >= len(self._filter_rules):
            raise NotificationValidationError(
                "Filter rule index out of bounds", field="filter_rules"
            )

    def update_metadata(self, metadata: dict[str, Any]) -> None:
        self.metadata.update(metadata)
        self.mark_modified()

    def record_notification(self) -> None:
        self.last_notification_at = utc_now()
        self.mark_modified()

    # Queries

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE

    @property
    def is_paused(self) -> bool:
        return self.status == SubscriptionStatus.PAUSED

    @property
    def is_unsubscribed(self) -> bool:
        return self.status == SubscriptionStatus.UNSUBSCRIBED

    def can_receive_notifications(self) -> bool:
        return self.is_active and bool(self.get_enabled_channels())

    def get_enabled_channels(self) -> list[ChannelType]:
        return [channel for channel, pref in self._preferences.items() if pref.enabled]

    def has_channel_enabled(self, channel) -> bool:
        preference = self.get_channel_preference(channel)
        return preference.enabled if preference else False

    def is_in_quiet_hours(self, now: datetime | None = None) -> bool:
        return self.quiet_hours.contains(now or utc_now())

    def should_receive_immediately(self, channel, now: datetime | None = None) -> bool:
        if not self.can_receive_notifications():
            return False
        if self.is_in_quiet_hours(now):
            return False
        preference = self.get_channel_preference(channel)
        return bool(preference and preference.enabled and preference.is_immediate)

    def get_digest_frequency(self, channel) -> FrequencyType | None:
        preference = self.get_channel_preference(channel)
        if preference is None or not preference.enabled:
            return None
        return None if preference.is_immediate else preference.frequency

    def matches_filters(self, payload: dict[str, Any]) -> bool:
        return all(rule.matches(payload) for rule in self._filter_rules)

    def days_since_last_notification(self, now: datetime | None = None) -> float:
        if self.last_notification_at is None:
            return math.inf
        elapsed = (now or utc_now()) - self.last_notification_at
        return math.floor(elapsed.total_seconds() / 86400)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "notification_type": self.notification_type.value,
            "status": self.status.value,
            "channel_preferences": [p.to_dict() for p in self.channel_preferences],
            "quiet_hours": self.quiet_hours.to_dict(),
            "filter_rules": [r.to_dict() for r in self._filter_rules],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "last_notification_at": (
                self.last_notification_at.isoformat() if self.last_notification_at else None
            ),
            "metadata": dict(self.metadata),
        }

    def __str__(self) -> str:
        return f"Subscription({self.user_id}, {self.notification_type.value}, {self.status.value})"
