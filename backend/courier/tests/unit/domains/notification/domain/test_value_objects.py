"""Tests for notification domain value objects.

Covers priority and channel constants, template variable validation, channel
template size limits, channel preference addresses, quiet hours and filter
rules.
"""

from datetime import UTC, datetime

import pytest

from courier.modules.notification.domain.enums import (
    ChannelType,
    FilterOperator,
    FrequencyType,
    NotificationStatus,
    VariableType,
)
from courier.modules.notification.domain.errors import (
    NotificationValidationError,
    TemplateSizeExceededError,
)
from courier.modules.notification.domain.value_objects import (
    Channel,
    ChannelPreference,
    ChannelTemplate,
    DeliveryAttempt,
    FilterRule,
    NotificationId,
    Priority,
    QuietHours,
    TemplateVariable,
    VariableValidation,
    generate_prefixed_id,
    to_base36,
)


class TestIdentifiers:
    """Test suite for identifier generation."""

    def test_notification_id_format(self):
        """Generated notification IDs carry the notif prefix."""
        notification_id = NotificationId.create()

        assert notification_id.value.startswith("notif_")
        assert len(notification_id.value.split("_")) == 3

    def test_notification_id_rejects_invalid_characters(self):
        with pytest.raises(NotificationValidationError):
            NotificationId("bad id!")

    def test_prefixed_id(self):
        assert generate_prefixed_id("template").startswith("template_")

    def test_to_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "z"
        assert to_base36(36) == "10"


class TestPriority:
    """Test suite for Priority value object."""

    def test_urgent_retries_more_and_times_out_sooner_than_low(self):
        """Urgent priority has more retries and a shorter timeout than low."""
        assert Priority.urgent().max_retries > Priority.low().max_retries
        assert Priority.urgent().delivery_timeout < Priority.low().delivery_timeout

    def test_constants(self):
        assert Priority.normal().max_retries == 2
        assert Priority.normal().delivery_timeout == 30 * 60
        assert Priority.high().delivery_timeout == 5 * 60
        assert Priority.urgent().rank == 4

    def test_from_string_is_case_insensitive(self):
        assert Priority.from_string("HIGH") == Priority.high()

    def test_from_string_rejects_unknown_level(self):
        with pytest.raises(NotificationValidationError):
            Priority.from_string("critical")

    def test_ordering(self):
        assert Priority.low() < Priority.normal() < Priority.high() < Priority.urgent()
        assert Priority.urgent().is_higher_than(Priority.high())
        assert Priority.low().is_lower_than(Priority.normal())


class TestChannel:
    """Test suite for Channel value object."""

    @pytest.mark.parametrize(
        "channel,max_size",
        [("sms", 160), ("push", 500), ("in_app", 10_000), ("email", 50_000)],
    )
    def test_max_message_size(self, channel, max_size):
        assert Channel.from_string(channel).max_message_size == max_size

    def test_in_app_is_free_and_fast(self):
        in_app = Channel.in_app()

        assert in_app.cost_factor == 0
        assert in_app.typical_delivery_time < Channel.email().typical_delivery_time
        assert in_app.requires_configuration is False

    def test_from_string_accepts_enum_and_channel(self):
        assert Channel.from_string(ChannelType.SMS) == Channel.sms()
        assert Channel.from_string(Channel.push()) == Channel.push()

    def test_unknown_channel(self):
        with pytest.raises(NotificationValidationError):
            Channel.from_string("fax")


class TestNotificationStatus:
    """Test suite for status transitions."""

    def test_read_is_terminal(self):
        for status in NotificationStatus:
            assert NotificationStatus.READ.can_transition_to(status) is False

    def test_failed_can_be_requeued(self):
        assert NotificationStatus.FAILED.can_transition_to(NotificationStatus.PENDING)


class TestDeliveryAttempt:
    def test_round_trip_through_dict(self):
        attempt = DeliveryAttempt(
            channel=ChannelType.EMAIL,
            success=False,
            response_time=0.25,
            error_message="Mailbox full",
        )

        restored = DeliveryAttempt.from_dict(attempt.to_dict())

        assert restored.channel == ChannelType.EMAIL
        assert restored.error_message == "Mailbox full"
        assert restored.attempted_at == attempt.attempted_at


class TestTemplateVariable:
    """Test suite for TemplateVariable validation."""

    def test_missing_required_value(self):
        variable = TemplateVariable(name="userName")

        assert variable.validate_value(None) == ["Required variable 'userName' is missing"]
        assert variable.validate_value("") == ["Required variable 'userName' is missing"]

    def test_optional_value_may_be_absent(self):
        variable = TemplateVariable(name="nickname", required=False)

        assert variable.validate_value(None) == []

    @pytest.mark.parametrize(
        "var_type,valid,invalid",
        [
            (VariableType.NUMBER, 42, "42"),
            (VariableType.BOOLEAN, False, "yes"),
            (VariableType.DATE, "2024-01-15", "not a date"),
            (VariableType.OBJECT, {"a": 1}, "a"),
        ],
    )
    def test_type_checks(self, var_type, valid, invalid):
        variable = TemplateVariable(name="value", var_type=var_type)

        assert variable.validate_value(valid) == []
        assert variable.validate_value(invalid) == [
            f"Variable 'value' has invalid type. Expected {var_type.value}"
        ]

    def test_number_rejects_booleans(self):
        variable = TemplateVariable(name="count", var_type=VariableType.NUMBER)

        assert variable.validate_value(True) != []

    def test_string_constraints(self):
        variable = TemplateVariable(
            name="code",
            validation=VariableValidation(min_length=3, max_length=5, pattern=r"^[A-Z]+$"),
        )

        assert variable.validate_value("ABCD") == []
        assert "Variable 'code' is too short (minimum 3 characters)" in variable.validate_value("AB")
        assert "Variable 'code' is too long (maximum 5 characters)" in variable.validate_value(
            "ABCDEF"
        )
        assert "Variable 'code' does not match required pattern" in variable.validate_value(
            "abcd"
        )

    def test_options(self):
        variable = TemplateVariable(
            name="tier", validation=VariableValidation(options=["gold", "silver"])
        )

        assert variable.validate_value("bronze") == [
            "Variable 'tier' must be one of: gold, silver"
        ]

    def test_invalid_name(self):
        with pytest.raises(NotificationValidationError):
            TemplateVariable(name="1st")


class TestChannelTemplate:
    """Test suite for ChannelTemplate value object."""

    def test_sms_body_over_limit(self):
        """A 200 character SMS body exceeds the 160 character limit."""
        with pytest.raises(TemplateSizeExceededError) as exc_info:
            ChannelTemplate(channel=ChannelType.SMS, body="x" * 200)

        assert exc_info.value.max_size == 160
        assert exc_info.value.size == 200

    def test_empty_body(self):
        with pytest.raises(NotificationValidationError):
            ChannelTemplate(channel=ChannelType.EMAIL, body="   ")

    def test_with_changes_keeps_other_fields(self):
        template = ChannelTemplate(channel="email", body="Body", subject="Subject")

        disabled = template.with_changes(enabled=False)

        assert disabled.enabled is False
        assert disabled.subject == "Subject"
        assert template.enabled is True


class TestChannelPreference:
    """Test suite for ChannelPreference addresses."""

    def test_external_channel_requires_address(self):
        with pytest.raises(NotificationValidationError):
            ChannelPreference(channel=ChannelType.EMAIL)

    @pytest.mark.parametrize(
        "channel,address",
        [
            (ChannelType.EMAIL, "not-an-email"),
            (ChannelType.SMS, "call me"),
            (ChannelType.WEBHOOK, "ftp://example.com"),
        ],
    )
    def test_invalid_addresses(self, channel, address):
        with pytest.raises(NotificationValidationError):
            ChannelPreference(channel=channel, address=address)

    def test_phone_number_formatting_is_ignored(self):
        preference = ChannelPreference(channel=ChannelType.SMS, address="+1 (555) 123-4567")

        assert preference.address == "+1 (555) 123-4567"

    def test_digest_preference(self):
        preference = ChannelPreference(
            channel=ChannelType.IN_APP, frequency=FrequencyType.DIGEST_DAILY
        )

        assert preference.is_immediate is False
        assert preference.frequency.is_digest()


class TestQuietHours:
    """Test suite for QuietHours windows."""

    def test_disabled_window_never_matches(self):
        quiet_hours = QuietHours(enabled=False, start_time="00:00", end_time="23:59")

        assert quiet_hours.contains(datetime(2024, 1, 1, 12, 0, tzinfo=UTC)) is False

    def test_window_wrapping_midnight(self):
        quiet_hours = QuietHours(enabled=True, start_time="22:00", end_time="08:00")

        assert quiet_hours.contains(datetime(2024, 1, 1, 23, 30, tzinfo=UTC))
        assert quiet_hours.contains(datetime(2024, 1, 1, 7, 59, tzinfo=UTC))
        assert not quiet_hours.contains(datetime(2024, 1, 1, 12, 0, tzinfo=UTC))

    def test_window_uses_local_timezone(self):
        quiet_hours = QuietHours(
            enabled=True, start_time="09:00", end_time="10:00", timezone="America/New_York"
        )

        # 13:30 UTC is 09:30 in New York during daylight saving time
        assert quiet_hours.contains(datetime(2024, 6, 3, 13, 30, tzinfo=UTC))

    def test_time_is_normalized(self):
        assert QuietHours(start_time="7:05").start_time == "07:05"

    @pytest.mark.parametrize("start_time", ["24:00", "7pm", ""])
    def test_invalid_time(self, start_time):
        with pytest.raises(NotificationValidationError):
            QuietHours(start_time=start_time)

    def test_invalid_timezone(self):
        with pytest.raises(NotificationValidationError):
            QuietHours(timezone="Mars/Olympus")


class TestFilterRule:
    """Test suite for FilterRule matching."""

    def test_equals_is_case_insensitive_by_default(self):
        rule = FilterRule(field="severity", operator=FilterOperator.EQUALS, value="High")

        assert rule.matches({"severity": "high"})
        assert not rule.matches({"severity": "low"})

    def test_case_sensitive(self):
        rule = FilterRule(
            field="severity", operator="equals", value="High", case_sensitive=True
        )

        assert not rule.matches({"severity": "high"})

    @pytest.mark.parametrize(
        "operator,value,payload_value,expected",
        [
            ("contains", "disk", "Low disk space", True),
            ("startsWith", "prod", "production", True),
            ("endsWith", ".com", "example.org", False),
            ("regex", r"^err-\d+$", "ERR-42", True),
        ],
    )
    def test_operators(self, operator, value, payload_value, expected):
        rule = FilterRule(field="field", operator=operator, value=value)

        assert rule.matches({"field": payload_value}) is expected

    def test_invalid_regex_fails_closed(self):
        rule = FilterRule(field="field", operator="regex", value="(")

        assert rule.matches({"field": "("}) is False

    def test_missing_field_compares_as_empty(self):
        rule = FilterRule(field="missing", operator="equals", value="")

        assert rule.matches({})
