"""NotificationTemplate aggregate for managing notification templates.

This aggregate manages named, versioned, multi-channel content templates with
a typed variable schema. It can render itself with plain ``{{ name }}``
substitution; the richer block grammar lives in the rendering service.
"""

import re
from datetime import datetime
from typing import Any

from dateutil import parser as date_parser

from courier.core.domain.base import AggregateRoot, utc_now
from courier.modules.notification.domain.enums import ChannelType, NotificationType
from courier.modules.notification.domain.errors import (
    NotificationValidationError,
    TemplateRenderingError,
)
from courier.modules.notification.domain.events import TemplateVersionCreated
from courier.modules.notification.domain.value_objects import (
    Channel,
    ChannelTemplate,
    RenderedContent,
    TemplateVariable,
    TemplateVersion,
    generate_prefixed_id,
)

MAX_TEMPLATE_NAME_LENGTH = 100
MAX_TEMPLATE_DESCRIPTION_LENGTH = 500


def stringify(value: Any) -> str:
    """Render a bound value the way template output expects it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class NotificationTemplate(AggregateRoot):
    """Aggregate for managing notification templates.

    Templates are never hard-deleted; they are deactivated instead. Each
    mutator bumps ``updated_at``. The version history is append-only and
    ``current_version`` names the active entry.
    """

    def __init__(
        self,
        template_id: str,
        name: str,
        description: str,
        template_type: NotificationType,
        created_by: str,
        variables: list[TemplateVariable] | None = None,
        channel_templates: list[ChannelTemplate] | None = None,
        created_at: datetime | None = None,
        is_active: bool = True,
        versions: list[TemplateVersion] | None = None,
        current_version: int = 1,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        super().__init__(template_id, created_at)

        self.name = self._validate_name(name)
        self.description = self._validate_description(description)
        self.type = template_type
        self.created_by = created_by
        self.is_active = is_active
        self.metadata: dict[str, Any] = dict(metadata or {})

        self._variables: list[TemplateVariable] = []
        for variable in variables or []:
            self._ensure_unique_variable(variable.name)
            self._variables.append(variable)

        self._channel_templates: dict[ChannelType, ChannelTemplate] = {}
        for channel_template in channel_templates or []:
            self._channel_templates[channel_template.channel] = channel_template

        self._versions: list[TemplateVersion] = list(versions or [])
        self.current_version = current_version

        self.tags: list[str] = []
        for tag in tags or []:
            normalized = self._normalize_tag(tag)
            if normalized not in self.tags:
                self.tags.append(normalized)

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        template_type: NotificationType | str,
        created_by: str,
        variables: list[TemplateVariable] | None = None,
        channel_templates: list[ChannelTemplate] | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "NotificationTemplate":
        now = utc_now()
        return cls(
            template_id=generate_prefixed_id("template"),
            name=name,
            description=description,
            template_type=cls._parse_type(template_type),
            created_by=created_by,
            variables=variables,
            channel_templates=channel_templates,
            created_at=now,
            versions=[
                TemplateVersion(
                    version=1,
                    created_by=created_by,
                    created_at=now,
                    changelog="Initial template creation",
                )
            ],
            current_version=1,
            tags=tags,
            metadata=metadata,
        )

    @classmethod
    def from_persistence(cls, data: dict[str, Any]) -> "NotificationTemplate":
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = date_parser.isoparse(created_at)

        template = cls(
            template_id=data["id"],
            name=data["name"],
            description=data["description"],
            template_type=cls._parse_type(data["type"]),
            created_by=data["created_by"],
            variables=[TemplateVariable.from_dict(v) for v in data.get("variables", [])],
            channel_templates=[
                ChannelTemplate.from_dict(ct) for ct in data.get("channel_templates", [])
            ],
            created_at=created_at,
            is_active=data.get("is_active", True),
            versions=[TemplateVersion.from_dict(v) for v in data.get("versions", [])],
            current_version=data.get("current_version", 1),
            tags=data.get("tags"),
            metadata=data.get("metadata"),
        )
        updated_at = data.get("updated_at")
        if updated_at:
            template.updated_at = (
                date_parser.isoparse(updated_at) if isinstance(updated_at, str) else updated_at
            )
        return template

    # -------------------------------------------------------------------------
    # Validation helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _validate_name(name: str) -> str:
        if not name or not name.strip():
            raise NotificationValidationError("Template name cannot be empty", field="name")
        if len(name) > MAX_TEMPLATE_NAME_LENGTH:
            raise NotificationValidationError(
                f"Template name cannot exceed {MAX_TEMPLATE_NAME_LENGTH} characters",
                field="name",
            )
        return name.strip()

    @staticmethod
    def _validate_description(description: str) -> str:
        if not description or not description.strip():
            raise NotificationValidationError(
                "Template description cannot be empty", field="description"
            )
        if len(description) > MAX_TEMPLATE_DESCRIPTION_LENGTH:
            raise NotificationValidationError(
                f"Template description cannot exceed "
                f"{MAX_TEMPLATE_DESCRIPTION_LENGTH} characters",
                field="description",
            )
        return description.strip()

    @staticmethod
    def _parse_type(value: NotificationType | str) -> NotificationType:
        if isinstance(value, NotificationType):
            return value
        try:
            return NotificationType(value)
        except ValueError:
            raise NotificationValidationError(
                f"Invalid template type: {value}", field="type"
            ) from None

    @staticmethod
    def _normalize_tag(tag: str) -> str:
        if not tag or not tag.strip():
            raise NotificationValidationError("Tag cannot be empty", field="tags")
        return tag.strip().lower()

    def _ensure_unique_variable(self, name: str) -> None:
        if self.has_variable(name):
            raise NotificationValidationError(
                f"Variable '{name}' already exists", field="variables"
            )

    def _variable_index(self, name: str) -> int:
        for index, variable in enumerate(self._variables):
            if variable.name == name:
                return index
        raise NotificationValidationError(f"Variable '{name}' not found", field="variables")

    def _get_existing_channel_template(self, channel) -> ChannelTemplate:
        channel_type = Channel.from_string(channel).type
        existing = self._channel_templates.get(channel_type)
        if existing is None:
            raise NotificationValidationError(
                f"Channel template for '{channel_type.value}' not found",
                field="channel_templates",
            )
        return existing

    # -------------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------------

    def update_name(self, name: str) -> None:
        self.name = self._validate_name(name)
        self.mark_modified()

    def update_description(self, description: str) -> None:
        self.description = self._validate_description(description)
        self.mark_modified()

    @property
    def variables(self) -> tuple[TemplateVariable, ...]:
        return tuple(self._variables)

    def add_variable(self, variable: TemplateVariable) -> None:
        self._ensure_unique_variable(variable.name)
        self._variables.append(variable)
        self.mark_modified()

    def update_variable(self, name: str, **updates: Any) -> None:
        """Replace fields of a declared variable.

        Accepts the ``TemplateVariable`` constructor arguments as keywords.
        """
        index = self._variable_index(name)
        current = self._variables[index]
        values = {
            "name": current.name,
            "var_type": current.var_type,
            "required": current.required,
            "default_value": current.default_value,
            "description": current.description,
            "validation": current.validation,
        }
        values.update(updates)
        updated = TemplateVariable(**values)
        if updated.name != name:
            self._ensure_unique_variable(updated.name)
        self._variables[index] = updated
        self.mark_modified()

    def remove_variable(self, name: str) -> None:
        del self._variables[self._variable_index(name)]
        self.mark_modified()

    @property
    def channel_templates(self) -> list[ChannelTemplate]:
        """Channel templates in channel order."""
        return [
            self._channel_templates[channel]
            for channel in ChannelType
            if channel in self._channel_templates
        ]

    def get_channel_template(self, channel) -> ChannelTemplate | None:
        return self._channel_templates.get(Channel.from_string(channel).type)

    def add_channel_template(self, channel_template: ChannelTemplate) -> None:
        """Add or replace the template for a channel.

        Size limits are enforced when the ``ChannelTemplate`` is built, so an
        oversized body raises ``TemplateSizeExceededError`` before it gets here.
        """
        self._channel_templates[channel_template.channel] = channel_template
        self.mark_modified()

    def update_channel_template(self, channel, **updates: Any) -> None:
        existing = self._get_existing_channel_template(channel)
        self._channel_templates[existing.channel] = existing.with_changes(**updates)
        self.mark_modified()

    def remove_channel_template(self, channel) -> None:
        existing = self._get_existing_channel_template(channel)
        del self._channel_templates[existing.channel]
        self.mark_modified()

    def enable_channel_template(self, channel) -> None:
        self.update_channel_template(channel, enabled=True)

    def disable_channel_template(self, channel) -> None:
        self.update_channel_template(channel, enabled=False)

    def activate(self) -> None:
        self.is_active = True
        self.mark_modified()

    def deactivate(self) -> None:
        self.is_active = False
        self.mark_modified()

    def add_tag(self, tag: str) -> None:
        normalized = self._normalize_tag(tag)
        if normalized not in self.tags:
            self.tags.append(normalized)
            self.mark_modified()

    def remove_tag(self, tag: str) -> None:
        normalized = tag.strip().lower()
        if normalized in self.tags:
            self.tags.remove(normalized)
            self.mark_modified()

    def has_tag(self, tag: str) -> bool:
        return tag.strip().lower() in self.tags

    def update_metadata(self, metadata: dict[str, Any]) -> None:
        self.metadata.update(metadata)
        self.mark_modified()

    # -------------------------------------------------------------------------
    # Versioning
    # -------------------------------------------------------------------------

    @property
    def versions(self) -> tuple[TemplateVersion, ...]:
        return tuple(self._versions)

    @property
    def active_version(self) -> TemplateVersion | None:
        for version in self._versions:
            if version.version == self.current_version:
                return version
        return None

    def is_version_active(self, version: int) -> bool:
        return version == self.current_version

    def create_version(self, created_by: str, changelog: str | None = None) -> TemplateVersion:
        """Append a new version and point ``current_version`` at it."""
        new_version = self.current_version + 1
        entry = TemplateVersion(
            version=new_version,
            created_by=created_by,
            changelog=changelog or f"Version {new_version}",
        )
        self._versions.append(entry)
        self.current_version = new_version
        self.mark_modified()
        self.add_event(
            TemplateVersionCreated(
                template_id=self.id,
                version=new_version,
                created_by=created_by,
                changelog=entry.changelog,
            )
        )
        return entry

    # -------------------------------------------------------------------------
    # Validation and rendering
    # -------------------------------------------------------------------------

    def validate_variables(self, variables: dict[str, Any]) -> list[str]:
        """Check bound values against the variable schema.

        Returns one message per problem: a missing required variable, a type
        mismatch, or a violated constraint.
        """
        errors: list[str] = []
        for variable in self._variables:
            errors.extend(variable.validate_value(variables.get(variable.name)))
        return errors

    def render_template(
        self, channel, variables: dict[str, Any] | None = None
    ) -> RenderedContent:
        """Render a channel with plain ``{{ name }}`` substitution.

        Raises:
            TemplateRenderingError: If the template is inactive, the channel
                template is missing or disabled, or the variables are invalid
        """
        variables = variables or {}
        channel_type = Channel.from_string(channel).type

        if not self.is_active:
            raise TemplateRenderingError(
                "Cannot render inactive template",
                template_id=self.id,
                channel=channel_type.value,
            )

        channel_template = self._channel_templates.get(channel_type)
        if channel_template is None:
            raise TemplateRenderingError(
                f"No template found for channel '{channel_type.value}'",
                template_id=self.id,
                channel=channel_type.value,
            )
        if not channel_template.enabled:
            raise TemplateRenderingError(
                f"Template for channel '{channel_type.value}' is disabled",
                template_id=self.id,
                channel=channel_type.value,
            )

        errors = self.validate_variables(variables)
        if errors:
            raise TemplateRenderingError(
                f"Template validation failed: {', '.join(errors)}",
                template_id=self.id,
                channel=channel_type.value,
                errors=errors,
            )

        subject = (
            self._interpolate(channel_template.subject, variables)
            if channel_template.subject
            else None
        )
        return RenderedContent(
            subject=subject,
            body=self._interpolate(channel_template.body, variables),
            format=channel_template.format,
        )

    @staticmethod
    def _interpolate(text: str, variables: dict[str, Any]) -> str:
        result = text
        for key, value in variables.items():
            pattern = re.compile(r"\{\{\s*" + re.escape(key) + r"\s*\}\}")
            replacement = stringify(value)
            result = pattern.sub(lambda _match: replacement, result)
        return result

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def has_variable(self, name: str) -> bool:
        return any(variable.name == name for variable in self._variables)

    def get_variable(self, name: str) -> TemplateVariable | None:
        for variable in self._variables:
            if variable.name == name:
                return variable
        return None

    def has_channel_template(self, channel) -> bool:
        return Channel.from_string(channel).type in self._channel_templates

    def get_enabled_channels(self) -> list[ChannelType]:
        return [ct.channel for ct in self.channel_templates if ct.enabled]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "is_active": self.is_active,
            "variables": [variable.to_dict() for variable in self._variables],
            "channel_templates": [ct.to_dict() for ct in self.channel_templates],
            "versions": [
                {
                    "version": v.version,
                    "created_by": v.created_by,
                    "created_at": v.created_at.isoformat(),
                    "changelog": v.changelog,
                    "is_active": self.is_version_active(v.version),
                }
                for v in self._versions
            ],
            "current_version": self.current_version,
            "tags": list(self.tags),
            "metadata": dict(self.metadata),
        }

    def __str__(self) -> str:
        return f"NotificationTemplate({self.name} v{self.current_version})"
