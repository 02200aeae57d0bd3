"""Domain primitives.

Architecture:
- ValueObject: Immutable objects representing domain concepts
- Entity: Mutable objects with identity and lifecycle
- AggregateRoot: Entities that record domain events and keep a version
- DomainEvent: Something that happened in the domain
- DomainService: Stateless domain logic coordinators
"""

import re
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any, TypeVar
from uuid import uuid4

from courier.core.errors import ValidationError


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


# =====================================================================================
# VALUE OBJECT BASE CLASS
# =====================================================================================


class ValueObject(ABC):
    """
    Base value object.

    Value objects are immutable objects that are defined entirely by their
    attributes. Subclasses set their attributes in ``__init__`` and call
    ``self._freeze()`` as the last step.

    Usage Example:
        class Price(ValueObject):
            def __init__(self, amount: Decimal, currency: str):
                super().__init__()
                if amount < 0:
                    raise ValidationError("Price cannot be negative")
                self.amount = amount
                self.currency = currency.upper()
                self._freeze()

            def __str__(self) -> str:
                return f"{self.amount} {self.currency}"
    """

    def __init__(self):
        self._frozen = False
        self._hash_cache = None

    def _freeze(self) -> None:
        """Mark the object as frozen (immutable)."""
        self._frozen = True

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification after initialization."""
        if getattr(self, "_frozen", False) and name != "_hash_cache":
            raise AttributeError(f"Cannot modify immutable {self.__class__.__name__}")
        super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        if getattr(self, "_frozen", False):
            raise AttributeError(
                f"Cannot delete attribute from immutable {self.__class__.__name__}"
            )
        super().__delattr__(name)

    def _public_attrs(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return self._public_attrs() == other._public_attrs()

    def __hash__(self) -> int:
        if self._hash_cache is None:
            values = []
            for key, value in sorted(self._public_attrs().items()):
                values.append((key, _hashable(value)))
            self._hash_cache = hash((self.__class__.__name__, tuple(values)))
        return self._hash_cache

    def __repr__(self) -> str:
        attrs = ", ".join(f"{k}={v!r}" for k, v in self._public_attrs().items())
        return f"{self.__class__.__name__}({attrs})"

    @abstractmethod
    def __str__(self) -> str:
        """String representation. Must be implemented by subclasses."""

    def to_dict(self) -> dict[str, Any]:
        """Convert value object to dictionary."""
        result = {}
        for key, value in self._public_attrs().items():
            if hasattr(value, "to_dict"):
                result[key] = value.to_dict()
            elif isinstance(value, datetime):
                result[key] = value.isoformat()
            else:
                result[key] = value
        return result

    @classmethod
    def validate_not_empty(cls, value: Any, field_name: str) -> None:
        """
        Validate that a value is not empty.

        Raises:
            ValidationError: If value is None or a blank string
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{field_name} cannot be empty", field=field_name)

    @classmethod
    def validate_max_length(cls, value: str, max_length: int, field_name: str) -> None:
        """
        Validate string length against an upper bound.

        Raises:
            ValidationError: If the string is longer than ``max_length``
        """
        if len(value) > max_length:
            raise ValidationError(
                f"{field_name} cannot exceed {max_length} characters",
                field=field_name,
            )

    @classmethod
    def validate_pattern(cls, value: str, pattern: str, field_name: str) -> None:
        """
        Validate string against a regex pattern.

        Raises:
            ValidationError: If pattern doesn't match
        """
        if not isinstance(value, str) or not re.match(pattern, value):
            raise ValidationError(
                f"{field_name} does not match required pattern", field=field_name
            )


def _hashable(value: Any) -> Any:
    if isinstance(value, dict):
        return tuple(sorted((k, _hashable(v)) for k, v in value.items()))
    if isinstance(value, list | tuple):
        return tuple(_hashable(v) for v in value)
    if isinstance(value, set | frozenset):
        return tuple(sorted(_hashable(v) for v in value))
    return value


# =====================================================================================
# ENTITY BASE CLASS
# =====================================================================================


class Entity(ABC):
    """
    Base entity with identity and lifecycle management.

    Entities are mutable objects defined by their identity rather than their
    attributes. Identifiers are strings; subclasses usually generate a
    prefixed id of their own.
    """

    def __init__(self, entity_id: str | None = None, created_at: datetime | None = None):
        self.id = entity_id or str(uuid4())
        self.created_at = created_at or utc_now()
        self.updated_at = self.created_at

        self._validate_entity()

    def _validate_entity(self) -> None:
        """
        Validate entity state. Override in subclasses for specific validation.

        Raises:
            ValidationError: If entity is in invalid state
        """
        if not isinstance(self.created_at, datetime):
            raise ValidationError("Entity created_at must be a datetime")

    def mark_modified(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = utc_now()

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return str(self.id) == str(other.id)

    def __hash__(self) -> int:
        return hash((self.__class__.__name__, str(self.id)))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id}, created_at={self.created_at})"

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.id})"

    @property
    def age_seconds(self) -> float:
        """Get age of entity in seconds."""
        return (utc_now() - self.created_at).total_seconds()


# =====================================================================================
# DOMAIN EVENT BASE CLASS
# =====================================================================================


class DomainEvent(ABC):
    """
    Base domain event class.

    Domain events represent something that happened in the domain that other
    parts of the system may react to.
    """

    def __init__(self):
        self.event_id = str(uuid4())
        self.occurred_at = utc_now()

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def __str__(self) -> str:
        """String representation of the event."""


# =====================================================================================
# AGGREGATE ROOT CLASS
# =====================================================================================


class AggregateRoot(Entity):
    """
    Aggregate root with domain event management.

    Usage Example:
        class Order(AggregateRoot):
            def confirm(self) -> None:
                self.status = OrderStatus.CONFIRMED
                self.add_event(OrderConfirmedEvent(self.id))
    """

    def __init__(self, entity_id: str | None = None, created_at: datetime | None = None):
        self._events: list[DomainEvent] = []
        self._version = 1
        super().__init__(entity_id, created_at)

    def add_event(self, event: DomainEvent) -> None:
        """
        Record a domain event on the aggregate.

        Raises:
            ValidationError: If event is not a DomainEvent
        """
        if not isinstance(event, DomainEvent):
            raise ValidationError("Event must be a DomainEvent instance")
        self._events.append(event)

    def clear_events(self) -> list[DomainEvent]:
        """Clear and return all uncommitted events."""
        events = self._events.copy()
        self._events.clear()
        return events

    def get_events(self) -> list[DomainEvent]:
        """Get copy of uncommitted events without clearing them."""
        return self._events.copy()

    def has_events(self) -> bool:
        return len(self._events) > 0

    def increment_version(self) -> None:
        """Increment aggregate version for optimistic locking."""
        self._version += 1
        self.mark_modified()

    @property
    def version(self) -> int:
        """Get current aggregate version."""
        return self._version

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"id={self.id}, "
            f"version={self._version}, "
            f"events={len(self._events)}, "
            f"created_at={self.created_at})"
        )


# =====================================================================================
# DOMAIN SERVICE BASE CLASS
# =====================================================================================


class DomainService(ABC):
    """
    Base class for domain services.

    Domain services encapsulate domain logic that doesn't naturally fit within
    a single entity or value object. They coordinate operations between
    multiple domain objects.
    """

    @abstractmethod
    def __str__(self) -> str:
        """String representation of the service."""


T = TypeVar("T")
EntityT = TypeVar("EntityT", bound=Entity)
AggregateT = TypeVar("AggregateT", bound=AggregateRoot)

__all__ = [
    "AggregateRoot",
    "AggregateT",
    "DomainEvent",
    "DomainService",
    "Entity",
    "EntityT",
    "ValueObject",
    "utc_now",
]
