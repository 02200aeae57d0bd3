"""Domain layer core classes."""

from courier.core.domain.base import (
    AggregateRoot,
    DomainEvent,
    DomainService,
    Entity,
    ValueObject,
    utc_now,
)

__all__ = [
    "AggregateRoot",
    "DomainEvent",
    "DomainService",
    "Entity",
    "ValueObject",
    "utc_now",
]
