"""CQRS (Command Query Responsibility Segregation) implementation."""

from courier.core.cqrs.base import Command, CommandBus, CommandHandler, CommandResult

__all__ = [
    "Command",
    "CommandBus",
    "CommandHandler",
    "CommandResult",
]
