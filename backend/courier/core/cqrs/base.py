"""CQRS base classes.

Architecture:
- Command: Represents an intent to change system state
- CommandResult: Standardized response wrapper returned by handlers
- CommandHandler: Processes one command type
- CommandBus: Routes commands to their registered handler
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import uuid4

from courier.core.domain.base import utc_now
from courier.core.errors import ConfigurationError
from courier.core.logging import get_logger

logger = get_logger(__name__)

TCommand = TypeVar("TCommand", bound="Command")
TResult = TypeVar("TResult")


# =====================================================================================
# RESULT TYPES
# =====================================================================================


class CommandResult(Generic[TResult]):
    """
    Standardized command result wrapper.

    Provides consistent result handling for command operations with
    success/failure status, data, and error information.
    """

    def __init__(
        self,
        success: bool,
        data: TResult | None = None,
        error: str | None = None,
        error_code: str | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        self.success = success
        self.data = data
        self.error = error
        self.error_code = error_code
        self.metadata = metadata or {}
        self.timestamp = utc_now()

    @classmethod
    def success_result(
        cls, data: TResult, metadata: dict[str, Any] | None = None
    ) -> "CommandResult[TResult]":
        """Create successful command result."""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def failure_result(
        cls,
        error: str,
        error_code: str | None = None,
        metadata: dict[str, Any] | None = None,
        data: TResult | None = None,
    ) -> "CommandResult[TResult]":
        """Create failed command result."""
        return cls(
            success=False, data=data, error=error, error_code=error_code, metadata=metadata
        )

    def is_success(self) -> bool:
        return self.success

    def is_failure(self) -> bool:
        return not self.success

    def get_data(self) -> TResult:
        """Get result data, raises exception if failed."""
        if not self.success:
            raise RuntimeError(f"Command failed: {self.error}")
        return self.data

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary."""
        data = self.data.to_dict() if hasattr(self.data, "to_dict") else self.data
        return {
            "success": self.success,
            "data": data,
            "error": self.error,
            "error_code": self.error_code,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
        }


# =====================================================================================
# COMMANDS
# =====================================================================================


class Command(ABC):
    """
    Base command class representing an intent to change system state.

    Commands are immutable once ``_freeze`` has been called; only the
    tracking metadata (correlation id, initiator, source) may be set later.

    Usage Example:
        class DeleteTemplateCommand(Command):
            def __init__(self, template_id: str, deleted_by: str):
                super().__init__()
                self.template_id = template_id
                self.deleted_by = deleted_by
                self._freeze()
    """

    _mutable_metadata = ("correlation_id", "initiated_by", "source")

    def __init__(self):
        self.command_id = str(uuid4())
        self.created_at = utc_now()
        self.correlation_id: str | None = None
        self.initiated_by: str | None = None
        self.source: str | None = None

        self._frozen = False

    def _validate_command(self) -> None:
        """
        Validate command state. Override in subclasses for specific validation.

        Raises:
            ValidationError: If command is in invalid state
        """

    def _freeze(self) -> None:
        """Validate and mark the command as frozen (immutable)."""
        self._validate_command()
        self._frozen = True

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_frozen", False) and name not in self._mutable_metadata:
            raise AttributeError(
                f"Cannot modify immutable command {self.__class__.__name__}"
            )
        super().__setattr__(name, value)

    def set_metadata(
        self,
        correlation_id: str | None = None,
        initiated_by: str | None = None,
        source: str | None = None,
    ) -> None:
        """Set command metadata for tracking and auditing."""
        if correlation_id is not None:
            self.correlation_id = correlation_id
        if initiated_by is not None:
            self.initiated_by = initiated_by
        if source is not None:
            self.source = source

    def to_dict(self) -> dict[str, Any]:
        """Convert command to dictionary for serialization."""
        result = {}
        for key, value in self.__dict__.items():
            if key.startswith("_"):
                continue
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            else:
                result[key] = value

        result["command_type"] = self.__class__.__name__
        return result

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Command):
            return False
        return self.command_id == other.command_id

    def __hash__(self) -> int:
        return hash(self.command_id)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.command_id}, created_at={self.created_at})"


# =====================================================================================
# HANDLERS
# =====================================================================================


class CommandHandler(ABC, Generic[TCommand, TResult]):
    """
    Base command handler for processing commands.

    Handlers hold their collaborators (repositories, services) and implement
    ``handle`` for a single command type.
    """

    def __init__(self):
        self._execution_count = 0
        self._total_execution_time = 0.0
        self._error_count = 0
        self._last_executed: datetime | None = None

    @abstractmethod
    async def handle(self, command: TCommand) -> TResult:
        """Handle the command and return result."""

    @property
    @abstractmethod
    def command_type(self) -> type[TCommand]:
        """Get the command type this handler processes."""

    async def execute_with_tracking(self, command: TCommand) -> TResult:
        """Execute command with performance tracking and error logging."""
        start_time = time.perf_counter()
        try:
            logger.debug(
                "Executing command",
                command_type=command.__class__.__name__,
                command_id=command.command_id,
                handler=self.__class__.__name__,
            )

            result = await self.handle(command)

            execution_time = time.perf_counter() - start_time
            self._execution_count += 1
            self._total_execution_time += execution_time
            self._last_executed = utc_now()

            logger.info(
                "Command executed",
                command_type=command.__class__.__name__,
                command_id=command.command_id,
                execution_time=execution_time,
            )

            return result

        except Exception as e:
            execution_time = time.perf_counter() - start_time
            self._execution_count += 1
            self._error_count += 1
            self._total_execution_time += execution_time

            logger.exception(
                "Command execution failed",
                command_type=command.__class__.__name__,
                command_id=command.command_id,
                error=str(e),
                execution_time=execution_time,
            )
            raise

    def get_performance_stats(self) -> dict[str, Any]:
        """Get performance statistics for this handler."""
        avg_time = self._total_execution_time / max(self._execution_count, 1)
        return {
            "handler_class": self.__class__.__name__,
            "command_type": self.command_type.__name__,
            "execution_count": self._execution_count,
            "error_count": self._error_count,
            "average_execution_time": avg_time,
            "last_executed": self._last_executed.isoformat()
            if self._last_executed
            else None,
        }


class CommandBus:
    """Routes commands to the handler registered for their type."""

    def __init__(self):
        self._handlers: dict[type[Command], CommandHandler] = {}

    def register(self, handler: CommandHandler) -> None:
        """
        Register a command handler.

        Raises:
            ConfigurationError: If a handler is already registered for the command type
        """
        command_type = handler.command_type

        if command_type in self._handlers:
            raise ConfigurationError(
                f"Handler already registered for command type {command_type.__name__}"
            )

        self._handlers[command_type] = handler

        logger.debug(
            "Command handler registered",
            command_type=command_type.__name__,
            handler=handler.__class__.__name__,
        )

    def has_handler(self, command_type: type[Command]) -> bool:
        return command_type in self._handlers

    async def execute(self, command: Command) -> Any:
        """
        Execute a command through its registered handler.

        Raises:
            ConfigurationError: If no handler is registered for the command type
        """
        handler = self._handlers.get(type(command))

        if not handler:
            raise ConfigurationError(
                f"No handler registered for command type {type(command).__name__}"
            )

        return await handler.execute_with_tracking(command)
