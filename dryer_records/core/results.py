"""
Operation results returned by every core intent.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional


class ErrorKind(Enum):
    """Failure categories reported by core operations."""
    VALIDATION = auto()     # Bad row/field/argument, recovered locally
    NOT_FOUND = auto()      # Referenced record id does not exist
    PERSISTENCE = auto()    # Durable read/write failed, in-memory state kept
    CORRUPTION = auto()     # Durable snapshot unreadable, reset to empty
    PARTIAL_BATCH = auto()  # Some units of a multi-file/row batch failed


class MessageLevel(str, Enum):
    """Notification categories understood by the UI layer."""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a core operation."""
    ok: bool
    message: str = ""
    value: Any = None
    error: Optional[ErrorKind] = None
    level: MessageLevel = MessageLevel.SUCCESS

    @classmethod
    def success(cls, message: str = "", value: Any = None) -> OperationResult:
        return cls(ok=True, message=message, value=value, level=MessageLevel.SUCCESS)

    @classmethod
    def info(cls, message: str, value: Any = None) -> OperationResult:
        """Successful outcome that changed nothing worth celebrating."""
        return cls(ok=True, message=message, value=value, level=MessageLevel.INFO)

    @classmethod
    def partial(cls, message: str, value: Any = None) -> OperationResult:
        """Usable outcome of a batch where some units failed."""
        return cls(
            ok=True, message=message, value=value,
            error=ErrorKind.PARTIAL_BATCH, level=MessageLevel.INFO
        )

    @classmethod
    def failure(
        cls,
        error: ErrorKind,
        message: str,
        value: Any = None
    ) -> OperationResult:
        return cls(ok=False, message=message, value=value, error=error, level=MessageLevel.ERROR)

    def __bool__(self) -> bool:
        return self.ok
