"""
Error types for phaseguard.

Every error raised by this package derives from PhaseguardError, which carries
a coarse error type, a retryable flag, and structured context for diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorType(str, Enum):
    """Coarse error taxonomy."""

    VALIDATION = "validation"
    TOOL = "tool"
    CORRUPTION = "corruption"


class PhaseguardError(Exception):
    """
    Base exception for phaseguard errors.

    Attributes:
        message: Human-readable message.
        error_type: Coarse category of the error.
        retryable: Whether the operation that raised it may be retried.
        context: Extra structured data (ids, paths) for diagnostics.
    """

    error_type: ErrorType = ErrorType.VALIDATION

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retryable = retryable
        self.context = context or {}

    @property
    def type(self) -> str:
        return self.error_type.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "type": self.type,
            "retryable": self.retryable,
            "message": self.message,
            "context": dict(self.context),
        }


class ValidationError(PhaseguardError):
    """A precondition was violated. Never retried."""

    error_type = ErrorType.VALIDATION

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, retryable=False, context=context)


class ToolError(PhaseguardError):
    """Wraps a failure raised by an external tool invocation."""

    error_type = ErrorType.TOOL

    def __init__(
        self,
        message: str,
        source_tool: str,
        retryable: bool = False,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, retryable=retryable, context=context)
        self.source_tool = source_tool
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["sourceTool"] = self.source_tool
        if self.cause is not None:
            data["cause"] = type(self.cause).__name__
        return data


class CorruptionError(PhaseguardError):
    """A persisted document or phase artifact is missing or malformed."""

    error_type = ErrorType.CORRUPTION


class GateFailure(str, Enum):
    """Reasons the phase gate can reject a hand-off."""

    NO_FILES = "no_files"
    MISSING_QUEUE = "missing_queue"
    MISSING_DELIVERABLE = "missing_deliverable"
    INVALID_JSON = "invalid_json"
    INVALID_STRUCTURE = "invalid_structure"


class QueueValidationError(CorruptionError):
    """The deliverable/queue pair of a phase is incomplete or malformed."""

    def __init__(
        self,
        message: str,
        phase: str,
        reason: GateFailure,
        context: dict[str, Any] | None = None,
    ) -> None:
        merged = {"phase": phase, "reason": reason.value}
        merged.update(context or {})
        super().__init__(message, retryable=False, context=merged)
        self.phase = phase
        self.reason = reason


@dataclass
class ToolResult:
    """Outcome of a tool invocation as handed to the retry loop."""

    success: bool
    output: str = ""
    error: ToolError | None = None

    @property
    def retryable(self) -> bool:
        return bool(self.error and self.error.retryable)
