"""
Error Handling Module
---------------------
Typed errors with classification and retry logic.

Tool-call failures (bad image payloads, sandbox escapes) are raised from the
wrapped tool's execute() so the agent runtime sees an ordinary tool error.
Aborts are distinguishable so the runtime can skip retries.
Assembly failures propagate; a tool list is never returned partially.
"""

from enum import Enum, auto
from typing import Any, Dict, Optional
import asyncio


class ErrorCategory(Enum):
    """Categories of errors for handling decisions."""
    TOOL_FAILURE = auto()       # Underlying tool raised
    VALIDATION_ERROR = auto()   # Invocation or result failed validation
    PERMISSION_ERROR = auto()   # Sandbox containment rejected the call
    CANCELLED = auto()          # Abort signal fired
    SOURCING_ERROR = auto()     # A tool collaborator failed during assembly
    CONFIG_ERROR = auto()       # Configuration could not be parsed
    SYSTEM_ERROR = auto()       # Internal error

    @classmethod
    def for_exception(cls, exc: BaseException) -> "ErrorCategory":
        """Classify an arbitrary exception."""
        if isinstance(exc, ToolgateError):
            return exc.category
        if isinstance(exc, asyncio.CancelledError):
            return cls.CANCELLED
        if isinstance(exc, (ValueError, TypeError)):
            return cls.VALIDATION_ERROR
        return cls.TOOL_FAILURE


class ToolgateError(Exception):
    """
    Base error with category and structured details.
    """
    category: ErrorCategory = ErrorCategory.SYSTEM_ERROR
    recoverable: bool = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.name,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.category.name}: {self.message})"


class ToolValidationError(ToolgateError):
    """A tool invocation or its result failed validation."""
    category = ErrorCategory.VALIDATION_ERROR


class SandboxPathError(ToolValidationError):
    """A path argument resolves outside the sandbox root."""
    category = ErrorCategory.PERMISSION_ERROR
    recoverable = False


class ToolAbortedError(ToolgateError):
    """
    The call was cancelled before or while it ran.

    `name` mirrors the conventional "AbortError" label runtimes check for.
    """
    category = ErrorCategory.CANCELLED
    recoverable = False
    name = "AbortError"

    def __init__(self, message: str = "Aborted", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class ToolSourcingError(ToolgateError):
    """A tool source collaborator failed while assembling the tool list."""
    category = ErrorCategory.SOURCING_ERROR
    recoverable = False


class ConfigError(ToolgateError):
    """Configuration document could not be read."""
    category = ErrorCategory.CONFIG_ERROR
    recoverable = False


class RetryPolicy:
    """
    Retry policy for different error categories.

    Cancellation is never retried.
    """

    MAX_RETRIES: Dict[ErrorCategory, int] = {
        ErrorCategory.TOOL_FAILURE: 2,
        ErrorCategory.VALIDATION_ERROR: 0,  # Fix the input instead
        ErrorCategory.PERMISSION_ERROR: 0,
        ErrorCategory.CANCELLED: 0,
        ErrorCategory.SOURCING_ERROR: 0,
        ErrorCategory.CONFIG_ERROR: 0,
        ErrorCategory.SYSTEM_ERROR: 0,
    }

    RETRY_DELAYS: Dict[ErrorCategory, float] = {
        ErrorCategory.TOOL_FAILURE: 1.0,
    }

    @classmethod
    def should_retry(cls, error: BaseException, attempt: int) -> bool:
        """Check if a failed tool call should be retried."""
        category = ErrorCategory.for_exception(error)
        if isinstance(error, ToolgateError) and not error.recoverable:
            return False
        return attempt < cls.MAX_RETRIES.get(category, 0)

    @classmethod
    def get_delay(cls, error: BaseException) -> float:
        """Get delay before retry in seconds."""
        return cls.RETRY_DELAYS.get(ErrorCategory.for_exception(error), 1.0)
