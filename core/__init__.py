# Core module - Error types shared by policy, wrappers and assembly

from .errors import (
    ErrorCategory,
    ToolgateError,
    ToolValidationError,
    SandboxPathError,
    ToolAbortedError,
    ToolSourcingError,
    ConfigError,
    RetryPolicy,
)

__all__ = [
    "ErrorCategory",
    "ToolgateError",
    "ToolValidationError",
    "SandboxPathError",
    "ToolAbortedError",
    "ToolSourcingError",
    "ConfigError",
    "RetryPolicy",
]
