"""
Toolgate Centralized Logging
----------------------------
Structured logging with session_key propagation.

Design:
- Each tool assembly runs inside a SessionContext
- session_key propagates into every record emitted by policy, wrappers and assembler
- Console output through Rich, file output as JSON lines
- Severity discipline: DEBUG=policy decisions, WARNING=rejected call, ERROR=assembly abort

Usage:
    from infra.logging import get_logger, SessionContext

    logger = get_logger("tools.assembler")

    with SessionContext("agent:main:subagent:42"):
        logger.info("Assembling tools")
"""

import contextvars
import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "toolgate"

_session_key_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "session_key", default=None
)


def get_session_key() -> Optional[str]:
    """Get the current session key from context."""
    return _session_key_var.get()


class SessionContext:
    """
    Context manager that scopes log records to a session key.

    Works across awaits since it is backed by a ContextVar.
    """

    def __init__(self, session_key: Optional[str]):
        self._session_key = session_key
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> Optional[str]:
        self._token = _session_key_var.set(self._session_key)
        return self._session_key

    def __exit__(self, *args) -> None:
        if self._token is not None:
            _session_key_var.reset(self._token)
            self._token = None


class SessionKeyFilter(logging.Filter):
    """Logging filter that adds session_key to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "session_key", None) is None:
            record.session_key = get_session_key() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured file logging."""

    EXTRA_FIELDS = ("tool_name", "agent_id", "policy", "path", "mime_type", "tool_count")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "session_key": getattr(record, "session_key", "-"),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        for key in self.EXTRA_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        return json.dumps(entry, default=str)


_logging_initialized = False


def configure_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    console: bool = True,
    file: bool = False,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
) -> None:
    """
    Configure the toolgate logging system.

    Args:
        level: Logging level (default INFO)
        log_dir: Directory for log files (default: ./logs)
        console: Enable Rich console output
        file: Enable JSON file output
    """
    global _logging_initialized

    if _logging_initialized:
        return

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    session_filter = SessionKeyFilter()

    if console:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setLevel(level)
        console_handler.addFilter(session_filter)
        root_logger.addHandler(console_handler)

    if file:
        log_path = Path(log_dir) if log_dir else Path("logs")
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(log_path / "toolgate.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)  # File gets everything
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(session_filter)
        root_logger.addHandler(file_handler)

    _logging_initialized = True


def reset_logging() -> None:
    """Drop configured handlers so configure_logging() can run again."""
    global _logging_initialized
    logging.getLogger(ROOT_LOGGER).handlers.clear()
    _logging_initialized = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger in the toolgate namespace.

    Args:
        name: Logger name (prefixed with 'toolgate.' if not already)
    """
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
