# Infrastructure module - Logging and configuration

from .logging import (
    get_logger, configure_logging, reset_logging,
    SessionContext, get_session_key,
)
from .config import (
    ConfigManager, ToolgateConfig, ToolPolicyConfig,
    AgentConfig, load_config,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "reset_logging",
    "SessionContext",
    "get_session_key",
    # Config
    "ConfigManager",
    "ToolgateConfig",
    "ToolPolicyConfig",
    "AgentConfig",
    "load_config",
]
