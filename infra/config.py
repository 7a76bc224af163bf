"""
Configuration
-------------
Typed view over the tool configuration document.

Rules:
- Missing sections fall back to "no restriction"
- Malformed allow/deny values (not a list) are treated as absent and logged
- Environment variables (TOOLGATE_*) override file values in ConfigManager.get()
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import logging
import os

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.errors import ConfigError
from security.session_keys import normalize_agent_id

logger = logging.getLogger("toolgate.infra.config")


def _coerce_name_list(value: Any, field_name: str) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        logger.warning(f"Ignoring non-list '{field_name}' value: {value!r}")
        return None
    return [entry for entry in value if isinstance(entry, str)]


class ToolPolicyConfig(BaseModel):
    """Allow/deny lists as written in the config document."""
    model_config = ConfigDict(extra="ignore")

    allow: Optional[List[str]] = None
    deny: Optional[List[str]] = None

    @field_validator("allow", "deny", mode="before")
    @classmethod
    def _lenient_lists(cls, value: Any, info) -> Optional[List[str]]:
        return _coerce_name_list(value, info.field_name)

    @property
    def defines_policy(self) -> bool:
        """True if either list is present, even when empty."""
        return self.allow is not None or self.deny is not None


class SubagentsConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tools: ToolPolicyConfig = Field(default_factory=ToolPolicyConfig)


class SandboxConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tools: ToolPolicyConfig = Field(default_factory=ToolPolicyConfig)


class ApplyPatchConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    enabled: bool = False
    allow_models: Optional[List[str]] = Field(default=None, alias="allowModels")

    @field_validator("allow_models", mode="before")
    @classmethod
    def _lenient_models(cls, value: Any) -> Optional[List[str]]:
        return _coerce_name_list(value, "allow_models")


class ExecConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    apply_patch: ApplyPatchConfig = Field(default_factory=ApplyPatchConfig, alias="applyPatch")
    cleanup_ms: Optional[int] = Field(default=None, alias="cleanupMs")


class ToolsConfig(ToolPolicyConfig):
    """Global tool settings; its own allow/deny is the global policy."""
    subagents: SubagentsConfig = Field(default_factory=SubagentsConfig)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    exec: ExecConfig = Field(default_factory=ExecConfig)


class AgentConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    tools: Optional[ToolPolicyConfig] = None


class AgentsConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    entries: List[AgentConfig] = Field(default_factory=list, alias="list")


class ToolgateConfig(BaseModel):
    """Root of the configuration document."""
    model_config = ConfigDict(extra="ignore")

    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    agents: AgentsConfig = Field(default_factory=AgentsConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ToolgateConfig":
        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def resolve_agent(self, agent_id: Optional[str]) -> Optional[AgentConfig]:
        """Find the agents.list entry for an agent id."""
        if not agent_id:
            return None
        wanted = normalize_agent_id(agent_id)
        for entry in self.agents.entries:
            if normalize_agent_id(entry.id) == wanted:
                return entry
        return None


def load_config(path: Optional[str]) -> ToolgateConfig:
    """
    Load a YAML configuration document.

    A missing file yields the default (unrestricted) configuration.
    """
    if not path:
        return ToolgateConfig()
    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}")
        return ToolgateConfig()
    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {config_path}")
    logger.info(f"Loaded config from {config_path}")
    return ToolgateConfig.from_dict(data)


class ConfigManager:
    """
    Raw configuration access with dot notation.

    Environment variables override file values:
    'tools.exec.apply_patch.enabled' -> TOOLGATE_TOOLS_EXEC_APPLY_PATCH_ENABLED
    """

    ENV_PREFIX = "TOOLGATE_"

    def __init__(self, config_path: Optional[str] = None):
        self._config_path = Path(config_path or os.getenv("TOOLGATE_CONFIG", "config/toolgate.yaml"))
        self._config: Dict[str, Any] = {}
        self._logger = logging.getLogger("toolgate.infra.config")
        self._load_config()

    def _load_config(self) -> None:
        if self._config_path.exists():
            with open(self._config_path, "r") as f:
                self._config = yaml.safe_load(f) or {}
            self._logger.info(f"Loaded config from {self._config_path}")
        else:
            self._config = {}
            self._logger.debug(f"Config file not found: {self._config_path}")

    def get(self, key: str, default: Any = None) -> Any:
        env_key = f"{self.ENV_PREFIX}{key.upper().replace('.', '_')}"
        env_value = os.getenv(env_key)
        if env_value is not None:
            return yaml.safe_load(env_value)

        value: Any = self._config
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a value for this process only (not persisted)."""
        parts = key.split(".")
        config = self._config
        for part in parts[:-1]:
            config = config.setdefault(part, {})
        config[parts[-1]] = value

    def get_section(self, section: str) -> Dict[str, Any]:
        return self._config.get(section, {})

    def reload(self) -> None:
        self._load_config()

    @property
    def config(self) -> ToolgateConfig:
        """Typed view of the current document."""
        return ToolgateConfig.from_dict(self._config)
