# Security module - Tool policy resolution and sandbox containment
# Deny wins. Scopes are checked independently, never merged.

from .session_keys import (
    DEFAULT_AGENT_ID,
    is_subagent_session_key,
    normalize_agent_id,
    parse_agent_session_key,
    resolve_agent_id_from_session_key,
)
from .policy import (
    DEFAULT_SUBAGENT_TOOL_DENY,
    EffectiveToolPolicy,
    ToolPolicy,
    filter_tools_by_policy,
    is_tool_allowed,
    is_tool_allowed_by_policies,
    normalize_tool_name,
    resolve_effective_tool_policy,
    resolve_subagent_tool_policy,
)
from .sandbox import (
    BrowserSettings,
    SandboxContext,
    WorkspaceAccess,
    assert_sandbox_path,
    resolve_sandbox_path,
)

__all__ = [
    "DEFAULT_AGENT_ID",
    "is_subagent_session_key",
    "normalize_agent_id",
    "parse_agent_session_key",
    "resolve_agent_id_from_session_key",
    "DEFAULT_SUBAGENT_TOOL_DENY",
    "EffectiveToolPolicy",
    "ToolPolicy",
    "filter_tools_by_policy",
    "is_tool_allowed",
    "is_tool_allowed_by_policies",
    "normalize_tool_name",
    "resolve_effective_tool_policy",
    "resolve_subagent_tool_policy",
    "BrowserSettings",
    "SandboxContext",
    "WorkspaceAccess",
    "assert_sandbox_path",
    "resolve_sandbox_path",
]
