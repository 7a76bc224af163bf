"""
Tool Policy Resolution
----------------------
Who may use which tool, for one session.

Rules:
- Names are canonicalized (trim, lower-case, alias table) before any comparison
- Deny always wins over allow
- No allow list means allow-all
- Per-agent policy replaces the global policy entirely when it defines any list
- Policies from different scopes (agent/global, sandbox, subagent) are never
  merged; a tool must pass each one independently
"""

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, List, Optional, Sequence, TypeVar
import logging

from .session_keys import resolve_agent_id_from_session_key

logger = logging.getLogger("toolgate.security.policy")

EXEC_TOOL_NAME = "exec"
PROCESS_TOOL_NAME = "process"
APPLY_PATCH_TOOL_NAME = "apply_patch"

TOOL_NAME_ALIASES = {
    "bash": EXEC_TOOL_NAME,
    "apply-patch": APPLY_PATCH_TOOL_NAME,
}

DEFAULT_SUBAGENT_TOOL_DENY = (
    "sessions_list",
    "sessions_history",
    "sessions_send",
    "sessions_spawn",
)


def normalize_tool_name(name: str) -> str:
    normalized = name.strip().lower()
    return TOOL_NAME_ALIASES.get(normalized, normalized)


def normalize_tool_names(names: Optional[Iterable[str]]) -> List[str]:
    if not names:
        return []
    normalized = (normalize_tool_name(name) for name in names if isinstance(name, str))
    return [name for name in normalized if name]


@dataclass(frozen=True)
class ToolPolicy:
    """
    Immutable allow/deny pair over canonical tool names.

    allow=None means every tool not denied is allowed.
    """
    allow: Optional[FrozenSet[str]] = None
    deny: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_lists(
        cls,
        allow: Optional[Iterable[str]] = None,
        deny: Optional[Iterable[str]] = None,
    ) -> "ToolPolicy":
        # An empty allow list is no restriction, same as a missing one
        allow_names = normalize_tool_names(allow)
        return cls(
            allow=frozenset(allow_names) if allow_names else None,
            deny=frozenset(normalize_tool_names(deny)),
        )

    @classmethod
    def from_config(cls, config: Any) -> Optional["ToolPolicy"]:
        """Build from any object carrying allow/deny lists (ToolPolicyConfig)."""
        if config is None:
            return None
        return cls.from_lists(config.allow, config.deny)

    def allows(self, name: str) -> bool:
        return is_tool_allowed(name, self)


@dataclass(frozen=True)
class EffectiveToolPolicy:
    agent_id: str
    policy: Optional[ToolPolicy]
    source: str  # "agent" or "global"


def is_tool_allowed(name: str, policy: Optional[ToolPolicy]) -> bool:
    if policy is None:
        return True
    normalized = normalize_tool_name(name)
    if normalized in policy.deny:
        return False
    if policy.allow is None:
        return True
    if normalized in policy.allow:
        return True
    # apply_patch is an exec capability
    if normalized == APPLY_PATCH_TOOL_NAME and EXEC_TOOL_NAME in policy.allow:
        return True
    return False


def is_tool_allowed_by_policies(
    name: str,
    policies: Sequence[Optional[ToolPolicy]],
) -> bool:
    return all(is_tool_allowed(name, policy) for policy in policies)


T = TypeVar("T")


def filter_tools_by_policy(tools: List[T], policy: Optional[ToolPolicy]) -> List[T]:
    """Keep tools (anything with a .name) allowed by policy, preserving order."""
    if policy is None:
        return tools
    kept = []
    for tool in tools:
        if is_tool_allowed(tool.name, policy):
            kept.append(tool)
        else:
            logger.debug(f"Tool filtered by policy: {tool.name}", extra={"tool_name": tool.name})
    return kept


def resolve_effective_tool_policy(
    config: Any,
    session_key: Optional[str],
) -> EffectiveToolPolicy:
    """
    Pick the agent policy if the agent defines one, else the global policy.
    """
    agent_id = resolve_agent_id_from_session_key(session_key)
    if config is None:
        return EffectiveToolPolicy(agent_id=agent_id, policy=None, source="global")

    agent_config = config.resolve_agent(agent_id)
    agent_tools = agent_config.tools if agent_config else None
    if agent_tools is not None and agent_tools.defines_policy:
        logger.debug(f"Using agent tool policy for {agent_id}", extra={"agent_id": agent_id})
        return EffectiveToolPolicy(
            agent_id=agent_id,
            policy=ToolPolicy.from_config(agent_tools),
            source="agent",
        )
    return EffectiveToolPolicy(
        agent_id=agent_id,
        policy=ToolPolicy.from_config(config.tools),
        source="global",
    )


def resolve_subagent_tool_policy(config: Any) -> ToolPolicy:
    """Baseline subagent deny list plus tools.subagents.tools overrides."""
    configured = config.tools.subagents.tools if config is not None else None
    allow = configured.allow if configured is not None else None
    extra_deny = configured.deny if configured is not None else None
    deny = list(DEFAULT_SUBAGENT_TOOL_DENY) + list(extra_deny or [])
    return ToolPolicy.from_lists(allow, deny)
