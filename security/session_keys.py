"""
Session Keys
------------
Classification of agent session keys.

Format: "agent:<agentId>:<rest>". A key whose rest (or whole raw key)
starts with "subagent:" belongs to a nested subagent session.
Keys without the agent prefix belong to the default agent.
"""

from dataclasses import dataclass
from typing import Optional
import re

DEFAULT_AGENT_ID = "main"

_INVALID_AGENT_CHARS = re.compile(r"[^a-z0-9_-]+")


@dataclass(frozen=True)
class AgentSessionKey:
    agent_id: str
    rest: str


def normalize_agent_id(value: Optional[str]) -> str:
    """Lower-case and collapse anything outside [a-z0-9_-] to '-'."""
    trimmed = (value or "").strip().lower()
    if not trimmed:
        return DEFAULT_AGENT_ID
    cleaned = _INVALID_AGENT_CHARS.sub("-", trimmed).strip("-")
    return cleaned[:64] or DEFAULT_AGENT_ID


def parse_agent_session_key(session_key: Optional[str]) -> Optional[AgentSessionKey]:
    """Split an "agent:<id>:<rest>" key; None if the key is not agent-scoped."""
    raw = (session_key or "").strip()
    if not raw:
        return None
    parts = [part for part in raw.split(":") if part]
    if len(parts) < 3 or parts[0].lower() != "agent":
        return None
    agent_id = parts[1].strip()
    rest = ":".join(parts[2:])
    if not agent_id or not rest:
        return None
    return AgentSessionKey(agent_id=agent_id, rest=rest)


def resolve_agent_id_from_session_key(session_key: Optional[str]) -> str:
    parsed = parse_agent_session_key(session_key)
    return normalize_agent_id(parsed.agent_id if parsed else DEFAULT_AGENT_ID)


def is_subagent_session_key(session_key: Optional[str]) -> bool:
    raw = (session_key or "").strip()
    if not raw:
        return False
    if raw.lower().startswith("subagent:"):
        return True
    parsed = parse_agent_session_key(raw)
    return bool(parsed and parsed.rest.lower().startswith("subagent:"))
