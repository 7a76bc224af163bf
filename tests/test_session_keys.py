"""
Session Key Tests
-----------------
Agent id derivation and subagent classification.
"""

from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from security.session_keys import (
    is_subagent_session_key,
    normalize_agent_id,
    parse_agent_session_key,
    resolve_agent_id_from_session_key,
)


class TestParseAgentSessionKey:

    def test_agent_scoped_key(self):
        parsed = parse_agent_session_key("agent:Coder:main")
        assert parsed.agent_id == "Coder"
        assert parsed.rest == "main"

    def test_rest_keeps_colons(self):
        parsed = parse_agent_session_key("agent:ops:subagent:1234")
        assert parsed.rest == "subagent:1234"

    def test_unscoped_key(self):
        assert parse_agent_session_key("main") is None
        assert parse_agent_session_key("agent:only") is None
        assert parse_agent_session_key("") is None
        assert parse_agent_session_key(None) is None


class TestResolveAgentId:

    def test_scoped(self):
        assert resolve_agent_id_from_session_key("agent:Coder:main") == "coder"

    def test_default(self):
        assert resolve_agent_id_from_session_key("discord:group:1") == "main"
        assert resolve_agent_id_from_session_key(None) == "main"

    def test_normalize_agent_id(self):
        assert normalize_agent_id(" My Agent! ") == "my-agent"
        assert normalize_agent_id("") == "main"


class TestIsSubagentSessionKey:

    def test_scoped_subagent(self):
        assert is_subagent_session_key("agent:main:subagent:abc")

    def test_raw_subagent(self):
        assert is_subagent_session_key("subagent:abc")

    def test_not_subagent(self):
        assert not is_subagent_session_key("agent:main:main")
        assert not is_subagent_session_key("agent:subagent:main")
        assert not is_subagent_session_key(None)
