"""
Configuration Tests
-------------------
Tests cover:
- Typed config parsing (aliases, lenient allow/deny lists)
- YAML loading (missing file, malformed document)
- ConfigManager dot-notation access and env overrides
"""

from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.errors import ConfigError
from infra.config import ConfigManager, ToolgateConfig, load_config

SAMPLE_CONFIG = """
tools:
  deny: [browser]
  subagents:
    tools:
      deny: [message]
  sandbox:
    tools:
      allow: [read, exec]
  exec:
    cleanupMs: 1800000
    applyPatch:
      enabled: true
      allowModels: [openai/gpt-5]
agents:
  list:
    - id: Coder
      tools:
        allow: [read, write]
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "toolgate.yaml"
    path.write_text(SAMPLE_CONFIG)
    return path


class TestToolgateConfig:

    def test_defaults(self):
        config = ToolgateConfig.from_dict(None)
        assert config.tools.allow is None
        assert config.tools.deny is None
        assert not config.tools.defines_policy
        assert config.tools.exec.apply_patch.enabled is False
        assert config.agents.entries == []

    def test_camel_case_aliases(self):
        config = ToolgateConfig.from_dict({
            "tools": {"exec": {"applyPatch": {"enabled": True, "allowModels": ["gpt-5"]}, "cleanupMs": 10}}
        })
        assert config.tools.exec.apply_patch.allow_models == ["gpt-5"]
        assert config.tools.exec.cleanup_ms == 10

    def test_snake_case_names(self):
        config = ToolgateConfig.from_dict({
            "tools": {"exec": {"apply_patch": {"enabled": True, "allow_models": ["gpt-5"]}}}
        })
        assert config.tools.exec.apply_patch.enabled is True
        assert config.tools.exec.apply_patch.allow_models == ["gpt-5"]

    def test_non_list_policy_ignored(self):
        config = ToolgateConfig.from_dict({"tools": {"allow": "read", "deny": {"x": 1}}})
        assert config.tools.allow is None
        assert config.tools.deny is None

    def test_non_string_entries_dropped(self):
        config = ToolgateConfig.from_dict({"tools": {"deny": ["write", 3, None]}})
        assert config.tools.deny == ["write"]

    def test_empty_list_defines_policy(self):
        config = ToolgateConfig.from_dict({"tools": {"allow": []}})
        assert config.tools.defines_policy

    def test_unknown_keys_ignored(self):
        config = ToolgateConfig.from_dict({"tools": {"profile": "coding"}, "gateway": {"port": 1}})
        assert config.tools.allow is None

    def test_invalid_document_raises(self):
        with pytest.raises(ConfigError):
            ToolgateConfig.from_dict({"agents": {"list": [{"tools": {}}]}})

    def test_resolve_agent_normalizes_ids(self):
        config = ToolgateConfig.from_dict({"agents": {"list": [{"id": "My Agent"}]}})
        assert config.resolve_agent("my-agent").id == "My Agent"
        assert config.resolve_agent("other") is None
        assert config.resolve_agent(None) is None


class TestLoadConfig:

    def test_load_yaml(self, config_file):
        config = load_config(str(config_file))
        assert config.tools.deny == ["browser"]
        assert config.tools.subagents.tools.deny == ["message"]
        assert config.tools.sandbox.tools.allow == ["read", "exec"]
        assert config.tools.exec.cleanup_ms == 1800000
        assert config.tools.exec.apply_patch.allow_models == ["openai/gpt-5"]
        assert config.resolve_agent("coder").tools.allow == ["read", "write"]

    def test_missing_file_is_unrestricted(self, tmp_path):
        config = load_config(str(tmp_path / "absent.yaml"))
        assert not config.tools.defines_policy

    def test_no_path(self):
        assert load_config(None).tools.allow is None

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("tools: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- read\n- write\n")
        with pytest.raises(ConfigError):
            load_config(str(path))


class TestConfigManager:

    def test_dot_notation(self, config_file):
        manager = ConfigManager(str(config_file))
        assert manager.get("tools.deny") == ["browser"]
        assert manager.get("tools.exec.applyPatch.enabled") is True
        assert manager.get("tools.missing", "fallback") == "fallback"

    def test_env_override(self, config_file, monkeypatch):
        monkeypatch.setenv("TOOLGATE_TOOLS_DENY", "[exec, browser]")
        manager = ConfigManager(str(config_file))
        assert manager.get("tools.deny") == ["exec", "browser"]

    def test_set_and_typed_view(self, config_file):
        manager = ConfigManager(str(config_file))
        manager.set("tools.allow", ["read"])
        assert manager.config.tools.allow == ["read"]
        assert manager.get_section("agents")["list"][0]["id"] == "Coder"

    def test_reload(self, config_file):
        manager = ConfigManager(str(config_file))
        config_file.write_text("tools:\n  deny: [write]\n")
        manager.reload()
        assert manager.get("tools.deny") == ["write"]

    def test_missing_file(self, tmp_path):
        manager = ConfigManager(str(tmp_path / "none.yaml"))
        assert manager.get("tools.allow") is None
        assert manager.config.tools.allow is None
