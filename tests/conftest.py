"""
Toolgate Test Configuration
---------------------------
Shared fixtures: recording fake tools and fake tool sources.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tools.registry import Tool, ToolResult  # noqa: E402
from tools.assembler import ToolSources  # noqa: E402


class RecordingTool:
    """Fake tool implementation that records every call it receives."""

    def __init__(self, name: str, parameters: Optional[Dict[str, Any]] = None, result: Optional[ToolResult] = None):
        self.name = name
        self.parameters = parameters if parameters is not None else {
            "type": "object",
            "properties": {"path": {"type": "string"}},
        }
        self.result = result or ToolResult.text(f"{name} ok")
        self.calls: List[Dict[str, Any]] = []
        self.root: Optional[str] = None

    async def execute(self, tool_call_id, params, signal=None, on_update=None):
        self.calls.append({"id": tool_call_id, "params": params, "signal": signal})
        return self.result

    def as_tool(self) -> Tool:
        return Tool(
            name=self.name,
            description=f"{self.name} tool",
            parameters=self.parameters,
            execute=self.execute,
        )


@pytest.fixture(scope="session")
def project_root():
    """Return the project root path."""
    return PROJECT_ROOT


@pytest.fixture
def make_tool():
    """Factory: make_tool(name, parameters=None, result=None) -> (Tool, RecordingTool)."""
    def _make(name: str, parameters: Optional[Dict[str, Any]] = None, result: Optional[ToolResult] = None):
        recorder = RecordingTool(name, parameters, result)
        return recorder.as_tool(), recorder
    return _make


class FakeSources:
    """Builds ToolSources whose factories record what they were asked for."""

    def __init__(self, extra_platform: Optional[List[str]] = None, provider: Optional[List[str]] = None):
        self.recorders: Dict[str, RecordingTool] = {}
        self.exec_options = None
        self.process_options = None
        self.apply_patch_options = None
        self.platform_options = None
        self.platform_names = extra_platform if extra_platform is not None else [
            "browser",
            "message",
            "sessions_list",
            "sessions_history",
            "sessions_send",
            "sessions_spawn",
        ]
        self.provider_names = provider or []

    def _tool(self, name: str, root: Optional[str] = None) -> Tool:
        recorder = RecordingTool(name)
        recorder.root = root
        self.recorders[name] = recorder
        return recorder.as_tool()

    def coding_tools(self) -> List[Tool]:
        return [self._tool(name) for name in ("read", "bash", "edit", "write", "grep")]

    def create_read_tool(self, root: str) -> Tool:
        return self._tool("read", root)

    def create_write_tool(self, root: str) -> Tool:
        return self._tool("write", root)

    def create_edit_tool(self, root: str) -> Tool:
        return self._tool("edit", root)

    def create_exec_tool(self, options) -> Tool:
        self.exec_options = options
        return self._tool("exec")

    def create_process_tool(self, options) -> Tool:
        self.process_options = options
        return self._tool("process")

    def create_apply_patch_tool(self, options) -> Tool:
        self.apply_patch_options = options
        return self._tool("apply_patch")

    async def list_provider_tools(self, config) -> List[Tool]:
        return [self._tool(name) for name in self.provider_names]

    def create_platform_tools(self, options) -> List[Tool]:
        self.platform_options = options
        return [self._tool(name) for name in self.platform_names]

    def sources(self) -> ToolSources:
        return ToolSources(
            coding_tools=self.coding_tools,
            create_read_tool=self.create_read_tool,
            create_write_tool=self.create_write_tool,
            create_edit_tool=self.create_edit_tool,
            create_exec_tool=self.create_exec_tool,
            create_process_tool=self.create_process_tool,
            create_apply_patch_tool=self.create_apply_patch_tool,
            list_provider_tools=self.list_provider_tools,
            create_platform_tools=self.create_platform_tools,
        )


@pytest.fixture
def fake_sources():
    """Fresh FakeSources per test."""
    return FakeSources()
