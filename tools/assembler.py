"""
Tool Assembler
--------------
Builds the ordered tool list for one agent session.

Pipeline:
1. Execution context (sandboxed vs direct) and workspace root
2. Base coding tools, with read/write/edit swapped for workspace or sandbox variants
3. exec + process tools
4. apply_patch (feature flag + provider + model allow-list)
5. Provider and platform tools (browser, messaging)
6. Policy filters: effective (agent/global) -> sandbox -> subagent
7. Schema normalization
8. Abort-signal binding

Rules:
- A tool survives only if every applicable policy allows it
- Any tool source failure fails the whole assembly (no partial list)
- Duplicate names are not checked here
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
import asyncio
import inspect
import logging
import os

from core.errors import ToolSourcingError
from infra.config import ToolgateConfig
from infra.logging import SessionContext
from security.policy import (
    PROCESS_TOOL_NAME,
    ToolPolicy,
    filter_tools_by_policy,
    is_tool_allowed_by_policies,
    resolve_effective_tool_policy,
    resolve_subagent_tool_policy,
)
from security.sandbox import SandboxContext
from security.session_keys import is_subagent_session_key
from .registry import Tool
from .schema import SchemaScrubber, clean_schema_for_gemini, normalize_tool_parameters
from .wrappers import (
    wrap_read_image_normalization,
    wrap_sandbox_path_guard,
    wrap_tool_param_normalization,
    wrap_tool_with_abort_signal,
)

READ_TOOL_NAME = "read"
WRITE_TOOL_NAME = "write"
EDIT_TOOL_NAME = "edit"
EXEC_TOOL_NAMES = frozenset({"bash", "exec"})

# Providers whose models emit patch-style edits
APPLY_PATCH_PROVIDERS = frozenset({"openai", "openai-codex"})


# =============================================================================
# Collaborator option records
# =============================================================================

@dataclass
class HasRepliedRef:
    """Mutable flag owned by the chat-threading behavior; only forwarded here."""
    value: bool = False


@dataclass
class ExecToolDefaults:
    """Caller-supplied defaults for the exec and process tools."""
    scope_key: Optional[str] = None
    cleanup_ms: Optional[int] = None
    background_ms: Optional[int] = None
    timeout_sec: Optional[int] = None


@dataclass
class ExecSandbox:
    container_name: Optional[str]
    workspace_dir: str
    container_workdir: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class ExecToolOptions:
    cwd: str
    allow_background: bool
    scope_key: Optional[str]
    sandbox: Optional[ExecSandbox] = None
    defaults: ExecToolDefaults = field(default_factory=ExecToolDefaults)


@dataclass
class ProcessToolOptions:
    cleanup_ms: Optional[int]
    scope_key: Optional[str]


@dataclass
class ApplyPatchToolOptions:
    cwd: str
    sandbox_root: Optional[str] = None


@dataclass
class PlatformToolOptions:
    """Settings forwarded to the browser/messaging tool collaborator."""
    browser_control_url: Optional[str] = None
    allow_host_browser_control: bool = True
    allowed_control_urls: List[str] = field(default_factory=list)
    allowed_control_hosts: List[str] = field(default_factory=list)
    allowed_control_ports: List[int] = field(default_factory=list)
    agent_session_key: Optional[str] = None
    agent_provider: Optional[str] = None
    agent_account_id: Optional[str] = None
    agent_dir: Optional[str] = None
    workspace_dir: Optional[str] = None
    sandboxed: bool = False
    config: Optional[ToolgateConfig] = None
    current_channel_id: Optional[str] = None
    current_thread_ts: Optional[str] = None
    reply_to_mode: Optional[str] = None  # "off" | "first" | "all"
    has_replied_ref: Optional[HasRepliedRef] = None


MaybeAwaitable = Union[Any, Awaitable[Any]]


def _no_tools(*args: Any) -> List[Tool]:
    return []


@dataclass
class ToolSources:
    """
    Tool-source collaborators. Each factory may be sync or async.
    """
    coding_tools: Callable[[], MaybeAwaitable]
    create_read_tool: Callable[[str], MaybeAwaitable]
    create_write_tool: Callable[[str], MaybeAwaitable]
    create_edit_tool: Callable[[str], MaybeAwaitable]
    create_exec_tool: Callable[[ExecToolOptions], MaybeAwaitable]
    create_process_tool: Callable[[ProcessToolOptions], MaybeAwaitable]
    create_apply_patch_tool: Optional[Callable[[ApplyPatchToolOptions], MaybeAwaitable]] = None
    list_provider_tools: Callable[[Optional[ToolgateConfig]], MaybeAwaitable] = _no_tools
    create_platform_tools: Callable[[PlatformToolOptions], MaybeAwaitable] = _no_tools


@dataclass
class AssemblyOptions:
    """Per-session inputs to tool assembly."""
    config: Optional[ToolgateConfig] = None
    session_key: Optional[str] = None
    workspace_dir: Optional[str] = None
    agent_dir: Optional[str] = None
    sandbox: Optional[SandboxContext] = None
    exec: Optional[ExecToolDefaults] = None
    model_provider: Optional[str] = None
    model_id: Optional[str] = None
    message_provider: Optional[str] = None
    agent_account_id: Optional[str] = None
    abort_signal: Optional[asyncio.Event] = None
    current_channel_id: Optional[str] = None
    current_thread_ts: Optional[str] = None
    reply_to_mode: Optional[str] = None
    has_replied_ref: Optional[HasRepliedRef] = None


# =============================================================================
# apply_patch gating
# =============================================================================

def is_apply_patch_provider(provider: Optional[str]) -> bool:
    return (provider or "").strip().lower() in APPLY_PATCH_PROVIDERS


def is_apply_patch_allowed_for_model(
    model_provider: Optional[str],
    model_id: Optional[str],
    allow_models: Optional[List[str]],
) -> bool:
    """
    Match the model against allow_models ("gpt-5" or "openai/gpt-5").

    An empty or missing list allows every model.
    """
    if not allow_models:
        return True
    model = (model_id or "").strip().lower()
    if not model:
        return False
    provider = (model_provider or "").strip().lower()
    full = f"{provider}/{model}" if provider and "/" not in model else model
    for entry in allow_models:
        normalized = entry.strip().lower() if isinstance(entry, str) else ""
        if normalized and normalized in (model, full):
            return True
    return False


def _normalize_message_provider(provider: Optional[str]) -> Optional[str]:
    normalized = (provider or "").strip().lower()
    return normalized or None


# =============================================================================
# Assembler
# =============================================================================

class ToolAssembler:
    """
    Orchestrates sourcing, gating, wrapping and composition of session tools.

    The result is handed to the agent runtime as-is.
    """

    def __init__(self, sources: ToolSources, scrubber: SchemaScrubber = clean_schema_for_gemini):
        self.sources = sources
        self.scrubber = scrubber
        self._logger = logging.getLogger("toolgate.tools.assembler")

    async def _source(self, label: str, factory: Callable[..., MaybeAwaitable], *args: Any) -> Any:
        try:
            value = factory(*args)
            if inspect.isawaitable(value):
                value = await value
            return value
        except ToolSourcingError:
            raise
        except Exception as e:
            self._logger.error(f"Tool source '{label}' failed: {e}")
            raise ToolSourcingError(
                f"Failed to source {label} tools: {e}",
                details={"source": label},
            ) from e

    async def _source_list(self, label: str, factory: Callable[..., MaybeAwaitable], *args: Any) -> List[Tool]:
        return list(await self._source(label, factory, *args) or [])

    async def assemble(self, options: Optional[AssemblyOptions] = None) -> List[Tool]:
        options = options or AssemblyOptions()
        with SessionContext(options.session_key):
            tools = await self._assemble(options)
        return tools

    async def _assemble(self, options: AssemblyOptions) -> List[Tool]:
        config = options.config
        sources = self.sources

        # 1. Execution context
        sandbox = options.sandbox if options.sandbox and options.sandbox.enabled else None
        effective = resolve_effective_tool_policy(config, options.session_key)
        exec_defaults = options.exec or ExecToolDefaults()
        scope_key = exec_defaults.scope_key or f"agent:{effective.agent_id}"
        subagent_policy = (
            resolve_subagent_tool_policy(config)
            if is_subagent_session_key(options.session_key)
            else None
        )
        sandbox_policy: Optional[ToolPolicy] = None
        if sandbox is not None:
            sandbox_policy = sandbox.tools
            if sandbox_policy is None and config is not None:
                sandbox_policy = ToolPolicy.from_config(config.tools.sandbox.tools)
        allow_background = is_tool_allowed_by_policies(
            PROCESS_TOOL_NAME, [effective.policy, sandbox_policy, subagent_policy]
        )
        sandbox_root = sandbox.workspace_dir if sandbox else None
        allow_workspace_writes = sandbox.allows_workspace_writes if sandbox else True
        workspace_root = options.workspace_dir or os.getcwd()

        apply_patch_config = config.tools.exec.apply_patch if config else None
        apply_patch_enabled = (
            apply_patch_config is not None
            and apply_patch_config.enabled
            and is_apply_patch_provider(options.model_provider)
            and is_apply_patch_allowed_for_model(
                options.model_provider, options.model_id, apply_patch_config.allow_models
            )
        )

        # 2. Base coding tools
        tools: List[Tool] = []
        for tool in await self._source_list("coding", sources.coding_tools):
            if tool.name == READ_TOOL_NAME:
                if sandbox_root:
                    read_tool = await self._source("read", sources.create_read_tool, sandbox_root)
                    tools.append(wrap_sandbox_path_guard(wrap_read_image_normalization(read_tool), sandbox_root))
                else:
                    read_tool = await self._source("read", sources.create_read_tool, workspace_root)
                    tools.append(wrap_read_image_normalization(read_tool))
            elif tool.name in EXEC_TOOL_NAMES:
                continue
            elif tool.name == WRITE_TOOL_NAME:
                if sandbox_root:
                    continue
                write_tool = await self._source("write", sources.create_write_tool, workspace_root)
                tools.append(wrap_tool_param_normalization(write_tool))
            elif tool.name == EDIT_TOOL_NAME:
                if sandbox_root:
                    continue
                edit_tool = await self._source("edit", sources.create_edit_tool, workspace_root)
                tools.append(wrap_tool_param_normalization(edit_tool))
            else:
                tools.append(tool)

        if sandbox_root and allow_workspace_writes:
            edit_tool = await self._source("edit", sources.create_edit_tool, sandbox_root)
            write_tool = await self._source("write", sources.create_write_tool, sandbox_root)
            tools.append(wrap_sandbox_path_guard(wrap_tool_param_normalization(edit_tool), sandbox_root))
            tools.append(wrap_sandbox_path_guard(wrap_tool_param_normalization(write_tool), sandbox_root))

        # 3. exec + process
        exec_tool = await self._source("exec", sources.create_exec_tool, ExecToolOptions(
            cwd=workspace_root,
            allow_background=allow_background,
            scope_key=scope_key,
            sandbox=ExecSandbox(
                container_name=sandbox.container_name,
                workspace_dir=sandbox.workspace_dir,
                container_workdir=sandbox.container_workdir,
                env=dict(sandbox.env),
            ) if sandbox else None,
            defaults=exec_defaults,
        ))
        process_tool = await self._source("process", sources.create_process_tool, ProcessToolOptions(
            cleanup_ms=exec_defaults.cleanup_ms if exec_defaults.cleanup_ms is not None
            else (config.tools.exec.cleanup_ms if config else None),
            scope_key=scope_key,
        ))

        # 4. apply_patch
        if apply_patch_enabled and not (sandbox_root and not allow_workspace_writes):
            if sources.create_apply_patch_tool is None:
                self._logger.error("apply_patch enabled for this model but no apply_patch tool source configured")
                raise ToolSourcingError(
                    "apply_patch is enabled but no apply_patch tool source is configured",
                    details={"source": "apply_patch"},
                )
            tools.append(await self._source(
                "apply_patch",
                sources.create_apply_patch_tool,
                ApplyPatchToolOptions(
                    cwd=sandbox_root or workspace_root,
                    sandbox_root=sandbox_root if sandbox_root and allow_workspace_writes else None,
                ),
            ))

        tools.append(exec_tool)
        tools.append(process_tool)

        # 5. Provider and platform tools
        tools.extend(await self._source_list("provider", sources.list_provider_tools, config))
        browser = sandbox.browser if sandbox else None
        tools.extend(await self._source_list("platform", sources.create_platform_tools, PlatformToolOptions(
            browser_control_url=browser.control_url if browser else None,
            allow_host_browser_control=browser.allow_host_control if browser else True,
            allowed_control_urls=list(browser.allowed_control_urls) if browser else [],
            allowed_control_hosts=list(browser.allowed_control_hosts) if browser else [],
            allowed_control_ports=list(browser.allowed_control_ports) if browser else [],
            agent_session_key=options.session_key,
            agent_provider=_normalize_message_provider(options.message_provider),
            agent_account_id=options.agent_account_id,
            agent_dir=options.agent_dir,
            workspace_dir=options.workspace_dir,
            sandboxed=sandbox is not None,
            config=config,
            current_channel_id=options.current_channel_id,
            current_thread_ts=options.current_thread_ts,
            reply_to_mode=options.reply_to_mode,
            has_replied_ref=options.has_replied_ref,
        )))

        # 6. Policy filters, each applied independently
        sourced_count = len(tools)
        tools = filter_tools_by_policy(tools, effective.policy)
        tools = filter_tools_by_policy(tools, sandbox_policy)
        tools = filter_tools_by_policy(tools, subagent_policy)

        # 7. Schema normalization
        tools = [normalize_tool_parameters(tool, self.scrubber) for tool in tools]

        # 8. Abort binding
        if options.abort_signal is not None:
            tools = [wrap_tool_with_abort_signal(tool, options.abort_signal) for tool in tools]

        self._logger.info(
            f"Assembled {len(tools)} tools ({sourced_count - len(tools)} filtered) "
            f"for agent {effective.agent_id} [{effective.source} policy]",
            extra={"agent_id": effective.agent_id, "tool_count": len(tools)},
        )
        return tools


async def create_coding_tools(
    options: Optional[AssemblyOptions],
    sources: ToolSources,
    scrubber: SchemaScrubber = clean_schema_for_gemini,
) -> List[Tool]:
    """Assemble the tool list for one session."""
    return await ToolAssembler(sources, scrubber=scrubber).assemble(options)
