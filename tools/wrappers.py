"""
Tool Wrappers
-------------
Cross-cutting behaviors layered over a Tool's execute().

Each wrapper is an independent Tool -> Tool transform:
- wrap_tool_param_normalization: legacy file-tool keys -> canonical keys
- wrap_sandbox_path_guard: reject paths escaping the sandbox root
- wrap_read_image_normalization: fix image MIME types on read results, then
  downscale oversized images
- wrap_tool_with_abort_signal: honor an assembly-level abort signal

Checks run before the wrapped tool starts; failures raise so the runtime
reports them as an ordinary tool error.
"""

from dataclasses import replace
from typing import Any, Dict, Optional
import asyncio
import logging

from core.errors import ToolAbortedError, ToolValidationError
from security.sandbox import assert_sandbox_path
from .images import rewrite_read_image_header, sanitize_tool_result_images
from .mime import sniff_mime_from_base64
from .registry import TextContent, Tool, ToolResult, UpdateCallback

logger = logging.getLogger("toolgate.tools.wrappers")

# Some model families were trained on file_path/old_string/new_string
LEGACY_PARAM_KEYS = (
    ("file_path", "path"),
    ("old_string", "oldText"),
    ("new_string", "newText"),
)


# =============================================================================
# Legacy parameter names
# =============================================================================

def normalize_tool_params(params: Any) -> Optional[Dict[str, Any]]:
    """Copy of params with legacy keys renamed; a canonical key always wins."""
    if not isinstance(params, dict):
        return None
    normalized = dict(params)
    for legacy, canonical in LEGACY_PARAM_KEYS:
        if legacy in normalized and canonical not in normalized:
            normalized[canonical] = normalized.pop(legacy)
    return normalized


def wrap_tool_param_normalization(tool: Tool) -> Tool:
    inner = tool.execute

    async def execute(
        tool_call_id: str,
        params: Any,
        signal: Optional[asyncio.Event] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> ToolResult:
        normalized = normalize_tool_params(params)
        return await inner(tool_call_id, normalized if normalized is not None else params, signal, on_update)

    return tool.with_execute(execute)


# =============================================================================
# Sandbox path containment
# =============================================================================

def wrap_sandbox_path_guard(tool: Tool, root: Optional[str]) -> Tool:
    """Reject calls whose `path` resolves outside root. No-op without a root."""
    if not root:
        return tool
    inner = tool.execute

    async def execute(
        tool_call_id: str,
        params: Any,
        signal: Optional[asyncio.Event] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> ToolResult:
        normalized = normalize_tool_params(params)
        record = normalized if normalized is not None else params
        file_path = record.get("path") if isinstance(record, dict) else None
        if isinstance(file_path, str) and file_path.strip():
            assert_sandbox_path(file_path, cwd=root, root=root)
        return await inner(tool_call_id, record, signal, on_update)

    return tool.with_execute(execute)


# =============================================================================
# Read-image correction
# =============================================================================

def normalize_read_image_result(result: ToolResult, file_path: str) -> ToolResult:
    """
    Trust the bytes over the file extension for image results.

    Raises ToolValidationError for an empty payload or a non-image file.
    """
    image = next(
        (
            block for block in result.images()
            if isinstance(block.data, str)
            and isinstance(block.mime_type, str)
        ),
        None,
    )
    if image is None:
        return result

    if not image.data.strip():
        raise ToolValidationError(
            f"read: image payload is empty ({file_path})",
            details={"path": file_path},
        )

    sniffed = sniff_mime_from_base64(image.data)
    if not sniffed:
        return result

    if not sniffed.startswith("image/"):
        raise ToolValidationError(
            f"read: file looks like {sniffed} but was treated as {image.mime_type} ({file_path})",
            details={"path": file_path, "sniffed": sniffed, "declared": image.mime_type},
        )

    if sniffed == image.mime_type:
        return result

    logger.info(
        f"Corrected image type for {file_path}: {image.mime_type} -> {sniffed}",
        extra={"path": file_path, "mime_type": sniffed},
    )
    content = []
    for block in result.content:
        if block is image:
            content.append(replace(block, mime_type=sniffed))
        elif isinstance(block, TextContent):
            content.append(replace(block, text=rewrite_read_image_header(block.text, image.mime_type, sniffed)))
        else:
            content.append(block)
    return replace(result, content=content)


def wrap_read_image_normalization(tool: Tool) -> Tool:
    inner = tool.execute

    async def execute(
        tool_call_id: str,
        params: Any,
        signal: Optional[asyncio.Event] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> ToolResult:
        normalized = normalize_tool_params(params)
        record = normalized if normalized is not None else params
        result = await inner(tool_call_id, record, signal, on_update)
        file_path = record.get("path") if isinstance(record, dict) else None
        label = file_path if isinstance(file_path, str) else "<unknown>"
        corrected = normalize_read_image_result(result, label)
        return sanitize_tool_result_images(corrected, f"read:{label}")

    return tool.with_execute(execute)


# =============================================================================
# Abort signals
# =============================================================================

class CombinedAbortSignal:
    """
    Derived abort signal that fires when any source fires.

    The sources are only observed, never set; a watcher task links them for
    the duration of an `async with` block.

    Usage:
        combined = CombinedAbortSignal(call_signal, assembly_signal)
        if combined.aborted:
            ...
        async with combined:
            await work(combined.event)
    """

    def __init__(self, *signals: Optional[asyncio.Event]):
        self._sources = [signal for signal in signals if signal is not None]
        self._watcher: Optional[asyncio.Task] = None
        if len(self._sources) == 1:
            self.event = self._sources[0]
        else:
            self.event = asyncio.Event()
            if any(source.is_set() for source in self._sources):
                self.event.set()

    @property
    def aborted(self) -> bool:
        return self.event.is_set()

    async def _watch(self) -> None:
        waiters = [asyncio.ensure_future(source.wait()) for source in self._sources]
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            self.event.set()
        finally:
            for waiter in waiters:
                waiter.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

    async def __aenter__(self) -> "CombinedAbortSignal":
        if len(self._sources) > 1 and not self.event.is_set():
            self._watcher = asyncio.ensure_future(self._watch())
        return self

    async def __aexit__(self, *args) -> None:
        if self._watcher is not None:
            self._watcher.cancel()
            await asyncio.gather(self._watcher, return_exceptions=True)
            self._watcher = None


def wrap_tool_with_abort_signal(tool: Tool, abort_signal: Optional[asyncio.Event]) -> Tool:
    """Make every call observe both its own signal and abort_signal."""
    if abort_signal is None:
        return tool
    inner = tool.execute

    async def execute(
        tool_call_id: str,
        params: Any,
        signal: Optional[asyncio.Event] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> ToolResult:
        combined = CombinedAbortSignal(signal, abort_signal)
        if combined.aborted:
            logger.warning(f"Tool call aborted before start: {tool.name}", extra={"tool_name": tool.name})
            raise ToolAbortedError(details={"tool": tool.name, "tool_call_id": tool_call_id})
        async with combined:
            return await inner(tool_call_id, params, combined.event, on_update)

    return tool.with_execute(execute)
