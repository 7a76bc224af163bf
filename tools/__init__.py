# Tools module - Tool model, schema normalization, wrappers and assembly
# Assembly is the only place a session's tool list is built

from .registry import Tool, ToolResult, TextContent, ImageContent, get_schemas_for_llm
from .schema import clean_schema_for_gemini, normalize_tool_parameters
from .images import sanitize_tool_result_images
from .wrappers import (
    CombinedAbortSignal,
    normalize_read_image_result,
    normalize_tool_params,
    wrap_read_image_normalization,
    wrap_sandbox_path_guard,
    wrap_tool_param_normalization,
    wrap_tool_with_abort_signal,
)
from .assembler import (
    AssemblyOptions,
    ExecToolDefaults,
    HasRepliedRef,
    ToolAssembler,
    ToolSources,
    create_coding_tools,
)

__all__ = [
    "Tool",
    "ToolResult",
    "TextContent",
    "ImageContent",
    "get_schemas_for_llm",
    "clean_schema_for_gemini",
    "normalize_tool_parameters",
    "sanitize_tool_result_images",
    "CombinedAbortSignal",
    "normalize_read_image_result",
    "normalize_tool_params",
    "wrap_read_image_normalization",
    "wrap_sandbox_path_guard",
    "wrap_tool_param_normalization",
    "wrap_tool_with_abort_signal",
    "AssemblyOptions",
    "ExecToolDefaults",
    "HasRepliedRef",
    "ToolAssembler",
    "ToolSources",
    "create_coding_tools",
]
