"""
Tool Model
----------
The Tool record handed to the agent runtime and the content blocks its
execute() returns.

A Tool is treated as immutable: wrappers derive new Tools with
with_execute()/with_parameters() instead of mutating one in place.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
import asyncio

UpdateCallback = Callable[["ToolResult"], Any]

# execute(tool_call_id, params, signal, on_update) -> ToolResult
ToolExecute = Callable[
    [str, Any, Optional[asyncio.Event], Optional[UpdateCallback]],
    Awaitable["ToolResult"],
]


@dataclass(frozen=True)
class TextContent:
    text: str
    type: str = "text"


@dataclass(frozen=True)
class ImageContent:
    data: str  # base64
    mime_type: str
    type: str = "image"


ContentBlock = Union[TextContent, ImageContent]


@dataclass
class ToolResult:
    """Ordered content blocks plus tool-specific details."""
    content: List[ContentBlock] = field(default_factory=list)
    details: Any = None

    @classmethod
    def text(cls, text: str, details: Any = None) -> "ToolResult":
        return cls(content=[TextContent(text=text)], details=details)

    def images(self) -> List[ImageContent]:
        return [block for block in self.content if isinstance(block, ImageContent)]


@dataclass(frozen=True)
class Tool:
    """
    Tool definition as seen by the agent runtime.

    - name: canonical lower-case name used for dispatch and policy
    - parameters: JSON Schema for the call arguments
    - execute: async entry point
    """
    name: str
    description: str
    parameters: Dict[str, Any]
    execute: ToolExecute

    def with_execute(self, execute: ToolExecute) -> "Tool":
        return replace(self, execute=execute)

    def with_parameters(self, parameters: Dict[str, Any]) -> "Tool":
        return replace(self, parameters=parameters)

    def to_openai_function(self) -> Dict[str, Any]:
        """OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def __repr__(self) -> str:
        return f"Tool(name={self.name})"


def get_schemas_for_llm(tools: List[Tool]) -> List[Dict[str, Any]]:
    return [tool.to_openai_function() for tool in tools]
