"""Tool interface and registry.

The scheduler lives in ``codingAgent.tools.scheduler`` and the builtin tools
in ``codingAgent.tools.builtin``.
"""

from .base import (
    DeclarativeTool,
    LangChainTool,
    ToolCallRequest,
    ToolDeclaration,
    ToolError,
    ToolKind,
    ToolResult,
)
from .registry import ToolRegistry

__all__ = [
    "DeclarativeTool",
    "LangChainTool",
    "ToolCallRequest",
    "ToolDeclaration",
    "ToolError",
    "ToolKind",
    "ToolResult",
    "ToolRegistry",
]
