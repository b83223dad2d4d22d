"""Builtin tools.

LangChain ``@tool`` functions are wrapped in ``LangChainTool`` with their
``ToolKind``; tools that need the runtime (model client, nested scheduler,
memory directory) are ``DeclarativeTool`` subclasses built from the context.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Tuple

from langchain_core.tools import BaseTool

from codingAgent.models.registry import FAST_TIER
from codingAgent.tools.base import DeclarativeTool, LangChainTool, ToolKind

from .edit_file import edit_file
from .file_ops import list_directory, read_file, write_file
from .find_files import find_files
from .memory import GetMemoriesTool, RecordMemoriesTool
from .parallel_edit import ParallelEditTool
from .run_shell_command import run_shell_command
from .search_file import search_file
from .think import think
from .web_fetch import web_fetch

if TYPE_CHECKING:
    from codingAgent.runtime.context import RuntimeContext

LANGCHAIN_TOOLS: Tuple[Tuple[BaseTool, ToolKind], ...] = (
    (read_file, ToolKind.READ),
    (list_directory, ToolKind.READ),
    (find_files, ToolKind.SEARCH),
    (search_file, ToolKind.SEARCH),
    (write_file, ToolKind.EDIT),
    (edit_file, ToolKind.EDIT),
    (run_shell_command, ToolKind.EXECUTE),
    (think, ToolKind.THINK),
    (web_fetch, ToolKind.FETCH),
)


def build_builtin_tools(context: "RuntimeContext") -> List[DeclarativeTool]:
    """Instantiate every builtin tool against ``context``."""
    tools: List[DeclarativeTool] = [LangChainTool(tool, kind) for tool, kind in LANGCHAIN_TOOLS]
    tools.append(ParallelEditTool(context))
    tools.append(RecordMemoriesTool(context.memory_dir, project_root=context.workspace))
    tools.append(
        GetMemoriesTool(
            context.memory_dir,
            context.model_client,
            context.models.model_id(FAST_TIER),
            project_root=context.workspace,
        )
    )
    return tools


def register_builtin_tools(context: "RuntimeContext") -> None:
    for tool in build_builtin_tools(context):
        context.tools.register_tool(tool)


__all__ = [
    "GetMemoriesTool",
    "LANGCHAIN_TOOLS",
    "ParallelEditTool",
    "RecordMemoriesTool",
    "build_builtin_tools",
    "edit_file",
    "find_files",
    "list_directory",
    "read_file",
    "register_builtin_tools",
    "run_shell_command",
    "search_file",
    "think",
    "web_fetch",
    "write_file",
]
