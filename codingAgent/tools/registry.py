"""Tool registration: name -> implementation, resolved once at startup."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .base import DeclarativeTool, ToolDeclaration


class ToolRegistry:
    """Tracks tool instances by name.

    Sub-agents get a ``subset`` restricted to their whitelist; the subset
    shares tool instances but not the mapping.
    """

    def __init__(self, tools: Optional[Iterable[DeclarativeTool]] = None) -> None:
        self._tools: Dict[str, DeclarativeTool] = {}
        if tools:
            for tool in tools:
                self.register_tool(tool)

    def register_tool(self, tool: DeclarativeTool) -> None:
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> DeclarativeTool:
        if name not in self._tools:
            raise KeyError(f"Unknown tool: {name}")
        return self._tools[name]

    def get(self, name: str) -> Optional[DeclarativeTool]:
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> List[str]:
        return list(self._tools)

    def list_tools(self) -> List[DeclarativeTool]:
        return list(self._tools.values())

    def declarations(self) -> List[ToolDeclaration]:
        return [tool.declaration for tool in self._tools.values()]

    def missing(self, names: Iterable[str]) -> List[str]:
        return [name for name in names if name not in self._tools]

    def subset(self, allowlist: Iterable[str]) -> "ToolRegistry":
        """New registry holding only the allowlisted tools that exist here."""
        return ToolRegistry(self._tools[name] for name in allowlist if name in self._tools)
