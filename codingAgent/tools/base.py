"""Uniform tool interface used by the scheduler and the sub-agent executor.

Every tool, whether a LangChain ``@tool`` function or a ``DeclarativeTool``
subclass, is exposed through the same capability set:

    declaration         -> ToolDeclaration(name, description, parameters)
    validate(arguments) -> params model instance (raises ValidationError)
    execute(params, signal, update_output) -> ToolResult

The scheduler never looks past this interface.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Type

from langchain_core.tools import BaseTool, ToolException
from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from codingAgent.utils.error_handler import (
    AgentError,
    ExecutionError,
    ToolErrorKind,
    ValidationError,
)

OutputUpdater = Callable[[str], Any]


class ToolKind(str, Enum):
    """Closed set of tool variants. Approval policy keys off the kind."""

    READ = "read"
    SEARCH = "search"
    EDIT = "edit"
    EXECUTE = "execute"
    FETCH = "fetch"
    THINK = "think"
    DELEGATE = "delegate"
    OTHER = "other"

    @property
    def mutates_workspace(self) -> bool:
        return self in (ToolKind.EDIT, ToolKind.EXECUTE)


@dataclass(frozen=True)
class ToolDeclaration:
    name: str
    description: str
    parameters: Dict[str, Any]

    def to_openai_tool(self) -> Dict[str, Any]:
        """Shape accepted by ``BaseChatModel.bind_tools``."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


@dataclass(frozen=True)
class ToolError:
    message: str
    kind: ToolErrorKind

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ToolError":
        if isinstance(exc, AgentError):
            return cls(message=exc.user_message, kind=exc.kind)
        return cls(message=str(exc) or type(exc).__name__, kind=ToolErrorKind.EXECUTION)


@dataclass
class ToolResult:
    """Terminal response of one tool call.

    ``llm_content`` goes back to the model, ``display`` is for humans.
    """

    llm_content: str
    display: Optional[str] = None
    error: Optional[ToolError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, exc: BaseException) -> "ToolResult":
        error = ToolError.from_exception(exc)
        return cls(
            llm_content=json.dumps({"ok": False, "error": error.message, "kind": error.kind.value}),
            display=f"Error: {error.message}",
            error=error,
        )


@dataclass(frozen=True)
class ToolCallRequest:
    """Immutable request from the model to invoke a tool."""

    id: str
    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_langchain(cls, tool_call: Mapping[str, Any]) -> "ToolCallRequest":
        """Build from a LangChain ``ToolCall`` dict (``AIMessage.tool_calls`` item)."""
        return cls(
            id=tool_call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
            name=tool_call["name"],
            arguments=dict(tool_call.get("args") or {}),
        )


class DeclarativeTool(ABC):
    """Base class for tools implemented directly against this interface."""

    name: str = ""
    description: str = ""
    kind: ToolKind = ToolKind.OTHER
    params_model: Type[BaseModel]

    @property
    def declaration(self) -> ToolDeclaration:
        schema = self.params_model.model_json_schema()
        schema.pop("title", None)
        return ToolDeclaration(name=self.name, description=self.description, parameters=schema)

    def validate(self, arguments: Mapping[str, Any]) -> BaseModel:
        try:
            return self.params_model.model_validate(dict(arguments))
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid parameters for {self.name}: {e}") from e

    def describe(self, params: BaseModel) -> str:
        """Short human-readable description of one invocation."""
        return f"{self.name}({json.dumps(params.model_dump(), ensure_ascii=False, default=str)[:200]})"

    @abstractmethod
    async def execute(
        self,
        params: BaseModel,
        signal: asyncio.Event,
        update_output: Optional[OutputUpdater] = None,
    ) -> ToolResult:
        ...


class LangChainTool(DeclarativeTool):
    """Adapter exposing a LangChain ``BaseTool`` through the DeclarativeTool interface.

    The builtin tools return ``"Error: ..."`` strings for expected failures;
    those become ``ExecutionError`` here, as does ``ToolException``.
    """

    def __init__(self, tool: BaseTool, kind: ToolKind = ToolKind.OTHER):
        self.tool = tool
        self.name = tool.name
        self.description = tool.description
        self.kind = kind
        self.params_model = tool.get_input_schema()

    @property
    def declaration(self) -> ToolDeclaration:
        function = convert_to_openai_tool(self.tool)["function"]
        return ToolDeclaration(
            name=function["name"],
            description=function.get("description", ""),
            parameters=function.get("parameters", {"type": "object", "properties": {}}),
        )

    async def execute(
        self,
        params: BaseModel,
        signal: asyncio.Event,
        update_output: Optional[OutputUpdater] = None,
    ) -> ToolResult:
        try:
            output = await self.tool.ainvoke(params.model_dump())
        except ToolException as e:
            raise ExecutionError(str(e)) from e

        text = output if isinstance(output, str) else json.dumps(output, ensure_ascii=False, default=str)
        if text.startswith("Error:"):
            raise ExecutionError(text[len("Error:"):].strip())
        return ToolResult(llm_content=text, display=text)
