"""Sub-agent definitions and run results.

An ``AgentDefinition`` is immutable and built once per agent role (possibly
dynamically, e.g. around a synthesized system prompt). Running it produces one
``AgentRunResult``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type

from pydantic import BaseModel

QueryBuilder = Callable[[Mapping[str, Any]], str]


class AgentTerminateMode(str, Enum):
    """Why a sub-agent run ended."""

    GOAL = "goal"
    MAX_TURNS = "max_turns"
    TIMEOUT = "timeout"
    ABORTED = "aborted"
    ERROR = "error"

    @property
    def budget_exhausted(self) -> bool:
        return self in (AgentTerminateMode.MAX_TURNS, AgentTerminateMode.TIMEOUT)


@dataclass(frozen=True)
class ModelConfig:
    tier: str = "capable"
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    thinking_budget: Optional[int] = None


@dataclass(frozen=True)
class RunConfig:
    max_time_minutes: float = 10.0
    max_turns: Optional[int] = None  # None = unbounded


@dataclass(frozen=True)
class ToolConfig:
    tools: Tuple[str, ...] = ()


def default_query_builder(inputs: Mapping[str, Any]) -> str:
    return "\n\n".join(f"{name}:\n{value}" for name, value in inputs.items())


@dataclass(frozen=True)
class PromptConfig:
    system_prompt: str
    query_builder: QueryBuilder = default_query_builder


# JSON-schema style type names accepted for inputs
INPUT_TYPES: Dict[str, Tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "integer": (int,),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
}


@dataclass(frozen=True)
class InputSpec:
    description: str = ""
    type: str = "string"
    required: bool = True


@dataclass(frozen=True)
class InputConfig:
    inputs: Mapping[str, InputSpec] = field(default_factory=dict)


@dataclass(frozen=True)
class OutputConfig:
    """Structured final answer, delivered as ``complete_task(<output_name>=...)``."""

    schema: Type[BaseModel]
    output_name: str = "result"
    description: str = "The final structured result of the task."


@dataclass(frozen=True)
class AgentDefinition:
    name: str
    description: str
    prompt_config: PromptConfig
    model_config: ModelConfig = field(default_factory=ModelConfig)
    run_config: RunConfig = field(default_factory=RunConfig)
    tool_config: ToolConfig = field(default_factory=ToolConfig)
    input_config: InputConfig = field(default_factory=InputConfig)
    output_config: Optional[OutputConfig] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class AgentRunResult:
    """Outcome of one sub-agent run.

    ``result`` is the validated schema instance when ``output_config`` is set
    and the final answer validated, otherwise text. ``output_valid`` is False
    when structured output was requested but could not be validated.
    """

    result: Any
    terminate_reason: AgentTerminateMode
    raw_events: Tuple[Any, ...] = ()
    output_valid: bool = True
    turns: int = 0

    @property
    def result_text(self) -> str:
        if isinstance(self.result, BaseModel):
            return self.result.model_dump_json(by_alias=True, exclude_none=True)
        if isinstance(self.result, str):
            return self.result
        return json.dumps(self.result, ensure_ascii=False, default=str)


class SubagentActivityType(str, Enum):
    THOUGHT_CHUNK = "THOUGHT_CHUNK"
    TOOL_CALL_START = "TOOL_CALL_START"
    TOOL_CALL_END = "TOOL_CALL_END"
    ERROR = "ERROR"


@dataclass(frozen=True)
class SubagentActivity:
    agent_name: str
    type: SubagentActivityType
    data: Mapping[str, Any] = field(default_factory=dict)
