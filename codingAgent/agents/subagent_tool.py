"""Expose an AgentDefinition to the model as an ordinary tool."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel, Field, create_model

from codingAgent.tools.base import DeclarativeTool, OutputUpdater, ToolKind, ToolResult

from .executor import AgentExecutor
from .schema import AgentDefinition, SubagentActivity, SubagentActivityType

if TYPE_CHECKING:
    from codingAgent.runtime.context import RuntimeContext

LOGGER = logging.getLogger(__name__)

_PY_TYPES: Dict[str, Any] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
    "array": list,
    "object": dict,
}


def build_params_model(definition: AgentDefinition) -> Type[BaseModel]:
    """Pydantic model mirroring ``definition.input_config``."""
    fields: Dict[str, Tuple[Any, Any]] = {}
    for name, spec in definition.input_config.inputs.items():
        py_type = _PY_TYPES.get(spec.type, Any)
        if spec.required:
            fields[name] = (py_type, Field(description=spec.description))
        else:
            fields[name] = (Optional[py_type], Field(default=None, description=spec.description))
    model_name = "".join(part.capitalize() for part in definition.name.split("_")) + "Params"
    return create_model(model_name, **fields)


class SubagentTool(DeclarativeTool):
    """Runs a sub-agent per call; thought chunks stream as tool output."""

    def __init__(self, definition: AgentDefinition, context: "RuntimeContext", kind: ToolKind = ToolKind.DELEGATE):
        self.definition = definition
        self.context = context
        self.name = definition.name
        self.description = definition.description
        self.kind = kind
        self.params_model = build_params_model(definition)

    def describe(self, params: BaseModel) -> str:
        return f"Running subagent '{self.definition.display_name or self.name}'"

    async def execute(
        self,
        params: BaseModel,
        signal: asyncio.Event,
        update_output: Optional[OutputUpdater] = None,
    ) -> ToolResult:
        def on_activity(activity: SubagentActivity) -> None:
            if update_output is None:
                return
            if activity.type == SubagentActivityType.THOUGHT_CHUNK:
                update_output(activity.data.get("text", ""))
            elif activity.type == SubagentActivityType.TOOL_CALL_START:
                update_output(f"\n[{self.name}] → {activity.data.get('name')}\n")

        executor = AgentExecutor.create(self.definition, self.context, on_activity)
        result = await executor.run(params.model_dump(exclude_none=True), signal)

        text = result.result_text
        header = f"Subagent '{self.name}' finished ({result.terminate_reason.value}, {result.turns} turn(s))"
        if not result.output_valid:
            header += "; output did not match the expected schema, returning raw text"
        LOGGER.info(header)
        return ToolResult(llm_content=f"{header}.\nResult:\n{text}", display=header)
