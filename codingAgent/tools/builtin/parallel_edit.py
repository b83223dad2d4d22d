"""Single-file edit delegated to a fast model.

The model sees the file and the instructions and answers only with
``edit_file`` / ``write_file`` calls, which run through a scheduler owned by
this invocation. Several parallel_edit calls in one batch therefore edit
different files concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from langchain_core.messages import HumanMessage
from pydantic import BaseModel, Field, field_validator

from codingAgent.models.client import collect_turn
from codingAgent.models.registry import FAST_TIER
from codingAgent.tools.base import DeclarativeTool, OutputUpdater, ToolKind, ToolResult
from codingAgent.tools.scheduler import ToolCall, ToolCallScheduler, ToolCallStatus
from codingAgent.utils.error_handler import ExecutionError, ValidationError, with_error_boundary
from codingAgent.utils.prompt_builder import PromptBuilder

from .workspace import WorkspaceAccessError, resolve_in_workspace

if TYPE_CHECKING:
    from codingAgent.runtime.context import RuntimeContext

LOGGER = logging.getLogger(__name__)

EDIT_TOOLS = ("edit_file", "write_file")


class ParallelEditParams(BaseModel):
    file_path: str = Field(description="The absolute path to the file to edit.")
    plan: str = Field(description="The plan for the edit: what to change and why.")
    conversation_history: str = Field(default="", description="Relevant conversation context leading up to the edit.")

    @field_validator("file_path")
    @classmethod
    def _absolute(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("The 'file_path' parameter must be non-empty.")
        if not Path(value).is_absolute():
            raise ValueError(f"File path must be absolute, but was relative: {value}")
        return value


class ParallelEditTool(DeclarativeTool):
    name = "parallel_edit"
    description = (
        "Edits one file using a fast model that turns a plan into edit_file / write_file calls. "
        "Call it several times in one turn to edit different files in parallel."
    )
    kind = ToolKind.EDIT
    params_model = ParallelEditParams

    def __init__(self, context: "RuntimeContext", model_tier: str = FAST_TIER):
        self.context = context
        self.model_tier = model_tier

    def describe(self, params: ParallelEditParams) -> str:
        return f"Parallel editing {params.file_path} based on a plan."

    @with_error_boundary("parallel_edit")
    async def execute(
        self,
        params: ParallelEditParams,
        signal: asyncio.Event,
        update_output: Optional[OutputUpdater] = None,
    ) -> ToolResult:
        try:
            target = resolve_in_workspace(params.file_path)
        except WorkspaceAccessError as e:
            raise ValidationError(str(e)) from e

        content = target.read_text(encoding="utf-8") if target.is_file() else ""
        instructions = params.plan
        if params.conversation_history.strip():
            instructions = f"{params.plan}\n\nConversation context:\n{params.conversation_history}"

        edit_tools = self.context.tools.subset(EDIT_TOOLS)
        if not len(edit_tools):
            raise ExecutionError("edit_file / write_file are not registered")

        _, requests = await collect_turn(
            self.context.model_client,
            model=self.context.models.model_id(self.model_tier),
            messages=[
                HumanMessage(
                    content=PromptBuilder.load_parallel_edit_prompt(
                        file_path=str(target), instructions=instructions, content=content
                    )
                )
            ],
            tools=edit_tools.declarations(),
            temperature=0.2,
            signal=signal,
        )
        if not requests:
            message = f"No tool calls generated for file: {params.file_path}"
            return ToolResult(llm_content=message, display=message)

        def forward(call_id: str, chunk: str) -> None:
            if update_output is not None:
                update_output(chunk)

        scheduler = ToolCallScheduler(
            edit_tools,
            approval_checker=self.context.approval_checker,
            confirmation_handler=self.context.confirmation_handler,
            auto_approve=self.context.auto_approve,
            on_output_update=forward,
        )
        calls = await scheduler.schedule(requests, signal)
        summary = "\n".join(self._summarize(call, params.file_path) for call in calls)
        LOGGER.info(f"parallel_edit {params.file_path}: {[c.status.value for c in calls]}")
        return ToolResult(llm_content=summary, display=summary)

    @staticmethod
    def _summarize(call: ToolCall, file_path: str) -> str:
        if call.status == ToolCallStatus.SUCCESS:
            return f"Successfully applied {call.name} to {file_path}."
        if call.status == ToolCallStatus.ERROR and call.response is not None:
            return f"Failed to apply {call.name} to {file_path}: {call.response.error.message}"
        return f"Tool {call.name} for {file_path} finished with status: {call.status.value}"

