"""``delegate_task`` and ``propose_changes``: the delegation workflow as model tools."""

from __future__ import annotations

import asyncio
from typing import Optional

from pydantic import BaseModel, Field

from codingAgent.tools.base import DeclarativeTool, OutputUpdater, ToolKind, ToolResult
from codingAgent.utils.error_handler import with_error_boundary

from .workflow import DelegationMode, TaskDelegationWorkflow


class DelegateTaskParams(BaseModel):
    conversation_summary: str = Field(
        description="A summary of the prior conversation/context to inform specialization."
    )
    user_request: str = Field(description="The explicit user request to fulfill.")
    task_name: Optional[str] = Field(
        default=None,
        description="Optional short name/slug for the task. Derived from the request when omitted.",
    )


class DelegateTaskTool(DeclarativeTool):
    """Synthesizes a specialized prompt and runs a sub-agent on the task."""

    name = "delegate_task"
    description = (
        "Creates a specialized prompt for a sub-agent from the conversation summary and user request, "
        "runs the task autonomously, and returns the modified files and a summary."
    )
    kind = ToolKind.DELEGATE
    params_model = DelegateTaskParams
    mode = DelegationMode.ACT

    def __init__(self, workflow: TaskDelegationWorkflow):
        self.workflow = workflow

    def describe(self, params: DelegateTaskParams) -> str:
        return f"Delegate task '{params.task_name or ''}' based on conversation summary and user request."

    @with_error_boundary("delegate_task")
    async def execute(
        self,
        params: DelegateTaskParams,
        signal: asyncio.Event,
        update_output: Optional[OutputUpdater] = None,
    ) -> ToolResult:
        result = await self.workflow.run(
            params.task_name,
            params.conversation_summary,
            params.user_request,
            mode=self.mode,
            signal=signal,
            update_output=update_output,
        )
        display = (
            f"Delegate Task Completed ({result.terminate_reason.value})\n\n"
            f"Task: {result.task_name}\nPrompt: {result.prompt_path}\n"
        )
        if result.modified_files is not None:
            display += f"Modified Files: {len(result.modified_files)}\n"
        if result.proposed_changes is not None:
            display += f"Proposed Changes: {len(result.proposed_changes)}\n"
        display += f"\nSummary:\n{result.summary}\n"
        return ToolResult(llm_content=result.to_json(), display=display)


class ProposeChangesTool(DelegateTaskTool):
    """Read-only variant: the sub-agent investigates and returns a change proposal."""

    name = "propose_changes"
    description = (
        "Delegates an investigation to a read-only sub-agent that returns a summary and a structured list "
        "of proposed file changes ({filePath, action, content, rationale}) without modifying anything."
    )
    kind = ToolKind.THINK
    mode = DelegationMode.PROPOSE
