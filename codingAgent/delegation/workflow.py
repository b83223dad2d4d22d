"""Task delegation workflow.

Steps, each feeding the next::

    synthesize prompt -> persist prompt -> snapshot (start)
        -> run task_delegate_agent -> snapshot (end) + diff -> result

Two modes share everything except the tool whitelist and the completion
contract: ``act`` may write, edit and run shell commands; ``propose`` is
read-only and returns a structured change proposal.

Failure policy: empty synthesis and invalid inputs fail the workflow, prompt
persistence errors propagate, snapshot/diff errors only cost the
modified-files list.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, List, Literal, Mapping, Optional

from langchain_core.messages import HumanMessage
from pydantic import BaseModel, ConfigDict, Field

from codingAgent.agents.executor import COMPLETE_TASK_TOOL, AgentExecutor
from codingAgent.agents.schema import (
    AgentDefinition,
    AgentRunResult,
    AgentTerminateMode,
    InputConfig,
    InputSpec,
    ModelConfig,
    OutputConfig,
    PromptConfig,
    RunConfig,
    SubagentActivity,
    SubagentActivityType,
    ToolConfig,
)
from codingAgent.models.registry import CAPABLE_TIER
from codingAgent.utils.error_handler import ExecutionError, ValidationError
from codingAgent.utils.prompt_builder import PromptBuilder
from codingAgent.utils.text_utils import sanitize_slug

from .snapshots import SnapshotService

if TYPE_CHECKING:
    from codingAgent.runtime.context import RuntimeContext

LOGGER = logging.getLogger(__name__)

TASK_AGENT_NAME = "task_delegate_agent"
PROPOSAL_OUTPUT_NAME = "proposal"
TASK_NAME_SOURCE_CHARS = 60

READ_ONLY_TOOLS = ("list_directory", "read_file", "find_files", "search_file", "think")
ACT_ONLY_TOOLS = ("edit_file", "write_file", "parallel_edit", "web_fetch", "run_shell_command")


class DelegationMode(str, Enum):
    ACT = "act"
    PROPOSE = "propose"


class ProposedChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(alias="filePath")
    action: Literal["create", "modify", "delete"]
    content: Optional[str] = None
    rationale: Optional[str] = None


class ChangeProposal(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str
    proposed_changes: List[ProposedChange] = Field(default_factory=list, alias="proposedChanges")


class DelegationResult(BaseModel):
    """Result reported back to the orchestrating model (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    task_name: str = Field(alias="taskName")
    prompt_path: str = Field(alias="promptPath")
    summary: str
    modified_files: Optional[List[str]] = Field(default=None, alias="modifiedFiles")
    proposed_changes: Optional[List[ProposedChange]] = Field(default=None, alias="proposedChanges")
    terminate_reason: AgentTerminateMode = Field(default=AgentTerminateMode.GOAL, exclude=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)


def build_task_query(inputs: Mapping[str, Any]) -> str:
    return (
        "Task kickoff.\n\n"
        f"Conversation Summary:\n{inputs['conversationSummary']}\n\n"
        f"User Request:\n{inputs['userRequest']}"
    )


class TaskDelegationWorkflow:
    """Delegates one task to a freshly specialized sub-agent.

    Args:
        context: Runtime context; its tools, models and approval settings are
            inherited by the sub-agent.
        snapshots: Snapshot/diff collaborator. None disables change tracking.
    """

    def __init__(self, context: "RuntimeContext", snapshots: Optional[SnapshotService] = None):
        self.context = context
        self.snapshots = snapshots

    async def run(
        self,
        task_name: Optional[str],
        conversation_summary: str,
        user_request: str,
        mode: DelegationMode | str = DelegationMode.ACT,
        signal: Optional[asyncio.Event] = None,
        update_output: Optional[Callable[[str], Any]] = None,
    ) -> DelegationResult:
        """Run the whole workflow.

        Raises:
            ValidationError: missing request or empty prompt synthesis
            ExecutionError: the prompt file could not be written
            UpstreamCallError: the model backend failed
        """
        mode = DelegationMode(mode)
        if not user_request or not user_request.strip():
            raise ValidationError("delegation requires a non-empty user request")
        slug = sanitize_slug(task_name or user_request[:TASK_NAME_SOURCE_CHARS])

        def report(text: str) -> None:
            if update_output is not None:
                update_output(text)

        report("Synthesizing specialized task prompt...\n")
        system_prompt = await self.synthesize_prompt(conversation_summary, user_request, mode, signal)
        prompt_path = self.write_prompt_file(slug, system_prompt)

        before_id = await self._safe_snapshot(f"[delegate_task:{slug}] start")

        report("Launching specialized agent...\n")
        definition = self.build_task_agent(system_prompt, mode)

        def on_activity(activity: SubagentActivity) -> None:
            if activity.type == SubagentActivityType.THOUGHT_CHUNK:
                report(activity.data.get("text", ""))

        executor = AgentExecutor.create(definition, self.context, on_activity)
        run_result = await executor.run(
            {"conversationSummary": conversation_summary, "userRequest": user_request}, signal
        )

        after_id = await self._safe_snapshot(f"[delegate_task:{slug}] end")
        modified_files = await self._safe_diff(before_id, after_id)

        result = self.assemble_result(slug, prompt_path, run_result, mode, modified_files)
        LOGGER.info(
            f"[delegate_task:{slug}] {mode.value} finished ({run_result.terminate_reason.value}), "
            f"{len(modified_files)} modified file(s)"
        )
        return result

    # -------------------------------------------------------------- steps

    async def synthesize_prompt(
        self,
        conversation_summary: str,
        user_request: str,
        mode: DelegationMode,
        signal: Optional[asyncio.Event] = None,
    ) -> str:
        instruction = PromptBuilder.load_delegate_synthesis_prompt(
            mode=mode.value,
            complete_tool=COMPLETE_TASK_TOOL,
            output_name=PROPOSAL_OUTPUT_NAME,
            summary=conversation_summary,
            request=user_request,
        )
        text = await self.context.model_client.generate_text(
            model=self.context.models.model_id(CAPABLE_TIER),
            messages=[HumanMessage(content=instruction)],
            temperature=0.2,
            top_p=0.95,
            signal=signal,
        )
        if not text or not text.strip():
            raise ValidationError("Failed to synthesize specialized prompt. Empty response.")
        return text.strip()

    def write_prompt_file(self, slug: str, content: str) -> Path:
        directory = self.context.task_prompts_dir
        path = directory / f"{slug}.txt"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ExecutionError(f"Failed to write task prompt {path}: {e}") from e
        LOGGER.info(f"[delegate_task:{slug}] prompt written to {path}")
        return path

    def build_task_agent(self, system_prompt: str, mode: DelegationMode) -> AgentDefinition:
        names = READ_ONLY_TOOLS if mode == DelegationMode.PROPOSE else READ_ONLY_TOOLS + ACT_ONLY_TOOLS
        available = tuple(name for name in names if name in self.context.tools)
        return AgentDefinition(
            name=TASK_AGENT_NAME,
            display_name="Task Delegate Agent",
            description="A specialized autonomous agent that performs a delegated task within this repository.",
            prompt_config=PromptConfig(system_prompt=system_prompt, query_builder=build_task_query),
            model_config=ModelConfig(tier=CAPABLE_TIER, temperature=0.2, top_p=0.95),
            run_config=RunConfig(
                max_time_minutes=self.context.subagent_max_time_minutes,
                max_turns=self.context.subagent_max_turns,
            ),
            tool_config=ToolConfig(tools=available),
            input_config=InputConfig(
                inputs={
                    "conversationSummary": InputSpec(
                        description="A concise but comprehensive summary of the prior conversation."
                    ),
                    "userRequest": InputSpec(description="The explicit user request to accomplish now."),
                }
            ),
            output_config=(
                OutputConfig(
                    schema=ChangeProposal,
                    output_name=PROPOSAL_OUTPUT_NAME,
                    description="Summary plus the list of proposed file changes.",
                )
                if mode == DelegationMode.PROPOSE
                else None
            ),
        )

    @staticmethod
    def assemble_result(
        slug: str,
        prompt_path: Path,
        run_result: AgentRunResult,
        mode: DelegationMode,
        modified_files: List[str],
    ) -> DelegationResult:
        if mode == DelegationMode.ACT:
            return DelegationResult(
                task_name=slug,
                prompt_path=str(prompt_path),
                modified_files=modified_files,
                summary=run_result.result_text or "Task completed.",
                terminate_reason=run_result.terminate_reason,
            )

        proposal = run_result.result
        if isinstance(proposal, ChangeProposal):
            summary, changes = proposal.summary, list(proposal.proposed_changes)
        else:
            LOGGER.warning(f"[delegate_task:{slug}] proposal did not parse, returning raw text as summary")
            summary, changes = run_result.result_text, []
        return DelegationResult(
            task_name=slug,
            prompt_path=str(prompt_path),
            summary=summary,
            proposed_changes=changes,
            terminate_reason=run_result.terminate_reason,
        )

    # ------------------------------------------------------------ snapshots

    async def _safe_snapshot(self, label: str) -> Optional[str]:
        if self.snapshots is None:
            return None
        try:
            return await self.snapshots.snapshot(label)
        except Exception as e:
            LOGGER.warning(f"Snapshot '{label}' failed, continuing without change tracking: {e}")
            return None

    async def _safe_diff(self, before_id: Optional[str], after_id: Optional[str]) -> List[str]:
        if self.snapshots is None or not before_id or not after_id:
            return []
        try:
            return list(await self.snapshots.diff(before_id, after_id))
        except Exception as e:
            LOGGER.warning(f"Snapshot diff failed, reporting no modified files: {e}")
            return []
