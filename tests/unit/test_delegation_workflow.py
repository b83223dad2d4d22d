"""Tests for the task delegation workflow and its tools."""

import asyncio
import json

import pytest

from conftest import EchoTool, ScriptedTurn, make_request
from codingAgent.agents import COMPLETE_TASK_TOOL
from codingAgent.delegation import (
    ChangeProposal,
    DelegateTaskTool,
    DelegationMode,
    ProposeChangesTool,
    TaskDelegationWorkflow,
)
from codingAgent.delegation.workflow import build_task_query
from codingAgent.tools.base import ToolKind
from codingAgent.tools.registry import ToolRegistry
from codingAgent.tools.scheduler import ToolCallScheduler, ToolCallStatus
from codingAgent.utils.error_handler import ExecutionError, ToolErrorKind, ValidationError


class FakeSnapshots:
    """SnapshotService double with switchable failures."""

    def __init__(self, changed=("src/app.py",), fail_snapshot=False, fail_diff=False):
        self.changed = list(changed)
        self.fail_snapshot = fail_snapshot
        self.fail_diff = fail_diff
        self.labels = []
        self.diffs = []

    async def snapshot(self, label):
        self.labels.append(label)
        if self.fail_snapshot:
            raise RuntimeError("git exploded")
        return f"commit-{len(self.labels)}"

    async def diff(self, before_id, after_id):
        self.diffs.append((before_id, after_id))
        if self.fail_diff:
            raise RuntimeError("diff exploded")
        return self.changed


@pytest.fixture
def delegation_context(runtime_context):
    for name in ("read_file", "search_file", "write_file", "run_shell_command"):
        runtime_context.tools.register_tool(EchoTool(name=name))
    return runtime_context


def script_success(client, summary="Implemented the feature.", prompt="You are a specialized agent."):
    client.text_responses.append(prompt)
    client.turns.append(ScriptedTurn(tool_calls=[(COMPLETE_TASK_TOOL, {"summary": summary})]))


class TestActMode:
    @pytest.mark.asyncio
    async def test_full_round_trip(self, delegation_context, scripted_client):
        script_success(scripted_client)
        snapshots = FakeSnapshots()
        workflow = TaskDelegationWorkflow(delegation_context, snapshots)
        progress = []

        result = await workflow.run(
            "Fix Bug #42!!", "We discussed the parser.", "Fix the parser bug", signal=asyncio.Event(),
            update_output=progress.append,
        )

        assert result.task_name == "fix-bug-42"
        assert result.modified_files == ["src/app.py"]
        assert result.summary == "Implemented the feature."
        assert result.to_dict() == {
            "taskName": "fix-bug-42",
            "promptPath": result.prompt_path,
            "summary": "Implemented the feature.",
            "modifiedFiles": ["src/app.py"],
        }

        prompt_file = delegation_context.task_prompts_dir / "fix-bug-42.txt"
        assert result.prompt_path == str(prompt_file)
        assert prompt_file.read_text() == "You are a specialized agent."

        assert snapshots.labels == ["[delegate_task:fix-bug-42] start", "[delegate_task:fix-bug-42] end"]
        assert snapshots.diffs == [("commit-1", "commit-2")]
        assert progress[0].startswith("Synthesizing")

    @pytest.mark.asyncio
    async def test_synthesis_and_subagent_wiring(self, delegation_context, scripted_client):
        script_success(scripted_client, prompt="  SPECIALIZED  \n")
        workflow = TaskDelegationWorkflow(delegation_context, FakeSnapshots())

        await workflow.run(None, "summary text", "Add retries to the HTTP client")

        synthesis = scripted_client.text_calls[0]
        assert synthesis["model"] == "capable-model"
        assert synthesis["temperature"] == 0.2
        assert synthesis["top_p"] == 0.95
        instruction = synthesis["messages"][0].content
        assert "summary text" in instruction and "Add retries to the HTTP client" in instruction

        stream = scripted_client.stream_calls[0]
        assert stream["system_prompt"] == "SPECIALIZED"
        assert stream["model"] == "capable-model"
        assert stream["messages"][0].content == (
            "Task kickoff.\n\nConversation Summary:\nsummary text\n\nUser Request:\nAdd retries to the HTTP client"
        )
        tool_names = {d.name for d in stream["tools"]}
        assert {"read_file", "search_file", "write_file", "run_shell_command", COMPLETE_TASK_TOOL} == tool_names

    @pytest.mark.asyncio
    async def test_slug_derived_from_request(self, delegation_context, scripted_client):
        script_success(scripted_client)
        workflow = TaskDelegationWorkflow(delegation_context, FakeSnapshots())

        result = await workflow.run("", "s", "Rename the Config class!")

        assert result.task_name == "rename-the-config-class"

    @pytest.mark.asyncio
    async def test_snapshot_failure_yields_empty_file_list(self, delegation_context, scripted_client):
        script_success(scripted_client)
        workflow = TaskDelegationWorkflow(delegation_context, FakeSnapshots(fail_snapshot=True))

        result = await workflow.run("t", "s", "do it")

        assert result.modified_files == []
        assert result.summary == "Implemented the feature."

    @pytest.mark.asyncio
    async def test_diff_failure_yields_empty_file_list(self, delegation_context, scripted_client):
        script_success(scripted_client)
        workflow = TaskDelegationWorkflow(delegation_context, FakeSnapshots(fail_diff=True))

        result = await workflow.run("t", "s", "do it")

        assert result.modified_files == []

    @pytest.mark.asyncio
    async def test_without_snapshot_service(self, delegation_context, scripted_client):
        script_success(scripted_client)

        result = await TaskDelegationWorkflow(delegation_context).run("t", "s", "do it")

        assert result.modified_files == []

    @pytest.mark.asyncio
    async def test_empty_synthesis_fails_before_running(self, delegation_context, scripted_client):
        scripted_client.text_responses.append("   ")
        snapshots = FakeSnapshots()
        workflow = TaskDelegationWorkflow(delegation_context, snapshots)

        with pytest.raises(ValidationError, match="Empty response"):
            await workflow.run("t", "s", "do it")

        assert scripted_client.stream_calls == []
        assert snapshots.labels == []
        assert not (delegation_context.task_prompts_dir / "t.txt").exists()

    @pytest.mark.asyncio
    async def test_prompt_write_failure_propagates(self, delegation_context, scripted_client):
        scripted_client.text_responses.append("prompt")
        delegation_context.state_dir.mkdir(parents=True, exist_ok=True)
        delegation_context.task_prompts_dir.write_text("not a directory")

        with pytest.raises(ExecutionError):
            await TaskDelegationWorkflow(delegation_context, FakeSnapshots()).run("t", "s", "do it")

    @pytest.mark.asyncio
    async def test_empty_request_is_rejected(self, delegation_context):
        with pytest.raises(ValidationError):
            await TaskDelegationWorkflow(delegation_context).run("t", "s", "  ")


class TestProposeMode:
    @pytest.mark.asyncio
    async def test_structured_proposal(self, delegation_context, scripted_client):
        scripted_client.text_responses.append("Investigate only.")
        proposal = {
            "summary": "Two edits needed.",
            "proposedChanges": [
                {"filePath": "src/a.py", "action": "modify", "rationale": "fix import"},
                {"filePath": "src/b.py", "action": "create", "content": "print('b')"},
            ],
        }
        scripted_client.turns.append(ScriptedTurn(tool_calls=[(COMPLETE_TASK_TOOL, {"proposal": proposal})]))
        workflow = TaskDelegationWorkflow(delegation_context, FakeSnapshots())

        result = await workflow.run("plan", "s", "Plan the fix", mode=DelegationMode.PROPOSE)

        data = result.to_dict()
        assert data["summary"] == "Two edits needed."
        assert "modifiedFiles" not in data
        assert data["proposedChanges"][0] == {"filePath": "src/a.py", "action": "modify", "rationale": "fix import"}
        assert data["proposedChanges"][1]["content"] == "print('b')"

        stream = scripted_client.stream_calls[0]
        tool_names = {d.name for d in stream["tools"]}
        assert tool_names == {"read_file", "search_file", COMPLETE_TASK_TOOL}
        assert "read-only" in scripted_client.text_calls[0]["messages"][0].content

    @pytest.mark.asyncio
    async def test_unparseable_proposal_returns_raw_summary(self, delegation_context, scripted_client):
        scripted_client.text_responses.append("Investigate only.")
        scripted_client.turns.append(ScriptedTurn(text="Change a.py and b.py, I think."))
        workflow = TaskDelegationWorkflow(delegation_context, FakeSnapshots())

        result = await workflow.run("plan", "s", "Plan the fix", mode="propose")

        assert result.summary == "Change a.py and b.py, I think."
        assert result.proposed_changes == []

    def test_change_proposal_accepts_snake_case(self):
        proposal = ChangeProposal.model_validate(
            {"summary": "s", "proposed_changes": [{"file_path": "x.py", "action": "delete"}]}
        )

        assert proposal.proposed_changes[0].file_path == "x.py"


class TestDelegationTools:
    def test_declarations(self, delegation_context):
        workflow = TaskDelegationWorkflow(delegation_context)
        act, propose = DelegateTaskTool(workflow), ProposeChangesTool(workflow)

        assert act.declaration.name == "delegate_task"
        assert act.kind == ToolKind.DELEGATE
        assert propose.declaration.name == "propose_changes"
        assert propose.kind == ToolKind.THINK
        assert set(act.declaration.parameters["required"]) == {"conversation_summary", "user_request"}

    @pytest.mark.asyncio
    async def test_tool_returns_result_json(self, delegation_context, scripted_client):
        script_success(scripted_client)
        tool = DelegateTaskTool(TaskDelegationWorkflow(delegation_context, FakeSnapshots()))
        params = tool.validate({"conversation_summary": "s", "user_request": "do it", "task_name": "job"})

        result = await tool.execute(params, asyncio.Event())

        payload = json.loads(result.llm_content)
        assert payload["taskName"] == "job"
        assert payload["modifiedFiles"] == ["src/app.py"]
        assert "Modified Files: 1" in result.display

    @pytest.mark.asyncio
    async def test_workflow_failure_becomes_tool_error(self, delegation_context, scripted_client):
        scripted_client.text_responses.append("")
        tool = DelegateTaskTool(TaskDelegationWorkflow(delegation_context, FakeSnapshots()))
        scheduler = ToolCallScheduler(ToolRegistry([tool]), auto_approve=True)

        calls = await scheduler.schedule(
            [make_request("delegate_task", conversation_summary="s", user_request="do it")], asyncio.Event()
        )

        assert calls[0].status == ToolCallStatus.ERROR
        assert calls[0].response.error.kind == ToolErrorKind.VALIDATION
        assert "synthesize" in calls[0].response.error.message


def test_build_task_query():
    query = build_task_query({"conversationSummary": "A", "userRequest": "B"})

    assert query == "Task kickoff.\n\nConversation Summary:\nA\n\nUser Request:\nB"
