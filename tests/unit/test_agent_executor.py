"""Tests for AgentExecutor: termination modes, structured output, activity stream."""

import asyncio
from dataclasses import replace
from typing import List

import pytest
from langchain_core.messages import ToolMessage
from pydantic import BaseModel

from conftest import EchoTool, ScriptedTurn
from codingAgent.agents import (
    COMPLETE_TASK_TOOL,
    AgentDefinition,
    AgentExecutor,
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
from codingAgent.utils.error_handler import ToolNotFoundError, UpstreamCallError, ValidationError


class Findings(BaseModel):
    files: List[str]
    note: str = ""


def make_definition(**overrides) -> AgentDefinition:
    definition = AgentDefinition(
        name="tester",
        description="Test agent",
        prompt_config=PromptConfig(system_prompt="You are a test agent."),
        model_config=ModelConfig(tier="fast", temperature=0.1, top_p=0.9),
        run_config=RunConfig(max_time_minutes=1),
        tool_config=ToolConfig(tools=("echo",)),
        input_config=InputConfig(inputs={"task": InputSpec(description="What to do")}),
    )
    return replace(definition, **overrides)


STRUCTURED = OutputConfig(schema=Findings, output_name="findings")


class TestCreate:
    def test_unknown_tool_is_rejected(self, runtime_context):
        definition = make_definition(tool_config=ToolConfig(tools=("echo", "nope")))

        with pytest.raises(ToolNotFoundError, match="nope"):
            AgentExecutor.create(definition, runtime_context)

    def test_reserved_tool_name_is_rejected(self, runtime_context):
        runtime_context.tools.register_tool(EchoTool(name=COMPLETE_TASK_TOOL))
        definition = make_definition(tool_config=ToolConfig(tools=(COMPLETE_TASK_TOOL,)))

        with pytest.raises(ValidationError):
            AgentExecutor.create(definition, runtime_context)


class TestInputs:
    @pytest.mark.asyncio
    async def test_missing_required_input(self, runtime_context):
        executor = AgentExecutor.create(make_definition(), runtime_context)

        with pytest.raises(ValidationError, match="task"):
            await executor.run({}, asyncio.Event())

    @pytest.mark.asyncio
    async def test_wrongly_typed_input(self, runtime_context):
        definition = make_definition(
            input_config=InputConfig(inputs={"count": InputSpec(type="integer"), "task": InputSpec()})
        )
        executor = AgentExecutor.create(definition, runtime_context)

        with pytest.raises(ValidationError, match="count"):
            await executor.run({"task": "x", "count": "three"}, asyncio.Event())

    @pytest.mark.asyncio
    async def test_optional_input_may_be_omitted(self, runtime_context, scripted_client):
        scripted_client.turns.append(ScriptedTurn(text="fine"))
        definition = make_definition(
            input_config=InputConfig(inputs={"task": InputSpec(), "hint": InputSpec(required=False)})
        )

        result = await AgentExecutor.create(definition, runtime_context).run({"task": "x"}, asyncio.Event())

        assert result.terminate_reason == AgentTerminateMode.GOAL


class TestTermination:
    @pytest.mark.asyncio
    async def test_plain_answer_is_goal(self, runtime_context, scripted_client):
        scripted_client.turns.append(ScriptedTurn(text="All done."))

        result = await AgentExecutor.create(make_definition(), runtime_context).run({"task": "say hi"})

        assert result.terminate_reason == AgentTerminateMode.GOAL
        assert result.result == "All done."
        assert result.turns == 1
        assert result.output_valid

        call = scripted_client.stream_calls[0]
        assert call["model"] == "fast-model"
        assert call["system_prompt"] == "You are a test agent."
        assert call["temperature"] == 0.1
        assert call["messages"][0].content == "task:\nsay hi"
        assert [d.name for d in call["tools"]] == ["echo", COMPLETE_TASK_TOOL]
        assert call["thinking_budget"] is None

    @pytest.mark.asyncio
    async def test_thinking_budget_is_forwarded(self, runtime_context, scripted_client):
        scripted_client.turns.append(ScriptedTurn(text="ok"))
        definition = make_definition(model_config=ModelConfig(tier="fast", thinking_budget=0))

        await AgentExecutor.create(definition, runtime_context).run({"task": "quick"})

        assert scripted_client.stream_calls[0]["thinking_budget"] == 0

    @pytest.mark.asyncio
    async def test_tool_round_then_complete_task(self, runtime_context, scripted_client):
        scripted_client.turns += [
            ScriptedTurn(text="Looking.", tool_calls=[("echo", {"text": "ping"})]),
            ScriptedTurn(tool_calls=[(COMPLETE_TASK_TOOL, {"summary": "Pinged once."})]),
        ]

        result = await AgentExecutor.create(make_definition(), runtime_context).run({"task": "ping"})

        assert result.terminate_reason == AgentTerminateMode.GOAL
        assert result.result == "Pinged once."
        assert result.turns == 2
        assert runtime_context.tools.get("echo").calls == ["ping"]

        second_messages = scripted_client.stream_calls[1]["messages"]
        tool_messages = [m for m in second_messages if isinstance(m, ToolMessage)]
        assert [m.content for m in tool_messages] == ["echo: ping"]

    @pytest.mark.asyncio
    async def test_other_calls_next_to_complete_task_are_ignored(self, runtime_context, scripted_client):
        scripted_client.turns.append(
            ScriptedTurn(tool_calls=[("echo", {"text": "late"}), (COMPLETE_TASK_TOOL, {"summary": "done"})])
        )

        result = await AgentExecutor.create(make_definition(), runtime_context).run({"task": "x"})

        assert result.result == "done"
        assert runtime_context.tools.get("echo").calls == []

    @pytest.mark.asyncio
    async def test_tool_errors_are_fed_back_not_raised(self, runtime_context, scripted_client):
        scripted_client.turns += [
            ScriptedTurn(tool_calls=[("fail", {"text": "x"})]),
            ScriptedTurn(text="Recovered."),
        ]
        definition = make_definition(tool_config=ToolConfig(tools=("echo", "fail")))

        result = await AgentExecutor.create(definition, runtime_context).run({"task": "x"})

        assert result.result == "Recovered."
        error_message = [m for m in scripted_client.stream_calls[1]["messages"] if isinstance(m, ToolMessage)][0]
        assert "boom" in error_message.content

    @pytest.mark.asyncio
    async def test_max_turns_returns_partial_result(self, runtime_context, scripted_client):
        scripted_client.turns += [
            ScriptedTurn(text="Step one.", tool_calls=[("echo", {"text": "1"})]),
            ScriptedTurn(text="Step two.", tool_calls=[("echo", {"text": "2"})]),
            ScriptedTurn(text="Never reached."),
        ]
        definition = make_definition(run_config=RunConfig(max_time_minutes=1, max_turns=2))

        result = await AgentExecutor.create(definition, runtime_context).run({"task": "loop"})

        assert result.terminate_reason == AgentTerminateMode.MAX_TURNS
        assert result.terminate_reason.budget_exhausted
        assert result.turns == 2
        assert result.result == "Step two."
        assert len(scripted_client.stream_calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_returns_partial_result(self, runtime_context, scripted_client):
        scripted_client.turns.append(ScriptedTurn(text="slow", delay=30))
        definition = make_definition(run_config=RunConfig(max_time_minutes=0.001))

        result = await asyncio.wait_for(
            AgentExecutor.create(definition, runtime_context).run({"task": "x"}), timeout=5
        )

        assert result.terminate_reason == AgentTerminateMode.TIMEOUT
        assert "stopped (timeout)" in result.result

    @pytest.mark.asyncio
    async def test_signal_already_set_is_aborted(self, runtime_context, scripted_client):
        signal = asyncio.Event()
        signal.set()

        result = await AgentExecutor.create(make_definition(), runtime_context).run({"task": "x"}, signal)

        assert result.terminate_reason == AgentTerminateMode.ABORTED
        assert result.turns == 0
        assert scripted_client.stream_calls == []

    @pytest.mark.asyncio
    async def test_abort_mid_turn(self, runtime_context, scripted_client):
        scripted_client.turns.append(ScriptedTurn(text="slow", delay=30))
        signal = asyncio.Event()
        executor = AgentExecutor.create(make_definition(), runtime_context)

        task = asyncio.create_task(executor.run({"task": "x"}, signal))
        while not scripted_client.stream_calls:
            await asyncio.sleep(0.01)
        signal.set()
        result = await asyncio.wait_for(task, timeout=5)

        assert result.terminate_reason == AgentTerminateMode.ABORTED

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates(self, runtime_context, scripted_client):
        scripted_client.turns.append(ScriptedTurn(error=UpstreamCallError("backend down")))

        with pytest.raises(UpstreamCallError):
            await AgentExecutor.create(make_definition(), runtime_context).run({"task": "x"})

    @pytest.mark.asyncio
    async def test_unknown_model_tier(self, runtime_context):
        definition = make_definition(model_config=ModelConfig(tier="gigantic"))

        with pytest.raises(ValidationError, match="gigantic"):
            await AgentExecutor.create(definition, runtime_context).run({"task": "x"})


class TestStructuredOutput:
    """结构化输出校验"""

    @pytest.mark.asyncio
    async def test_valid_output_is_parsed(self, runtime_context, scripted_client):
        scripted_client.turns.append(
            ScriptedTurn(tool_calls=[(COMPLETE_TASK_TOOL, {"findings": {"files": ["a.py"], "note": "n"}})])
        )
        definition = make_definition(output_config=STRUCTURED)

        result = await AgentExecutor.create(definition, runtime_context).run({"task": "x"})

        assert isinstance(result.result, Findings)
        assert result.result.files == ["a.py"]
        assert result.output_valid

        declaration = scripted_client.stream_calls[0]["tools"][-1]
        assert declaration.parameters["required"] == ["findings"]
        assert "files" in declaration.parameters["properties"]["findings"]["properties"]

    @pytest.mark.asyncio
    async def test_json_string_output_is_parsed(self, runtime_context, scripted_client):
        scripted_client.turns.append(
            ScriptedTurn(tool_calls=[(COMPLETE_TASK_TOOL, {"findings": '```json\n{"files": ["b.py"]}\n```'})])
        )
        definition = make_definition(output_config=STRUCTURED)

        result = await AgentExecutor.create(definition, runtime_context).run({"task": "x"})

        assert result.result == Findings(files=["b.py"])

    @pytest.mark.asyncio
    async def test_invalid_output_degrades_to_raw_text(self, runtime_context, scripted_client):
        scripted_client.turns.append(
            ScriptedTurn(tool_calls=[(COMPLETE_TASK_TOOL, {"findings": {"paths": "wrong shape"}})])
        )
        definition = make_definition(output_config=STRUCTURED)

        result = await AgentExecutor.create(definition, runtime_context).run({"task": "x"})

        assert result.terminate_reason == AgentTerminateMode.GOAL
        assert not result.output_valid
        assert isinstance(result.result, str)
        assert "wrong shape" in result.result

    @pytest.mark.asyncio
    async def test_plain_text_answer_with_schema(self, runtime_context, scripted_client):
        scripted_client.turns.append(ScriptedTurn(text="I could not find anything."))
        definition = make_definition(output_config=STRUCTURED)

        result = await AgentExecutor.create(definition, runtime_context).run({"task": "x"})

        assert not result.output_valid
        assert result.result == "I could not find anything."


class TestActivity:
    """活动回调"""

    @pytest.mark.asyncio
    async def test_activity_stream_and_silence_after_return(self, runtime_context, scripted_client):
        scripted_client.turns += [
            ScriptedTurn(thoughts=["thinking..."], tool_calls=[("echo", {"text": "x"}), ("fail", {"text": "y"})]),
            ScriptedTurn(text="done"),
        ]
        activities: List[SubagentActivity] = []
        definition = make_definition(tool_config=ToolConfig(tools=("echo", "fail")))
        executor = AgentExecutor.create(definition, runtime_context, on_activity=activities.append)

        await executor.run({"task": "x"})

        types = [a.type for a in activities]
        assert types[0] == SubagentActivityType.THOUGHT_CHUNK
        assert activities[0].data["text"] == "thinking..."
        assert types.count(SubagentActivityType.TOOL_CALL_START) == 2
        assert types.count(SubagentActivityType.TOOL_CALL_END) == 2
        assert types.count(SubagentActivityType.ERROR) == 1
        assert all(a.agent_name == "tester" for a in activities)

        count = len(activities)
        executor._emit(SubagentActivityType.THOUGHT_CHUNK, {"text": "late"})
        assert len(activities) == count

    @pytest.mark.asyncio
    async def test_failing_activity_callback_does_not_break_run(self, runtime_context, scripted_client):
        scripted_client.turns.append(ScriptedTurn(thoughts=["hmm"], text="ok"))

        def broken(activity):
            raise RuntimeError("ui crashed")

        result = await AgentExecutor.create(make_definition(), runtime_context, on_activity=broken).run({"task": "x"})

        assert result.result == "ok"
