"""Tests for SubagentTool, the query analyzer definition and AgentRegistry."""

import asyncio

import pytest

from conftest import ScriptedTurn
from codingAgent.agents import (
    COMPLETE_TASK_TOOL,
    QUERY_ANALYZER,
    AgentDefinition,
    AgentRegistry,
    InputConfig,
    InputSpec,
    PromptConfig,
    RelevantFiles,
    SubagentTool,
    ToolConfig,
)
from codingAgent.agents.subagent_tool import build_params_model
from codingAgent.tools.base import ToolKind
from codingAgent.utils.error_handler import ValidationError


def echo_agent(name="echo_agent"):
    return AgentDefinition(
        name=name,
        description="Echoes things.",
        prompt_config=PromptConfig(system_prompt="Echo."),
        tool_config=ToolConfig(tools=("echo",)),
        input_config=InputConfig(
            inputs={
                "task": InputSpec(description="Task"),
                "limit": InputSpec(description="Limit", type="integer", required=False),
            }
        ),
    )


class TestParamsModel:
    def test_mirrors_input_config(self):
        model = build_params_model(echo_agent())
        schema = model.model_json_schema()

        assert model.__name__ == "EchoAgentParams"
        assert schema["required"] == ["task"]
        assert set(schema["properties"]) == {"task", "limit"}

    def test_declaration_and_validation(self, runtime_context):
        tool = SubagentTool(echo_agent(), runtime_context)

        assert tool.declaration.name == "echo_agent"
        assert tool.kind == ToolKind.DELEGATE
        with pytest.raises(ValidationError):
            tool.validate({"limit": 3})


class TestSubagentToolExecution:
    @pytest.mark.asyncio
    async def test_runs_agent_and_streams_progress(self, runtime_context, scripted_client):
        scripted_client.turns += [
            ScriptedTurn(thoughts=["planning"], tool_calls=[("echo", {"text": "x"})]),
            ScriptedTurn(tool_calls=[(COMPLETE_TASK_TOOL, {"summary": "Echoed x."})]),
        ]
        tool = SubagentTool(echo_agent(), runtime_context)
        chunks = []

        result = await tool.execute(tool.validate({"task": "echo x"}), asyncio.Event(), chunks.append)

        assert result.ok
        assert "Subagent 'echo_agent' finished (goal, 2 turn(s))" in result.llm_content
        assert result.llm_content.endswith("Echoed x.")
        assert chunks[0] == "planning"
        assert any("→ echo" in chunk for chunk in chunks)
        # optional input left out of the query
        assert "limit" not in scripted_client.stream_calls[0]["messages"][0].content


class TestQueryAnalyzer:
    def test_definition_shape(self):
        assert QUERY_ANALYZER.name == "query_analyzer"
        assert QUERY_ANALYZER.model_config.tier == "fast"
        assert QUERY_ANALYZER.run_config.max_time_minutes == 5
        assert set(QUERY_ANALYZER.tool_config.tools) == {"read_file", "find_files", "search_file", "think"}
        assert QUERY_ANALYZER.output_config.schema is RelevantFiles

    def test_query_mentions_user_query(self):
        query = QUERY_ANALYZER.prompt_config.query_builder({"query": "where is routing?"})

        assert "<query>\nwhere is routing?\n</query>" in query

    def test_relevant_files_schema(self):
        parsed = RelevantFiles.model_validate(
            {"files": [{"path": "src/a.py", "lines": [1, 2], "reason": "entry"}, {"path": "b.py", "reason": "x"}]}
        )

        assert parsed.files[0].lines == [1, 2]
        assert parsed.files[1].lines is None


class TestAgentRegistry:
    """子 agent 注册表"""

    def test_register_and_lookup(self):
        registry = AgentRegistry([QUERY_ANALYZER])

        assert "query_analyzer" in registry
        assert registry.get_definition("query_analyzer") is QUERY_ANALYZER
        assert registry.get("missing") is None
        with pytest.raises(KeyError):
            registry.get_definition("missing")

    def test_register_replaces(self):
        registry = AgentRegistry([echo_agent()])
        replacement = echo_agent()

        registry.register(replacement)

        assert registry.names() == ["echo_agent"]
        assert registry.get("echo_agent") is replacement
