"""Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and ensures proper test environment setup.
"""

import asyncio
import os
import sys
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

# Ensure project root is in PYTHONPATH for imports to work
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from langchain_core.messages import AIMessage  # noqa: E402
from pydantic import BaseModel, Field  # noqa: E402

from codingAgent.models.events import StreamFinished, TextChunk, ThoughtChunk, ToolCallRequested  # noqa: E402
from codingAgent.models.registry import ModelRegistry, ModelTier  # noqa: E402
from codingAgent.runtime.context import RuntimeContext  # noqa: E402
from codingAgent.tools.base import DeclarativeTool, ToolCallRequest, ToolKind, ToolResult  # noqa: E402
from codingAgent.tools.registry import ToolRegistry  # noqa: E402
from codingAgent.utils.async_utils import race_abort  # noqa: E402
from codingAgent.utils.error_handler import ExecutionError  # noqa: E402


# ========== Scripted model client ==========

@dataclass
class ScriptedTurn:
    """One streamed model turn: optional thoughts, text and tool calls."""

    text: str = ""
    tool_calls: Sequence[Tuple[str, Dict[str, Any]]] = ()
    thoughts: Sequence[str] = ()
    delay: float = 0.0
    error: Optional[BaseException] = None


@dataclass
class ScriptedModelClient:
    """ModelClient fake: replays scripted turns and JSON/text responses in order.

    When the stream script runs out, every further turn answers "done".
    Every call's keyword arguments are recorded for assertions.
    """

    turns: List[ScriptedTurn] = field(default_factory=list)
    json_responses: List[Any] = field(default_factory=list)
    text_responses: List[Any] = field(default_factory=list)
    stream_calls: List[Dict[str, Any]] = field(default_factory=list)
    json_calls: List[Dict[str, Any]] = field(default_factory=list)
    text_calls: List[Dict[str, Any]] = field(default_factory=list)

    async def generate_json(self, **kwargs: Any) -> Any:
        self.json_calls.append(kwargs)
        response = self.json_responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, float):
            await race_abort(asyncio.sleep(response), kwargs.get("signal"))
            return {}
        return response

    async def generate_text(self, **kwargs: Any) -> str:
        self.text_calls.append(kwargs)
        response = self.text_responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def stream(self, **kwargs: Any):
        self.stream_calls.append(kwargs)
        turn = self.turns.pop(0) if self.turns else ScriptedTurn(text="done")
        signal = kwargs.get("signal")

        if turn.delay:
            await race_abort(asyncio.sleep(turn.delay), signal)
        if turn.error is not None:
            raise turn.error

        for thought in turn.thoughts:
            yield ThoughtChunk(text=thought)
        if turn.text:
            yield TextChunk(text=turn.text)

        tool_calls = [
            {"name": name, "args": dict(args), "id": f"call_{uuid.uuid4().hex[:8]}"}
            for name, args in turn.tool_calls
        ]
        for tool_call in tool_calls:
            yield ToolCallRequested(request=ToolCallRequest.from_langchain(tool_call))
        yield StreamFinished(message=AIMessage(content=turn.text, tool_calls=tool_calls))


# ========== Fake tools ==========

class TextParams(BaseModel):
    text: str = Field(description="Text to echo")


class EchoTool(DeclarativeTool):
    """Streams its text as two output chunks, then returns it."""

    name = "echo"
    description = "Echo the given text."
    kind = ToolKind.READ
    params_model = TextParams

    def __init__(self, name: str = "echo", kind: ToolKind = ToolKind.READ):
        self.name = name
        self.kind = kind
        self.calls: List[str] = []

    async def execute(self, params, signal, update_output=None):
        self.calls.append(params.text)
        if update_output is not None:
            update_output("chunk-1")
            update_output("chunk-2")
        return ToolResult(llm_content=f"echo: {params.text}", display=params.text)


class FailingTool(DeclarativeTool):
    name = "fail"
    description = "Always fails."
    kind = ToolKind.READ
    params_model = TextParams

    async def execute(self, params, signal, update_output=None):
        raise ExecutionError(f"boom: {params.text}")


class WaitParams(BaseModel):
    seconds: float = 10.0


class SlowTool(DeclarativeTool):
    """Sleeps until the timeout or until the abort signal fires."""

    name = "slow"
    description = "Sleeps for a while."
    kind = ToolKind.READ
    params_model = WaitParams

    def __init__(self):
        self.started = asyncio.Event()

    async def execute(self, params, signal, update_output=None):
        self.started.set()
        await asyncio.sleep(params.seconds)
        return ToolResult(llm_content="slept")


class GateTool(DeclarativeTool):
    """Opens ``opens`` then waits for ``wait_on``; two gates prove calls overlap."""

    description = "Waits on an event."
    kind = ToolKind.READ
    params_model = TextParams

    def __init__(self, name: str, wait_on: asyncio.Event, opens: asyncio.Event):
        self.name = name
        self.wait_on = wait_on
        self.opens = opens

    async def execute(self, params, signal, update_output=None):
        self.opens.set()
        await self.wait_on.wait()
        return ToolResult(llm_content=f"{self.name} passed")


def make_request(name: str, call_id: Optional[str] = None, **arguments: Any) -> ToolCallRequest:
    return ToolCallRequest(id=call_id or f"call_{uuid.uuid4().hex[:8]}", name=name, arguments=arguments)


# ========== Fixtures ==========

@pytest.fixture
def model_registry() -> ModelRegistry:
    return ModelRegistry(
        [
            ModelTier(key="fast", model_id="fast-model", speed="fast", quality="med"),
            ModelTier(key="capable", model_id="capable-model", speed="normal", quality="high"),
            ModelTier(key="classifier", model_id="classifier-model", speed="fast", quality="med"),
        ]
    )


@pytest.fixture
def scripted_client() -> ScriptedModelClient:
    return ScriptedModelClient()


@pytest.fixture
def workspace(tmp_path) -> Path:
    """Temporary workspace exported through AGENT_WORKSPACE_PATH."""
    root = tmp_path / "workspace"
    root.mkdir()
    old_value = os.environ.get("AGENT_WORKSPACE_PATH")
    os.environ["AGENT_WORKSPACE_PATH"] = str(root)
    yield root.resolve()
    if old_value is None:
        os.environ.pop("AGENT_WORKSPACE_PATH", None)
    else:
        os.environ["AGENT_WORKSPACE_PATH"] = old_value


@pytest.fixture
def runtime_context(scripted_client, model_registry, workspace) -> RuntimeContext:
    """Context with the echo/fail tools registered and confirmation disabled."""
    return RuntimeContext(
        model_client=scripted_client,
        models=model_registry,
        tools=ToolRegistry([EchoTool(), FailingTool()]),
        workspace=workspace,
        auto_approve=True,
    )
