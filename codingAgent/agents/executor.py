"""Sub-agent executor: runs one AgentDefinition inside a bounded lifetime.

Graph shape (one compiled LangGraph per run)::

    START → agent ⇄ tools
              ↓
             END   (complete_task / plain answer / budget / abort)

The agent node streams one model turn, the tools node hands the requested
calls to a ToolCallScheduler owned by this run. Wall-clock and turn bounds are
enforced together; running out of either yields a partial result, not an
exception.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Annotated, Any, Callable, Dict, List, Mapping, Optional, Tuple, TypedDict

from langchain_core.exceptions import OutputParserException
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.output_parsers import JsonOutputParser
from langgraph.graph import END, START, StateGraph
from langgraph.graph.message import add_messages
from pydantic import ValidationError as PydanticValidationError

from codingAgent.models.events import StreamFinished, TextChunk, ThoughtChunk, ToolCallRequested
from codingAgent.tools.base import ToolCallRequest, ToolDeclaration
from codingAgent.tools.scheduler import ToolCall, ToolCallScheduler, ToolCallStatus
from codingAgent.utils.async_utils import AbortScope
from codingAgent.utils.error_handler import OperationAbortedError, ToolNotFoundError, ValidationError
from codingAgent.utils.logging_utils import log_prompt
from codingAgent.utils.message_utils import content_text, last_assistant_text

from .schema import (
    INPUT_TYPES,
    AgentDefinition,
    AgentRunResult,
    AgentTerminateMode,
    SubagentActivity,
    SubagentActivityType,
)

if TYPE_CHECKING:
    from codingAgent.runtime.context import RuntimeContext

LOGGER = logging.getLogger(__name__)

COMPLETE_TASK_TOOL = "complete_task"
UNBOUNDED_RECURSION_LIMIT = 10_000

ActivityCallback = Callable[[SubagentActivity], None]


class SubagentState(TypedDict, total=False):
    messages: Annotated[List[BaseMessage], add_messages]
    turns: int
    terminate_reason: Optional[str]
    final: Any
    pending: List[ToolCallRequest]


def build_complete_task_declaration(definition: AgentDefinition) -> ToolDeclaration:
    output = definition.output_config
    if output is None:
        return ToolDeclaration(
            name=COMPLETE_TASK_TOOL,
            description="Call this tool once the task is finished. Provide a concise summary of what was done.",
            parameters={
                "type": "object",
                "properties": {"summary": {"type": "string", "description": "Final answer / summary of the work."}},
                "required": ["summary"],
            },
        )

    schema = output.schema.model_json_schema()
    schema.pop("title", None)
    schema.setdefault("description", output.description)
    return ToolDeclaration(
        name=COMPLETE_TASK_TOOL,
        description=f"Call this tool once the task is finished to submit '{output.output_name}'. {output.description}",
        parameters={"type": "object", "properties": {output.output_name: schema}, "required": [output.output_name]},
    )


def validate_inputs(definition: AgentDefinition, inputs: Mapping[str, Any]) -> None:
    """Raise ValidationError when a required input is missing or mistyped."""
    for name, spec in definition.input_config.inputs.items():
        value = inputs.get(name)
        if value is None:
            if spec.required:
                raise ValidationError(f"{definition.name}: missing required input '{name}'")
            continue
        expected = INPUT_TYPES.get(spec.type)
        mistyped = expected is not None and (
            not isinstance(value, expected) or (spec.type in ("number", "integer") and isinstance(value, bool))
        )
        if mistyped:
            raise ValidationError(
                f"{definition.name}: input '{name}' should be {spec.type}, got {type(value).__name__}"
            )


class AgentExecutor:
    """Runs a single sub-agent.

    Use ``AgentExecutor.create(...)`` rather than the constructor: it checks
    that every whitelisted tool exists before anything runs.
    """

    def __init__(
        self,
        definition: AgentDefinition,
        context: "RuntimeContext",
        on_activity: Optional[ActivityCallback] = None,
    ):
        self.definition = definition
        self.context = context
        self.on_activity = on_activity
        self.tools = context.tools.subset(definition.tool_config.tools)
        self._resolved = False
        self._events: List[Any] = []
        self._reported: Dict[Tuple[str, str], bool] = {}

    @classmethod
    def create(
        cls,
        definition: AgentDefinition,
        context: "RuntimeContext",
        on_activity: Optional[ActivityCallback] = None,
    ) -> "AgentExecutor":
        missing = context.tools.missing(definition.tool_config.tools)
        if missing:
            raise ToolNotFoundError(f"Agent '{definition.name}' requests unknown tools: {', '.join(missing)}")
        if COMPLETE_TASK_TOOL in definition.tool_config.tools:
            raise ValidationError(f"Agent '{definition.name}' must not whitelist reserved tool '{COMPLETE_TASK_TOOL}'")
        return cls(definition, context, on_activity)

    # ------------------------------------------------------------------ run

    async def run(self, inputs: Mapping[str, Any], signal: Optional[asyncio.Event] = None) -> AgentRunResult:
        """Run to completion, budget exhaustion, or abort.

        Raises:
            ValidationError: inputs do not match the definition
            UpstreamCallError: the model backend failed
        """
        validate_inputs(self.definition, inputs)
        definition = self.definition
        model_id = self.context.models.resolve(definition.model_config.tier)
        if model_id is None:
            raise ValidationError(f"Agent '{definition.name}' uses unknown model tier '{definition.model_config.tier}'")

        query = definition.prompt_config.query_builder(inputs)
        log_prompt(LOGGER, f"subagent:{definition.name}", definition.prompt_config.system_prompt)
        LOGGER.info(f"Subagent {definition.name} starting on {model_id} (tools: {self.tools.names()})")

        max_minutes = definition.run_config.max_time_minutes
        max_turns = definition.run_config.max_turns
        try:
            async with AbortScope(signal, timeout=max_minutes * 60 if max_minutes else None) as scope:
                graph = self._build_graph(model_id, scope)
                recursion_limit = 2 * max_turns + 10 if max_turns else UNBOUNDED_RECURSION_LIMIT
                state = await graph.ainvoke(
                    {"messages": [HumanMessage(content=query)], "turns": 0},
                    config={"recursion_limit": recursion_limit},
                )
            return self._assemble(state)
        finally:
            self._resolved = True

    def _build_graph(self, model_id: str, scope: AbortScope):
        definition = self.definition
        declarations = [*self.tools.declarations(), build_complete_task_declaration(definition)]
        scheduler = ToolCallScheduler(
            self.tools,
            approval_checker=self.context.approval_checker,
            confirmation_handler=self.context.confirmation_handler,
            auto_approve=self.context.auto_approve,
            on_tool_calls_update=self._on_tool_calls_update,
        )

        def stop_reason() -> AgentTerminateMode:
            return AgentTerminateMode.TIMEOUT if scope.timed_out else AgentTerminateMode.ABORTED

        async def agent_node(state: SubagentState) -> Dict[str, Any]:
            turns = state.get("turns", 0)
            if scope.signal.is_set():
                return {"terminate_reason": stop_reason().value}
            max_turns = definition.run_config.max_turns
            if max_turns and turns >= max_turns:
                LOGGER.info(f"Subagent {definition.name} reached max_turns={max_turns}")
                return {"terminate_reason": AgentTerminateMode.MAX_TURNS.value}

            message: Optional[AIMessage] = None
            requests: List[ToolCallRequest] = []
            try:
                async for event in self.context.model_client.stream(
                    model=model_id,
                    messages=state["messages"],
                    tools=declarations,
                    system_prompt=definition.prompt_config.system_prompt,
                    temperature=definition.model_config.temperature,
                    top_p=definition.model_config.top_p,
                    thinking_budget=definition.model_config.thinking_budget,
                    signal=scope.signal,
                ):
                    self._events.append(event)
                    if isinstance(event, ThoughtChunk):
                        self._emit(SubagentActivityType.THOUGHT_CHUNK, {"text": event.text})
                    elif isinstance(event, TextChunk):
                        continue
                    elif isinstance(event, ToolCallRequested):
                        requests.append(event.request)
                    elif isinstance(event, StreamFinished):
                        message = event.message
            except OperationAbortedError:
                return {"terminate_reason": stop_reason().value}

            message = message or AIMessage(content="")
            update: Dict[str, Any] = {"messages": [message], "turns": turns + 1, "pending": requests}

            completion = next((r for r in requests if r.name == COMPLETE_TASK_TOOL), None)
            if completion is not None:
                if len(requests) > 1:
                    LOGGER.warning(f"Subagent {definition.name} called {COMPLETE_TASK_TOOL} alongside other tools; ignoring them")
                update["final"] = dict(completion.arguments)
                update["terminate_reason"] = AgentTerminateMode.GOAL.value
            elif not requests:
                update["final"] = content_text(message.content).strip()
                update["terminate_reason"] = AgentTerminateMode.GOAL.value
            return update

        async def tools_node(state: SubagentState) -> Dict[str, Any]:
            requests = state.get("pending") or []
            self._reported.clear()
            calls = await scheduler.schedule(requests, scope.signal)
            update: Dict[str, Any] = {"messages": [call.to_tool_message() for call in calls], "pending": []}
            if scope.signal.is_set():
                update["terminate_reason"] = stop_reason().value
            return update

        def agent_route(state: SubagentState) -> str:
            return END if state.get("terminate_reason") else "tools"

        def tools_route(state: SubagentState) -> str:
            return END if state.get("terminate_reason") else "agent"

        graph = StateGraph(SubagentState)
        graph.add_node("agent", agent_node)
        graph.add_node("tools", tools_node)
        graph.add_edge(START, "agent")
        graph.add_conditional_edges("agent", agent_route, {"tools": "tools", END: END})
        graph.add_conditional_edges("tools", tools_route, {"agent": "agent", END: END})
        return graph.compile()

    # ------------------------------------------------------------- results

    def _assemble(self, state: SubagentState) -> AgentRunResult:
        definition = self.definition
        reason = AgentTerminateMode(state.get("terminate_reason") or AgentTerminateMode.GOAL.value)
        turns = state.get("turns", 0)
        messages = state.get("messages", [])
        events = tuple(self._events)

        if reason != AgentTerminateMode.GOAL:
            partial = last_assistant_text(messages) or (
                f"Agent '{definition.name}' stopped ({reason.value}) after {turns} turn(s) before producing a final answer."
            )
            LOGGER.info(f"Subagent {definition.name} ended with {reason.value} after {turns} turn(s)")
            return AgentRunResult(result=partial, terminate_reason=reason, raw_events=events, turns=turns)

        final = state.get("final")
        result, valid = self._parse_final(final, messages)
        LOGGER.info(f"Subagent {definition.name} completed in {turns} turn(s) (output_valid={valid})")
        return AgentRunResult(result=result, terminate_reason=reason, raw_events=events, output_valid=valid, turns=turns)

    def _parse_final(self, final: Any, messages: List[BaseMessage]) -> Tuple[Any, bool]:
        output = self.definition.output_config
        if output is None:
            if isinstance(final, dict):
                text = final.get("summary")
                if not isinstance(text, str) or not text.strip():
                    text = last_assistant_text(messages) or ""
                return text, True
            return final or "", True

        if isinstance(final, dict):
            raw = final.get(output.output_name, final)
        else:
            raw = final or ""
        try:
            if isinstance(raw, str):
                raw = JsonOutputParser().parse(raw)
            return output.schema.model_validate(raw), True
        except (OutputParserException, PydanticValidationError) as e:
            LOGGER.warning(f"Subagent {self.definition.name} output failed validation: {e}")
            text = raw if isinstance(raw, str) else json.dumps(raw, ensure_ascii=False, default=str)
            return text, False

    # ------------------------------------------------------------ activity

    def _emit(self, activity_type: SubagentActivityType, data: Mapping[str, Any]) -> None:
        if self._resolved or self.on_activity is None:
            return
        try:
            self.on_activity(SubagentActivity(agent_name=self.definition.name, type=activity_type, data=dict(data)))
        except Exception as e:
            LOGGER.error(f"Activity callback failed for {self.definition.name}: {e}", exc_info=True)

    def _on_tool_calls_update(self, calls: List[ToolCall]) -> None:
        for call in calls:
            if call.status == ToolCallStatus.EXECUTING and not self._reported.get((call.id, "start")):
                self._reported[(call.id, "start")] = True
                self._emit(SubagentActivityType.TOOL_CALL_START, {"name": call.name, "args": dict(call.request.arguments)})
            elif call.status.is_terminal and not self._reported.get((call.id, "end")):
                self._reported[(call.id, "end")] = True
                data: Dict[str, Any] = {"name": call.name, "status": call.status.value}
                if call.response is not None and call.response.error is not None:
                    data["error"] = call.response.error.message
                    self._emit(SubagentActivityType.ERROR, data)
                self._emit(SubagentActivityType.TOOL_CALL_END, data)
