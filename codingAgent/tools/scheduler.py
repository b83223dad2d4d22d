"""Tool call scheduler: lifecycle of one batch of tool-call requests.

Per-call state machine::

    validating -> (awaiting_approval | scheduled) -> executing -> (success | error)
    any non-terminal state -> cancelled      (abort signal, declined approval)

Calls that are not waiting on confirmation run concurrently. One call's error
never affects its siblings. ``on_all_complete`` fires exactly once per batch,
after every call is terminal.

Each scheduler instance owns its batch. Sub-agents create their own instance;
nothing here is process-global.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Set, Union

from langchain_core.messages import ToolMessage

from codingAgent.hitl.approval_checker import ApprovalChecker, ApprovalDecision
from codingAgent.utils.async_utils import maybe_await, race_abort
from codingAgent.utils.error_handler import (
    AgentError,
    ExecutionError,
    OperationAbortedError,
    ToolNotFoundError,
    ValidationError,
)
from codingAgent.utils.logging_utils import log_tool_call, log_tool_result

from .base import DeclarativeTool, ToolCallRequest, ToolResult
from .registry import ToolRegistry

LOGGER = logging.getLogger(__name__)


class ToolCallStatus(str, Enum):
    VALIDATING = "validating"
    AWAITING_APPROVAL = "awaiting_approval"
    SCHEDULED = "scheduled"
    EXECUTING = "executing"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ToolCallStatus.SUCCESS, ToolCallStatus.ERROR, ToolCallStatus.CANCELLED)


class ConfirmationOutcome(str, Enum):
    PROCEED_ONCE = "proceed_once"
    PROCEED_ALWAYS = "proceed_always"
    CANCEL = "cancel"


@dataclass
class ToolCall:
    """Scheduler-owned record of one request's progress."""

    request: ToolCallRequest
    status: ToolCallStatus = ToolCallStatus.VALIDATING
    response: Optional[ToolResult] = None
    live_output: List[str] = field(default_factory=list)
    approval: Optional[ApprovalDecision] = None
    description: Optional[str] = None
    cancel_reason: Optional[str] = None
    status_history: List[ToolCallStatus] = field(default_factory=lambda: [ToolCallStatus.VALIDATING])
    duration_ms: Optional[int] = None

    @property
    def id(self) -> str:
        return self.request.id

    @property
    def name(self) -> str:
        return self.request.name

    def to_tool_message(self) -> ToolMessage:
        """Render the terminal outcome as the ToolMessage appended to the conversation."""
        if self.response is not None:
            return ToolMessage(
                content=self.response.llm_content,
                tool_call_id=self.id,
                name=self.name,
                status="error" if self.response.error else "success",
            )
        reason = self.cancel_reason or "Tool call cancelled"
        return ToolMessage(
            content=json.dumps({"ok": False, "cancelled": True, "error": reason}),
            tool_call_id=self.id,
            name=self.name,
            status="error",
        )


OutputUpdateHandler = Callable[[str, str], Union[None, Awaitable[None]]]
ToolCallsUpdateHandler = Callable[[List[ToolCall]], Union[None, Awaitable[None]]]
AllCompleteHandler = Callable[[List[ToolCall]], Union[None, Awaitable[None]]]
ConfirmationHandler = Callable[[ToolCall, ApprovalDecision], Awaitable[ConfirmationOutcome]]


class _OutputPump:
    """Delivers one call's output chunks to the callback strictly in order."""

    def __init__(self, call_id: str, handler: OutputUpdateHandler):
        self.call_id = call_id
        self.handler = handler
        self.queue: asyncio.Queue = asyncio.Queue()
        self.task = asyncio.create_task(self._drain())

    def push(self, chunk: str) -> None:
        self.queue.put_nowait(chunk)

    async def _drain(self) -> None:
        while True:
            chunk = await self.queue.get()
            if chunk is None:
                return
            try:
                await maybe_await(self.handler, self.call_id, chunk)
            except Exception as e:
                LOGGER.error(f"on_output_update failed for {self.call_id}: {e}", exc_info=True)

    async def close(self) -> None:
        self.queue.put_nowait(None)
        await self.task


class ToolCallScheduler:
    """Executes one batch of tool calls at a time.

    Args:
        registry: Tools available to this batch.
        approval_checker: Decides which calls need confirmation. None disables confirmation.
        confirmation_handler: Async callback resolving a pending confirmation.
            Without one, calls that need confirmation are declined (cancelled).
        on_output_update: ``(call_id, chunk)`` for streamed tool output.
        on_tool_calls_update: Snapshot of all calls whenever a status changes.
        on_all_complete: All calls of the batch, once, after all are terminal.
        auto_approve: Skip confirmation entirely.

    Callbacks may be plain functions or coroutine functions.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        approval_checker: Optional[ApprovalChecker] = None,
        confirmation_handler: Optional[ConfirmationHandler] = None,
        on_output_update: Optional[OutputUpdateHandler] = None,
        on_tool_calls_update: Optional[ToolCallsUpdateHandler] = None,
        on_all_complete: Optional[AllCompleteHandler] = None,
        auto_approve: bool = False,
    ):
        self.registry = registry
        self.approval_checker = approval_checker
        self.confirmation_handler = confirmation_handler
        self.on_output_update = on_output_update
        self.on_tool_calls_update = on_tool_calls_update
        self.on_all_complete = on_all_complete
        self.auto_approve = auto_approve
        self._always_allowed: Set[str] = set()
        self._calls: List[ToolCall] = []
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def schedule(
        self,
        requests: Sequence[ToolCallRequest],
        signal: Optional[asyncio.Event] = None,
    ) -> List[ToolCall]:
        """Run a batch to completion and return its terminal calls.

        Raises:
            RuntimeError: this scheduler is already running a batch.
        """
        if self._running:
            raise RuntimeError("ToolCallScheduler is already running a batch")
        self._running = True
        signal = signal if signal is not None else asyncio.Event()

        try:
            calls = [ToolCall(request=request) for request in requests]
            self._calls = calls
            LOGGER.info(f"Scheduling {len(calls)} tool call(s): {[c.name for c in calls]}")

            if calls and signal.is_set():
                for call in calls:
                    await self._cancel(call, "Operation aborted before start")
            elif calls:
                await asyncio.gather(*(self._run_call(call, signal) for call in calls))

            await maybe_await(self.on_all_complete, list(calls))
            return calls
        finally:
            self._calls = []
            self._running = False

    async def _run_call(self, call: ToolCall, signal: asyncio.Event) -> None:
        tool = self.registry.get(call.name)
        if tool is None:
            await self._fail(call, ToolNotFoundError(f"Tool '{call.name}' not found in registry"))
            return

        try:
            params = tool.validate(call.request.arguments)
        except AgentError as e:
            await self._fail(call, e)
            return
        call.description = tool.describe(params)

        if signal.is_set():
            await self._cancel(call, "Operation aborted")
            return

        try:
            decision = self._check_approval(tool, call)
        except Exception as e:
            LOGGER.error(f"Approval check for {call.name} raised: {e}", exc_info=True)
            await self._fail(call, ExecutionError(f"Approval check for {call.name} failed: {e}"))
            return
        if decision.needs_approval:
            call.approval = decision
            await self._set_status(call, ToolCallStatus.AWAITING_APPROVAL)
            try:
                outcome = await self._confirm(call, decision, signal)
            except OperationAbortedError:
                await self._cancel(call, "Operation aborted while awaiting approval")
                return
            except Exception as e:
                LOGGER.error(f"Confirmation handler for {call.name} raised: {e}", exc_info=True)
                await self._cancel(call, f"Confirmation for {call.name} failed: {e}")
                return
            if outcome == ConfirmationOutcome.CANCEL:
                await self._cancel(call, f"User declined {call.name}: {decision.reason}")
                return
            if outcome == ConfirmationOutcome.PROCEED_ALWAYS:
                self._always_allowed.add(call.name)

        await self._set_status(call, ToolCallStatus.SCHEDULED)
        if signal.is_set():
            await self._cancel(call, "Operation aborted")
            return

        await self._execute(call, tool, params, signal)

    def _check_approval(self, tool: DeclarativeTool, call: ToolCall) -> ApprovalDecision:
        if self.auto_approve or self.approval_checker is None or call.name in self._always_allowed:
            return ApprovalDecision(needs_approval=False)
        return self.approval_checker.check(call.name, call.request.arguments, tool.kind)

    async def _confirm(
        self, call: ToolCall, decision: ApprovalDecision, signal: asyncio.Event
    ) -> ConfirmationOutcome:
        if self.confirmation_handler is None:
            LOGGER.info(f"No confirmation handler; declining {call.name} ({decision.reason})")
            return ConfirmationOutcome.CANCEL
        outcome = await race_abort(maybe_await(self.confirmation_handler, call, decision), signal)
        try:
            return ConfirmationOutcome(outcome)
        except ValueError as e:
            raise ValidationError(f"Unknown confirmation outcome: {outcome!r}") from e

    async def _execute(self, call: ToolCall, tool: DeclarativeTool, params: Any, signal: asyncio.Event) -> None:
        pump = _OutputPump(call.id, self.on_output_update) if self.on_output_update else None

        def update_output(chunk: str) -> None:
            if call.status != ToolCallStatus.EXECUTING or signal.is_set():
                return
            call.live_output.append(chunk)
            if pump is not None:
                pump.push(chunk)

        await self._set_status(call, ToolCallStatus.EXECUTING)
        log_tool_call(LOGGER, call.name, dict(call.request.arguments))
        started = time.monotonic()

        outcome: Optional[ToolResult] = None
        failure: Optional[BaseException] = None
        aborted = False
        try:
            outcome = await race_abort(tool.execute(params, signal, update_output), signal)
        except OperationAbortedError:
            aborted = True
        except asyncio.CancelledError:
            call.cancel_reason = "Task cancelled"
            call.status = ToolCallStatus.CANCELLED
            call.status_history.append(ToolCallStatus.CANCELLED)
            raise
        except AgentError as e:
            failure = e
        except Exception as e:
            LOGGER.exception(f"Tool {call.name} raised", exc_info=e)
            failure = ExecutionError(f"{call.name} failed: {e}")
        finally:
            call.duration_ms = int((time.monotonic() - started) * 1000)
            if pump is not None:
                await pump.close()

        if aborted:
            await self._cancel(call, "Operation aborted during execution")
        elif failure is not None:
            await self._fail(call, failure)
        else:
            call.response = outcome
            status = ToolCallStatus.ERROR if outcome.error else ToolCallStatus.SUCCESS
            log_tool_result(LOGGER, call.name, outcome.llm_content, success=outcome.ok)
            await self._set_status(call, status)

    async def _fail(self, call: ToolCall, exc: BaseException) -> None:
        call.response = ToolResult.failure(exc)
        log_tool_result(LOGGER, call.name, call.response.error.message, success=False)
        await self._set_status(call, ToolCallStatus.ERROR)

    async def _cancel(self, call: ToolCall, reason: str) -> None:
        call.cancel_reason = reason
        LOGGER.info(f"Tool call {call.id} ({call.name}) cancelled: {reason}")
        await self._set_status(call, ToolCallStatus.CANCELLED)

    async def _set_status(self, call: ToolCall, status: ToolCallStatus) -> None:
        call.status = status
        call.status_history.append(status)
        try:
            await maybe_await(self.on_tool_calls_update, list(self._calls))
        except Exception as e:
            LOGGER.error(f"on_tool_calls_update failed: {e}", exc_info=True)
