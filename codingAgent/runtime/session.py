"""Main conversation loop for one user session."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from codingAgent.models.events import StreamFinished, TextChunk, ToolCallRequested
from codingAgent.routing import RoutingContext, RoutingDecision
from codingAgent.tools.base import ToolCallRequest
from codingAgent.tools.scheduler import OutputUpdateHandler, ToolCallScheduler
from codingAgent.utils.error_handler import OperationAbortedError
from codingAgent.utils.message_utils import content_text

from .app import Application

LOGGER = logging.getLogger(__name__)

TextHandler = Callable[[str], None]


class ConversationSession:
    """Keeps the history and runs turns: route -> stream -> tools -> repeat.

    A turn ends when the model answers without tool calls, when ``max_loops``
    model calls have been made, or when the abort signal fires.
    """

    def __init__(
        self,
        app: Application,
        model_selector: Optional[str] = None,
        on_text: Optional[TextHandler] = None,
        on_tool_output: Optional[OutputUpdateHandler] = None,
    ):
        self.app = app
        self.model_selector = model_selector or app.settings.models.default_selector
        self.on_text = on_text
        self.history: List[BaseMessage] = []
        self.last_decision: Optional[RoutingDecision] = None
        self.scheduler = ToolCallScheduler(
            app.context.tools,
            approval_checker=app.context.approval_checker,
            confirmation_handler=app.context.confirmation_handler,
            auto_approve=app.context.auto_approve,
            on_output_update=on_tool_output,
        )

    def reset(self) -> None:
        self.history.clear()
        self.last_decision = None

    async def run_turn(self, text: str, signal: Optional[asyncio.Event] = None) -> str:
        """Process one user message; return the final assistant text."""
        signal = signal if signal is not None else asyncio.Event()
        prior = list(self.history)
        self.history.append(HumanMessage(content=text))

        decision = await self.app.router.route(
            RoutingContext(history=prior, request=text, signal=signal),
            self.model_selector,
            self.app.context.model_client,
        )
        self.last_decision = decision

        max_loops = self.app.settings.governance.max_loops
        final_text = ""
        for loop in range(max_loops):
            try:
                message, requests = await self._stream_turn(decision.model, signal)
            except OperationAbortedError:
                LOGGER.info("Turn aborted while waiting for the model")
                break

            self.history.append(message)
            final_text = content_text(message.content).strip() or final_text
            if not requests:
                return final_text

            calls = await self.scheduler.schedule(requests, signal)
            self.history.extend(call.to_tool_message() for call in calls)
            if signal.is_set():
                LOGGER.info("Turn aborted during tool execution")
                break
        else:
            LOGGER.warning(f"Turn stopped after max_loops={max_loops} model calls")

        return final_text

    async def _stream_turn(self, model: str, signal: asyncio.Event):
        message: Optional[AIMessage] = None
        requests: List[ToolCallRequest] = []
        async for event in self.app.main_client.stream(
            model=model,
            messages=self.history,
            tools=self.app.context.tools.declarations(),
            signal=signal,
        ):
            if isinstance(event, TextChunk):
                if self.on_text is not None:
                    self.on_text(event.text)
            elif isinstance(event, ToolCallRequested):
                requests.append(event.request)
            elif isinstance(event, StreamFinished):
                message = event.message
        return message or AIMessage(content=""), requests
