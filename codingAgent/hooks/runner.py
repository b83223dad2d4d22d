"""Firing hook requests and applying their results."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from langchain_core.messages import BaseMessage

from codingAgent.models.client import ModelClient
from codingAgent.models.events import ModelStreamEvent
from codingAgent.tools.base import ToolDeclaration

from .bus import MessageBus
from .types import HookEventName, HookMessage, MessageBusType

LOGGER = logging.getLogger(__name__)


class HookRunner:
    """Issues hook execution requests over the bus and merges the responses."""

    def __init__(self, bus: MessageBus, timeout: Optional[float] = 60.0):
        self.bus = bus
        self.timeout = timeout

    async def fire_before_model(
        self,
        llm_request: Dict[str, Any],
        signal: Optional[asyncio.Event] = None,
    ) -> Dict[str, Any]:
        """Give BeforeModel subscribers a chance to rewrite ``llm_request``.

        ``llm_request`` carries ``model``, ``messages`` and ``tools``. A
        successful response whose ``hookSpecificOutput.llm_request`` is set
        overrides the matching keys. No subscribers, a timeout, or a failed
        response leave the request unchanged.
        """
        if self.bus.subscriber_count(MessageBusType.HOOK_EXECUTION_REQUEST) == 0:
            return llm_request

        request = HookMessage.execution_request(HookEventName.BEFORE_MODEL, {"llm_request": llm_request})
        response = await self.bus.request(
            request,
            MessageBusType.HOOK_EXECUTION_RESPONSE,
            timeout=self.timeout,
            signal=signal,
        )
        if response is None:
            return llm_request
        if not response.payload.get("success"):
            LOGGER.warning(f"BeforeModel hook failed: {response.payload.get('error')}")
            return llm_request

        output = response.payload.get("output") or {}
        override = (output.get("hookSpecificOutput") or {}).get("llm_request")
        if not override:
            return llm_request
        LOGGER.debug(f"BeforeModel hook rewrote: {sorted(override)}")
        return {**llm_request, **override}


class HookedModelClient:
    """ModelClient decorator running BeforeModel hooks ahead of every stream.

    Used for the main conversation only; sub-agents and auxiliary calls
    (classifier, prompt synthesis) talk to the undecorated client.
    """

    def __init__(self, inner: ModelClient, runner: HookRunner):
        self.inner = inner
        self.runner = runner

    async def generate_json(self, **kwargs: Any) -> Any:
        return await self.inner.generate_json(**kwargs)

    async def generate_text(self, **kwargs: Any) -> str:
        return await self.inner.generate_text(**kwargs)

    async def stream(
        self,
        *,
        model: str,
        messages: Sequence[BaseMessage],
        tools: Sequence[ToolDeclaration] = (),
        signal: Optional[asyncio.Event] = None,
        **kwargs: Any,
    ) -> AsyncIterator[ModelStreamEvent]:
        llm_request = {
            "model": model,
            "messages": list(messages),
            "tools": [declaration.to_dict() for declaration in tools],
        }
        rewritten = await self.runner.fire_before_model(llm_request, signal=signal)
        final_messages: List[BaseMessage] = list(rewritten.get("messages") or messages)

        async for event in self.inner.stream(
            model=rewritten.get("model") or model,
            messages=final_messages,
            tools=tools,
            signal=signal,
            **kwargs,
        ):
            yield event
