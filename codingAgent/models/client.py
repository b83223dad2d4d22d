"""Model backend access.

Components never talk to a chat model directly. They receive a ``ModelClient``
offering three capabilities: structured JSON, plain text, and a stream of
``ModelStreamEvent`` values with tool declarations bound.
``LangChainModelClient`` implements it on top of a ``ModelResolver`` that
builds LangChain chat models (``ChatOpenAI`` in the default wiring).
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence, Tuple, Type, Union

from langchain_core.exceptions import OutputParserException
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage, SystemMessage, message_chunk_to_message
from langchain_core.output_parsers import JsonOutputParser
from pydantic import BaseModel

from codingAgent.tools.base import ToolCallRequest, ToolDeclaration
from codingAgent.utils.async_utils import race_abort
from codingAgent.utils.error_handler import (
    AgentError,
    UpstreamCallError,
    ValidationError,
    handle_model_error,
)
from codingAgent.utils.message_utils import content_text

from .events import ModelStreamEvent, StreamFinished, TextChunk, ThoughtChunk, ToolCallRequested

LOGGER = logging.getLogger(__name__)

SchemaLike = Union[Type[BaseModel], Dict[str, Any]]


class ModelResolver(Protocol):
    def __call__(self, model_id: str, **overrides: Any) -> BaseChatModel:
        ...


class ModelClient(Protocol):
    """Capability the router, executor and delegation workflow depend on."""

    async def generate_json(
        self,
        *,
        model: str,
        messages: Sequence[BaseMessage],
        schema: Optional[SchemaLike] = None,
        system_prompt: Optional[str] = None,
        signal: Optional[asyncio.Event] = None,
    ) -> Any:
        ...

    async def generate_text(
        self,
        *,
        model: str,
        messages: Sequence[BaseMessage],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        signal: Optional[asyncio.Event] = None,
    ) -> str:
        ...

    def stream(
        self,
        *,
        model: str,
        messages: Sequence[BaseMessage],
        tools: Sequence[ToolDeclaration] = (),
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        thinking_budget: Optional[int] = None,
        signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[ModelStreamEvent]:
        ...


def schema_to_json(schema: Optional[SchemaLike]) -> Optional[Dict[str, Any]]:
    if schema is None:
        return None
    if isinstance(schema, dict):
        return schema
    return schema.model_json_schema()


def with_system_prompt(messages: Sequence[BaseMessage], system_prompt: Optional[str]) -> List[BaseMessage]:
    prepared = list(messages)
    if system_prompt:
        prepared.insert(0, SystemMessage(content=system_prompt))
    return prepared


async def _next_chunk(iterator: AsyncIterator[Any]) -> Tuple[bool, Any]:
    try:
        return True, await iterator.__anext__()
    except StopAsyncIteration:
        return False, None


class LangChainModelClient:
    """ModelClient backed by LangChain chat models."""

    def __init__(self, resolver: ModelResolver):
        self.resolver = resolver

    async def generate_json(
        self,
        *,
        model: str,
        messages: Sequence[BaseMessage],
        schema: Optional[SchemaLike] = None,
        system_prompt: Optional[str] = None,
        signal: Optional[asyncio.Event] = None,
    ) -> Any:
        """Invoke the model and parse its reply as JSON.

        Raises:
            UpstreamCallError: the backend call failed
            ValidationError: the reply was not JSON
            OperationAbortedError: the signal fired first
        """
        instruction = system_prompt or ""
        schema_json = schema_to_json(schema)
        if schema_json is not None:
            instruction += (
                "\n\nRespond only with a JSON object matching this schema:\n"
                f"{json.dumps(schema_json, ensure_ascii=False)}"
            )

        chat = self.resolver(model, temperature=0)
        response = await self._invoke(chat, with_system_prompt(messages, instruction.strip() or None), signal)
        try:
            return JsonOutputParser().parse(content_text(response.content))
        except OutputParserException as e:
            raise ValidationError(f"Model {model} returned invalid JSON: {e}") from e

    async def generate_text(
        self,
        *,
        model: str,
        messages: Sequence[BaseMessage],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        signal: Optional[asyncio.Event] = None,
    ) -> str:
        chat = self.resolver(model, temperature=temperature, top_p=top_p)
        response = await self._invoke(chat, with_system_prompt(messages, system_prompt), signal)
        return content_text(response.content).strip()

    async def stream(
        self,
        *,
        model: str,
        messages: Sequence[BaseMessage],
        tools: Sequence[ToolDeclaration] = (),
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        thinking_budget: Optional[int] = None,
        signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[ModelStreamEvent]:
        """Stream one model turn.

        Text and reasoning deltas are yielded as they arrive; tool calls are
        yielded once the turn is complete, followed by ``StreamFinished``.
        OpenAI-compatible backends take no reasoning budget, so
        ``thinking_budget=0`` only stops reasoning deltas from being surfaced.
        """
        chat: Any = self.resolver(model, temperature=temperature, top_p=top_p)
        if tools:
            chat = chat.bind_tools([declaration.to_openai_tool() for declaration in tools])

        full: Optional[AIMessageChunk] = None
        iterator = chat.astream(with_system_prompt(messages, system_prompt)).__aiter__()
        try:
            while True:
                try:
                    has_chunk, chunk = await race_abort(_next_chunk(iterator), signal)
                except AgentError:
                    raise
                except Exception as e:
                    LOGGER.error(f"Model {model} stream failed: {e}")
                    raise UpstreamCallError(str(e), handle_model_error(e)) from e
                if not has_chunk:
                    break

                full = chunk if full is None else full + chunk
                reasoning = chunk.additional_kwargs.get("reasoning_content")
                if reasoning and thinking_budget != 0:
                    yield ThoughtChunk(text=reasoning)
                text = content_text(chunk.content)
                if text:
                    yield TextChunk(text=text)
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

        message = message_chunk_to_message(full) if full is not None else AIMessage(content="")
        for tool_call in message.tool_calls:
            yield ToolCallRequested(request=ToolCallRequest.from_langchain(tool_call))
        for invalid in getattr(message, "invalid_tool_calls", None) or []:
            LOGGER.warning(f"Model {model} produced an unparseable tool call: {invalid.get('name')}")
            yield ToolCallRequested(
                request=ToolCallRequest(
                    id=invalid.get("id") or "invalid",
                    name=invalid.get("name") or "unknown",
                    arguments={},
                )
            )
        yield StreamFinished(message=message)

    async def _invoke(self, chat: BaseChatModel, messages: List[BaseMessage], signal: Optional[asyncio.Event]) -> BaseMessage:
        try:
            return await race_abort(chat.ainvoke(messages), signal)
        except AgentError:
            raise
        except Exception as e:
            LOGGER.error(f"Model call failed: {e}")
            raise UpstreamCallError(str(e), handle_model_error(e)) from e


async def collect_turn(client: ModelClient, **stream_kwargs: Any) -> Tuple[AIMessage, List[ToolCallRequest]]:
    """Drain one streamed turn; return the final message and its tool calls."""
    requests: List[ToolCallRequest] = []
    message: Optional[AIMessage] = None
    async for event in client.stream(**stream_kwargs):
        if isinstance(event, ToolCallRequested):
            requests.append(event.request)
        elif isinstance(event, StreamFinished):
            message = event.message
    return message or AIMessage(content=""), requests
