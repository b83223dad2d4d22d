"""Message types flowing through the hook bus."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class MessageBusType(str, Enum):
    """Kinds of messages published on the bus."""

    HOOK_EXECUTION_REQUEST = "hook-execution-request"
    HOOK_EXECUTION_RESPONSE = "hook-execution-response"


class HookEventName(str, Enum):
    """Named extension points a hook request can target."""

    BEFORE_MODEL = "BeforeModel"


def new_correlation_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class HookMessage:
    """A message on the hook bus.

    Request and response share a ``correlation_id`` generated by the requester.

    Payload shapes:
        HOOK_EXECUTION_REQUEST:  {"eventName": str, "input": dict, "correlationId": str}
        HOOK_EXECUTION_RESPONSE: {"correlationId": str, "success": bool, "output": dict | None}
    """

    type: MessageBusType
    correlation_id: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def execution_request(
        cls,
        event_name: HookEventName | str,
        hook_input: Dict[str, Any],
        correlation_id: Optional[str] = None,
    ) -> "HookMessage":
        correlation_id = correlation_id or new_correlation_id()
        name = event_name.value if isinstance(event_name, HookEventName) else event_name
        return cls(
            type=MessageBusType.HOOK_EXECUTION_REQUEST,
            correlation_id=correlation_id,
            payload={"eventName": name, "input": hook_input, "correlationId": correlation_id},
        )

    @classmethod
    def execution_response(
        cls,
        correlation_id: str,
        success: bool,
        output: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> "HookMessage":
        payload: Dict[str, Any] = {"correlationId": correlation_id, "success": success, "output": output}
        if error:
            payload["error"] = error
        return cls(
            type=MessageBusType.HOOK_EXECUTION_RESPONSE,
            correlation_id=correlation_id,
            payload=payload,
        )

    @property
    def event_name(self) -> Optional[str]:
        return self.payload.get("eventName")

    @property
    def input(self) -> Dict[str, Any]:
        return self.payload.get("input") or {}


def create_hook_output(event_name: HookEventName | str, **specific: Any) -> Dict[str, Any]:
    """Build the ``output`` block of a hook response.

    >>> create_hook_output(HookEventName.BEFORE_MODEL, llm_request={"contents": []})
    {'hookSpecificOutput': {'hookEventName': 'BeforeModel', 'llm_request': {'contents': []}}}
    """
    name = event_name.value if isinstance(event_name, HookEventName) else event_name
    return {"hookSpecificOutput": {"hookEventName": name, **specific}}
