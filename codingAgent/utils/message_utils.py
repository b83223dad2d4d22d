"""Helpers for LangChain message content."""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage


def split_content(content: Any) -> Tuple[str, List[Any]]:
    """Split message content into (joined text, non-text parts)."""
    if isinstance(content, str):
        return content, []

    text = ""
    other_parts: List[Any] = []
    for part in content or []:
        if isinstance(part, str):
            text += part
        elif isinstance(part, dict) and part.get("type") == "text":
            text += part.get("text", "")
        else:
            other_parts.append(part)
    return text, other_parts


def content_text(content: Any) -> str:
    return split_content(content)[0]


def is_tool_turn(message: BaseMessage) -> bool:
    """True for tool responses and assistant turns that request tools."""
    if isinstance(message, ToolMessage):
        return True
    return isinstance(message, AIMessage) and bool(message.tool_calls)


def last_assistant_text(messages: Sequence[BaseMessage]) -> Optional[str]:
    """Text of the most recent assistant message that has any."""
    for message in reversed(messages):
        if isinstance(message, AIMessage):
            text = content_text(message.content).strip()
            if text:
                return text
    return None
