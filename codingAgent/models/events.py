"""Events produced while draining a streamed model response.

A stream is a finite, non-restartable async sequence:
``(TextChunk | ThoughtChunk)* ToolCallRequested* StreamFinished``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from langchain_core.messages import AIMessage

from codingAgent.tools.base import ToolCallRequest


@dataclass(frozen=True)
class TextChunk:
    text: str


@dataclass(frozen=True)
class ThoughtChunk:
    text: str


@dataclass(frozen=True)
class ToolCallRequested:
    request: ToolCallRequest


@dataclass(frozen=True)
class StreamFinished:
    message: AIMessage


ModelStreamEvent = Union[TextChunk, ThoughtChunk, ToolCallRequested, StreamFinished]
