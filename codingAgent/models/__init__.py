"""Model tiers, backend client and stream events."""

from .client import LangChainModelClient, ModelClient, ModelResolver, collect_turn
from .events import ModelStreamEvent, StreamFinished, TextChunk, ThoughtChunk, ToolCallRequested
from .registry import CAPABLE_TIER, CLASSIFIER_TIER, FAST_TIER, ModelRegistry, ModelTier, build_default_registry

__all__ = [
    "LangChainModelClient",
    "ModelClient",
    "ModelResolver",
    "collect_turn",
    "ModelStreamEvent",
    "StreamFinished",
    "TextChunk",
    "ThoughtChunk",
    "ToolCallRequested",
    "CAPABLE_TIER",
    "CLASSIFIER_TIER",
    "FAST_TIER",
    "ModelRegistry",
    "ModelTier",
    "build_default_registry",
]
