"""Classifier strategy: one auxiliary model call picks fast vs capable."""

from __future__ import annotations

import json
import logging
import time
from typing import List, Literal, Optional, Sequence

from langchain_core.messages import BaseMessage, HumanMessage
from pydantic import BaseModel, Field

from codingAgent.models.client import ModelClient
from codingAgent.models.registry import CAPABLE_TIER, CLASSIFIER_TIER, FAST_TIER, ModelRegistry
from codingAgent.utils.message_utils import is_tool_turn
from codingAgent.utils.prompt_builder import PromptBuilder

from .strategy import AUTO_MODEL_SELECTOR, RoutingContext, RoutingDecision, RoutingMetadata

LOGGER = logging.getLogger(__name__)

HISTORY_SEARCH_WINDOW = 20
HISTORY_TURNS_FOR_CONTEXT = 4


class ClassifierResponse(BaseModel):
    reasoning: str = Field(description="A brief, step-by-step explanation for the model choice, referencing the rubric.")
    model_choice: Literal["fast", "capable"]


def build_classifier_history(history: Sequence[BaseMessage]) -> List[BaseMessage]:
    """Last 20 turns, minus tool calls and tool responses, then the last 4 of those."""
    window = list(history)[-HISTORY_SEARCH_WINDOW:]
    conversational = [message for message in window if not is_tool_turn(message)]
    return conversational[-HISTORY_TURNS_FOR_CONTEXT:]


class ClassifierStrategy:
    """Routes the "auto" selector with a complexity classifier.

    Never raises: any failure (backend error, invalid JSON, schema mismatch,
    abort) is logged and the strategy declines.
    """

    name = "classifier"

    def __init__(self, registry: ModelRegistry):
        self.registry = registry
        self._system_prompt: Optional[str] = None

    @property
    def system_prompt(self) -> str:
        if self._system_prompt is None:
            self._system_prompt = PromptBuilder.load_classifier_prompt(
                fast_label=FAST_TIER,
                capable_label=CAPABLE_TIER,
                schema=json.dumps(ClassifierResponse.model_json_schema(), indent=2),
            )
        return self._system_prompt

    async def route(
        self,
        context: RoutingContext,
        active_model_selector: str,
        model_client: ModelClient,
    ) -> Optional[RoutingDecision]:
        if active_model_selector != AUTO_MODEL_SELECTOR:
            return None

        started = time.monotonic()
        try:
            messages = [*build_classifier_history(context.history), HumanMessage(content=context.request)]
            raw = await model_client.generate_json(
                model=self.registry.model_id(CLASSIFIER_TIER),
                messages=messages,
                schema=ClassifierResponse,
                system_prompt=self.system_prompt,
                signal=context.signal,
            )
            response = ClassifierResponse.model_validate(raw)
        except Exception as e:
            LOGGER.warning(f"[Routing] ClassifierStrategy failed: {type(e).__name__}: {e}")
            return None

        latency_ms = int((time.monotonic() - started) * 1000)
        tier = FAST_TIER if response.model_choice == "fast" else CAPABLE_TIER
        return RoutingDecision(
            model=self.registry.model_id(tier),
            metadata=RoutingMetadata(source=self.name, latency_ms=latency_ms, reasoning=response.reasoning),
        )
