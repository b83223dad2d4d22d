"""Routing strategy contract and the generic strategies."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

from langchain_core.messages import BaseMessage

from codingAgent.models.client import ModelClient
from codingAgent.models.registry import ModelRegistry

LOGGER = logging.getLogger(__name__)

AUTO_MODEL_SELECTOR = "auto"


@dataclass(frozen=True)
class RoutingContext:
    """What a strategy may look at: prior turns, the new request, the abort signal."""

    history: Sequence[BaseMessage]
    request: Any
    signal: Optional[asyncio.Event] = None


@dataclass(frozen=True)
class RoutingMetadata:
    source: str
    latency_ms: int = 0
    reasoning: str = ""


@dataclass(frozen=True)
class RoutingDecision:
    model: str
    metadata: RoutingMetadata = field(default_factory=lambda: RoutingMetadata(source="unknown"))


class RoutingStrategy(Protocol):
    """Returns a decision, or None to defer to the next strategy.

    A strategy that returns None must not have produced side effects.
    """

    name: str

    async def route(
        self,
        context: RoutingContext,
        active_model_selector: str,
        model_client: ModelClient,
    ) -> Optional[RoutingDecision]:
        ...


class CompositeStrategy:
    """Evaluates strategies in order; the first non-None decision wins.

    A strategy that raises is logged and treated as declining.
    """

    def __init__(self, strategies: Sequence[RoutingStrategy], name: str = "composite"):
        self.strategies = list(strategies)
        self.name = name

    async def route(
        self,
        context: RoutingContext,
        active_model_selector: str,
        model_client: ModelClient,
    ) -> Optional[RoutingDecision]:
        for strategy in self.strategies:
            try:
                decision = await strategy.route(context, active_model_selector, model_client)
            except Exception as e:
                LOGGER.warning(f"[Routing] {strategy.name} raised, skipping: {e}")
                continue
            if decision is not None:
                return decision
        return None


class OverrideStrategy:
    """Uses the selector as-is when it names a known tier or model id."""

    name = "override"

    def __init__(self, registry: ModelRegistry):
        self.registry = registry

    async def route(
        self,
        context: RoutingContext,
        active_model_selector: str,
        model_client: ModelClient,
    ) -> Optional[RoutingDecision]:
        if active_model_selector == AUTO_MODEL_SELECTOR:
            return None
        model = self.registry.resolve(active_model_selector)
        if model is None:
            return None
        return RoutingDecision(model=model, metadata=RoutingMetadata(source=self.name, reasoning=f"Selected: {active_model_selector}"))


class DefaultStrategy:
    """Statically configured tier. Never declines."""

    name = "default"

    def __init__(self, registry: ModelRegistry, default_tier: str):
        self.registry = registry
        self.default_tier = default_tier

    async def route(
        self,
        context: RoutingContext,
        active_model_selector: str,
        model_client: ModelClient,
    ) -> RoutingDecision:
        return RoutingDecision(
            model=self.registry.model_id(self.default_tier),
            metadata=RoutingMetadata(source=self.name, reasoning=f"Default tier: {self.default_tier}"),
        )
