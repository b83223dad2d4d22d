"""Model router service: picks the model for the next main-conversation call."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from codingAgent.models.client import ModelClient
from codingAgent.models.registry import ModelRegistry
from codingAgent.utils.logging_utils import log_routing_decision

from .classifier import ClassifierStrategy
from .strategy import (
    CompositeStrategy,
    DefaultStrategy,
    OverrideStrategy,
    RoutingContext,
    RoutingDecision,
    RoutingStrategy,
)

LOGGER = logging.getLogger(__name__)


class ModelRouterService:
    """Chain: classifier ("auto" only) -> explicit override -> default tier.

    ``route`` always returns a decision; the default tier backs every decline.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        default_tier: str = "capable",
        strategies: Optional[Sequence[RoutingStrategy]] = None,
    ):
        self.registry = registry
        if strategies is None:
            strategies = [ClassifierStrategy(registry), OverrideStrategy(registry)]
        self.chain = CompositeStrategy(strategies, name="agent-router")
        self.fallback = DefaultStrategy(registry, default_tier)

    async def route(
        self,
        context: RoutingContext,
        active_model_selector: str,
        model_client: ModelClient,
    ) -> RoutingDecision:
        decision = await self.chain.route(context, active_model_selector, model_client)
        if decision is None:
            decision = await self.fallback.route(context, active_model_selector, model_client)

        log_routing_decision(
            LOGGER,
            decision.metadata.source,
            decision.model,
            decision.metadata.reasoning,
            decision.metadata.latency_ms,
        )
        return decision
