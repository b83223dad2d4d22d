"""Task routing: choose the model tier for the next call."""

from .classifier import ClassifierResponse, ClassifierStrategy, build_classifier_history
from .router import ModelRouterService
from .strategy import (
    AUTO_MODEL_SELECTOR,
    CompositeStrategy,
    DefaultStrategy,
    OverrideStrategy,
    RoutingContext,
    RoutingDecision,
    RoutingMetadata,
    RoutingStrategy,
)

__all__ = [
    "ClassifierResponse",
    "ClassifierStrategy",
    "build_classifier_history",
    "ModelRouterService",
    "AUTO_MODEL_SELECTOR",
    "CompositeStrategy",
    "DefaultStrategy",
    "OverrideStrategy",
    "RoutingContext",
    "RoutingDecision",
    "RoutingMetadata",
    "RoutingStrategy",
]
