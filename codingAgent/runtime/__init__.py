"""Runtime wiring.

``build_application`` and ``ConversationSession`` live in
``codingAgent.runtime.app`` and ``codingAgent.runtime.session``; they are not
re-exported here because the agents and tools import ``RuntimeContext``.
"""

from .context import RuntimeContext
from .model_resolver import ModelConfig, build_model_resolver, resolve_model_configs

__all__ = ["RuntimeContext", "ModelConfig", "build_model_resolver", "resolve_model_configs"]
