"""Default model resolver wiring using environment-derived settings.

Converts settings into a resolver function that creates ChatOpenAI instances
on demand, one per (model id, sampling overrides) request.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, TypedDict

from langchain_openai import ChatOpenAI

from codingAgent.config.settings import Settings
from codingAgent.models.client import ModelResolver


class ModelConfig(TypedDict):
    id: str
    api_key: Optional[str]
    base_url: Optional[str]


def resolve_model_configs(settings: Settings) -> Dict[str, ModelConfig]:
    """Build normalized model configs (id + credentials) for each tier.

    The classifier tier reuses the fast tier's credentials unless it has its own.
    """
    models = settings.models
    fast: ModelConfig = {"id": models.fast, "api_key": models.fast_api_key, "base_url": models.fast_base_url}
    capable: ModelConfig = {
        "id": models.capable,
        "api_key": models.capable_api_key,
        "base_url": models.capable_base_url,
    }
    classifier: ModelConfig = {
        "id": models.classifier or models.fast,
        "api_key": models.classifier_api_key or models.fast_api_key,
        "base_url": models.classifier_base_url or models.fast_base_url,
    }
    return {"fast": fast, "capable": capable, "classifier": classifier}


def _chat_kwargs(model: str, api_key: Optional[str], base_url: Optional[str]) -> Dict[str, object]:
    if not api_key:
        raise RuntimeError(f"Missing API key for model {model}; configure it in .env")
    kwargs: Dict[str, object] = {"model": model, "api_key": api_key, "temperature": 0.2}
    if base_url:
        kwargs["base_url"] = base_url
    return kwargs


def build_model_resolver(model_configs: Dict[str, ModelConfig]) -> ModelResolver:
    """Construct a resolver that returns ChatOpenAI-compatible clients.

    Raises (from the resolver):
        KeyError: requested model id is not configured
        RuntimeError: API key missing for the requested model

    Example:
        >>> resolver = build_model_resolver(resolve_model_configs(get_settings()))
        >>> chat_model = resolver("capable-pro", temperature=0.2, top_p=0.95)
    """
    catalog: Dict[str, ModelConfig] = {}
    for config in model_configs.values():
        catalog.setdefault(config["id"], config)

    def resolver(model_id: str, **overrides: Any) -> ChatOpenAI:
        if model_id not in catalog:
            raise KeyError(f"Model {model_id} is not configured")
        config = catalog[model_id]
        kwargs = _chat_kwargs(config["id"], config["api_key"], config["base_url"])
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return ChatOpenAI(**kwargs)

    return resolver
