"""Model tiers and selector resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

FAST_TIER = "fast"
CAPABLE_TIER = "capable"
CLASSIFIER_TIER = "classifier"


@dataclass(frozen=True, slots=True)
class ModelTier:
    """Named configuration of the model backend."""

    key: str
    model_id: str
    speed: str  # fast | normal
    quality: str  # med | high


class ModelRegistry:
    """Central registry mapping tier keys to model ids."""

    def __init__(self, tiers: Optional[Iterable[ModelTier]] = None) -> None:
        self._tiers: Dict[str, ModelTier] = {}
        if tiers:
            for tier in tiers:
                self.register(tier)

    def register(self, tier: ModelTier) -> None:
        self._tiers[tier.key] = tier

    def get(self, key: str) -> ModelTier:
        if key not in self._tiers:
            raise KeyError(f"Unknown model tier: {key}")
        return self._tiers[key]

    def model_id(self, key: str) -> str:
        return self.get(key).model_id

    def keys(self) -> List[str]:
        return list(self._tiers)

    def resolve(self, selector: Optional[str]) -> Optional[str]:
        """Map a tier key or a known model id to a model id; None if unknown."""
        if not selector:
            return None
        if selector in self._tiers:
            return self._tiers[selector].model_id
        for tier in self._tiers.values():
            if tier.model_id == selector:
                return selector
        return None


def build_default_registry(model_configs: Mapping[str, Mapping[str, object]]) -> ModelRegistry:
    """Instantiate the registry from ``resolve_model_configs`` output.

    The classifier tier falls back to the fast tier when not configured.
    """
    fast = model_configs[FAST_TIER]
    capable = model_configs[CAPABLE_TIER]
    classifier = model_configs.get(CLASSIFIER_TIER) or fast
    return ModelRegistry(
        [
            ModelTier(key=FAST_TIER, model_id=str(fast["id"]), speed="fast", quality="med"),
            ModelTier(key=CAPABLE_TIER, model_id=str(capable["id"]), speed="normal", quality="high"),
            ModelTier(key=CLASSIFIER_TIER, model_id=str(classifier["id"]), speed="fast", quality="med"),
        ]
    )
