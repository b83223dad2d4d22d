"""Agent registry: name -> AgentDefinition."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .schema import AgentDefinition

LOGGER = logging.getLogger(__name__)


class AgentRegistry:
    """已注册的子 agent 定义

    Definitions are immutable; registering a name twice replaces the old
    definition and logs a warning.
    """

    def __init__(self, definitions: Optional[Iterable[AgentDefinition]] = None):
        self._definitions: Dict[str, AgentDefinition] = {}
        for definition in definitions or []:
            self.register(definition)

    def register(self, definition: AgentDefinition) -> None:
        if definition.name in self._definitions:
            LOGGER.warning(f"Replacing agent definition: {definition.name}")
        self._definitions[definition.name] = definition
        LOGGER.debug(f"Registered agent: {definition.name}")

    def get(self, name: str) -> Optional[AgentDefinition]:
        return self._definitions.get(name)

    def get_definition(self, name: str) -> AgentDefinition:
        """Raises:
            KeyError: agent not registered
        """
        if name not in self._definitions:
            raise KeyError(f"Agent not found: {name}")
        return self._definitions[name]

    def names(self) -> List[str]:
        return list(self._definitions)

    def list_definitions(self) -> List[AgentDefinition]:
        return list(self._definitions.values())

    def __contains__(self, name: str) -> bool:
        return name in self._definitions
