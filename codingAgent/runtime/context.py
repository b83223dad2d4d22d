"""Runtime context shared by tools, sub-agents and workflows."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from codingAgent.hitl.approval_checker import ApprovalChecker
from codingAgent.models.client import ModelClient
from codingAgent.models.registry import ModelRegistry
from codingAgent.tools.registry import ToolRegistry
from codingAgent.tools.scheduler import ConfirmationHandler


@dataclass
class RuntimeContext:
    """Everything a sub-agent run needs, passed by reference.

    ``model_client`` is the undecorated backend client: BeforeModel hooks only
    wrap the main conversation.
    """

    model_client: ModelClient
    models: ModelRegistry
    tools: ToolRegistry = field(default_factory=ToolRegistry)
    workspace: Path = field(default_factory=Path.cwd)
    state_dir: Optional[Path] = None
    approval_checker: Optional[ApprovalChecker] = None
    confirmation_handler: Optional[ConfirmationHandler] = None
    auto_approve: bool = False
    subagent_max_turns: int = 25
    subagent_max_time_minutes: float = 10.0

    def __post_init__(self) -> None:
        self.workspace = Path(self.workspace).resolve()
        if self.state_dir is None:
            self.state_dir = self.workspace / ".agent"

    @property
    def prompts_dir(self) -> Path:
        return self.state_dir / "prompts"

    @property
    def task_prompts_dir(self) -> Path:
        return self.state_dir / "task_prompts"

    @property
    def memory_dir(self) -> Path:
        return self.state_dir / "memory"
