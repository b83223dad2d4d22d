"""Hook bus: typed pub/sub with correlation-id request/response."""

from .bus import MessageBus
from .prompt_loader import PromptCommand, list_prompt_commands, load_prompt_content
from .runner import HookedModelClient, HookRunner
from .types import HookEventName, HookMessage, MessageBusType, create_hook_output
from .workflow_instructions import WorkflowInstructionsService

__all__ = [
    "MessageBus",
    "PromptCommand",
    "list_prompt_commands",
    "load_prompt_content",
    "HookedModelClient",
    "HookRunner",
    "HookEventName",
    "HookMessage",
    "MessageBusType",
    "create_hook_output",
    "WorkflowInstructionsService",
]
