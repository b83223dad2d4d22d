"""Sub-agent definitions, executor and registry."""

from .executor import COMPLETE_TASK_TOOL, AgentExecutor
from .query_analyzer import QUERY_ANALYZER, RelevantFiles
from .registry import AgentRegistry
from .schema import (
    AgentDefinition,
    AgentRunResult,
    AgentTerminateMode,
    InputConfig,
    InputSpec,
    ModelConfig,
    OutputConfig,
    PromptConfig,
    RunConfig,
    SubagentActivity,
    SubagentActivityType,
    ToolConfig,
)
from .subagent_tool import SubagentTool

__all__ = [
    "AgentDefinition",
    "AgentExecutor",
    "AgentRegistry",
    "AgentRunResult",
    "AgentTerminateMode",
    "COMPLETE_TASK_TOOL",
    "InputConfig",
    "InputSpec",
    "ModelConfig",
    "OutputConfig",
    "PromptConfig",
    "QUERY_ANALYZER",
    "RelevantFiles",
    "RunConfig",
    "SubagentActivity",
    "SubagentActivityType",
    "SubagentTool",
    "ToolConfig",
]
