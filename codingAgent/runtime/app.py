"""Runtime assembly: settings -> models -> tools -> hooks -> router."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from codingAgent.agents import QUERY_ANALYZER, AgentRegistry, SubagentTool
from codingAgent.config import Settings, get_settings
from codingAgent.config.project_root import get_config_dir
from codingAgent.delegation import (
    DelegateTaskTool,
    GitSnapshotService,
    ProposeChangesTool,
    SnapshotService,
    TaskDelegationWorkflow,
)
from codingAgent.hitl import ApprovalChecker
from codingAgent.hooks import HookedModelClient, HookRunner, MessageBus, WorkflowInstructionsService
from codingAgent.models import LangChainModelClient, ModelClient, ModelRegistry, ModelResolver, build_default_registry
from codingAgent.routing import ModelRouterService
from codingAgent.tools import ToolKind
from codingAgent.tools.builtin import register_builtin_tools
from codingAgent.tools.scheduler import ConfirmationHandler

from .context import RuntimeContext
from .model_resolver import build_model_resolver, resolve_model_configs

LOGGER = logging.getLogger(__name__)

SHADOW_GIT_DIR = "shadow_git"


@dataclass
class Application:
    """Everything a conversation session needs.

    ``context.model_client`` is the raw backend client (sub-agents, classifier,
    prompt synthesis); ``main_client`` wraps it with BeforeModel hooks for the
    main conversation.
    """

    settings: Settings
    context: RuntimeContext
    bus: MessageBus
    hook_runner: HookRunner
    workflow_instructions: WorkflowInstructionsService
    main_client: HookedModelClient
    router: ModelRouterService
    agents: AgentRegistry
    delegation: TaskDelegationWorkflow

    @property
    def models(self) -> ModelRegistry:
        return self.context.models


def build_application(
    *,
    settings: Optional[Settings] = None,
    model_resolver: Optional[ModelResolver] = None,
    model_client: Optional[ModelClient] = None,
    workspace: Optional[Path] = None,
    confirmation_handler: Optional[ConfirmationHandler] = None,
    snapshots: Optional[SnapshotService] = None,
) -> Application:
    """Wire the application.

    Args:
        settings: Defaults to ``get_settings()``.
        model_resolver: Custom LangChain model factory (default: ChatOpenAI per tier).
        model_client: Replaces the LangChain client entirely (tests).
        workspace: Repository to operate on (default: settings.paths.workspace).
        confirmation_handler: Resolves tool confirmations; None declines them.
        snapshots: Snapshot collaborator (default: shadow-git snapshots).
    """
    settings = settings or get_settings()
    model_configs = resolve_model_configs(settings)
    model_registry = build_default_registry(model_configs)

    if model_client is None:
        model_client = LangChainModelClient(model_resolver or build_model_resolver(model_configs))

    workspace = Path(workspace or settings.paths.workspace).resolve()
    # Builtin tools resolve paths against this variable
    os.environ["AGENT_WORKSPACE_PATH"] = str(workspace)

    approval_checker = ApprovalChecker(
        config_path=get_config_dir() / "hitl_rules.yaml",
        auto_approve_writes=settings.governance.auto_approve_writes,
    )

    context = RuntimeContext(
        model_client=model_client,
        models=model_registry,
        workspace=workspace,
        state_dir=workspace / settings.paths.state_dir,
        approval_checker=approval_checker,
        confirmation_handler=confirmation_handler,
        subagent_max_turns=settings.governance.subagent_max_turns,
        subagent_max_time_minutes=settings.governance.subagent_max_time_minutes,
    )
    register_builtin_tools(context)

    agents = AgentRegistry([QUERY_ANALYZER])
    for definition in agents.list_definitions():
        context.tools.register_tool(SubagentTool(definition, context, kind=ToolKind.THINK))

    if snapshots is None:
        snapshots = GitSnapshotService(workspace, context.state_dir / SHADOW_GIT_DIR)
    delegation = TaskDelegationWorkflow(context, snapshots)
    context.tools.register_tool(DelegateTaskTool(delegation))
    context.tools.register_tool(ProposeChangesTool(delegation))
    LOGGER.info(f"Registered {len(context.tools)} tools: {context.tools.names()}")

    bus = MessageBus()
    workflow_instructions = WorkflowInstructionsService(bus, context.prompts_dir)
    hook_runner = HookRunner(bus, timeout=settings.governance.hook_timeout_seconds)
    main_client = HookedModelClient(model_client, hook_runner)

    router = ModelRouterService(model_registry, default_tier=settings.models.default_tier)
    LOGGER.info(f"Application ready: workspace={workspace}, models={model_registry.keys()}")

    return Application(
        settings=settings,
        context=context,
        bus=bus,
        hook_runner=hook_runner,
        workflow_instructions=workflow_instructions,
        main_client=main_client,
        router=router,
        agents=agents,
        delegation=delegation,
    )
