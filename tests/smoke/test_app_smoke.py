"""Smoke tests: the package imports and the application wires up."""

import pytest

from conftest import ScriptedModelClient
from codingAgent.config.settings import ModelRoutingSettings, PathSettings, Settings


def test_imports():
    import codingAgent
    from codingAgent.agents import AgentExecutor, SubagentTool  # noqa: F401
    from codingAgent.delegation import TaskDelegationWorkflow  # noqa: F401
    from codingAgent.hooks import HookRunner, MessageBus  # noqa: F401
    from codingAgent.routing import ModelRouterService  # noqa: F401
    from codingAgent.runtime.session import ConversationSession  # noqa: F401
    from codingAgent.tools.scheduler import ToolCallScheduler  # noqa: F401

    assert codingAgent.__version__


@pytest.fixture
def app(workspace):
    from codingAgent.runtime.app import build_application

    settings = Settings(
        models=ModelRoutingSettings(fast="fast-model", capable="capable-model"),
        paths=PathSettings(workspace_root=str(workspace)),
    )
    return build_application(settings=settings, model_client=ScriptedModelClient(), workspace=workspace)


def test_build_application_registers_tools(app):
    names = set(app.context.tools.names())

    assert {
        "read_file",
        "list_directory",
        "find_files",
        "search_file",
        "write_file",
        "edit_file",
        "run_shell_command",
        "think",
        "web_fetch",
        "parallel_edit",
        "record_memories",
        "get_memories",
        "query_analyzer",
        "delegate_task",
        "propose_changes",
    } <= names


def test_model_tiers(app):
    assert app.models.model_id("fast") == "fast-model"
    assert app.models.model_id("capable") == "capable-model"
    # classifier falls back to the fast model
    assert app.models.model_id("classifier") == "fast-model"


def test_declarations_are_valid_function_schemas(app):
    for declaration in app.context.tools.declarations():
        assert declaration.name
        assert declaration.parameters.get("type") == "object"


def test_workflow_hook_is_subscribed(app):
    from codingAgent.hooks import MessageBusType

    assert app.bus.subscriber_count(MessageBusType.HOOK_EXECUTION_REQUEST) == 1
