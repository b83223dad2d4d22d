"""Unified error taxonomy for routing, scheduling and sub-agent runs."""

from __future__ import annotations

import asyncio
import functools
import logging
from enum import Enum
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)


class ToolErrorKind(str, Enum):
    """Error kinds reported in a tool call's terminal response."""

    VALIDATION = "ValidationError"
    TOOL_NOT_FOUND = "ToolNotFoundError"
    EXECUTION = "ExecutionError"
    BUDGET_EXCEEDED = "BudgetExceededError"
    UPSTREAM = "UpstreamCallError"
    ABORTED = "OperationAbortedError"


class AgentError(Exception):
    """Base exception for codingAgent errors."""

    kind: ToolErrorKind = ToolErrorKind.EXECUTION

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message


class ValidationError(AgentError):
    """Bad or missing structured input or output."""

    kind = ToolErrorKind.VALIDATION


class ToolNotFoundError(AgentError):
    """A tool name is not present in the registry."""

    kind = ToolErrorKind.TOOL_NOT_FOUND


class ExecutionError(AgentError):
    """Tool body failed."""

    kind = ToolErrorKind.EXECUTION


class BudgetExceededError(AgentError):
    """Time or turn bound hit. A normal terminal outcome, not a failure."""

    kind = ToolErrorKind.BUDGET_EXCEEDED


class UpstreamCallError(AgentError):
    """The model backend call failed or was cancelled."""

    kind = ToolErrorKind.UPSTREAM


class OperationAbortedError(AgentError):
    """The shared abort signal fired while an operation was in flight."""

    kind = ToolErrorKind.ABORTED


def with_error_boundary(tool_name: str):
    """Decorator converting exceptions raised by a tool body into ExecutionError.

    AgentError subclasses pass through unchanged so their kind survives.

    Example:
        @with_error_boundary("parallel_edit")
        async def execute(self, params, signal, update_output=None):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except AgentError:
                raise
            except Exception as e:
                LOGGER.exception(f"Tool {tool_name} failed", exc_info=e)
                raise ExecutionError(f"{tool_name} failed: {e}") from e

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except (AgentError, asyncio.CancelledError):
                raise
            except Exception as e:
                LOGGER.exception(f"Tool {tool_name} failed", exc_info=e)
                raise ExecutionError(f"{tool_name} failed: {e}") from e

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def handle_model_error(error: Exception) -> str:
    """Convert model invocation errors to user-friendly messages."""
    error_str = str(error).lower()

    if "rate_limit" in error_str or "429" in error_str:
        return "Too many requests to the model backend, please retry shortly"

    if "timeout" in error_str:
        return "The model backend timed out, please retry"

    if "context_length" in error_str or "token" in error_str:
        return "Conversation is too long for the model, start a new session"

    if "invalid_api_key" in error_str or "authentication" in error_str:
        return "Model API key is invalid"

    if "quota" in error_str or "insufficient" in error_str:
        return "Model backend quota exhausted"

    return f"Model backend unavailable: {str(error)}"
