"""Utilities for codingAgent."""

from .logging_utils import (
    log_error,
    log_prompt,
    log_routing_decision,
    log_tool_call,
    log_tool_result,
    setup_logging,
)

__all__ = [
    "log_error",
    "log_prompt",
    "log_routing_decision",
    "log_tool_call",
    "log_tool_result",
    "setup_logging",
]
