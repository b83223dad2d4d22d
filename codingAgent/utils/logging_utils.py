"""Logging utilities for codingAgent."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "codingAgent"


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str | Path] = None,
) -> logging.Logger:
    """Setup logging configuration for codingAgent.

    All module loggers (``logging.getLogger(__name__)``) live under the
    ``codingAgent`` namespace and therefore end up in this logger's handlers.

    Args:
        level: Level for the file handler (default: INFO)
        log_dir: Directory for the log file (default: ./logs)

    Returns:
        Configured logger instance
    """
    logs_dir = Path(log_dir or "logs")
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / f"codingagent_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Set to DEBUG to capture all child logs
    logger.propagate = False

    logger.handlers = []

    # File handler (detailed logs)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    # Console handler (user-friendly)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.info("=" * 80)
    logger.info("codingAgent session started")
    logger.info(f"Log file: {log_file}")
    logger.info("=" * 80)

    return logger


def log_tool_call(logger: logging.Logger, tool_name: str, args: Dict[str, Any]) -> None:
    """Log tool invocation."""
    logger.info(f"Tool call: {tool_name}")
    logger.debug(f"  Arguments: {json.dumps(args, ensure_ascii=False, indent=2, default=str)}")


def log_tool_result(logger: logging.Logger, tool_name: str, result: Any, success: bool = True) -> None:
    """Log tool execution result (preview truncated to 500 chars)."""
    status = "✓ Success" if success else "✗ Failed"
    logger.info(f"Tool result: {tool_name} - {status}")

    result_str = str(result)
    if len(result_str) > 500:
        result_str = result_str[:500] + "... (truncated)"
    logger.debug(f"  Result: {result_str}")


def log_routing_decision(logger: logging.Logger, source: str, model: str, reason: str = "", latency_ms: Optional[int] = None) -> None:
    """Log which model a routing strategy selected."""
    logger.info(f"Routing decision [{source}]: {model}")
    if latency_ms is not None:
        logger.info(f"  → Latency: {latency_ms}ms")
    if reason:
        logger.debug(f"  → Reason: {reason}")


def log_error(logger: logging.Logger, error: Exception, context: str = "") -> None:
    """Log error with context."""
    logger.error(f"Error occurred: {type(error).__name__}: {str(error)}")
    if context:
        logger.error(f"  Context: {context}")
    logger.exception("Full traceback:", exc_info=error)


def log_prompt(logger: logging.Logger, phase: str, prompt: str, max_length: int = 500) -> None:
    """Log a system prompt, truncated to max_length."""
    preview = prompt if len(prompt) <= max_length else prompt[:max_length] + "... (truncated)"
    logger.info(f"\n{'='*80}")
    logger.info(f"System Prompt for {phase}:")
    logger.info(f"{'='*80}")
    logger.info(preview)
    logger.info(f"{'='*80}\n")

