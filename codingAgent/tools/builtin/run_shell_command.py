"""Execute shell commands in the workspace."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Annotated

from langchain_core.tools import tool

from .workspace import get_workspace_root

LOGGER = logging.getLogger(__name__)

__all__ = ["run_shell_command"]

MAX_OUTPUT_CHARS = 30_000


def _build_env(workspace: Path) -> dict:
    env = dict(os.environ)
    env["AGENT_WORKSPACE_PATH"] = str(workspace)

    # Current interpreter first on PATH (venv, uv, conda)
    python_dir = Path(sys.executable).parent
    env["PATH"] = f"{python_dir}{os.pathsep}{env.get('PATH', '/usr/bin:/bin')}"
    if sys.prefix != sys.base_prefix:
        env["VIRTUAL_ENV"] = sys.prefix
    return env


@tool
async def run_shell_command(
    command: Annotated[str, "Shell command to execute (e.g., 'ls -la', 'pytest -q tests/unit')"],
    timeout: Annotated[int, "Timeout in seconds"] = 60,
) -> str:
    """Execute a shell command in the workspace directory.

    Returns stdout, stderr (under a [stderr] marker) and the exit code when
    non-zero. Commands that modify files or the system may require approval.

    Examples:
        run_shell_command("git status")
        run_shell_command("pytest -q tests/unit", timeout=300)
    """
    workspace = get_workspace_root()
    LOGGER.info(f"Executing shell command: {command}")

    try:
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=workspace,
            env=_build_env(workspace),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except Exception as e:
        LOGGER.error(f"Failed to start command: {e}")
        return f"Error: {str(e)}"

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return f"Error: Command timeout ({timeout}s)"
    except asyncio.CancelledError:
        process.kill()
        await process.wait()
        raise

    output = stdout.decode("utf-8", errors="replace")
    if stderr:
        output += f"\n[stderr]\n{stderr.decode('utf-8', errors='replace')}"
    if len(output) > MAX_OUTPUT_CHARS:
        output = output[:MAX_OUTPUT_CHARS] + f"\n... (truncated, {len(output)} chars total)"

    if process.returncode != 0:
        return f"Command failed (exit code {process.returncode}):\n{output}"
    return output or "Command completed (no output)"
