"""Workspace isolation shared by the file and shell tools."""

from __future__ import annotations

import os
from pathlib import Path

WORKSPACE_ENV = "AGENT_WORKSPACE_PATH"

# Directories never listed or searched
IGNORED_DIRS = {".git", ".agent", "node_modules", "__pycache__", ".venv", "venv", ".mypy_cache", ".pytest_cache"}


class WorkspaceAccessError(ValueError):
    """Path escapes the workspace root."""


def get_workspace_root() -> Path:
    """Workspace root from ``AGENT_WORKSPACE_PATH``, else the current directory."""
    return Path(os.environ.get(WORKSPACE_ENV) or os.getcwd()).resolve()


def resolve_in_workspace(path: str) -> Path:
    """Resolve a relative or absolute path and make sure it stays in the workspace.

    Raises:
        WorkspaceAccessError: the resolved path is outside the workspace
    """
    root = get_workspace_root()
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = root / candidate
    resolved = candidate.resolve()
    if resolved != root and not resolved.is_relative_to(root):
        raise WorkspaceAccessError(f"Access denied. Path is outside the workspace: {path}")
    return resolved


def relative_to_workspace(path: Path) -> str:
    root = get_workspace_root()
    try:
        return str(path.resolve().relative_to(root)) or "."
    except ValueError:
        return str(path)


def is_ignored(path: Path, root: Path) -> bool:
    try:
        parts = path.relative_to(root).parts
    except ValueError:
        return True
    return any(part in IGNORED_DIRS for part in parts)
