"""Project root path detection - works regardless of working directory."""

from __future__ import annotations

from pathlib import Path
from functools import lru_cache


@lru_cache(maxsize=1)
def get_project_root() -> Path:
    """Get absolute path to project root directory.

    Finds the directory containing the 'codingAgent' package, regardless of
    the current working directory.

    Example:
        >>> root = get_project_root()
        >>> rules = root / "codingAgent" / "config" / "hitl_rules.yaml"
    """
    # project_root.py -> config/ -> codingAgent/ -> project_root/
    project_root = Path(__file__).resolve().parent.parent.parent

    if not (project_root / "codingAgent").exists():
        raise RuntimeError(
            f"Could not locate project root. Expected 'codingAgent' directory at {project_root}"
        )

    return project_root


def resolve_project_path(relative_path: str | Path) -> Path:
    """Resolve a path relative to project root.

    Example:
        >>> logs_dir = resolve_project_path("logs")
    """
    return get_project_root() / relative_path


def get_config_dir() -> Path:
    """Directory holding the packaged YAML rules and prompt templates."""
    return Path(__file__).resolve().parent


__all__ = ["get_project_root", "resolve_project_path", "get_config_dir"]
