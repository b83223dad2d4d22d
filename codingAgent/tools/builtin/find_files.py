"""Find files by name pattern (glob-based file search)."""

from __future__ import annotations

import logging
from typing import Annotated

from langchain_core.tools import tool

from .workspace import WorkspaceAccessError, get_workspace_root, is_ignored, resolve_in_workspace

LOGGER = logging.getLogger(__name__)

__all__ = ["find_files"]

MAX_MATCHES = 200


@tool
def find_files(
    pattern: Annotated[str, "Glob pattern (e.g., '*.py', '**/*.ts', '**/*test*')"],
    path: Annotated[str, "Directory to search (default: workspace root)"] = ".",
) -> str:
    """Find files by name pattern (fast, doesn't read file content).

    Pattern syntax:
    - "*" matches anything inside one path segment
    - "**" matches directories recursively
    - "?" matches any single character

    Results are sorted newest first. To search inside files use search_file.

    Examples:
        find_files("**/*.py")
        find_files("*config*", path="src")
    """
    try:
        search_path = resolve_in_workspace(path)
        if not search_path.exists():
            return f"Error: Directory not found: {path}"
        if not search_path.is_dir():
            return f"Error: Not a directory: {path}"

        root = get_workspace_root()
        matches = [m for m in search_path.glob(pattern) if m.is_file() and not is_ignored(m, root)]
        if not matches:
            return f"No files found matching pattern: {pattern}"

        matches.sort(key=lambda m: m.stat().st_mtime, reverse=True)
        shown = matches[:MAX_MATCHES]
        lines = [f"Found {len(matches)} file(s) matching '{pattern}':"]
        lines.extend(f"  {m.relative_to(root)}" for m in shown)
        if len(matches) > len(shown):
            lines.append(f"  ... {len(matches) - len(shown)} more")

        LOGGER.info(f"Found {len(matches)} files matching '{pattern}' in {path}")
        return "\n".join(lines)

    except WorkspaceAccessError as e:
        return f"Error: {e}"
    except Exception as e:
        LOGGER.error(f"Failed to find files with pattern '{pattern}': {e}")
        return f"Error: {str(e)}"
