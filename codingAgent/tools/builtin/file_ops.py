"""File operation tools with workspace isolation."""

from __future__ import annotations

import logging
from typing import Annotated, Optional

from langchain_core.tools import tool

from .workspace import WorkspaceAccessError, get_workspace_root, is_ignored, relative_to_workspace, resolve_in_workspace

LOGGER = logging.getLogger(__name__)

__all__ = ["read_file", "write_file", "list_directory"]

MAX_READ_CHARS = 100_000
DEFAULT_LINE_LIMIT = 2000


@tool
def read_file(
    path: Annotated[str, "File path, relative to the workspace root or absolute inside it"],
    offset: Annotated[Optional[int], "0-based line to start reading from"] = None,
    limit: Annotated[Optional[int], "Maximum number of lines to read"] = None,
) -> str:
    """Read a text file from the workspace.

    Returns the file content with a header line. Large files are returned in
    windows of lines: use offset/limit to page through them.

    Examples:
        read_file("src/app.py")
        read_file("src/app.py", offset=200, limit=100)
    """
    try:
        target = resolve_in_workspace(path)
        if not target.exists():
            return f"Error: File not found: {path}"
        if not target.is_file():
            return f"Error: Not a file: {path}"

        lines = target.read_text(encoding="utf-8").splitlines(keepends=True)
        start = max(offset or 0, 0)
        count = limit if limit and limit > 0 else DEFAULT_LINE_LIMIT
        window = lines[start:start + count]
        content = "".join(window)
        if len(content) > MAX_READ_CHARS:
            content = content[:MAX_READ_CHARS]

        header = f"=== {relative_to_workspace(target)} ==="
        if start > 0 or start + count < len(lines):
            header = (
                f"=== {relative_to_workspace(target)} (lines {start + 1}-{start + len(window)} "
                f"of {len(lines)}) ==="
            )
        LOGGER.info(f"Read file: {path} ({len(content)} chars)")
        return f"{header}\n{content}"

    except WorkspaceAccessError as e:
        return f"Error: {e}"
    except UnicodeDecodeError:
        return f"Error: File is not a text file (binary content detected): {path}"
    except Exception as e:
        LOGGER.error(f"Failed to read file {path}: {e}")
        return f"Error: {str(e)}"


@tool
def write_file(
    path: Annotated[str, "File path, relative to the workspace root or absolute inside it"],
    content: Annotated[str, "File content to write"],
) -> str:
    """Write a file, creating parent directories. Overwrites an existing file.

    Prefer edit_file for targeted changes to existing files.

    Examples:
        write_file("docs/notes.md", "# Notes\\n")
    """
    try:
        target = resolve_in_workspace(path)
        if target.is_dir():
            return f"Error: Path is a directory: {path}"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        LOGGER.info(f"Wrote file: {path} ({len(content)} chars)")
        return f"Success: File written to {relative_to_workspace(target)} ({len(content)} bytes)"

    except WorkspaceAccessError as e:
        return f"Error: {e}"
    except Exception as e:
        LOGGER.error(f"Failed to write file {path}: {e}")
        return f"Error: {str(e)}"


@tool
def list_directory(
    path: Annotated[str, "Directory to list (default: workspace root)"] = ".",
) -> str:
    """List a workspace directory. Returns [DIR]/[FILE] indicators.

    Examples:
        list_directory(".")
        list_directory("src/utils")
    """
    try:
        target = resolve_in_workspace(path)
        if not target.exists():
            return f"Error: Directory not found: {path}"
        if not target.is_dir():
            return f"Error: Not a directory: {path}"

        root = get_workspace_root()
        entries = sorted(target.iterdir(), key=lambda p: (not p.is_dir(), p.name.lower()))
        lines = []
        for entry in entries:
            if is_ignored(entry, root):
                continue
            if entry.is_dir():
                lines.append(f"[DIR]  {entry.name}/")
            else:
                lines.append(f"[FILE] {entry.name} ({entry.stat().st_size} bytes)")

        if not lines:
            return f"Directory is empty: {path}"
        return f"Contents of {relative_to_workspace(target)}:\n" + "\n".join(lines)

    except WorkspaceAccessError as e:
        return f"Error: {e}"
    except Exception as e:
        LOGGER.error(f"Failed to list directory {path}: {e}")
        return f"Error: {str(e)}"
