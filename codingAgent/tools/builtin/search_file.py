"""Search for a pattern within workspace files (grep)."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Annotated, Iterable, List, Optional

from langchain_core.tools import tool

from .workspace import WorkspaceAccessError, get_workspace_root, is_ignored, resolve_in_workspace

LOGGER = logging.getLogger(__name__)

__all__ = ["search_file"]

MAX_LINE_CHARS = 300


def _candidate_files(search_path: Path, include: Optional[str], root: Path) -> Iterable[Path]:
    if search_path.is_file():
        yield search_path
        return
    for candidate in search_path.rglob(include or "*"):
        if candidate.is_file() and not is_ignored(candidate, root):
            yield candidate


@tool
def search_file(
    pattern: Annotated[str, "Regular expression to search for"],
    path: Annotated[str, "File or directory to search (default: workspace root)"] = ".",
    include: Annotated[Optional[str], "Glob filter for file names, e.g. '*.py'"] = None,
    max_results: Annotated[int, "Maximum matching lines to return"] = 100,
) -> str:
    """Search file contents for a regular expression (case-insensitive).

    Returns matches as ``path:line: text``. Binary files are skipped.

    Examples:
        search_file("def route\\\\(", path="src")
        search_file("TODO", include="*.py")
    """
    try:
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            return f"Error: Invalid regular expression '{pattern}': {e}"

        search_path = resolve_in_workspace(path)
        if not search_path.exists():
            return f"Error: Path not found: {path}"

        root = get_workspace_root()
        results: List[str] = []
        for file_path in _candidate_files(search_path, include, root):
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    for line_num, line in enumerate(f, 1):
                        if regex.search(line):
                            text = line.rstrip()[:MAX_LINE_CHARS]
                            results.append(f"{file_path.relative_to(root)}:{line_num}: {text}")
                            if len(results) >= max_results:
                                break
            except (UnicodeDecodeError, OSError):
                continue
            if len(results) >= max_results:
                break

        if not results:
            return f"No matches found for '{pattern}' in {path}"

        LOGGER.info(f"search_file '{pattern}' in {path}: {len(results)} match(es)")
        return f"Found {len(results)} match(es) for '{pattern}':\n" + "\n".join(results)

    except WorkspaceAccessError as e:
        return f"Error: {e}"
    except Exception as e:
        LOGGER.error(f"Failed to search for '{pattern}' in {path}: {e}")
        return f"Error: {str(e)}"
