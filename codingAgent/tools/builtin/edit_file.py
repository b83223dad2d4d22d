"""Edit file tool for precise string replacements."""

from __future__ import annotations

import logging
from typing import Annotated

from langchain_core.tools import tool

from .workspace import WorkspaceAccessError, resolve_in_workspace

LOGGER = logging.getLogger(__name__)

__all__ = ["edit_file"]


@tool
def edit_file(
    path: Annotated[str, "File path, relative to the workspace root or absolute inside it"],
    old_string: Annotated[str, "The exact text to replace"],
    new_string: Annotated[str, "The text to replace it with"],
    replace_all: Annotated[bool, "Replace all occurrences (default: False)"] = False,
) -> str:
    """Exact string replacement in files. Safer than write_file for targeted edits.

    MUST use read_file first to see contents.
    old_string must match EXACTLY (whitespace, indentation) and be unique
    unless replace_all=True. Do not include the read_file header line.

    Examples:
        edit_file("src/config.py", "port = 8080", "port = 3000")
        edit_file("src/names.py", "foo", "bar", replace_all=True)
    """
    try:
        if old_string == new_string:
            return "Error: old_string and new_string must be different"

        target = resolve_in_workspace(path)
        if not target.exists():
            return f"Error: File not found: {path}"
        if not target.is_file():
            return f"Error: Not a file: {path}"

        content = target.read_text(encoding="utf-8")
        if old_string not in content:
            return f"Error: String not found in file: {old_string[:100]}..."

        occurrences = content.count(old_string)
        if not replace_all and occurrences > 1:
            return (
                f"Error: Found {occurrences} occurrences of old_string, but replace_all=False. "
                f"Either provide a more unique string or set replace_all=True."
            )

        if replace_all:
            new_content = content.replace(old_string, new_string)
            replacements = occurrences
        else:
            new_content = content.replace(old_string, new_string, 1)
            replacements = 1

        target.write_text(new_content, encoding="utf-8")
        LOGGER.info(f"Edited file: {path} ({replacements} replacement(s))")
        return f"Success: Replaced {replacements} occurrence(s) in {path}"

    except WorkspaceAccessError as e:
        return f"Error: {e}"
    except UnicodeDecodeError:
        return f"Error: File is not a text file (binary content detected): {path}"
    except Exception as e:
        LOGGER.error(f"Failed to edit file {path}: {e}")
        return f"Error: {str(e)}"
