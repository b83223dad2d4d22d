"""Workflow prompt files: `<state_dir>/prompts/<name>.txt`.

Each file becomes a ``/p-<name>`` prompt command. Typing the command at the
start of a message makes the workflow-instruction hook wrap the request with
that file's content instead of ``default.txt``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

LOGGER = logging.getLogger(__name__)

COMMAND_PREFIX = "p-"
DEFAULT_PROMPT_NAME = "default"
MAX_DESCRIPTION_LENGTH = 100


@dataclass(frozen=True)
class PromptCommand:
    name: str
    description: str
    path: Path

    def expand(self, args: str = "") -> str:
        """Text submitted to the conversation when the command is invoked."""
        return f"/{self.name} {args}".rstrip()


def list_prompt_commands(prompts_dir: Path) -> List[PromptCommand]:
    """List ``p-<name>`` commands for every ``*.txt`` file in ``prompts_dir``.

    The description is ``Workflow: <first line>``, with the first line cut to
    100 characters. A missing directory yields an empty list.
    """
    prompts_dir = Path(prompts_dir)
    if not prompts_dir.is_dir():
        return []

    commands: List[PromptCommand] = []
    for path in sorted(prompts_dir.glob("*.txt")):
        if not path.is_file():
            continue
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            LOGGER.debug(f"Skipping unreadable prompt file {path}: {e}")
            continue

        first_line = content.split("\n", 1)[0].strip()
        if len(first_line) > MAX_DESCRIPTION_LENGTH:
            first_line = first_line[: MAX_DESCRIPTION_LENGTH - 3] + "..."
        commands.append(
            PromptCommand(
                name=f"{COMMAND_PREFIX}{path.stem}",
                description=f"Workflow: {first_line}",
                path=path,
            )
        )
    return commands


def load_prompt_content(prompts_dir: Path, name: Optional[str] = None) -> Optional[str]:
    """Read ``<name>.txt``, falling back to ``default.txt``.

    Returns None when neither file can be read.
    """
    candidates = [name, DEFAULT_PROMPT_NAME] if name else [DEFAULT_PROMPT_NAME]
    for candidate in candidates:
        path = Path(prompts_dir) / f"{candidate}.txt"
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
    return None
