"""Long-term memory notes stored as text files under ``<state_dir>/memory``.

``record_memories`` writes ``<category>-<trace>.txt``; ``get_memories`` asks a
fast model to pick the relevant notes and returns them as one blob::

    === memory/tooling-pytest-needs-asyncio-mode.txt ===
    <content>
    ---
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from langchain_core.messages import HumanMessage
from pydantic import BaseModel, Field

from codingAgent.models.client import ModelClient, collect_turn
from codingAgent.tools.base import DeclarativeTool, OutputUpdater, ToolDeclaration, ToolKind, ToolResult
from codingAgent.utils.error_handler import AgentError, ExecutionError, ValidationError
from codingAgent.utils.prompt_builder import PromptBuilder
from codingAgent.utils.text_utils import count_words, sanitize_slug

LOGGER = logging.getLogger(__name__)

SELECT_MEMORIES_FUNCTION = "select_relevant_memories"
RECENT_FALLBACK_LIMIT = 5


def word_limit_warning(trace: str, category: str) -> Optional[str]:
    """Soft limits: trace about 10-15 words (3-20 tolerated), category 1-2 words."""
    trace_words = count_words(trace)
    category_words = count_words(category)
    if trace_words and (trace_words < 3 or trace_words > 20):
        return f"memory_trace should be concise (about 10-15 words). Provided: ~{trace_words} words."
    if category_words > 3:
        return f"memory_category should be 1-2 words. Provided: ~{category_words} words."
    return None


class RecordMemoriesParams(BaseModel):
    memory_trace: str = Field(description="A concise 10-15 word summary of the memory to help with future retrieval.")
    memory_category: str = Field(description="A 1-2 word category, e.g. tooling, UI, infra, docs.")
    full_memory: str = Field(description="The full description of the code, interaction, or learning to remember.")


class RecordMemoriesTool(DeclarativeTool):
    name = "record_memories"
    description = (
        "Records a long-term memory as a text file under the project's memory directory. "
        "Use for code facts, interactions, or learnings worth remembering across sessions."
    )
    kind = ToolKind.EDIT
    params_model = RecordMemoriesParams

    def __init__(self, memory_dir: Path, project_root: Optional[Path] = None):
        self.memory_dir = Path(memory_dir)
        self.project_root = Path(project_root) if project_root else self.memory_dir.parent

    def describe(self, params: RecordMemoriesParams) -> str:
        return f"Record memory: {params.memory_category} :: {params.memory_trace[:80]}"

    async def execute(
        self,
        params: RecordMemoriesParams,
        signal: asyncio.Event,
        update_output: Optional[OutputUpdater] = None,
    ) -> ToolResult:
        if not params.full_memory.strip():
            raise ValidationError("Full memory content is required.")

        warning = word_limit_warning(params.memory_trace, params.memory_category)
        category = sanitize_slug(params.memory_category, default="general")
        trace = sanitize_slug(params.memory_trace, default="note")
        target = self.memory_dir / f"{category}-{trace}.txt"

        try:
            self.memory_dir.mkdir(parents=True, exist_ok=True)
            target.write_text(params.full_memory.strip() + "\n", encoding="utf-8")
        except OSError as e:
            raise ExecutionError(f"Failed to write memory file: {e}") from e

        LOGGER.info(f"Recorded memory {target.name}")
        message = f"Memory recorded at {_relative(target, self.project_root)}."
        if warning:
            message += f"\nWarning: {warning}"
        return ToolResult(llm_content=message, display=message)


class GetMemoriesParams(BaseModel):
    summary: str = Field(
        description="A brief summary of the conversation relevant to the user's current request, including the request."
    )


class GetMemoriesTool(DeclarativeTool):
    """Selects relevant memory notes with a fast model and returns their contents."""

    name = "get_memories"
    description = (
        "Selects relevant memory files based on a brief conversation summary, reads them, "
        "and returns each file name with its contents."
    )
    kind = ToolKind.READ
    params_model = GetMemoriesParams

    def __init__(self, memory_dir: Path, model_client: ModelClient, model_id: str, project_root: Optional[Path] = None):
        self.memory_dir = Path(memory_dir)
        self.model_client = model_client
        self.model_id = model_id
        self.project_root = Path(project_root) if project_root else self.memory_dir.parent

    def list_memory_files(self) -> List[Path]:
        if not self.memory_dir.is_dir():
            return []
        return sorted(p for p in self.memory_dir.iterdir() if p.is_file() and p.suffix.lower() == ".txt")

    async def execute(
        self,
        params: GetMemoriesParams,
        signal: asyncio.Event,
        update_output: Optional[OutputUpdater] = None,
    ) -> ToolResult:
        files = self.list_memory_files()
        if not files:
            message = "No memory files found."
            return ToolResult(llm_content=message, display=message)

        selected = await self._select(params.summary, files, signal)
        if not selected:
            selected = sorted(files, key=lambda p: p.stat().st_mtime, reverse=True)[:RECENT_FALLBACK_LIMIT]

        blob = self._read_blob(selected)
        if not blob:
            message = "No relevant memories selected."
            return ToolResult(llm_content=message, display=message)
        return ToolResult(llm_content=blob, display=f"Loaded {len(selected)} memories.\n{blob}")

    async def _select(self, summary: str, files: List[Path], signal: asyncio.Event) -> List[Path]:
        by_name = {_relative(p, self.project_root): p for p in files}
        prompt = PromptBuilder.load_select_memories_prompt(
            query=summary, candidates=list(by_name), limit=RECENT_FALLBACK_LIMIT
        )
        declaration = ToolDeclaration(
            name=SELECT_MEMORIES_FUNCTION,
            description="Choose the most relevant memory files for the current request. Return only their paths.",
            parameters={
                "type": "object",
                "properties": {
                    "files": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Paths of memory .txt files to read, as listed.",
                    }
                },
                "required": ["files"],
            },
        )
        try:
            _, requests = await collect_turn(
                self.model_client,
                model=self.model_id,
                messages=[HumanMessage(content=prompt)],
                tools=[declaration],
                temperature=0.2,
                top_p=0.95,
                signal=signal,
            )
        except AgentError as e:
            LOGGER.warning(f"Memory selection failed, using most recent notes: {e}")
            return []

        chosen: List[Path] = []
        for request in requests:
            if request.name != SELECT_MEMORIES_FUNCTION:
                continue
            for entry in request.arguments.get("files") or []:
                path = self._match(entry, by_name)
                if path is not None and path not in chosen:
                    chosen.append(path)
        return chosen

    def _match(self, entry: object, by_name: dict) -> Optional[Path]:
        """Accept listed names, bare file names or absolute paths inside the memory dir."""
        if not isinstance(entry, str):
            return None
        if entry in by_name:
            return by_name[entry]
        candidate = Path(entry)
        if not candidate.is_absolute():
            candidate = self.memory_dir / candidate.name
        candidate = candidate.resolve()
        if candidate.parent != self.memory_dir.resolve() or candidate.suffix.lower() != ".txt":
            return None
        return candidate if candidate.is_file() else None

    def _read_blob(self, files: List[Path]) -> str:
        chunks = []
        for path in files:
            try:
                content = path.read_text(encoding="utf-8").strip()
            except OSError as e:
                LOGGER.warning(f"Skipping unreadable memory file {path}: {e}")
                continue
            chunks.append(f"=== {_relative(path, self.project_root)} ===\n{content}\n---")
        return "\n".join(chunks)


def _relative(path: Path, root: Path) -> str:
    try:
        return str(path.resolve().relative_to(root.resolve()))
    except ValueError:
        return path.name
