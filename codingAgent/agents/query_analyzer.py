"""Query analyzer: a read-only sub-agent that locates the files relevant to a request."""

from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, Field

from codingAgent.models.registry import FAST_TIER

from .schema import (
    AgentDefinition,
    InputConfig,
    InputSpec,
    ModelConfig,
    OutputConfig,
    PromptConfig,
    RunConfig,
    ToolConfig,
)

QUERY_ANALYZER_NAME = "query_analyzer"


class RelevantFile(BaseModel):
    path: str
    lines: Optional[List[int]] = None
    reason: str = Field(description="A brief explanation of why this file/lines are relevant to the user's query.")


class RelevantFiles(BaseModel):
    files: List[RelevantFile] = Field(description="A list of files relevant to the user's query.")


SYSTEM_PROMPT = """You specialize in understanding user intent and locating the relevant code in a repository.
Analyze the request, clarify the underlying goal, and pinpoint the files and line ranges that matter for it.
Give a short reason for every file you report.

Tools:
- read_file: read a file
- find_files: find files by glob pattern
- search_file: search file contents with a regular expression
- think: write down intermediate reasoning

When several independent lookups are needed, issue all of them in the same turn so they run in parallel.
Finish by calling complete_task with the relevant files."""


def build_query(inputs: Mapping[str, Any]) -> str:
    return (
        "Analyze the following user query and the codebase to identify the most relevant files and lines.\n\n"
        f"User Query:\n<query>\n{inputs['query']}\n</query>\n\n"
        "Return every relevant file with its path, the relevant line numbers when known, "
        "and a brief reason for its relevance."
    )


QUERY_ANALYZER = AgentDefinition(
    name=QUERY_ANALYZER_NAME,
    display_name="Query Analyzer Agent",
    description="Analyzes the user's intent and the codebase to identify relevant files and understand the user's goal.",
    prompt_config=PromptConfig(system_prompt=SYSTEM_PROMPT, query_builder=build_query),
    model_config=ModelConfig(tier=FAST_TIER, temperature=0.2, top_p=1.0, thinking_budget=0),
    run_config=RunConfig(max_time_minutes=5),
    tool_config=ToolConfig(tools=("read_file", "find_files", "search_file", "think")),
    input_config=InputConfig(inputs={"query": InputSpec(description="The user's query.", type="string")}),
    output_config=OutputConfig(
        schema=RelevantFiles,
        output_name="relevant_files",
        description="A list of relevant files and line numbers as a JSON object.",
    ),
)
