"""Scratchpad tool: records a thought without side effects."""

from typing import Annotated

from langchain_core.tools import tool


@tool
def think(
    thought: Annotated[str, "A thought to think about."],
) -> str:
    """Use the tool to think about something. It will not obtain new information
    or change anything, but just append the thought to the log. Use it when
    complex reasoning or some cache memory is needed.
    """
    return f'Thought recorded: "{thought}"'


__all__ = ["think"]
