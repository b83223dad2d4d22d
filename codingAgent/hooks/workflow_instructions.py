"""BeforeModel hook that wraps the user's request with workflow instructions."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from langchain_core.messages import BaseMessage, HumanMessage

from codingAgent.utils.message_utils import split_content
from codingAgent.utils.prompt_builder import PromptBuilder

from .bus import MessageBus
from .prompt_loader import load_prompt_content
from .types import HookEventName, HookMessage, MessageBusType, create_hook_output

LOGGER = logging.getLogger(__name__)

PROMPT_COMMAND_PATTERN = re.compile(r"^/p-([a-z0-9_-]+)\b", re.IGNORECASE)


def extract_prompt_command(query: str) -> Tuple[Optional[str], str]:
    """Strip a leading ``/p-<name>`` token.

    >>> extract_prompt_command("/p-Review fix the parser")
    ('review', 'fix the parser')
    """
    match = PROMPT_COMMAND_PATTERN.match(query)
    if not match:
        return None, query
    return match.group(1).lower(), query[match.end():].lstrip()


class WorkflowInstructionsService:
    """Rewrites the last user turn of every outgoing main-conversation request.

    Subscribes to HOOK_EXECUTION_REQUEST at construction. For ``BeforeModel``
    requests whose last message is a user turn with text, the text becomes::

        <workflow prompt>

        Here are the tools at your disposal:
        <tool declarations as JSON>

        Now, please address the following request:
        <user_request>
        <text without the /p-<name> token>
        </user_request>

    The workflow prompt comes from ``<prompts_dir>/<name>.txt``, then
    ``default.txt``, then the packaged core-mandates prompt. Every BeforeModel
    request gets a response on its correlation id, with ``output=None`` when
    nothing was rewritten.
    """

    def __init__(self, bus: MessageBus, prompts_dir: Path):
        self.bus = bus
        self.prompts_dir = Path(prompts_dir)
        self.bus.subscribe(MessageBusType.HOOK_EXECUTION_REQUEST, self.handle_hook_request)

    async def handle_hook_request(self, message: HookMessage) -> None:
        if message.event_name != HookEventName.BEFORE_MODEL.value:
            return

        llm_request = message.input.get("llm_request")
        output = None
        if llm_request:
            rewritten = self.rewrite_request(llm_request)
            if rewritten is not None:
                output = create_hook_output(HookEventName.BEFORE_MODEL, llm_request={"messages": rewritten})

        await self.bus.publish(
            HookMessage.execution_response(message.correlation_id, success=True, output=output)
        )

    def rewrite_request(self, llm_request: Dict[str, Any]) -> Optional[List[BaseMessage]]:
        """Return the rewritten message list, or None when the request is left alone."""
        messages: List[BaseMessage] = list(llm_request.get("messages") or [])
        if not messages:
            return None

        last = messages[-1]
        if not isinstance(last, HumanMessage):
            return None

        text, other_parts = split_content(last.content)
        query = text.strip()
        if not query:
            return None

        prompt_name, query = extract_prompt_command(query)
        if prompt_name:
            LOGGER.info(f"Workflow prompt command: p-{prompt_name}")

        wrapped = PromptBuilder.load_workflow_wrapper(
            workflow_prompt=self.load_prompt(prompt_name),
            tool_definitions=json.dumps(llm_request.get("tools") or [], indent=2, ensure_ascii=False),
            user_request=query,
        )

        if isinstance(last.content, str):
            new_content: Any = wrapped
        else:
            new_content = [*other_parts, {"type": "text", "text": wrapped}]

        messages[-1] = last.model_copy(update={"content": new_content})
        return messages

    def load_prompt(self, prompt_name: Optional[str]) -> str:
        content = load_prompt_content(self.prompts_dir, prompt_name)
        if content is None:
            return PromptBuilder.load_core_mandates()
        return content.strip()
