"""Simple CLI for multi-turn conversations with the coding agent."""

from __future__ import annotations

import asyncio
import logging

from codingAgent.config import get_settings
from codingAgent.config.project_root import resolve_project_path
from codingAgent.hitl import ApprovalDecision
from codingAgent.hooks import list_prompt_commands
from codingAgent.runtime.app import build_application
from codingAgent.runtime.session import ConversationSession
from codingAgent.tools.scheduler import ConfirmationOutcome, ToolCall
from codingAgent.utils import log_error, setup_logging

LOG_LEVELS = {"DEBUG": logging.DEBUG, "INFO": logging.INFO, "WARNING": logging.WARNING, "ERROR": logging.ERROR}


async def _ask(prompt: str) -> str:
    # Use run_in_executor to avoid blocking the async loop
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: input(prompt).strip())


async def confirm_tool_call(call: ToolCall, decision: ApprovalDecision) -> ConfirmationOutcome:
    print(f"\n[需要确认] {call.description or call.name}")
    if call.request.arguments:
        print(f"  参数: {dict(call.request.arguments)}")
    if decision.reason:
        print(f"  原因: {decision.reason} (风险: {decision.risk_level})")
    try:
        answer = (await _ask("  允许执行? [y]是 / [a]总是 / [n]否 > ")).lower()
    except (KeyboardInterrupt, EOFError):
        return ConfirmationOutcome.CANCEL
    if answer in {"a", "always"}:
        return ConfirmationOutcome.PROCEED_ALWAYS
    if answer in {"y", "yes"}:
        return ConfirmationOutcome.PROCEED_ONCE
    return ConfirmationOutcome.CANCEL


def _print_tool_output(call_id: str, chunk: str) -> None:
    print(f"[tool {call_id[:8]}] {chunk}")


def _print_commands(session: ConversationSession) -> None:
    print("\n命令列表:")
    print("  /quit, /exit      - 退出程序")
    print("  /reset            - 重置当前会话")
    print("  /model <selector> - 切换模型 (auto / fast / capable / 模型 ID)")
    print("  /prompts          - 列出工作流提示词命令")
    for command in list_prompt_commands(session.app.context.prompts_dir):
        print(f"  /{command.name:<16} - {command.description}")
    print()


async def async_main():
    settings = get_settings()
    logger = setup_logging(
        level=LOG_LEVELS.get(settings.observability.log_level.upper(), logging.INFO),
        log_dir=resolve_project_path(settings.observability.log_dir),
    )

    try:
        app = build_application(settings=settings, confirmation_handler=confirm_tool_call)
    except Exception as e:
        log_error(logger, e, "build_application")
        print(f"初始化失败: {e}")
        return

    session = ConversationSession(
        app,
        on_text=lambda text: print(text, end="", flush=True),
        on_tool_output=_print_tool_output,
    )

    print("codingAgent CLI 已就绪。")
    print(f"工作区: {app.context.workspace}")
    print(f"模型: {session.model_selector} ({', '.join(app.models.keys())})")
    print(f"日志文件: {logger.handlers[0].baseFilename if logger.handlers else 'N/A'}")
    _print_commands(session)

    while True:
        try:
            user_input = await _ask("You> ")
        except (KeyboardInterrupt, EOFError):
            print("\n再见！")
            logger.info("Session ended by user")
            break

        if not user_input:
            continue

        lowered = user_input.lower()
        if lowered in {"/quit", "/exit"}:
            print("会话结束。")
            logger.info("Session ended by /quit command")
            break

        if lowered == "/reset":
            session.reset()
            print("会话已重置。")
            continue

        if lowered == "/prompts":
            _print_commands(session)
            continue

        if lowered.startswith("/model"):
            selector = user_input[len("/model"):].strip()
            if selector:
                session.model_selector = selector
            print(f"当前模型选择: {session.model_selector}")
            continue

        # /p-<name> commands pass through; the workflow hook expands them
        signal = asyncio.Event()
        print("Agent> ", end="", flush=True)
        try:
            await session.run_turn(user_input, signal)
        except KeyboardInterrupt:
            signal.set()
            print("\n[已中断]")
        except Exception as e:
            log_error(logger, e, "run_turn")
            print(f"\n[错误] {e}")
        else:
            decision = session.last_decision
            if decision is not None:
                logger.info(f"Turn served by {decision.model} ({decision.metadata.source})")
        print()


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
