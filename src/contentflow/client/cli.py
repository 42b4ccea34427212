"""Terminal clients: an interactive chat shell and a one-shot pipeline step runner."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Tuple

from contentflow.agent.chat import ChatSession
from contentflow.agent.messages import parse_tool_call_message
from contentflow.agent.pipeline_step import (
    PipelineAgent,
    PipelineJob,
)
from contentflow.common import (
    AnsiColors,
    colored_print,
    shorten,
)
from contentflow.core.schema import ConversationState
from contentflow.engine import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Chat shell
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def _print_turn(state: ConversationState, already_seen: int) -> None:
    for message in state.messages[already_seen:]:
        parsed = parse_tool_call_message(message)
        if parsed is not None:
            name, turn, params = parsed
            call = shorten(f"{name}({json.dumps(params, ensure_ascii=False)})")
            colored_print(f"[turn {turn}] {call}", AnsiColors.GREY)

    if state.error is not None:
        colored_print(f"⚠️ {state.error}", AnsiColors.RED)
    elif not state.completed:
        colored_print(f"⚠️ Stopped after {state.turn_count} turns without a final answer.", AnsiColors.RED)
    colored_print(state.final_content or "(no reply)", AnsiColors.YELLOW)


def run_cli(engine: Engine, provider: str, model: str | None, max_turns: int) -> None:
    """Run the interactive chat shell."""
    session = ChatSession(engine.loop, engine.executor, provider, model, max_turns)
    colored_print(
        f"\n🔮 contentflow chat [{provider}] - type 'exit' or 'quit' (or Ctrl+C) to exit",
        AnsiColors.GREEN,
    )
    while True:
        colored_print("\n🧑 You: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if not user_msg:
            continue
        if user_msg.lower() in {"exit", "quit"}:
            break

        already_seen = len(session.messages) + 1
        state = session.send(user_msg)
        _print_turn(state, already_seen)


# ---------------------------------------------------------------------------
# Pipeline step
# ---------------------------------------------------------------------------
def run_pipeline_job(
    engine: Engine, job_file: Path, provider: str | None, model: str | None, max_turns: int
) -> int:
    """Run one AI step from a JSON job file and print the resulting data packets."""
    job = PipelineJob.model_validate_json(job_file.read_text(encoding="utf-8"))
    agent = PipelineAgent(engine.loop, engine.executor, provider, model, max_turns)
    try:
        state = agent.run(job)
    except ValueError as exc:
        colored_print(f"⚠️ {exc}", AnsiColors.RED, file=sys.stderr)
        return 2

    if state.error is not None:
        colored_print(f"⚠️ AI processing failed: {state.error}", AnsiColors.RED, file=sys.stderr)
        return 1
    if not state.completed:
        colored_print(f"⚠️ Conversation hit max turns ({state.turn_count})", AnsiColors.YELLOW, file=sys.stderr)

    print(json.dumps([packet.model_dump() for packet in state.data], indent=2, ensure_ascii=False, default=str))
    return 0
