"""
Message construction helpers and duplicate tool-call detection.

Everything here is pure: functions take plain values and return new messages.  Tool calls are
written into the transcript as one canonical line::

    TOOL CALL [google_search] (turn 2): {"query": "python release"}

which :func:`validate_tool_call` later parses back to spot a model repeating itself.
"""

import hashlib
import json
import re
from typing import (
    Any,
    Dict,
    Mapping,
    NamedTuple,
    Optional,
    Sequence,
)

from contentflow.core.schema import (
    Message,
    Role,
    ToolResult,
)

PARAMETER_PREVIEW_LENGTH = 80
"""String parameter values longer than this are truncated in tool-call messages."""

_TOOL_CALL_RE = re.compile(r"^TOOL CALL \[(?P<name>[^\]]+)\] \(turn (?P<turn>\d+)\): (?P<params>.*)$", re.DOTALL)


class ToolCallValidation(NamedTuple):
    """Outcome of :func:`validate_tool_call`."""

    is_duplicate: bool
    previous_turn: Optional[int] = None


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------
def _preview(value: Any) -> Any:
    if isinstance(value, str) and len(value) > PARAMETER_PREVIEW_LENGTH:
        # The digest keeps two different long values apart even when their prefixes match.
        digest = hashlib.sha1(value.encode("utf-8")).hexdigest()[:12]
        return f"{value[:PARAMETER_PREVIEW_LENGTH]}… [truncated {len(value)} chars #{digest}]"
    if isinstance(value, Mapping):
        return {str(k): _preview(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_preview(v) for v in value]
    return value


def _render_parameters(params: Mapping[str, Any] | None) -> Dict[str, Any]:
    """Truncated, JSON-normalised copy of *params* as it appears in the transcript."""
    rendered = _preview(dict(params or {}))
    return json.loads(json.dumps(rendered, ensure_ascii=False, default=str))


def _canonical(params: Mapping[str, Any]) -> str:
    return json.dumps(params, ensure_ascii=False, sort_keys=True)


def _tool_label(name: str) -> str:
    return name.replace("_", " ").title()


def parse_tool_call_message(message: Message) -> Optional[tuple[str, int, Dict[str, Any]]]:
    """Return ``(name, turn, params)`` for a tool-call message, else ``None``."""
    if message.role != "assistant":
        return None
    match = _TOOL_CALL_RE.match(message.content)
    if not match:
        return None
    try:
        params = json.loads(match.group("params"))
    except json.JSONDecodeError:
        return None
    if not isinstance(params, dict):
        return None
    return match.group("name"), int(match.group("turn")), params


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def build_message(role: Role, content: str) -> Message:
    """Build a plain conversation message."""
    return Message(role=role, content=content)


def format_tool_call_message(name: str, params: Mapping[str, Any] | None, turn_count: int) -> Message:
    """
    Render a tool call as an assistant message.

    Parameters are serialised as sorted JSON; long string values are shortened and tagged with
    a digest of the full value.
    """
    rendered = _canonical(_render_parameters(params))
    return build_message("assistant", f"TOOL CALL [{name}] (turn {turn_count}): {rendered}")


def generate_success_message(name: str, result: ToolResult, params: Mapping[str, Any] | None) -> str:
    """Human-readable outcome summary that never echoes the raw result payload."""
    summary = f"{_tool_label(name)} completed successfully"
    query = (params or {}).get("query")
    if isinstance(query, str) and query:
        summary += f' for "{query}"'
    if isinstance(result.data, list):
        summary += f" and returned {len(result.data)} item(s)"
    return summary + "."


def format_tool_result_message(
    name: str,
    result: ToolResult,
    params: Mapping[str, Any] | None,
    is_handler_tool: bool,
    turn_count: int,
) -> Message:
    """
    Render a tool result as a user message.

    Handler tools only report the outcome.  Query tools also carry their data so the model can
    read it on the next turn.
    """
    header = f"TOOL RESULT [{name}] (turn {turn_count}):"
    if not result.success:
        return build_message("user", f"{header} FAILED - {result.error or 'Unknown error'}")

    content = f"{header} SUCCESS - {generate_success_message(name, result, params)}"
    if not is_handler_tool and result.data is not None:
        serialized = json.dumps(result.data, indent=2, ensure_ascii=False, default=str)
        content += f"\n\nRESULT DATA:\n{serialized}"
    return build_message("user", content)


def validate_tool_call(
    name: str, params: Mapping[str, Any] | None, history: Sequence[Message]
) -> ToolCallValidation:
    """
    Check *name*/*params* against the most recent tool call in *history*.

    Only the latest tool-call message counts: calling A, then B, then A again is allowed.
    Parameters are compared as canonical JSON, so ``true``, ``1`` and ``1.0`` stay distinct.
    """
    rendered = _canonical(_render_parameters(params))
    for message in reversed(history):
        parsed = parse_tool_call_message(message)
        if parsed is None:
            continue
        previous_name, previous_turn, previous_params = parsed
        if previous_name == name and _canonical(previous_params) == rendered:
            return ToolCallValidation(is_duplicate=True, previous_turn=previous_turn)
        return ToolCallValidation(is_duplicate=False)
    return ToolCallValidation(is_duplicate=False)


def generate_duplicate_correction_message(name: str) -> Message:
    """Corrective nudge appended instead of executing a repeated call."""
    return build_message(
        "user",
        f"You just called {name} with these exact parameters and its result is already in the "
        "conversation above. Do not repeat the call: use the existing result, call the tool with "
        "different parameters, or finish your response.",
    )
