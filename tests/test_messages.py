"""
Tool-call transcript formatting and duplicate detection.

Run with:
$ pytest -q
"""

from contentflow.agent.messages import (
    PARAMETER_PREVIEW_LENGTH,
    build_message,
    format_tool_call_message,
    format_tool_result_message,
    generate_success_message,
    parse_tool_call_message,
    validate_tool_call,
)
from contentflow.core.schema import ToolResult


def test_tool_call_message_is_assistant_and_sorted() -> None:
    """Tool calls render as one canonical assistant line with sorted JSON."""

    message = format_tool_call_message("google_search", {"query": "python", "num": 3}, 2)

    assert message.role == "assistant"
    assert message.content == 'TOOL CALL [google_search] (turn 2): {"num": 3, "query": "python"}'
    assert parse_tool_call_message(message) == ("google_search", 2, {"num": 3, "query": "python"})


def test_parse_ignores_other_messages() -> None:
    """Only assistant messages in the canonical format parse as tool calls."""

    assert parse_tool_call_message(build_message("assistant", "Here is the summary.")) is None
    assert parse_tool_call_message(build_message("user", 'TOOL CALL [x] (turn 1): {}')) is None


def test_long_values_are_truncated() -> None:
    """Long strings are shortened in the transcript."""

    message = format_tool_call_message("wordpress_publish", {"content": "x" * 500}, 1)

    assert "x" * (PARAMETER_PREVIEW_LENGTH + 1) not in message.content
    assert "truncated 500 chars" in message.content


def test_identical_call_is_a_duplicate() -> None:
    """The same name and parameters as the latest tool call is a duplicate."""

    history = [
        build_message("user", "Find posts"),
        format_tool_call_message("local_search", {"query": "python"}, 1),
        build_message("user", "TOOL RESULT [local_search] (turn 1): SUCCESS - ok"),
    ]

    validation = validate_tool_call("local_search", {"query": "python"}, history)

    assert validation.is_duplicate is True
    assert validation.previous_turn == 1


def test_different_parameters_are_not_a_duplicate() -> None:
    """Changing any parameter makes the call new."""

    history = [format_tool_call_message("local_search", {"query": "python"}, 1)]

    assert validate_tool_call("local_search", {"query": "rust"}, history).is_duplicate is False
    assert validate_tool_call("other_tool", {"query": "python"}, history).is_duplicate is False


def test_values_differing_only_in_type_are_not_duplicates() -> None:
    """``true``, ``1`` and ``1.0`` are different arguments."""

    history = [format_tool_call_message("t", {"flag": True, "limit": 1}, 1)]

    assert validate_tool_call("t", {"flag": 1, "limit": 1}, history).is_duplicate is False
    assert validate_tool_call("t", {"flag": True, "limit": 1.0}, history).is_duplicate is False
    assert validate_tool_call("t", {"limit": 1, "flag": True}, history).is_duplicate is True


def test_long_values_sharing_a_prefix_are_not_duplicates() -> None:
    """Two long values with the same visible prefix still count as different."""

    prefix = "a" * 100
    history = [format_tool_call_message("wordpress_publish", {"content": prefix + "first"}, 1)]

    assert validate_tool_call("wordpress_publish", {"content": prefix + "second"}, history).is_duplicate is False
    assert validate_tool_call("wordpress_publish", {"content": prefix + "first"}, history).is_duplicate is True


def test_only_latest_tool_call_counts() -> None:
    """Calling A, then B, then A again is allowed."""

    history = [
        format_tool_call_message("tool_a", {"q": 1}, 1),
        format_tool_call_message("tool_b", {"q": 1}, 2),
    ]

    assert validate_tool_call("tool_a", {"q": 1}, history).is_duplicate is False


def test_empty_history_has_no_duplicates() -> None:
    assert validate_tool_call("tool_a", {}, []).is_duplicate is False


def test_success_message_mentions_query_and_count() -> None:
    """Summaries describe the outcome without the raw payload."""

    result = ToolResult(success=True, data=[{"title": "a"}, {"title": "b"}])

    assert (
        generate_success_message("google_search", result, {"query": "python"})
        == 'Google Search completed successfully for "python" and returned 2 item(s).'
    )
    assert generate_success_message("wordpress_publish", ToolResult(success=True), {}) == (
        "Wordpress Publish completed successfully."
    )


def test_handler_result_omits_data() -> None:
    """Handler tool results only report the outcome."""

    result = ToolResult(success=True, data={"post_id": 42, "url": "https://example.com/?p=42"})
    message = format_tool_result_message("wordpress_publish", result, {}, True, 3)

    assert message.role == "user"
    assert message.content.startswith("TOOL RESULT [wordpress_publish] (turn 3): SUCCESS")
    assert "example.com" not in message.content


def test_query_result_includes_data() -> None:
    """Query tool results carry their data for the next turn."""

    result = ToolResult(success=True, data=[{"link": "https://python.org"}])
    message = format_tool_result_message("google_search", result, {"query": "python"}, False, 1)

    assert "RESULT DATA:" in message.content
    assert "https://python.org" in message.content


def test_failed_result_reports_error() -> None:
    result = ToolResult(success=False, error="Tool 'x' not found")
    message = format_tool_result_message("x", result, {}, False, 1)

    assert message.content == "TOOL RESULT [x] (turn 1): FAILED - Tool 'x' not found"
