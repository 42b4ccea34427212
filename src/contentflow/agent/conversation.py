"""Main orchestration loop: drives the model through request / tool-execution turns."""

from __future__ import annotations

import logging
from typing import (
    Any,
    Mapping,
    Sequence,
)

from contentflow.agent.messages import (
    build_message,
    format_tool_call_message,
    format_tool_result_message,
    generate_duplicate_correction_message,
    generate_success_message,
    validate_tool_call,
)
from contentflow.agent.request_builder import (
    RequestBuilder,
    normalize_tools,
)
from contentflow.agent.tool_executor import ToolExecutor
from contentflow.core.schema import (
    AIResponse,
    ConversationState,
    DataPacket,
    InvocationContext,
    Message,
    ToolCall,
    ToolDefinition,
    ToolResult,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 8
_TITLE_MAX_LENGTH = 100


def _as_context(context: InvocationContext | Mapping[str, Any] | None) -> InvocationContext:
    if isinstance(context, InvocationContext):
        return context
    return InvocationContext.model_validate(dict(context or {}))


def _response_packet(response: AIResponse, turn_count: int, invocation: InvocationContext) -> DataPacket:
    first_line = response.content.strip().split("\n", 1)[0]
    title = first_line if len(first_line) <= _TITLE_MAX_LENGTH else f"AI Response - Turn {turn_count}"
    return DataPacket(
        type="ai_response",
        title=title,
        body=response.content,
        metadata={
            "source_type": "ai_response",
            "flow_step_id": invocation.flow_step_id,
            "conversation_turn": turn_count,
            "has_tool_calls": bool(response.tool_calls),
            "tool_count": len(response.tool_calls),
            "ai_model": response.model or "unknown",
            "ai_provider": response.provider or "unknown",
        },
    )


def _tool_packet(
    call: ToolCall,
    tool: ToolDefinition | None,
    result: ToolResult,
    turn_count: int,
    response: AIResponse,
    invocation: InvocationContext,
) -> DataPacket:
    if tool is not None and tool.is_handler_tool and result.success:
        clean_parameters = {k: v for k, v in call.parameters.items() if k != tool.handler_slug}
        return DataPacket(
            type="handler_complete",
            title=f"Handler Tool Executed: {call.name}",
            body=f"Tool executed successfully by AI agent in {turn_count} conversation turns",
            metadata={
                "tool_name": call.name,
                "handler_tool": tool.handler_slug,
                "tool_result": result.data,
                "tool_parameters": clean_parameters,
                "handler_config": dict(tool.handler_config),
                "flow_step_id": invocation.flow_step_id,
                "conversation_turn": turn_count,
                "ai_model": response.model or "unknown",
                "ai_provider": response.provider or "unknown",
            },
        )
    body = (
        generate_success_message(call.name, result, call.parameters)
        if result.success
        else result.error or "Unknown error"
    )
    return DataPacket(
        type="tool_result",
        title=f"{call.name.replace('_', ' ').title()} Result",
        body=body,
        metadata={
            "tool_name": call.name,
            "tool_parameters": dict(call.parameters),
            "tool_success": result.success,
            "tool_result": result.data,
            "conversation_turn": turn_count,
        },
    )


# ---------------------------------------------------------------------------
# Conversation Loop
# ---------------------------------------------------------------------------
class ConversationLoop:
    """
    Multi-turn tool-calling loop.

    States: ``INIT -> REQUESTING -> (TOOL_EXECUTION)* -> COMPLETE | MAX_TURNS | ERROR``.
    Callers tell the outcomes apart with ``(state.completed, state.error)``:

    * ``(True, None)``   the model answered without tool calls
    * ``(False, None)``  the turn budget ran out
    * ``(False, str)``   an AI round-trip failed
    """

    def __init__(self, request_builder: RequestBuilder, executor: ToolExecutor) -> None:
        self._request_builder = request_builder
        self._executor = executor

    def execute(
        self,
        initial_messages: Sequence[Message | Mapping[str, Any]],
        tool_definitions: Sequence[ToolDefinition | Mapping[str, Any]],
        provider: str,
        model: str | None,
        agent_type: str,
        context: InvocationContext | Mapping[str, Any] | None = None,
        max_turns: int = DEFAULT_MAX_TURNS,
    ) -> ConversationState:
        """Run the loop until the model stops calling tools, a request fails or turns run out."""
        invocation = _as_context(context)
        tools = normalize_tools(tool_definitions)
        state = ConversationState(
            messages=[m if isinstance(m, Message) else Message.model_validate(m) for m in initial_messages],
            data=list(invocation.data),
        )

        while not state.completed and state.turn_count < max_turns:
            logger.debug(
                "Turn %d: sending %d messages to %s (ref=%s)",
                state.turn_count + 1,
                len(state.messages),
                provider,
                invocation.invocation_ref,
            )
            response = self._request_builder.build(
                state.messages, provider, model, tools, agent_type, invocation
            )
            state.turn_count += 1

            if not response.success:
                state.error = response.error or "Unknown error"
                state.completed = False
                logger.error(
                    "AI request failed on turn %d (provider=%s): %s",
                    state.turn_count,
                    response.provider or provider,
                    state.error,
                )
                break

            if response.content:
                state.messages.append(build_message("assistant", response.content))
                state.final_content = response.content
                state.data.insert(0, _response_packet(response, state.turn_count, invocation))

            if not response.tool_calls:
                state.completed = True
                break

            state.last_tool_calls = list(response.tool_calls)
            logger.info(
                "Turn %d: model requested %d tool call(s): %s",
                state.turn_count,
                len(response.tool_calls),
                [call.name for call in response.tool_calls],
            )
            for call in response.tool_calls:
                self._run_tool_call(call, state, tools, response, invocation)

        if not state.completed and state.error is None:
            logger.warning(
                "Conversation hit max turns limit (max_turns=%d, ref=%s)",
                max_turns,
                invocation.invocation_ref,
            )
        return state

    def _run_tool_call(
        self,
        call: ToolCall,
        state: ConversationState,
        tools: Sequence[ToolDefinition],
        response: AIResponse,
        invocation: InvocationContext,
    ) -> None:
        if not call.name:
            logger.warning("Turn %d: tool call missing name, skipped", state.turn_count)
            return

        validation = validate_tool_call(call.name, call.parameters, state.messages)
        if validation.is_duplicate:
            state.messages.append(generate_duplicate_correction_message(call.name))
            logger.info(
                "Duplicate tool call '%s' prevented on turn %d (previous call on turn %s)",
                call.name,
                state.turn_count,
                validation.previous_turn,
            )
            return

        tool = next((t for t in tools if t.name == call.name), None)
        result = self._executor.execute_tool(
            call.name,
            call.parameters,
            tools,
            state.data,
            invocation.invocation_ref,
            invocation.unified(),
            invocation.engine(),
        )
        is_handler_tool = tool is not None and tool.is_handler_tool

        state.messages.append(format_tool_call_message(call.name, call.parameters, state.turn_count))
        state.messages.append(
            format_tool_result_message(
                call.name, result, call.parameters, is_handler_tool, state.turn_count
            )
        )
        state.data.insert(0, _tool_packet(call, tool, result, state.turn_count, response, invocation))
        logger.debug(
            "Tool '%s' finished on turn %d (success=%s)", call.name, state.turn_count, result.success
        )
