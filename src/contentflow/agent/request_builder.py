"""Single path by which a request reaches a provider."""

import json
import logging
from typing import (
    Any,
    List,
    Mapping,
    Sequence,
)

from pydantic import ValidationError

from contentflow.agent.directives import DirectiveChain
from contentflow.agent.providers import ProviderGateway
from contentflow.core.errors import RequestFailure
from contentflow.core.schema import (
    AIRequest,
    AIResponse,
    InvocationContext,
    Message,
    ToolCall,
    ToolDefinition,
)

logger = logging.getLogger(__name__)

_CONTENT_KEYS = ("content", "text", "message")
_TOOL_CALL_KEYS = ("tool_calls", "toolCalls")
_ARGUMENT_KEYS = ("parameters", "arguments", "args", "input")


def normalize_tools(raw_tools: Sequence[ToolDefinition | Mapping[str, Any]]) -> List[ToolDefinition]:
    """Coerce every raw tool into a :class:`ToolDefinition`, dropping invalid entries."""
    tools: List[ToolDefinition] = []
    for raw in raw_tools:
        try:
            tools.append(ToolDefinition.normalize(raw))
        except ValidationError as exc:
            logger.error("Skipping invalid tool definition %r: %s", raw, exc)
    return tools


def _normalize_tool_call(raw: Any) -> ToolCall:
    if isinstance(raw, ToolCall):
        return raw
    if not isinstance(raw, Mapping):
        return ToolCall()
    source: Mapping[str, Any] = raw
    # OpenAI style: {"function": {"name": ..., "arguments": "..."}}
    if isinstance(raw.get("function"), Mapping):
        source = raw["function"]
    arguments: Any = {}
    for key in _ARGUMENT_KEYS:
        if key in source:
            arguments = source[key]
            break
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError:
            logger.error("Tool call '%s' carried malformed JSON arguments", source.get("name"))
            arguments = {}
    if not isinstance(arguments, Mapping):
        arguments = {}
    return ToolCall(name=str(source.get("name") or ""), parameters=dict(arguments))


def normalize_response(raw: Any, provider: str, model: str | None) -> AIResponse:
    """Map a gateway reply, whatever its field names, to :class:`AIResponse`."""
    if isinstance(raw, AIResponse):
        return raw
    if not isinstance(raw, Mapping):
        return AIResponse(
            success=False, provider=provider, model=model or "", error="Provider returned no response"
        )

    payload: Mapping[str, Any] = raw.get("data") if isinstance(raw.get("data"), Mapping) else raw
    success = bool(raw.get("success", True))

    content = ""
    for key in _CONTENT_KEYS:
        if isinstance(payload.get(key), str):
            content = payload[key]
            break

    raw_calls: Sequence[Any] = []
    for key in _TOOL_CALL_KEYS:
        if payload.get(key):
            raw_calls = payload[key]
            break

    return AIResponse(
        success=success,
        content=content,
        tool_calls=[_normalize_tool_call(call) for call in raw_calls],
        provider=str(raw.get("provider") or provider),
        model=str(payload.get("model") or raw.get("model") or model or ""),
        error=None if success else str(raw.get("error") or "Unknown error"),
    )


class RequestBuilder:
    """Normalizes tools, applies directives and dispatches through the gateway."""

    def __init__(self, gateway: ProviderGateway, directives: DirectiveChain) -> None:
        self._gateway = gateway
        self._directives = directives

    @property
    def directives(self) -> DirectiveChain:
        return self._directives

    def build(
        self,
        messages: Sequence[Message],
        provider: str,
        model: str | None,
        raw_tools: Sequence[ToolDefinition | Mapping[str, Any]],
        agent_type: str,
        context: InvocationContext | None = None,
    ) -> AIResponse:
        """
        Send *messages* to *provider* and return the canonical response.

        Args:
            messages: Conversation so far.
            provider: Registered provider name.
            model: Model identifier, or ``None`` for the provider default.
            raw_tools: Tool definitions, loosely typed or already normalized.
            agent_type: Selects which directives apply.
            context: Invocation context exposed to directives.

        Returns:
            The provider reply; never raises for provider failures.
        """
        tools = normalize_tools(raw_tools)
        request = AIRequest(
            model=model,
            messages=list(messages),
            tools=[tool.to_provider_schema() for tool in tools],
        )
        request = self._directives.apply(request, provider, tools, agent_type, context)

        logger.debug(
            "Dispatching request to %s (model=%s, messages=%d, tools=%d)",
            provider,
            model,
            len(request.messages),
            len(request.tools),
        )
        try:
            raw = self._gateway.send(request, provider)
        except RequestFailure as exc:
            logger.error("Request to %s failed: %s", exc.provider or provider, exc)
            return AIResponse(
                success=False, provider=exc.provider or provider, model=model or "", error=str(exc)
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Provider '%s' raised during dispatch", provider)
            return AIResponse(success=False, provider=provider, model=model or "", error=str(exc))

        try:
            return normalize_response(raw, provider, model)
        except ValidationError as exc:
            logger.error("Provider '%s' returned an unreadable response: %s", provider, exc)
            return AIResponse(success=False, provider=provider, model=model or "", error=str(exc))
