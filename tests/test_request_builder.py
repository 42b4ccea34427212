"""
Request building and response normalization.

Run with:
$ pytest -q
"""

import threading
import time

import pytest
from conftest import (
    SEARCH_TOOL,
    ScriptedGateway,
)

from contentflow.agent.directives import DirectiveChain
from contentflow.agent.providers import (
    BaseProvider,
    ProviderRegistryGateway,
    register_provider,
)
from contentflow.agent.request_builder import (
    RequestBuilder,
    normalize_response,
    normalize_tools,
)
from contentflow.agent.system_directives import with_system_message
from contentflow.core.errors import RequestFailure
from contentflow.core.schema import (
    AIRequest,
    AIResponse,
    Message,
)

MESSAGES = [Message(role="user", content="hello")]


def test_normalize_response_plain_shape() -> None:
    response = normalize_response(
        {"success": True, "content": "hi", "tool_calls": [{"name": "t", "parameters": {"a": 1}}]},
        "openai",
        "gpt",
    )

    assert response.success is True
    assert response.content == "hi"
    assert response.tool_calls[0].name == "t"
    assert response.tool_calls[0].parameters == {"a": 1}
    assert response.provider == "openai"
    assert response.model == "gpt"


def test_normalize_response_nested_data_and_aliases() -> None:
    """Nested ``data`` payloads and alternative field names are understood."""

    response = normalize_response(
        {"success": True, "data": {"text": "hello", "toolCalls": [{"name": "t", "args": {"b": 2}}]}},
        "anthropic",
        None,
    )

    assert response.content == "hello"
    assert response.tool_calls[0].parameters == {"b": 2}


def test_normalize_response_openai_function_shape() -> None:
    """OpenAI-style calls carry JSON-encoded arguments under ``function``."""

    response = normalize_response(
        {"tool_calls": [{"id": "1", "function": {"name": "search", "arguments": '{"query": "x"}'}}]},
        "openai",
        None,
    )

    assert response.tool_calls[0].name == "search"
    assert response.tool_calls[0].parameters == {"query": "x"}


def test_normalize_response_malformed_arguments() -> None:
    response = normalize_response(
        {"tool_calls": [{"name": "search", "arguments": "{not json"}]}, "openai", None
    )

    assert response.tool_calls[0].parameters == {}


def test_normalize_response_failure_and_garbage() -> None:
    failed = normalize_response({"success": False}, "openai", None)
    garbage = normalize_response(None, "openai", None)

    assert failed.success is False and failed.error == "Unknown error"
    assert garbage.success is False and garbage.error == "Provider returned no response"


def test_normalize_tools_accepts_json_schema_and_skips_invalid() -> None:
    """JSON-schema parameter blocks become typed parameters; broken entries are dropped."""

    tools = normalize_tools(
        [
            {
                "name": "google_search",
                "description": "Search the web",
                "parameters": {
                    "type": "object",
                    "properties": {"query": {"type": "string"}, "num": {"type": "integer"}},
                    "required": ["query"],
                },
            },
            {"description": "no name"},
            SEARCH_TOOL,
        ]
    )

    assert [tool.name for tool in tools] == ["google_search", "local_search"]
    assert tools[0].parameters["query"].required is True
    assert tools[0].parameters["num"].required is False
    assert tools[0].to_provider_schema()["parameters"]["required"] == ["query"]


def test_build_applies_directives_and_sends_tools() -> None:
    """Requests carry directive output and the provider tool schema."""

    chain = DirectiveChain()
    chain.add_directive(10, ["all"], lambda request, ctx: with_system_message(request, f"for {ctx.provider}"))
    gateway = ScriptedGateway({"success": True, "content": "ok"})

    response = RequestBuilder(gateway, chain.freeze()).build(MESSAGES, "openai", "gpt", [SEARCH_TOOL], "chat")

    sent = gateway.requests[0]
    assert response.content == "ok"
    assert sent.messages[0].content == "for openai"
    assert sent.tools[0]["name"] == "local_search"
    assert sent.model == "gpt"


def test_build_turns_gateway_exception_into_failure() -> None:
    gateway = ScriptedGateway(TimeoutError("timed out"))

    response = RequestBuilder(gateway, DirectiveChain()).build(MESSAGES, "openai", None, [], "chat")

    assert isinstance(response, AIResponse)
    assert response.success is False
    assert response.error == "timed out"


def test_registry_gateway_unknown_provider() -> None:
    """Unregistered providers raise RequestFailure, which the builder reports as a failed response."""

    with pytest.raises(RequestFailure, match="nope"):
        ProviderRegistryGateway().send(AIRequest(messages=MESSAGES), "nope")

    response = RequestBuilder(ProviderRegistryGateway(), DirectiveChain()).build(MESSAGES, "nope", None, [], "chat")

    assert response.success is False
    assert response.provider == "nope"
    assert "not registered" in response.error


def test_request_failure_keeps_provider_name() -> None:
    gateway = ScriptedGateway(RequestFailure("Error calling OpenAI: 401", "openai"))

    response = RequestBuilder(gateway, DirectiveChain()).build(MESSAGES, "openai", "gpt", [], "chat")

    assert response.success is False
    assert response.error == "Error calling OpenAI: 401"
    assert response.provider == "openai"


@register_provider("counting-stub")
class _CountingProvider(BaseProvider):
    name = "counting-stub"
    created = 0

    def __init__(self) -> None:
        type(self).created += 1
        time.sleep(0.01)

    def send(self, request: AIRequest) -> AIResponse:
        return AIResponse(success=True, content="ok", provider=self.name)


def test_registry_gateway_creates_each_provider_once_across_threads() -> None:
    """Concurrent loops sharing one gateway get a single provider instance."""

    gateway = ProviderRegistryGateway()
    request = AIRequest(messages=MESSAGES)
    threads = [threading.Thread(target=gateway.send, args=(request, "counting-stub")) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert _CountingProvider.created == 1
