"""Shared fixtures: a scripted provider gateway and a small tool catalog."""

from typing import (
    Any,
    Dict,
    List,
)

import pytest

from contentflow.agent.conversation import ConversationLoop
from contentflow.agent.directives import DirectiveChain
from contentflow.agent.request_builder import RequestBuilder
from contentflow.agent.tool_executor import ToolExecutor
from contentflow.core.schema import (
    AIRequest,
    ToolDefinition,
)
from contentflow.tools import ToolCatalog


class ScriptedGateway:
    """Replays canned replies in order; the last one repeats once the script runs out."""

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies)
        self.requests: List[AIRequest] = []

    def send(self, request: AIRequest, provider: str) -> Any:
        self.requests.append(request)
        index = min(len(self.requests), len(self.replies)) - 1
        reply = self.replies[index]
        if isinstance(reply, Exception):
            raise reply
        return reply


class RecordingHandler:
    """Tool handler that remembers every parameter map it receives."""

    def __init__(self, result: Dict[str, Any] | None = None) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.result = result or {"success": True, "data": {"items": 3}}

    def execute(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(parameters)
        return self.result


SEARCH_TOOL = ToolDefinition(
    name="local_search",
    description="Search published posts.",
    parameters={"query": {"type": "string", "required": True}},
)

PUBLISH_TOOL = ToolDefinition(
    name="wordpress_publish",
    description="Publish a post to WordPress.",
    parameters={
        "title": {"type": "string", "required": True},
        "content": {"type": "string", "required": True},
    },
    handler_slug="wordpress_publish",
    handler_config={"post_status": "draft"},
)


@pytest.fixture
def search_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def publish_handler() -> RecordingHandler:
    return RecordingHandler({"success": True, "data": {"post_id": 42, "url": "https://example.com/?p=42"}})


@pytest.fixture
def catalog(search_handler: RecordingHandler, publish_handler: RecordingHandler) -> ToolCatalog:
    tools = ToolCatalog()
    tools.register_tool(SEARCH_TOOL)(search_handler)
    tools.register_tool(PUBLISH_TOOL)(publish_handler)
    return tools


@pytest.fixture
def executor(catalog: ToolCatalog) -> ToolExecutor:
    return ToolExecutor(catalog)


def make_loop(gateway: ScriptedGateway, executor: ToolExecutor) -> ConversationLoop:
    """Loop with an empty, frozen directive chain."""
    return ConversationLoop(RequestBuilder(gateway, DirectiveChain().freeze()), executor)
