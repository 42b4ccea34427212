"""
Provider gateway for contentflow.

This module is the only place that *directly* calls an LLM.  Everything else (conversation loop,
tools, directives) stays model-agnostic and talks to :class:`ProviderGateway`.

We support two back-ends out of the box:

1. **OpenAI** via the ``openai`` SDK.
2. **Anthropic** via the ``anthropic`` SDK.

Additional providers can be added by subclassing :class:`BaseProvider` and registering via
:func:`register_provider`.
"""

import json
import logging
import threading
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Protocol,
    Type,
)

from contentflow.config import settings
from contentflow.core.errors import RequestFailure
from contentflow.core.schema import (
    AIRequest,
    AIResponse,
    ToolCall,
)

logger = logging.getLogger(__name__)


class ProviderGateway(Protocol):
    """Anything that can deliver an :class:`AIRequest` to a named provider."""

    def send(self, request: AIRequest, provider: str) -> AIResponse | Mapping[str, Any]:
        ...


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PROVIDER_REGISTRY: dict[str, Type["BaseProvider"]] = {}


def register_provider(name: str) -> Callable:
    """Decorator to register a provider class under *name*."""

    def wrapper(cls: Type["BaseProvider"]) -> Type["BaseProvider"]:
        _PROVIDER_REGISTRY[name] = cls
        return cls

    return wrapper


def load_provider(name: str | None = None) -> "BaseProvider":
    """
    Factory that returns an instantiated provider.

    Fallback order:
    1. *name* arg
    2. ``settings.PROVIDER`` env option
    3. default: ``"openai"``
    """

    target = name or getattr(settings, "PROVIDER", "openai")
    cls = _PROVIDER_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Provider '{target}' is not registered.")
    return cls()


class ProviderRegistryGateway:
    """Gateway that dispatches each request to the registered provider of that name."""

    def __init__(self) -> None:
        self._instances: Dict[str, BaseProvider] = {}
        self._lock = threading.Lock()

    def _provider(self, name: str) -> "BaseProvider":
        key = name.lower()
        with self._lock:
            if key not in self._instances:
                try:
                    self._instances[key] = load_provider(key)
                except ValueError as exc:
                    raise RequestFailure(str(exc), name) from exc
            return self._instances[key]

    def send(self, request: AIRequest, provider: str) -> AIResponse:
        """
        Deliver *request* to the provider registered as *provider*.

        Raises:
            RequestFailure: If the provider is unknown or its API call fails.
        """
        return self._provider(provider).send(request)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseProvider(ABC):
    """Abstract provider that sends one request and returns the canonical response."""

    name: str = ""

    @abstractmethod
    def send(self, request: AIRequest) -> AIResponse:
        """Deliver *request* and translate the reply."""

    def _failure(self, error: str, exc: Exception) -> RequestFailure:
        logger.error("%s provider error: %s", self.name, exc)
        return RequestFailure(error, self.name)


def _parse_arguments(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Failed to parse tool arguments: %s", raw)
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


# ---------------------------------------------------------------------------
# Concrete providers
# ---------------------------------------------------------------------------
@register_provider("openai")
class OpenAIProvider(BaseProvider):
    """OpenAI chat completions with function calling."""

    name = "openai"

    def send(self, request: AIRequest) -> AIResponse:
        import openai  # pylint: disable=import-outside-toplevel

        model = request.model or settings.OPENAI_MODEL
        client = openai.OpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.REQUEST_TIMEOUT)
        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": [m.model_dump() for m in request.messages],
        }
        if request.tools:
            kwargs["tools"] = [{"type": "function", "function": tool} for tool in request.tools]

        try:
            resp = client.chat.completions.create(**kwargs)
        except Exception as e:  # pylint: disable=broad-except
            raise self._failure(f"Error calling OpenAI: {str(e)}", e) from e

        message = resp.choices[0].message
        tool_calls = [
            ToolCall(name=call.function.name, parameters=_parse_arguments(call.function.arguments))
            for call in (message.tool_calls or [])
        ]
        logger.debug("OpenAI response: content=%r tool_calls=%d", message.content, len(tool_calls))
        return AIResponse(
            success=True,
            content=message.content or "",
            tool_calls=tool_calls,
            provider=self.name,
            model=resp.model or model,
        )


@register_provider("anthropic")
class AnthropicProvider(BaseProvider):
    """Anthropic Claude messages API with tool use."""

    name = "anthropic"

    def send(self, request: AIRequest) -> AIResponse:
        import anthropic  # pylint: disable=import-outside-toplevel

        model = request.model or settings.ANTHROPIC_MODEL
        client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY, timeout=settings.REQUEST_TIMEOUT)

        # Anthropic takes system prompts out-of-band.
        system_prompt = "\n\n".join(m.content for m in request.messages if m.role == "system")
        messages = [m.model_dump() for m in request.messages if m.role != "system"]
        kwargs: Dict[str, Any] = {"model": model, "max_tokens": 8192, "messages": messages}
        if system_prompt:
            kwargs["system"] = system_prompt
        if request.tools:
            kwargs["tools"] = [
                {
                    "name": tool["name"],
                    "description": tool.get("description", ""),
                    "input_schema": tool.get("parameters") or {"type": "object", "properties": {}},
                }
                for tool in request.tools
            ]

        try:
            response = client.messages.create(**kwargs)
        except Exception as e:  # pylint: disable=broad-except
            raise self._failure(f"Error calling Anthropic: {str(e)}", e) from e

        text_parts: List[str] = []
        tool_calls: List[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(name=block.name, parameters=_parse_arguments(block.input)))

        logger.debug("Anthropic response: blocks=%d tool_calls=%d", len(response.content), len(tool_calls))
        return AIResponse(
            success=True,
            content="\n".join(text_parts),
            tool_calls=tool_calls,
            provider=self.name,
            model=response.model or model,
        )
