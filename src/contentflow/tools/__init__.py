"""
Tool catalog for contentflow.

The catalog holds every known :class:`ToolDefinition` together with the handler that executes it,
the set of globally enabled tools, and the settings each tool has been configured with.  It is
assembled once at startup and then handed, read-only, to the tool executor.

Handlers are registered with a decorator:

    catalog = ToolCatalog()

    @catalog.register_tool(ToolDefinition(name="echo", parameters={"text": {"required": True}}))
    def echo(params):
        return {"success": True, "data": params["text"]}

A handler is any callable taking the parameter map, or an object with an ``execute`` method.
"""

import logging
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Union,
)

from contentflow.core.schema import ToolDefinition

logger = logging.getLogger(__name__)


class ToolHandler(Protocol):
    """The capability behind a tool: ``execute(parameters) -> {success, data?, error?}``."""

    def execute(self, parameters: Dict[str, Any]) -> Any:
        ...


HandlerLike = Union[ToolHandler, Callable[[Dict[str, Any]], Any]]


class ToolCatalog:
    """Registry of tool definitions, handlers, enablement and configuration."""

    def __init__(self) -> None:
        self._definitions: Dict[str, ToolDefinition] = {}
        self._handlers: Dict[str, HandlerLike] = {}
        self._enabled: set[str] = set()
        self._configuration: Dict[str, Dict[str, Any]] = {}

    # -- registration -----------------------------------------------------
    def register_tool(
        self, definition: ToolDefinition | Mapping[str, Any], *, enabled: bool = True
    ) -> Callable[[HandlerLike], HandlerLike]:
        """
        Register a tool definition and return a decorator for its handler.

        Parameters
        ----------
        definition:
            The tool definition (or a mapping that normalizes into one).
        enabled:
            Whether the tool starts out globally enabled.

        Raises
        ------
        ValueError
            If a tool with the same name is already registered.
        """
        tool = ToolDefinition.normalize(definition)
        if tool.name in self._definitions:
            raise ValueError(f"Tool '{tool.name}' is already registered.")
        logger.debug("Registering tool '%s' (handler_ref=%s)", tool.name, tool.handler_ref)
        self._definitions[tool.name] = tool
        if enabled:
            self._enabled.add(tool.name)

        def wrapper(handler: HandlerLike) -> HandlerLike:
            self.register_handler(tool.handler_ref, handler)
            return handler

        return wrapper

    def register_handler(self, handler_ref: str, handler: HandlerLike) -> None:
        self._handlers[handler_ref] = handler

    def set_enabled(self, names: Iterable[str]) -> None:
        """Replace the globally enabled set (opt-out: unlisted tools are disabled)."""
        self._enabled = set(names)

    def configure(self, name: str, values: Mapping[str, Any]) -> None:
        """Store runtime settings (API keys and the like) for *name*; empty values are dropped."""
        self._configuration[name] = {k: v for k, v in values.items() if v not in (None, "")}

    # -- lookup -----------------------------------------------------------
    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._definitions.get(name)

    def all(self) -> List[ToolDefinition]:
        return list(self._definitions.values())

    def handler_for(self, tool: ToolDefinition) -> Optional[HandlerLike]:
        return self._handlers.get(tool.handler_ref)

    def configuration_for(self, name: str) -> Dict[str, Any]:
        return dict(self._configuration.get(name, {}))

    def is_globally_enabled(self, name: str) -> bool:
        return name in self._enabled

    def is_configured(self, tool: ToolDefinition) -> bool:
        """Opt-out tools and tools without settings requirements always count as configured."""
        if tool.is_opt_out or not tool.requires_config:
            return True
        return bool(self._configuration.get(tool.name))
