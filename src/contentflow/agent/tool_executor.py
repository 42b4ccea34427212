"""Resolves available tools and runs their handlers, turning every failure into a ToolResult."""

import logging
from typing import (
    Any,
    Collection,
    Dict,
    List,
    Mapping,
    Sequence,
)

from pydantic import ValidationError

from contentflow.agent.parameters import (
    build_for_handler_tool,
    build_parameters,
)
from contentflow.core.errors import (
    ToolDisabled,
    ToolExecutionError,
    ToolNotConfigured,
    ToolNotFound,
)
from contentflow.core.schema import (
    DataPacket,
    EngineParameters,
    InvocationContext,
    ToolDefinition,
    ToolResult,
)
from contentflow.tools import ToolCatalog

logger = logging.getLogger(__name__)


def _coerce_result(name: str, raw: Any) -> ToolResult:
    if isinstance(raw, ToolResult):
        return raw
    if isinstance(raw, Mapping):
        try:
            return ToolResult.model_validate(raw)
        except ValidationError as exc:
            raise ToolExecutionError(f"Tool '{name}' returned an invalid result: {exc}", name) from exc
    raise ToolExecutionError(f"Tool '{name}' returned {type(raw).__name__}, expected a result", name)


class ToolExecutor:
    """
    Isolation boundary between tool handlers and the conversation loop.

    Nothing raised by a handler, and no lookup or configuration problem, escapes
    :meth:`execute_tool`; it always answers with a :class:`ToolResult`.
    """

    def __init__(self, catalog: ToolCatalog) -> None:
        self._catalog = catalog

    @property
    def catalog(self) -> ToolCatalog:
        return self._catalog

    def get_available_tools(
        self,
        agent_type: str,
        context_handle: InvocationContext | None = None,
        enabled_ids: Collection[str] | None = None,
    ) -> List[ToolDefinition]:
        """
        Tools the model may call in this invocation.

        General tools must be globally enabled, selected for this invocation (``enabled_ids``;
        ``None`` means no per-invocation restriction) and configured.  Handler tools are offered
        when their handler slug belongs to an adjacent step (``context_handle.handler_slugs``) and
        they are configured.
        """
        handler_slugs = set(context_handle.handler_slugs) if context_handle else set()
        available: List[ToolDefinition] = []
        for tool in self._catalog.all():
            if tool.is_handler_tool:
                allowed = tool.handler_slug in handler_slugs
            else:
                allowed = self._catalog.is_globally_enabled(tool.name) and (
                    enabled_ids is None or tool.name in enabled_ids
                )
            if allowed and self._catalog.is_configured(tool):
                available.append(tool)

        logger.debug(
            "Available tools for %s agent: %s", agent_type, [tool.name for tool in available]
        )
        return available

    def _resolve(self, name: str, available: Sequence[ToolDefinition]) -> ToolDefinition:
        tool = next((t for t in available if t.name == name), None)
        if tool is None:
            raise ToolNotFound(f"Tool '{name}' not found", name)
        if name in self._catalog and not tool.is_handler_tool and not self._catalog.is_globally_enabled(name):
            raise ToolDisabled(f"Tool '{name}' is disabled", name)
        if not self._catalog.is_configured(tool):
            raise ToolNotConfigured(f"Tool '{name}' is not configured", name)
        return tool

    def execute_tool(
        self,
        name: str,
        ai_parameters: Mapping[str, Any] | None,
        available: Sequence[ToolDefinition],
        data_context: Sequence[DataPacket],
        invocation_ref: str,
        unified_context: Mapping[str, Any] | None = None,
        engine_parameters: EngineParameters | Mapping[str, Any] | None = None,
    ) -> ToolResult:
        """
        Look up *name* among *available* and invoke its handler.

        Parameters
        ----------
        name:
            Tool name chosen by the model.
        ai_parameters:
            Arguments chosen by the model.
        available:
            Tools offered in this invocation.
        data_context:
            Current data packets, newest first.
        invocation_ref:
            Flow step or session id, used for logging.
        unified_context:
            Flat invocation context merged under the AI arguments.
        engine_parameters:
            Upstream values merged, non-overridable, into handler tool parameters.

        Returns
        -------
        ToolResult
            The handler's result, or a failed result describing what went wrong.
        """
        context: Dict[str, Any] = dict(unified_context or {})
        context["data"] = [p.model_dump() if isinstance(p, DataPacket) else p for p in data_context]

        try:
            tool = self._resolve(name, available)
            handler = self._catalog.handler_for(tool)
            if handler is None:
                raise ToolNotFound(f"No handler registered for tool '{name}'", name)

            if tool.is_handler_tool:
                params = build_for_handler_tool(ai_parameters, context, tool, engine_parameters)
            else:
                params = build_parameters(ai_parameters, context, tool)

            missing = tool.missing_required(params)
            if missing:
                raise ToolExecutionError(
                    f"Missing required parameter(s) for '{name}': {', '.join(missing)}", name
                )

            logger.debug("Executing tool '%s' (ref=%s) with args=%s", name, invocation_ref, sorted(params))
            execute = getattr(handler, "execute", handler)
            return _coerce_result(name, execute(params))
        except ToolExecutionError as exc:
            logger.warning("Tool '%s' could not run (ref=%s): %s", name, invocation_ref, exc)
            return ToolResult(success=False, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error in tool '%s' (ref=%s)", name, invocation_ref)
            return ToolResult(success=False, error=f"Tool '{name}' raised an error: {exc}")
