"""Builds the flat parameter map a tool handler receives."""

import logging
from typing import (
    Any,
    Dict,
    Mapping,
    Sequence,
)

from contentflow.core.schema import (
    DataPacket,
    EngineParameters,
    ToolDefinition,
)

logger = logging.getLogger(__name__)


def _latest_packet(data: Any) -> DataPacket | None:
    if not isinstance(data, Sequence) or isinstance(data, (str, bytes)) or not data:
        return None
    newest = data[0]
    if isinstance(newest, DataPacket):
        return newest
    if isinstance(newest, Mapping):
        # Accept the nested {"content": {"title", "body"}} packet shape as well.
        content = newest.get("content")
        if isinstance(content, Mapping):
            return DataPacket(title=content.get("title"), body=content.get("body"))
        return DataPacket.model_validate(newest)
    return None


def build_parameters(
    ai_params: Mapping[str, Any] | None,
    unified_context: Mapping[str, Any] | None,
    tool_definition: ToolDefinition,
) -> Dict[str, Any]:
    """
    Merge invocation context, auto-extracted data and AI arguments.

    Parameters
    ----------
    ai_params:
        Arguments supplied by the model.  Applied last so they always win.
    unified_context:
        Flat invocation context; its ``data`` entry is the data context (newest packet first).
    tool_definition:
        The tool being called.  ``content``/``title`` are only extracted when its schema
        declares them; the value is ``None`` when no packet exists.

    Returns
    -------
    dict
        The complete parameter map.
    """
    params: Dict[str, Any] = dict(unified_context or {})

    if tool_definition.wants_content or tool_definition.wants_title:
        packet = _latest_packet(params.get("data"))
        if tool_definition.wants_content:
            params["content"] = packet.body if packet else None
        if tool_definition.wants_title:
            params["title"] = packet.title if packet else None

    params["tool_definition"] = tool_definition.model_dump()
    params["tool_name"] = tool_definition.name
    params["handler_config"] = dict(tool_definition.handler_config)

    params.update(ai_params or {})
    return params


def build_for_handler_tool(
    ai_params: Mapping[str, Any] | None,
    unified_context: Mapping[str, Any] | None,
    tool_definition: ToolDefinition,
    engine_parameters: EngineParameters | Mapping[str, Any] | None,
) -> Dict[str, Any]:
    """
    Same as :func:`build_parameters`, then merge engine parameters on top.

    Engine parameters (source URL, image URL, job and flow step ids) come from upstream steps and
    are never overridable by the model.  When supplied, every known key is present, possibly
    ``None``.
    """
    params = build_parameters(ai_params, unified_context, tool_definition)
    if engine_parameters is None:
        return params

    if not isinstance(engine_parameters, EngineParameters):
        engine_parameters = EngineParameters.model_validate(dict(engine_parameters))
    engine = engine_parameters.model_dump()

    overridden = sorted(k for k in engine if k in (ai_params or {}))
    if overridden:
        logger.debug("Engine parameters override AI values for '%s': %s", tool_definition.name, overridden)
    params.update(engine)
    return params
