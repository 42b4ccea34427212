"""Assembles the conversation engine from settings."""

import logging
from dataclasses import dataclass

from contentflow.agent.conversation import ConversationLoop
from contentflow.agent.directives import DirectiveChain
from contentflow.agent.providers import (
    ProviderGateway,
    ProviderRegistryGateway,
)
from contentflow.agent.request_builder import RequestBuilder
from contentflow.agent.system_directives import register_system_directives
from contentflow.agent.tool_executor import ToolExecutor
from contentflow.config import (
    Settings,
    settings,
)
from contentflow.tools import ToolCatalog
from contentflow.tools.builtin import register_builtin_tools

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Engine:
    """The wired services; catalog and directives are shared, read-only, by every loop."""

    catalog: ToolCatalog
    directives: DirectiveChain
    executor: ToolExecutor
    request_builder: RequestBuilder
    loop: ConversationLoop


def build_engine(
    config: Settings | None = None,
    gateway: ProviderGateway | None = None,
    catalog: ToolCatalog | None = None,
) -> Engine:
    """
    Build an :class:`Engine`.

    The built-in tools are registered on a fresh catalog unless one is passed in, and the built-in
    directives are registered before the chain is frozen.
    """
    config = config or settings
    if catalog is None:
        catalog = register_builtin_tools(ToolCatalog(), config)

    directives = register_system_directives(
        DirectiveChain(),
        global_prompt=config.GLOBAL_SYSTEM_PROMPT,
        site_defaults={"site_name": config.SITE_NAME, "site_url": config.SITE_URL},
    ).freeze()

    executor = ToolExecutor(catalog)
    request_builder = RequestBuilder(gateway or ProviderRegistryGateway(), directives)
    logger.debug(
        "Engine ready: %d tools, %d directives", len(catalog.all()), len(directives)
    )
    return Engine(
        catalog=catalog,
        directives=directives,
        executor=executor,
        request_builder=request_builder,
        loop=ConversationLoop(request_builder, executor),
    )
