"""
Directive chain: ordered transformations applied to every outgoing AI request.

Directives are registered once while the engine is assembled, then the chain is frozen and only
read.  Priority bands, lowest first:

* 10-19  identity
* 20-29  global behaviour
* 30-39  scenario-specific instructions
* 40-49  reference / context material
* 50+    environment metadata
"""

import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Callable,
    Iterable,
    List,
    Protocol,
    Sequence,
)

from contentflow.core.errors import DirectiveRegistryError
from contentflow.core.schema import (
    AGENT_TYPE_ALL,
    AIRequest,
    InvocationContext,
    ToolDefinition,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectiveContext:
    """Read-only view of the current request's surroundings."""

    provider: str
    tools: Sequence[ToolDefinition]
    agent_type: str
    invocation: InvocationContext = field(default_factory=InvocationContext)


class Directive(Protocol):
    """A pure request transformation."""

    priority: int
    agent_types: frozenset[str]

    def inject(self, request: AIRequest, ctx: DirectiveContext) -> AIRequest:
        ...


@dataclass(frozen=True)
class FunctionDirective:
    """Adapts a plain ``inject(request, ctx)`` function to :class:`Directive`."""

    priority: int
    agent_types: frozenset[str]
    inject_fn: Callable[[AIRequest, DirectiveContext], AIRequest]

    def inject(self, request: AIRequest, ctx: DirectiveContext) -> AIRequest:
        return self.inject_fn(request, ctx)


class DirectiveChain:
    """Registry of directives, applied in ascending priority order."""

    def __init__(self, directives: Iterable[Directive] = ()) -> None:
        self._directives: List[Directive] = []
        self._frozen = False
        for directive in directives:
            self.register(directive)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._directives)

    def register(self, directive: Directive) -> Directive:
        """Add *directive* to the chain; not allowed once frozen."""
        if self._frozen:
            raise DirectiveRegistryError(
                f"Cannot register {type(directive).__name__}: directive chain is frozen."
            )
        self._directives.append(directive)
        logger.debug(
            "Registered directive %s (priority=%d, agents=%s)",
            type(directive).__name__,
            directive.priority,
            sorted(directive.agent_types),
        )
        return directive

    def add_directive(
        self,
        priority: int,
        agent_types: Iterable[str],
        inject_fn: Callable[[AIRequest, DirectiveContext], AIRequest],
    ) -> Directive:
        """Register a function as a directive."""
        return self.register(FunctionDirective(priority, frozenset(agent_types), inject_fn))

    def freeze(self) -> "DirectiveChain":
        self._frozen = True
        return self

    def applicable(self, agent_type: str) -> List[Directive]:
        """Directives targeting *agent_type* (or ``"all"``), sorted by priority."""
        matching = [
            d for d in self._directives if AGENT_TYPE_ALL in d.agent_types or agent_type in d.agent_types
        ]
        # sorted() is stable: equal priorities keep registration order.
        return sorted(matching, key=lambda d: d.priority)

    def apply(
        self,
        request: AIRequest,
        provider: str,
        tools: Sequence[ToolDefinition],
        agent_type: str,
        context: InvocationContext | None = None,
    ) -> AIRequest:
        """Fold every applicable directive over *request*."""
        ctx = DirectiveContext(
            provider=provider,
            tools=tuple(tools),
            agent_type=agent_type,
            invocation=context or InvocationContext(),
        )
        for directive in self.applicable(agent_type):
            request = directive.inject(request, ctx)
        return request
