"""
Built-in directives.

Each directive adds one system message.  System messages are kept in front of the conversation in
priority order, so the identity block always comes first.
"""

import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Any,
    ClassVar,
    List,
    Mapping,
)

from contentflow.agent.directives import (
    DirectiveChain,
    DirectiveContext,
)
from contentflow.core.schema import (
    AGENT_TYPE_ALL,
    AGENT_TYPE_CHAT,
    AGENT_TYPE_PIPELINE,
    AIRequest,
    Message,
    ToolDefinition,
)

logger = logging.getLogger(__name__)


def with_system_message(request: AIRequest, content: str) -> AIRequest:
    """Return a copy of *request* with *content* appended after the leading system messages."""
    messages = list(request.messages)
    index = 0
    while index < len(messages) and messages[index].role == "system":
        index += 1
    messages.insert(index, Message(role="system", content=content))
    return request.model_copy(update={"messages": messages})


# ---------------------------------------------------------------------------
# Priority 10 - identity
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CoreIdentityDirective:
    """Who the agent is."""

    priority: int = 10
    agent_types: frozenset[str] = frozenset({AGENT_TYPE_ALL})

    IDENTITY: ClassVar[str] = """\
You are an AI content processing agent. Content is fetched from sources, handed to you, and \
published to destinations through tools. Call tools when they help you reach the objective, \
read their results carefully, and never repeat an identical tool call.
When the objective is complete, reply with your final answer and no tool calls."""

    def inject(self, request: AIRequest, ctx: DirectiveContext) -> AIRequest:
        return with_system_message(request, self.IDENTITY)


# ---------------------------------------------------------------------------
# Priority 20 - global behaviour
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class GlobalSystemPromptDirective:
    """Site-wide instructions configured by the administrator."""

    prompt: str = ""
    priority: int = 20
    agent_types: frozenset[str] = frozenset({AGENT_TYPE_ALL})

    def inject(self, request: AIRequest, ctx: DirectiveContext) -> AIRequest:
        if not self.prompt.strip():
            return request
        return with_system_message(request, self.prompt.strip())


# ---------------------------------------------------------------------------
# Priority 30 - scenario instructions
# ---------------------------------------------------------------------------
def build_workflow_visualization(workflow: List[Mapping[str, Any]], current_step_id: str | None) -> str:
    """
    Render the flow's steps in execution order.

    >>> build_workflow_visualization(
    ...     [{"step_type": "fetch", "label": "Reddit"}, {"step_type": "ai", "pipeline_step_id": "a"},
    ...      {"step_type": "publish", "label": "WordPress"}], "a")
    'REDDIT FETCH → AI (YOU ARE HERE) → WORDPRESS PUBLISH'
    """
    ordered = sorted(
        (step for step in workflow if step.get("execution_order", 0) >= 0),
        key=lambda step: step.get("execution_order", 0),
    )
    parts: List[str] = []
    for step in ordered:
        step_type = str(step.get("step_type", "")).upper()
        if step_type == "AI":
            is_current = current_step_id is not None and step.get("pipeline_step_id") == current_step_id
            parts.append("AI (YOU ARE HERE)" if is_current else "AI")
        elif step.get("label"):
            parts.append(f"{str(step['label']).upper()} {step_type}")
        else:
            parts.append(step_type)
    return " → ".join(parts)


@dataclass(frozen=True)
class PipelineSystemPromptDirective:
    """Workflow position and the user's pipeline goals."""

    priority: int = 30
    agent_types: frozenset[str] = frozenset({AGENT_TYPE_PIPELINE})

    def inject(self, request: AIRequest, ctx: DirectiveContext) -> AIRequest:
        invocation = ctx.invocation
        system_prompt = invocation.system_prompt.strip()
        if not system_prompt:
            return request

        content = ""
        workflow = build_workflow_visualization(invocation.workflow, invocation.pipeline_step_id)
        if workflow:
            content += f"WORKFLOW: {workflow}\n\n"
        content += f"PIPELINE GOALS:\n{system_prompt}"

        logger.debug(
            "Injected pipeline system prompt (step=%s, prompt_length=%d, workflow=%s)",
            invocation.pipeline_step_id,
            len(system_prompt),
            workflow,
        )
        return with_system_message(request, content)


@dataclass(frozen=True)
class ChatAgentDirective:
    """Instructions for the interactive chat agent."""

    priority: int = 30
    agent_types: frozenset[str] = frozenset({AGENT_TYPE_CHAT})

    INSTRUCTIONS: ClassVar[str] = """\
You are talking with a site administrator. Answer questions about their content workflows and \
use tools to look things up or act on their behalf. Ask before taking an action that publishes \
content, and summarise what each tool call did in plain language."""

    def inject(self, request: AIRequest, ctx: DirectiveContext) -> AIRequest:
        content = self.INSTRUCTIONS
        if ctx.invocation.system_prompt.strip():
            content += f"\n\n{ctx.invocation.system_prompt.strip()}"
        return with_system_message(request, content)


# ---------------------------------------------------------------------------
# Priority 40 - reference material
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ToolDefinitionsDirective:
    """Explains the available tools, per-handler guidance and the data format."""

    priority: int = 40
    agent_types: frozenset[str] = frozenset({AGENT_TYPE_PIPELINE})

    def inject(self, request: AIRequest, ctx: DirectiveContext) -> AIRequest:
        if not ctx.tools:
            return request
        return with_system_message(request, self.render(ctx))

    def render(self, ctx: DirectiveContext) -> str:
        handler_tools: List[ToolDefinition] = [t for t in ctx.tools if t.is_handler_tool]
        general_tools: List[ToolDefinition] = [t for t in ctx.tools if not t.is_handler_tool]
        lines: List[str] = []

        if handler_tools:
            slugs = list(dict.fromkeys(t.handler_slug for t in handler_tools if t.handler_slug))
            lines.append("AVAILABLE TOOLS:")
            lines.append(f"Your primary tool for this task: {', '.join(slugs)}")
            lines.append("Complete your pipeline objective using these handler tools as needed.")
            lines.append("")
            for slug in slugs:
                guidance = ctx.invocation.handler_directives.get(slug)
                if guidance:
                    lines.append(f"HANDLER-SPECIFIC GUIDANCE FOR {slug.upper()}:")
                    lines.append(guidance.strip())
                    lines.append("")
            for tool in handler_tools:
                lines.append(f"- {tool.name}: {tool.description}")
            lines.append("")

        if general_tools:
            lines.append("GENERAL TOOLS:")
            for tool in general_tools:
                lines.append(f"- {tool.name}: {tool.description}")
            lines.append("")

        lines.append("DATA FORMAT:")
        lines.append("- JSON data_packets contain structured workflow data from previous steps")
        lines.append("- Tool execution results appear as new messages in subsequent turns")
        lines.append("- content and title parameters default to the most recent data packet")
        lines.append("")
        lines.append("TASK COMPLETION:")
        lines.append("- Use the handler tools to complete the pipeline objective")
        lines.append("- Reply without tool calls once the objective is accomplished")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Priority 50 - environment metadata
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SiteContextDirective:
    """Site name, URL and any other metadata supplied for the invocation."""

    defaults: Mapping[str, Any] = field(default_factory=dict)
    priority: int = 50
    agent_types: frozenset[str] = frozenset({AGENT_TYPE_ALL})

    def inject(self, request: AIRequest, ctx: DirectiveContext) -> AIRequest:
        site = {k: v for k, v in {**self.defaults, **ctx.invocation.site}.items() if v not in (None, "")}
        if not site:
            return request
        lines = ["SITE CONTEXT:"]
        lines.extend(f"- {key}: {value}" for key, value in sorted(site.items()))
        return with_system_message(request, "\n".join(lines))


def register_system_directives(
    chain: DirectiveChain,
    global_prompt: str = "",
    site_defaults: Mapping[str, Any] | None = None,
) -> DirectiveChain:
    """Register the built-in directive set on *chain*."""
    chain.register(CoreIdentityDirective())
    chain.register(GlobalSystemPromptDirective(prompt=global_prompt))
    chain.register(PipelineSystemPromptDirective())
    chain.register(ChatAgentDirective())
    chain.register(ToolDefinitionsDirective())
    chain.register(SiteContextDirective(defaults=dict(site_defaults or {})))
    return chain
