"""
Schema definitions for the agent <-> provider <-> tool contract.

These data models serve as the contract between the AI provider gateway, the conversation loop,
and individual tool handlers.  We keep them separate from runtime logic so they can be imported
anywhere without side-effects.
"""

from typing import (
    Any,
    Dict,
    List,
    Literal,
    Mapping,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

Role = Literal["user", "assistant", "system"]

AGENT_TYPE_ALL = "all"
AGENT_TYPE_PIPELINE = "pipeline"
AGENT_TYPE_CHAT = "chat"


# ---------------------------------------------------------------------------
# Conversation messages
# ---------------------------------------------------------------------------
class Message(BaseModel):
    """A single chat message exchanged with the provider."""

    role: Role
    content: str


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------
class ToolParameter(BaseModel):
    """Information about a tool parameter."""

    type: str = "string"
    required: bool = False
    description: str = ""


class ToolDefinition(BaseModel):
    """
    A tool the model may call.

    A tool with a ``handler_slug`` is a *handler tool*: it performs a side-effecting action on
    an external system (publishing a post, updating a sheet).  Tools without one are read-only
    query tools.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique tool name exposed to the model")
    description: str = ""
    parameters: Dict[str, ToolParameter] = Field(default_factory=dict)
    handler_ref: str = Field("", description="Catalog key of the handler that executes the tool")
    handler_slug: Optional[str] = Field(None, description="Destination handler this tool drives")
    handler_config: Dict[str, Any] = Field(default_factory=dict)
    requires_config: bool = False
    is_opt_out: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_json_schema(cls, data: Any) -> Any:
        """Accept ``{"type": "object", "properties": ..., "required": [...]}`` parameter blocks."""
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        params = data.get("parameters")
        if isinstance(params, Mapping) and isinstance(params.get("properties"), Mapping):
            required = set(params.get("required") or [])
            data["parameters"] = {
                name: {
                    "type": str(spec.get("type", "string")),
                    "required": name in required or bool(spec.get("required", False)),
                    "description": str(spec.get("description", "")),
                }
                for name, spec in params["properties"].items()
            }
        if "handler" in data and "handler_slug" not in data:
            data["handler_slug"] = data.pop("handler")
        if not data.get("handler_ref"):
            data["handler_ref"] = data.get("name", "")
        return data

    @classmethod
    def normalize(cls, raw: "ToolDefinition | Mapping[str, Any]") -> "ToolDefinition":
        """Coerce a loosely-typed tool mapping into a definition."""
        if isinstance(raw, ToolDefinition):
            return raw
        return cls.model_validate(raw)

    @property
    def is_handler_tool(self) -> bool:
        return self.handler_slug is not None

    @property
    def wants_content(self) -> bool:
        return "content" in self.parameters

    @property
    def wants_title(self) -> bool:
        return "title" in self.parameters

    def missing_required(self, params: Mapping[str, Any]) -> List[str]:
        """Return the required parameter names absent (or ``None``) in *params*."""
        return [
            name
            for name, info in self.parameters.items()
            if info.required and params.get(name) is None
        ]

    def to_provider_schema(self) -> Dict[str, Any]:
        """Uniform JSON-schema shape handed to every provider."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": {
                    name: {"type": info.type, "description": info.description}
                    for name, info in self.parameters.items()
                },
                "required": [name for name, info in self.parameters.items() if info.required],
            },
        }


class ToolCall(BaseModel):
    """A call that the model wants the agent to execute."""

    name: str = Field("", description="Registered tool name")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Arguments for the tool")


class ToolResult(BaseModel):
    """Outcome of a tool handler."""

    success: bool
    data: Any = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Provider request / response
# ---------------------------------------------------------------------------
class AIRequest(BaseModel):
    """Provider-agnostic request."""

    model: Optional[str] = None
    messages: List[Message] = Field(default_factory=list)
    tools: List[Dict[str, Any]] = Field(default_factory=list)


class AIResponse(BaseModel):
    """Provider-agnostic response."""

    success: bool
    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    provider: str = ""
    model: str = ""
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Pipeline data and invocation context
# ---------------------------------------------------------------------------
class DataPacket(BaseModel):
    """One entry of the data context; the list is kept newest first."""

    type: str = "fetch"
    title: Optional[str] = None
    body: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class EngineParameters(BaseModel):
    """Values threaded from upstream steps into handler tools."""

    model_config = ConfigDict(extra="allow")

    source_url: Optional[str] = None
    image_url: Optional[str] = None
    job_id: Optional[str] = None
    flow_step_id: Optional[str] = None


class InvocationContext(BaseModel):
    """Opaque per-invocation inputs; unknown keys are kept and forwarded to tools."""

    model_config = ConfigDict(extra="allow")

    job_id: Optional[str] = None
    flow_step_id: Optional[str] = None
    pipeline_step_id: Optional[str] = None
    session_id: Optional[str] = None
    data: List[DataPacket] = Field(default_factory=list)
    engine_parameters: Optional[EngineParameters] = None
    handler_slugs: List[str] = Field(default_factory=list)
    handler_directives: Dict[str, str] = Field(default_factory=dict)
    enabled_tools: Optional[List[str]] = None
    system_prompt: str = ""
    workflow: List[Dict[str, Any]] = Field(default_factory=list)
    site: Dict[str, Any] = Field(default_factory=dict)

    @property
    def invocation_ref(self) -> str:
        return self.flow_step_id or self.session_id or ""

    def engine(self) -> Optional[EngineParameters]:
        """Engine parameters with job / flow step ids filled in from the context."""
        if self.engine_parameters is None:
            return None
        return self.engine_parameters.model_copy(
            update={
                "job_id": self.engine_parameters.job_id or self.job_id,
                "flow_step_id": self.engine_parameters.flow_step_id or self.flow_step_id,
            }
        )

    def unified(self) -> Dict[str, Any]:
        """Flat key/value view handed to tool handlers."""
        extras = dict(self.model_extra or {})
        return {
            **extras,
            "data": [packet.model_dump() for packet in self.data],
            "job_id": self.job_id,
            "flow_step_id": self.flow_step_id,
        }


# ---------------------------------------------------------------------------
# Loop state
# ---------------------------------------------------------------------------
class ConversationState(BaseModel):
    """Result of one conversation loop execution."""

    messages: List[Message] = Field(default_factory=list)
    turn_count: int = Field(0, ge=0)
    completed: bool = False
    last_tool_calls: List[ToolCall] = Field(default_factory=list)
    final_content: str = ""
    error: Optional[str] = None
    data: List[DataPacket] = Field(default_factory=list)

    @property
    def hit_max_turns(self) -> bool:
        return not self.completed and self.error is None
