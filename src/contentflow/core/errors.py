"""Exception hierarchy shared by the conversation engine."""


class ContentflowError(Exception):
    """Base class for every error raised by contentflow."""


class RequestFailure(ContentflowError):
    """The AI round-trip failed (provider, network or credentials)."""

    def __init__(self, message: str, provider: str = "") -> None:
        self.provider = provider
        super().__init__(message)


class ToolExecutionError(ContentflowError):
    """Raised when a requested tool cannot run or fails."""

    def __init__(self, message: str, tool_name: str = "") -> None:
        self.tool_name = tool_name
        super().__init__(message)


class ToolNotFound(ToolExecutionError):
    """The tool is not among the tools available to this invocation."""


class ToolDisabled(ToolExecutionError):
    """The tool exists but has been disabled."""


class ToolNotConfigured(ToolExecutionError):
    """The tool needs settings (API keys and the like) that are missing."""


class DirectiveRegistryError(ContentflowError):
    """Directive registration attempted after the registry was frozen."""
