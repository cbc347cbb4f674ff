"""Custom exceptions for Manus Agent."""


class ManusAgentError(Exception):
    """Base exception for Manus Agent."""

    pass


class ConfigurationError(ManusAgentError):
    """Configuration-related errors."""

    pass


class LLMError(ManusAgentError):
    """LLM-related errors."""

    pass


class LLMAPIError(LLMError):
    """LLM API errors (non-success status, transport failure)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ToolError(ManusAgentError):
    """Tool execution errors."""

    pass


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name
        self.reason = message


class ToolNotFoundError(ToolError):
    """Tool not found in registry."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class SessionError(ManusAgentError):
    """Session and chat history errors."""

    pass


class LLMEmptyResponseError(LLMError):
    """The LLM answered without any usable choice."""

    pass
