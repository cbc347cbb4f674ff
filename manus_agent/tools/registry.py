"""Tool registry, base tool class and tool-call value types."""

import math
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, model_validator

from manus_agent.exceptions import ToolExecutionError, ToolNotFoundError
from manus_agent.logging import get_logger

log = get_logger(__name__)

_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}
_FALSE_STRINGS = {"false", "0", "no", "n", "off"}


def _new_call_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ToolCall:
    """A request to run one tool, synthesized from an assistant reply."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_call_id)


class ToolResult(BaseModel):
    """Result from tool execution."""

    tool_call_id: str = ""
    success: bool = True
    content: str = ""
    error: str | None = None

    @model_validator(mode="after")
    def _normalize_failure_error(self) -> "ToolResult":
        """Ensure failed results always provide an error message."""
        if not self.success and not (self.error or "").strip():
            fallback = (self.content or "").strip()
            self.error = fallback or "Tool execution failed"
        return self


class ToolArguments:
    """Read-only view over loosely typed tool arguments.

    Every accessor coerces permissively and falls back to the supplied
    default when the value is missing or cannot be converted; none of
    them raise.
    """

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._values: dict[str, Any] = dict(values or {})

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __repr__(self) -> str:
        return f"ToolArguments({self._values!r})"

    def raw(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def get_str(self, key: str, default: str = "") -> str:
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value
        if isinstance(value, (bool, int, float)):
            return str(value)
        return default

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._values.get(key)
        if value is None or isinstance(value, bool):
            return default
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if math.isfinite(value) and value.is_integer() else default
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return default
        return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self._values.get(key)
        if value is None or isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                return default
        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value != 0
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        return default


class Tool(ABC):
    """Base class for all tools."""

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {}

    @abstractmethod
    async def execute(self, args: ToolArguments) -> str:
        """Execute the tool.

        Args:
            args: Tool-specific arguments

        Returns:
            Human-readable result text

        Raises:
            ToolExecutionError if the underlying operation fails
        """
        pass

    def get_definition(self) -> dict[str, Any]:
        """Get the tool definition (name, description, JSON schema)."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    async def close(self) -> None:
        """Release resources held by the tool."""
        return None


class ToolRegistry:
    """Registry for managing available tools."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool, replacing any tool with the same name."""
        if not tool.name:
            raise ValueError("Tool must have a name")

        log.debug("Registering tool", tool=tool.name)
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> Tool:
        """Get a tool by exact name.

        Raises:
            ToolNotFoundError if not found
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        return self._tools[name]

    def list_tools(self) -> list[str]:
        return list(self._tools)

    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def get_definitions(self) -> list[dict[str, Any]]:
        return [tool.get_definition() for tool in self._tools.values()]

    async def close(self) -> None:
        for tool in self._tools.values():
            await tool.close()

    async def execute(self, call: ToolCall) -> ToolResult:
        """Execute a tool call; failures come back as unsuccessful results."""
        try:
            tool = self.get(call.name)
        except ToolNotFoundError:
            log.warning("Unknown tool requested", tool=call.name, tool_call_id=call.id)
            return ToolResult(
                tool_call_id=call.id,
                success=False,
                content=f"Unknown tool: {call.name}",
                error="Tool not found",
            )

        log.info("Executing tool", tool=call.name, args=call.arguments, tool_call_id=call.id)
        try:
            content = await tool.execute(ToolArguments(call.arguments))
        except ToolExecutionError as e:
            return self._failed(call, e.reason)
        except Exception as e:
            return self._failed(call, str(e))

        log.info("Tool executed", tool=call.name, success=True)
        return ToolResult(tool_call_id=call.id, success=True, content=content)

    @staticmethod
    def _failed(call: ToolCall, message: str) -> ToolResult:
        log.error("Tool execution failed", tool=call.name, error=message)
        return ToolResult(
            tool_call_id=call.id,
            success=False,
            content=f"Tool execution failed: {message}",
            error=message,
        )
