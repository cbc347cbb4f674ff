from pathlib import Path

import pytest

from manus_agent.config import Config
from manus_agent.exceptions import ToolExecutionError, ToolNotFoundError
from manus_agent.tools import create_tool_registry
from manus_agent.tools.registry import Tool, ToolArguments, ToolCall, ToolRegistry
from manus_agent.workspace import Workspace


class EchoTool(Tool):
    name = "echo"
    description = "Echo the text argument"
    parameters = {"type": "object", "properties": {"text": {"type": "string"}}}

    async def execute(self, args: ToolArguments) -> str:
        return args.get_str("text")


class BrokenTool(Tool):
    name = "broken"
    description = "Always fails"

    async def execute(self, args: ToolArguments) -> str:
        raise RuntimeError("kaboom")


class FailingTool(Tool):
    name = "failing"
    description = "Fails with a tool error"

    async def execute(self, args: ToolArguments) -> str:
        raise ToolExecutionError(self.name, "disk full")


class ClosableTool(EchoTool):
    name = "closable"

    def __init__(self):
        self.closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_execute_success_returns_content():
    registry = ToolRegistry([EchoTool()])
    call = ToolCall(name="echo", arguments={"text": "hello"})

    result = await registry.execute(call)

    assert result.success is True
    assert result.content == "hello"
    assert result.tool_call_id == call.id


@pytest.mark.asyncio
async def test_unknown_tool_returns_failed_result():
    registry = ToolRegistry([EchoTool()])

    result = await registry.execute(ToolCall(name="teleport"))

    assert result.success is False
    assert result.content == "Unknown tool: teleport"
    assert result.error == "Tool not found"


@pytest.mark.asyncio
async def test_raising_tool_returns_failed_result():
    registry = ToolRegistry([BrokenTool(), FailingTool()])

    broken = await registry.execute(ToolCall(name="broken"))
    failing = await registry.execute(ToolCall(name="failing"))

    assert broken.success is False
    assert broken.content == "Tool execution failed: kaboom"
    assert broken.error == "kaboom"
    assert failing.content == "Tool execution failed: disk full"
    assert failing.error == "disk full"


def test_register_lookup_and_unregister():
    registry = ToolRegistry()
    registry.register(EchoTool())

    assert registry.has_tool("echo")
    assert registry.list_tools() == ["echo"]
    assert registry.get_definitions() == [
        {
            "name": "echo",
            "description": "Echo the text argument",
            "parameters": {"type": "object", "properties": {"text": {"type": "string"}}},
        }
    ]

    registry.unregister("echo")

    assert not registry.has_tool("echo")
    with pytest.raises(ToolNotFoundError):
        registry.get("echo")


def test_register_rejects_nameless_tool():
    class Nameless(EchoTool):
        name = ""

    with pytest.raises(ValueError):
        ToolRegistry().register(Nameless())


def test_tool_call_ids_are_unique():
    first = ToolCall(name="echo")
    second = ToolCall(name="echo")

    assert first.id != second.id


@pytest.mark.asyncio
async def test_close_closes_every_tool():
    tool = ClosableTool()
    registry = ToolRegistry([tool])

    await registry.close()

    assert tool.closed is True


@pytest.mark.asyncio
async def test_create_tool_registry_honours_enabled_list(tmp_path: Path):
    cfg = Config()
    cfg.tools.enabled = ["terminate", "file_operation", "not_a_tool"]

    registry = create_tool_registry(cfg, Workspace(tmp_path))

    assert registry.list_tools() == ["terminate", "file_operation"]
    await registry.close()


@pytest.mark.asyncio
async def test_create_tool_registry_defaults_to_all_tools(tmp_path: Path):
    cfg = Config()

    registry = create_tool_registry(cfg, Workspace(tmp_path))

    assert registry.list_tools() == ["file_operation", "python_execute", "search", "terminate"]
    await registry.close()
