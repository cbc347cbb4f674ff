"""Tools package for Manus Agent."""

from manus_agent.config import Config, get_config
from manus_agent.logging import get_logger
from manus_agent.tools.file_operation import FileOperationTool
from manus_agent.tools.python_execute import PythonExecuteTool
from manus_agent.tools.registry import Tool, ToolArguments, ToolCall, ToolRegistry, ToolResult
from manus_agent.tools.search import (
    BraveSearchBackend,
    SearchBackend,
    SearchTool,
    StubSearchBackend,
    create_search_backend,
)
from manus_agent.tools.terminate import TerminateTool
from manus_agent.workspace import Workspace

log = get_logger(__name__)


def create_tool_registry(config: Config | None = None, workspace: Workspace | None = None) -> ToolRegistry:
    """Build a registry holding the tools enabled in config, in config order."""
    cfg = config or get_config()
    ws = workspace or Workspace(cfg.resolved_workspace_path())
    factories = {
        "file_operation": lambda: FileOperationTool(ws),
        "python_execute": lambda: PythonExecuteTool(
            interpreter=cfg.tools.python.interpreter or None,
            timeout_ms=cfg.tools.python.timeout_ms,
            max_output_chars=cfg.tools.python.max_output_chars,
        ),
        "search": lambda: SearchTool(
            backend=create_search_backend(cfg.tools.search),
            default_max_results=cfg.tools.search.max_results,
        ),
        "terminate": TerminateTool,
    }
    registry = ToolRegistry()
    for name in cfg.tools.enabled:
        factory = factories.get(name)
        if factory is None:
            log.warning("Ignoring unknown tool in config", tool=name)
            continue
        registry.register(factory())
    return registry


__all__ = [
    "BraveSearchBackend",
    "FileOperationTool",
    "PythonExecuteTool",
    "SearchBackend",
    "SearchTool",
    "StubSearchBackend",
    "TerminateTool",
    "Tool",
    "ToolArguments",
    "ToolCall",
    "ToolRegistry",
    "ToolResult",
    "create_tool_registry",
]
