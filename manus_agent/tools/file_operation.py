"""File operation tool backed by the workspace."""

from manus_agent.exceptions import ToolExecutionError
from manus_agent.logging import get_logger
from manus_agent.tools.registry import Tool, ToolArguments
from manus_agent.workspace import Workspace

log = get_logger(__name__)

SUPPORTED_OPERATIONS = ("read", "write", "list", "exists")


class FileOperationTool(Tool):
    """Read, write, list and check files in the workspace."""

    name = "file_operation"
    description = "Read, write, and manage files in the workspace"
    parameters = {
        "type": "object",
        "properties": {
            "operation": {
                "type": "string",
                "enum": list(SUPPORTED_OPERATIONS),
                "description": "The file operation to perform",
            },
            "file_path": {
                "type": "string",
                "description": "Path to the file",
            },
            "content": {
                "type": "string",
                "description": "Content to write (for write operation)",
            },
            "directory": {
                "type": "string",
                "description": "Directory to list (for list operation)",
            },
        },
        "required": ["operation"],
    }

    def __init__(self, workspace: Workspace):
        self.workspace = workspace

    async def execute(self, args: ToolArguments) -> str:
        operation = args.get_str("operation")
        file_path = args.get_str("file_path")

        op = operation.strip().lower()
        try:
            if op == "read":
                content = await self.workspace.read(file_path)
                return f"File content:\n{content}"
            if op == "write":
                await self.workspace.write(file_path, args.get_str("content"))
                return f"Successfully wrote to file: {file_path}"
            if op == "list":
                directory = args.get_str("directory")
                entries = await self.workspace.list(directory)
                lines = [f"{'[DIR]' if e.is_directory else '[FILE]'} {e.name}" for e in entries]
                return f"Files in {directory or '/'}:\n" + "\n".join(lines)
            if op == "exists":
                exists = await self.workspace.exists(file_path)
                return f"File {file_path} exists: {exists}"
        except OSError as e:
            log.error("File operation failed", operation=operation, path=file_path, error=str(e))
            raise ToolExecutionError(self.name, f"Error executing file operation: {e}") from e

        return (
            f"Unknown operation: {operation}. "
            f"Supported operations: {', '.join(SUPPORTED_OPERATIONS)}"
        )
