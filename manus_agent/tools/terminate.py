"""Terminate tool: a conversational end-of-task signal."""

from manus_agent.tools.registry import Tool, ToolArguments


class TerminateTool(Tool):
    """Acknowledge that the current task is finished."""

    name = "terminate"
    description = "Terminate the current task execution"
    parameters = {
        "type": "object",
        "properties": {
            "reason": {
                "type": "string",
                "description": "Reason for termination",
                "default": "Task completed",
            },
        },
    }

    async def execute(self, args: ToolArguments) -> str:
        reason = args.get_str("reason", "Task completed") or "Task completed"
        return f"Task terminated: {reason}"
