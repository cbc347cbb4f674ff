"""Python execution tool: run a snippet in a separate interpreter process."""

import asyncio
import os
import sys
import tempfile
from pathlib import Path

from manus_agent.config import get_config
from manus_agent.exceptions import ToolExecutionError
from manus_agent.logging import get_logger
from manus_agent.tools.registry import Tool, ToolArguments

log = get_logger(__name__)


class PythonExecuteTool(Tool):
    """Execute Python code and return its output."""

    name = "python_execute"
    description = "Execute Python code and return the output"
    parameters = {
        "type": "object",
        "properties": {
            "code": {
                "type": "string",
                "description": "Python code to execute",
            },
            "timeout": {
                "type": "integer",
                "description": "Execution timeout in milliseconds (default: 30000)",
                "default": 30000,
            },
        },
        "required": ["code"],
    }

    def __init__(
        self,
        interpreter: str | None = None,
        timeout_ms: int | None = None,
        max_output_chars: int | None = None,
    ):
        python_cfg = get_config().tools.python
        self.interpreter = interpreter or python_cfg.interpreter or sys.executable
        self.timeout_ms = int(timeout_ms or python_cfg.timeout_ms)
        self.max_output_chars = int(max_output_chars or python_cfg.max_output_chars)

    def _truncate(self, text: str) -> str:
        if len(text) > self.max_output_chars:
            return text[: self.max_output_chars] + f"\n... [truncated, {len(text)} total chars]"
        return text

    @staticmethod
    def _write_script(code: str) -> Path:
        fd, name = tempfile.mkstemp(prefix="manus_", suffix=".py")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(code)
        return Path(name)

    async def execute(self, args: ToolArguments) -> str:
        code = args.get_str("code")
        timeout_ms = args.get_int("timeout", self.timeout_ms)
        if timeout_ms <= 0:
            timeout_ms = self.timeout_ms

        if not code.strip():
            return "Error: No Python code provided"

        script: Path | None = None
        try:
            script = await asyncio.to_thread(self._write_script, code)
            log.info("Executing Python snippet", interpreter=self.interpreter, timeout_ms=timeout_ms)
            process = await asyncio.create_subprocess_exec(
                self.interpreter,
                str(script),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )

            communicate_task = asyncio.create_task(process.communicate())
            try:
                done, _ = await asyncio.wait({communicate_task}, timeout=timeout_ms / 1000)
                if communicate_task not in done:
                    process.kill()
                    await process.wait()
                    communicate_task.cancel()
                    try:
                        await communicate_task
                    except asyncio.CancelledError:
                        pass
                    log.warning("Python execution timed out", timeout_ms=timeout_ms, pid=process.pid)
                    return f"Error: Python execution timed out after {timeout_ms} ms"
                stdout, stderr = await communicate_task
            except asyncio.CancelledError:
                if process.returncode is None:
                    process.kill()
                    await process.wait()
                communicate_task.cancel()
                raise
        except OSError as e:
            log.error("Python execution failed to start", interpreter=self.interpreter, error=str(e))
            raise ToolExecutionError(self.name, f"Error executing Python code: {e}") from e
        finally:
            if script is not None:
                try:
                    script.unlink()
                except OSError:
                    pass

        output = self._truncate(stdout.decode("utf-8", errors="replace").strip())
        error = self._truncate(stderr.decode("utf-8", errors="replace").strip())

        if process.returncode != 0:
            return f"Python execution failed (exit code {process.returncode}):\n{error}"
        if error:
            return f"Python output with warnings:\n{output}\n\nWarnings:\n{error}"
        if not output:
            return "Python code executed successfully (no output)"
        return f"Python output:\n{output}"
