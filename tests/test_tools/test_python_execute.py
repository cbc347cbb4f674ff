import os
import sys
from pathlib import Path

import pytest

from manus_agent.tools.python_execute import PythonExecuteTool
from manus_agent.tools.registry import ToolArguments


@pytest.mark.asyncio
async def test_prints_output():
    tool = PythonExecuteTool(interpreter=sys.executable)

    result = await tool.execute(ToolArguments({"code": 'print("hi")'}))

    assert result == "Python output:\nhi"


@pytest.mark.asyncio
async def test_empty_code_is_rejected():
    tool = PythonExecuteTool(interpreter=sys.executable)

    result = await tool.execute(ToolArguments({"code": "   "}))

    assert result == "Error: No Python code provided"


@pytest.mark.asyncio
async def test_no_output_message():
    tool = PythonExecuteTool(interpreter=sys.executable)

    result = await tool.execute(ToolArguments({"code": "x = 1"}))

    assert result == "Python code executed successfully (no output)"


@pytest.mark.asyncio
async def test_nonzero_exit_reports_stderr():
    tool = PythonExecuteTool(interpreter=sys.executable)

    result = await tool.execute(ToolArguments({"code": "import sys\nsys.stderr.write('boom')\nsys.exit(3)"}))

    assert result == "Python execution failed (exit code 3):\nboom"


@pytest.mark.asyncio
async def test_stderr_on_success_is_reported_as_warnings():
    tool = PythonExecuteTool(interpreter=sys.executable)

    result = await tool.execute(ToolArguments({"code": "import sys\nprint('out')\nsys.stderr.write('careful')"}))

    assert result == "Python output with warnings:\nout\n\nWarnings:\ncareful"


@pytest.mark.asyncio
async def test_timeout_kills_process(tmp_path: Path):
    pid_file = tmp_path / "pid.txt"
    code = (
        "import os, pathlib\n"
        f"pathlib.Path({str(pid_file)!r}).write_text(str(os.getpid()))\n"
        "while True:\n"
        "    pass\n"
    )
    tool = PythonExecuteTool(interpreter=sys.executable)

    result = await tool.execute(ToolArguments({"code": code, "timeout": "2000"}))

    assert "timed out" in result
    assert result == "Error: Python execution timed out after 2000 ms"
    pid = int(pid_file.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


@pytest.mark.asyncio
async def test_output_is_truncated():
    tool = PythonExecuteTool(interpreter=sys.executable, max_output_chars=10)

    result = await tool.execute(ToolArguments({"code": "print('x' * 50)"}))

    assert result.startswith("Python output:\nxxxxxxxxxx\n... [truncated, 50 total chars]")


@pytest.mark.asyncio
async def test_temp_script_is_removed(monkeypatch, tmp_path: Path):
    monkeypatch.setattr("tempfile.tempdir", str(tmp_path))
    tool = PythonExecuteTool(interpreter=sys.executable)

    await tool.execute(ToolArguments({"code": "print(1)"}))

    assert list(tmp_path.glob("manus_*.py")) == []
