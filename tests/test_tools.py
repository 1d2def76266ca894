"""Tests for the local Python tools."""

from __future__ import annotations

import asyncio
import json

import pytest

from shipwright.agents import Tool, ToolFailure, ToolSuccess
from shipwright.tools import (
    PytestRunnerTool,
    PythonCompileTool,
    catalogue,
    default_tools,
    find_tool,
    parse_pytest_summary,
)

SOURCE = "def add(a, b):\n    return a + b\n"
PASSING = "from adder import add\n\n\ndef test_add():\n    assert add(2, 3) == 5\n"
FAILING = "from adder import add\n\n\ndef test_add():\n    assert add(2, 3) == 6\n"


class TestCatalogue:
    def test_default_tools_satisfy_protocol(self):
        tools = default_tools()
        assert all(isinstance(t, Tool) for t in tools)
        assert [t.name for t in tools] == ["python_compile", "run_tests"]

    def test_find_tool(self):
        tools = default_tools()
        assert isinstance(find_tool(tools, "run_tests"), PytestRunnerTool)
        assert find_tool(tools, "web_search") is None

    def test_definitions(self):
        definitions = {d.name: d for d in catalogue(default_tools())}
        schema = definitions["python_compile"].to_schema()
        assert schema["name"] == "python_compile"
        assert "code" in schema["input_schema"]["required"]
        assert "filename" not in schema["input_schema"]["required"]


class TestPythonCompileTool:
    async def test_valid_code(self):
        result = await PythonCompileTool().execute({"code": SOURCE, "filename": "adder.py"})
        assert isinstance(result, ToolSuccess)

    async def test_syntax_error(self):
        result = await PythonCompileTool().execute({"code": "def add(a, b)\n    return a", "filename": "adder.py"})
        assert isinstance(result, ToolFailure)
        assert result.error.startswith("adder.py:1:")
        assert not result.retryable

    async def test_default_filename(self):
        result = await PythonCompileTool().execute({"code": "x ="})
        assert result.error.startswith("<generated>:")


class TestParsePytestSummary:
    def test_mixed(self):
        output = (
            "FAILED test_adder.py::test_add - assert 5 == 6\n"
            "1 failed, 3 passed, 1 error in 0.12s\n"
        )
        summary = parse_pytest_summary(output)
        assert summary["passed"] == 3
        assert summary["failed"] == 1
        assert summary["errors"] == 1
        assert summary["total"] == 5
        assert summary["failed_tests"] == ["test_adder.py::test_add"]

    def test_empty(self):
        assert parse_pytest_summary("")["total"] == 0


class TestPytestRunnerTool:
    @pytest.mark.timeout(60)
    async def test_passing_tests(self):
        result = await PytestRunnerTool().execute({
            "source_code": SOURCE,
            "source_filename": "adder.py",
            "test_code": PASSING,
            "test_filename": "test_adder.py",
        })
        assert isinstance(result, ToolSuccess)
        assert json.loads(result.data)["passed"] == 1

    @pytest.mark.timeout(60)
    async def test_failing_tests(self):
        result = await PytestRunnerTool().execute({
            "source_code": SOURCE,
            "source_filename": "adder.py",
            "test_code": FAILING,
            "test_filename": "test_adder.py",
        })
        assert isinstance(result, ToolFailure)
        assert "1 failed" in result.error
        assert not result.retryable

    @pytest.mark.timeout(60)
    async def test_own_timeout_kills_child(self):
        slow = "import time\n\n\ndef test_slow():\n    time.sleep(30)\n"
        result = await PytestRunnerTool(timeout=0.5).execute({"source_code": SOURCE, "test_code": slow})
        assert isinstance(result, ToolFailure)
        assert "timed out" in result.error
        assert result.retryable

    @pytest.mark.timeout(60)
    async def test_cancelled_run_kills_child(self, tmp_path, monkeypatch):
        marker = tmp_path / "finished"
        slow = f"import time\n\n\ndef test_slow():\n    time.sleep(2)\n    open({str(marker)!r}, 'w').close()\n"
        spawned = []
        create = asyncio.create_subprocess_exec

        async def _tracking(*args, **kwargs):
            process = await create(*args, **kwargs)
            spawned.append(process)
            return process

        monkeypatch.setattr(asyncio, "create_subprocess_exec", _tracking)
        with pytest.raises(TimeoutError):
            async with asyncio.timeout(1.0):
                await PytestRunnerTool().execute({"source_code": SOURCE, "test_code": slow})

        [process] = spawned
        assert process.returncode is not None
        await asyncio.sleep(2.5)
        assert not marker.exists()
