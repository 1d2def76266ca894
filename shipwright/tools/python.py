"""Local Python tools: syntax check and pytest runner."""

from __future__ import annotations

import asyncio
import json
import re
import sys
import tempfile
from pathlib import Path

from ..agents.protocol import ToolParameter
from ..agents.steps import ToolFailure, ToolResult, ToolSuccess


class PythonCompileTool:
    """Checks that a source file compiles, without running it."""

    name: str = "python_compile"
    description: str = "Compile Python source and report syntax errors"
    parameters = (
        ToolParameter("code", description="Python source to check"),
        ToolParameter("filename", description="File name used in error messages", required=False),
    )

    async def execute(self, inputs: dict[str, str]) -> ToolResult:
        code = inputs.get("code", "")
        filename = inputs.get("filename") or "<generated>"
        try:
            compile(code, filename, "exec")
        except SyntaxError as e:
            return ToolFailure(f"{filename}:{e.lineno}: {e.msg}", retryable=False)
        except ValueError as e:
            return ToolFailure(f"{filename}: {e}", retryable=False)
        return ToolSuccess(output=f"{filename} compiles")


def parse_pytest_summary(stdout: str) -> dict:
    """Counts from pytest's summary line plus the ids of failed tests."""
    results: dict = {"total": 0, "passed": 0, "failed": 0, "errors": 0, "failed_tests": []}
    for line in stdout.strip().split("\n"):
        if "passed" in line or "failed" in line or "error" in line:
            for key, pattern in (
                ("passed", r"(\d+) passed"),
                ("failed", r"(\d+) failed"),
                ("errors", r"(\d+) error"),
            ):
                match = re.search(pattern, line)
                if match:
                    results[key] = int(match.group(1))
        if line.strip().startswith("FAILED"):
            results["failed_tests"].append(line.strip().replace("FAILED ", "").split(" ")[0])
    results["total"] = results["passed"] + results["failed"] + results["errors"]
    return results


class PytestRunnerTool:
    """Writes a source/test pair to a scratch directory and runs pytest on it."""

    name: str = "run_tests"
    description: str = "Run a pytest test file against a source file"
    parameters = (
        ToolParameter("source_code", description="Module under test"),
        ToolParameter("test_code", description="pytest test module"),
        ToolParameter("source_filename", description="Module file name", required=False),
        ToolParameter("test_filename", description="Test file name", required=False),
    )

    def __init__(self, python: str | None = None, timeout: float = 120.0) -> None:
        self._python = python or sys.executable
        self._timeout = timeout

    async def execute(self, inputs: dict[str, str]) -> ToolResult:
        source_name = Path(inputs.get("source_filename") or "module.py").name
        test_name = Path(inputs.get("test_filename") or "test_module.py").name

        with tempfile.TemporaryDirectory(prefix="shipwright-") as tmp:
            root = Path(tmp)
            (root / source_name).write_text(inputs.get("source_code", ""))
            (root / test_name).write_text(inputs.get("test_code", ""))

            process = await asyncio.create_subprocess_exec(
                self._python, "-m", "pytest", "-q", "--tb=short", "-p", "no:cacheprovider", test_name,
                cwd=root,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
            try:
                async with asyncio.timeout(self._timeout):
                    stdout, _ = await process.communicate()
            except TimeoutError:
                return ToolFailure(f"pytest timed out after {self._timeout}s", retryable=True)
            finally:
                # Also reached when the caller cancels us; the child must not outlive tmp.
                if process.returncode is None:
                    process.kill()
                    await process.wait()

        output = stdout.decode(errors="replace")
        summary = parse_pytest_summary(output)
        if process.returncode == 0:
            return ToolSuccess(output=output, data=json.dumps(summary))
        return ToolFailure(output[-2000:] or f"pytest exited with {process.returncode}", retryable=False)
