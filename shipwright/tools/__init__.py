"""Concrete tools and catalogue helpers."""

from __future__ import annotations

from ..agents.protocol import Tool, ToolDefinition, tool_definition
from .python import PytestRunnerTool, PythonCompileTool, parse_pytest_summary


def default_tools() -> list[Tool]:
    """The local tools the CLI wires into agents and the verification gate."""
    return [PythonCompileTool(), PytestRunnerTool()]


def catalogue(tools: list[Tool]) -> list[ToolDefinition]:
    return [tool_definition(t) for t in tools]


def find_tool(tools: list[Tool], name: str) -> Tool | None:
    for tool in tools:
        if tool.name == name:
            return tool
    return None


__all__ = [
    "PytestRunnerTool",
    "PythonCompileTool",
    "catalogue",
    "default_tools",
    "find_tool",
    "parse_pytest_summary",
]
