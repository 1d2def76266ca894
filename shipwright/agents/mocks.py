"""Test doubles for reasoning clients, tools and event sinks."""

from __future__ import annotations

import asyncio
import json
from typing import Callable

from .protocol import ToolDefinition, ToolParameter
from .steps import AgentStep, Answer, CodeArtifact, ToolResult, ToolSuccess


class ScriptedReasoningClient:
    """Replays a fixed script of steps.

    Script entries may be ``AgentStep`` instances or exceptions; exceptions
    are raised from ``reason``. Once the script is exhausted ``default`` is
    returned on every call (an ``Answer`` unless overridden), so
    ``ScriptedReasoningClient(default=Think("hmm"))`` thinks forever.

    ``chat_responses`` is consumed in order; the last entry repeats. A
    callable is invoked with ``(system, user)`` instead.
    """

    def __init__(
        self,
        steps: list[AgentStep | Exception] | None = None,
        default: AgentStep | None = None,
        chat_responses: list[str] | Callable[[str, str], str] | None = None,
    ) -> None:
        self._steps = list(steps or [])
        self._default = default or Answer(content="Mock answer")
        self._chat = chat_responses if chat_responses is not None else [""]
        self.call_count: int = 0
        self.chat_count: int = 0
        self.last_system: str | None = None
        self.last_trajectory: list[AgentStep] = []
        self.last_tools: list[ToolDefinition] = []
        self.chat_calls: list[tuple[str, str]] = []

    async def reason(
        self, system: str, trajectory: list[AgentStep], tools: list[ToolDefinition]
    ) -> AgentStep:
        self.call_count += 1
        self.last_system = system
        self.last_trajectory = list(trajectory)
        self.last_tools = list(tools)
        entry = self._steps.pop(0) if self._steps else self._default
        if isinstance(entry, Exception):
            raise entry
        return entry

    async def chat(self, system: str, user: str) -> str:
        self.chat_count += 1
        self.chat_calls.append((system, user))
        if callable(self._chat):
            return self._chat(system, user)
        index = min(self.chat_count - 1, len(self._chat) - 1)
        return self._chat[index]


class MockTool:
    """Tool returning a canned result, optionally after a delay or by raising."""

    def __init__(
        self,
        name: str = "mock_tool",
        result: ToolResult | None = None,
        delay: float = 0.0,
        raises: Exception | None = None,
        description: str = "Mock tool for testing",
    ) -> None:
        self.name = name
        self.description = description
        self.parameters = (ToolParameter("input", description="Free-form input"),)
        self._result = result or ToolSuccess(output=f"{name} ok")
        self._delay = delay
        self._raises = raises
        self.call_count: int = 0
        self.last_inputs: dict[str, str] | None = None

    async def execute(self, inputs: dict[str, str]) -> ToolResult:
        self.call_count += 1
        self.last_inputs = dict(inputs)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._raises is not None:
            raise self._raises
        return self._result


class RecordingSink:
    """Event sink that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list = []

    def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]

    def of_type(self, event_type: str) -> list:
        return [e for e in self.events if e.type == event_type]


class OfflineReasoningClient:
    """Deterministic stand-in for a model, used by ``--mock`` runs.

    ``chat`` recognises the planning, judging, analysis and review prompts
    by a marker phrase and returns a well-formed reply for each. ``reason``
    answers immediately with a small Python module and its test.
    """

    def __init__(self) -> None:
        self.call_count: int = 0
        self.chat_count: int = 0

    async def reason(
        self, system: str, trajectory: list[AgentStep], tools: list[ToolDefinition]
    ) -> AgentStep:
        self.call_count += 1
        return Answer(
            content="Implemented the requested change as a small module with a test.",
            artifacts=(
                CodeArtifact(
                    filename="feature.py",
                    language="python",
                    content="def handle(value: str) -> str:\n    return value.strip()\n",
                ),
                CodeArtifact(
                    filename="test_feature.py",
                    language="python",
                    content=(
                        "from feature import handle\n\n\n"
                        "def test_handle_strips():\n"
                        "    assert handle('  x ') == 'x'\n"
                    ),
                ),
            ),
        )

    async def chat(self, system: str, user: str) -> str:
        self.chat_count += 1
        lowered = system.lower()
        if "execution plan" in lowered:
            return json.dumps({
                "steps": [
                    {"id": "s1", "description": user[:200], "assignedRole": "CODE_WRITER",
                     "dependsOn": [], "requiresVerification": True},
                    {"id": "s2", "description": "Review the change", "assignedRole": "REVIEWER",
                     "dependsOn": ["s1"], "requiresVerification": False},
                ]
            })
        if "score" in lowered and "judge" in lowered:
            return json.dumps({"score": 0.85, "issues": [], "suggestions": ["Add docstrings"]})
        if "epics" in lowered:
            return json.dumps({
                "epics": [{
                    "title": "Core",
                    "description": "Core functionality",
                    "features": [{
                        "title": "Foundation",
                        "description": "Project foundation",
                        "acceptanceCriteria": "Package imports and tests pass",
                        "tasks": [
                            {"title": "Project scaffolding", "description": "Create the layout",
                             "category": "DEVOPS", "priority": "HIGH", "estimatedComplexity": 2,
                             "dependsOn": []},
                            {"title": "Domain models", "description": "Add the data model",
                             "category": "BACKEND", "priority": "HIGH", "estimatedComplexity": 3,
                             "dependsOn": ["Project scaffolding"]},
                        ],
                    }],
                }]
            })
        return "Looks good. Clear structure and tests included."
