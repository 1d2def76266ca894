"""Protocols for the capabilities an agent loop consumes.

The loop never talks to a model, a tool backend or a store directly; it is
handed objects satisfying these protocols. Tests hand it the scripted doubles
in ``shipwright.agents.mocks``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .steps import AgentStep, Answer, CodeArtifact, ToolResult

if TYPE_CHECKING:
    from .types import AgentTask


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str = "string"
    description: str = ""
    required: bool = True


@dataclass(frozen=True)
class ToolDefinition:
    """Catalogue entry exposed to the reasoning client."""

    name: str
    description: str
    parameters: tuple[ToolParameter, ...] = ()

    def to_schema(self) -> dict:
        """JSON-schema shaped description, as most model APIs expect."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": {
                "type": "object",
                "properties": {
                    p.name: {"type": p.type, "description": p.description}
                    for p in self.parameters
                },
                "required": [p.name for p in self.parameters if p.required],
            },
        }


@runtime_checkable
class Tool(Protocol):
    name: str
    description: str
    parameters: tuple[ToolParameter, ...]

    async def execute(self, inputs: dict[str, str]) -> ToolResult: ...


def tool_definition(tool: Tool) -> ToolDefinition:
    return ToolDefinition(
        name=tool.name,
        description=tool.description,
        parameters=tuple(tool.parameters),
    )


@runtime_checkable
class ReasoningClient(Protocol):
    async def reason(
        self,
        system: str,
        trajectory: list[AgentStep],
        tools: list[ToolDefinition],
    ) -> AgentStep: ...

    async def chat(self, system: str, user: str) -> str: ...


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Episode:
    task_description: str
    trajectory_summary: str
    outcome_score: float
    artifacts: tuple[CodeArtifact, ...] = ()


@dataclass(frozen=True)
class Fact:
    subject: str
    relation: str
    object: str


@dataclass(frozen=True)
class GraphContext:
    facts: tuple[Fact, ...] = ()
    entities: tuple[str, ...] = ()

    def to_prompt_string(self) -> str:
        return "\n".join(f"{f.subject} --[{f.relation}]--> {f.object}" for f in self.facts)


@runtime_checkable
class MemoryLayer(Protocol):
    async def recall_similar(self, query: str, limit: int = 5) -> list[Episode]: ...

    async def query_graph(self, entities: list[str]) -> GraphContext: ...

    async def store_episode(
        self, task: AgentTask, trajectory: list[AgentStep], answer: Answer
    ) -> None: ...

    async def update_graph(self, facts: list[Fact]) -> None: ...

    async def get_session_context(self, session_id: str) -> str: ...

    async def update_session_context(self, session_id: str, context: str) -> None: ...
