"""Trajectory step and tool result types.

``AgentStep`` and ``ToolResult`` are closed unions. Code that dispatches on
them matches every member and ends with ``assert_never`` so a type checker
flags any call site that misses a newly added variant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from .roles import AgentRole


@dataclass(frozen=True)
class CodeArtifact:
    filename: str
    language: str
    content: str
    version: int = 1

    @property
    def is_test(self) -> bool:
        return "test" in self.filename.lower()


# ---------------------------------------------------------------------------
# Tool results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolSuccess:
    output: str
    data: str | None = None

    @property
    def is_success(self) -> bool:
        return True


@dataclass(frozen=True)
class ToolFailure:
    error: str
    retryable: bool = True

    @property
    def is_success(self) -> bool:
        return False


ToolResult = Union[ToolSuccess, ToolFailure]


# ---------------------------------------------------------------------------
# Agent steps
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnswerMetadata:
    total_steps: int
    tools_used: tuple[str, ...] = ()
    total_duration_ms: int = 0
    roles_involved: tuple[AgentRole, ...] = ()

    def to_dict(self) -> dict:
        return {
            "total_steps": self.total_steps,
            "tools_used": list(self.tools_used),
            "total_duration_ms": self.total_duration_ms,
            "roles_involved": [r.value for r in self.roles_involved],
        }


@dataclass(frozen=True)
class DelegationContext:
    reason: str
    task_description: str
    parent_trajectory: tuple[AgentStep, ...] = ()
    constraints: tuple[str, ...] = ()


@dataclass(frozen=True)
class Think:
    thought: str
    confidence: float = 0.0


@dataclass(frozen=True)
class Act:
    tool_name: str
    tool_input: dict[str, str] = field(default_factory=dict)
    reasoning: str = ""


@dataclass(frozen=True)
class Observe:
    """Produced by the loop after running a tool, never by the reasoning client."""

    tool_name: str
    result: ToolResult
    duration_ms: int = 0


@dataclass(frozen=True)
class Answer:
    content: str
    artifacts: tuple[CodeArtifact, ...] = ()
    metadata: AnswerMetadata | None = None


@dataclass(frozen=True)
class Error:
    message: str
    recoverable: bool
    suggested_action: str | None = None


@dataclass(frozen=True)
class Delegate:
    target_role: AgentRole
    context: DelegationContext


AgentStep = Union[Think, Act, Observe, Answer, Error, Delegate]
