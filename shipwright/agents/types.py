"""Data types for agent execution."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .roles import AgentRole
from .steps import DelegationContext

TECHNICAL_TERMS = (
    "python", "asyncio", "fastapi", "django", "flask", "pydantic", "sqlalchemy",
    "pytest", "dataclass", "coroutine", "rest", "websocket", "api", "json",
    "database", "postgresql", "redis", "neo4j", "docker", "test",
)


@dataclass(frozen=True)
class AgentTask:
    description: str
    context: str = ""
    constraints: tuple[str, ...] = ()
    parent_task_id: str | None = None

    def entities(self) -> list[str]:
        """Cheap entity extraction for graph lookups.

        Keeps capitalised words, dotted names and known technical terms,
        de-duplicated in order of appearance.
        """
        seen: list[str] = []
        for word in re.split(r"\s+", self.description):
            word = word.strip(",;:!?()[]\"'")
            if not word or word in seen:
                continue
            lowered = word.lower()
            if (
                word[0].isupper()
                or "." in word.strip(".")
                or any(term in lowered for term in TECHNICAL_TERMS)
            ):
                seen.append(word)
        return seen

    @classmethod
    def from_delegation(cls, delegation: DelegationContext) -> AgentTask:
        return cls(
            description=delegation.task_description,
            context=delegation.reason,
            constraints=tuple(delegation.constraints),
        )


@dataclass(frozen=True)
class AgentConfig:
    """Budgets for one agent loop instance."""

    max_iterations: int = 10
    max_retries: int = 3
    tool_timeout_seconds: float = 30.0
    confidence_threshold: float = 0.7


DEFAULT_ROLE_CONFIGS: dict[AgentRole, AgentConfig] = {
    AgentRole.PLANNER: AgentConfig(max_iterations=5, confidence_threshold=0.6),
    AgentRole.CODE_WRITER: AgentConfig(max_iterations=12),
    AgentRole.REVIEWER: AgentConfig(max_iterations=6),
    AgentRole.FIXER: AgentConfig(max_iterations=8, max_retries=5),
    AgentRole.TESTER: AgentConfig(max_iterations=8),
    AgentRole.RESEARCHER: AgentConfig(max_iterations=8, confidence_threshold=0.6),
}
