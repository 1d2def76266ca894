"""Registry mapping agent roles to loop instances."""

from __future__ import annotations

from .exceptions import UnknownRoleError
from .loop import AgentLoop
from .protocol import MemoryLayer, ReasoningClient, Tool
from .roles import AgentRole
from .types import DEFAULT_ROLE_CONFIGS, AgentConfig

# Tools each role may see, by tool name. Names missing from the supplied
# catalogue are skipped.
ROLE_TOOLS: dict[AgentRole, tuple[str, ...]] = {
    AgentRole.PLANNER: ("file_system",),
    AgentRole.CODE_WRITER: ("file_system", "python_compile", "web_search"),
    AgentRole.REVIEWER: ("file_system", "python_compile"),
    AgentRole.FIXER: ("file_system", "python_compile"),
    AgentRole.TESTER: ("file_system", "python_compile", "run_tests"),
    AgentRole.RESEARCHER: ("web_search", "file_system"),
}


class AgentRegistry:
    """Maps roles to agent loops."""

    def __init__(self) -> None:
        self._loops: dict[AgentRole, AgentLoop] = {}

    def register(self, role: AgentRole, loop: AgentLoop) -> None:
        self._loops[role] = loop

    def get(self, role: AgentRole) -> AgentLoop:
        if role not in self._loops:
            raise UnknownRoleError(role)
        return self._loops[role]

    def has(self, role: AgentRole) -> bool:
        return role in self._loops

    def roles(self) -> list[AgentRole]:
        return list(self._loops)


def create_agent_registry(
    reasoning: ReasoningClient,
    memory: MemoryLayer,
    tools: list[Tool] | None = None,
    configs: dict[AgentRole, AgentConfig] | None = None,
) -> AgentRegistry:
    """Build one loop per role sharing a reasoning client and memory."""
    catalogue = {t.name: t for t in tools or []}
    configs = configs or DEFAULT_ROLE_CONFIGS
    registry = AgentRegistry()
    for role in AgentRole:
        role_tools = [catalogue[name] for name in ROLE_TOOLS[role] if name in catalogue]
        registry.register(
            role,
            AgentLoop(
                role=role,
                reasoning=reasoning,
                tools=role_tools,
                memory=memory,
                config=configs.get(role, AgentConfig()),
            ),
        )
    return registry
