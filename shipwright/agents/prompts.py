"""System prompt assembly for each agent role."""

from __future__ import annotations

from .protocol import Episode, GraphContext
from .roles import AgentRole

ROLE_INSTRUCTIONS: dict[AgentRole, str] = {
    AgentRole.PLANNER: (
        "## Role: Planner\n"
        "You are a software architect and task planner.\n"
        "Break the user's request into sub-tasks, assign each to a role\n"
        "(PLANNER, CODE_WRITER, REVIEWER, FIXER, TESTER, RESEARCHER) and\n"
        "declare dependencies between them. A step may only depend on\n"
        "steps listed before it. Respond with an execution plan as JSON:\n"
        '{"steps": [{"id": "s1", "description": "...", "assignedRole": "CODE_WRITER",\n'
        '"dependsOn": [], "requiresVerification": true, "constraints": []}]}'
    ),
    AgentRole.CODE_WRITER: (
        "## Role: Code Writer\n"
        "You are an experienced Python developer.\n"
        "Write clean, idiomatic, testable Python:\n"
        "- dataclasses and enums for data\n"
        "- type hints on public functions\n"
        "- async/await for I/O, never block the event loop\n"
        "Put every file in a fenced code block whose info string is\n"
        "`python filename.py`."
    ),
    AgentRole.REVIEWER: (
        "## Role: Reviewer\n"
        "You review code for:\n"
        "1. Correctness: does it do what was asked?\n"
        "2. Idiomatic Python\n"
        "3. Error handling\n"
        "4. Performance\n"
        "5. Security\n"
        "Return a score between 0.0 and 1.0 and a list of issues."
    ),
    AgentRole.FIXER: (
        "## Role: Fixer\n"
        "You fix the reported issues with the smallest change that works.\n"
        "Keep the style and structure of the original code."
    ),
    AgentRole.TESTER: (
        "## Role: Tester\n"
        "You write pytest test suites.\n"
        "Cover edge cases and failure paths. Name tests after the behaviour\n"
        "they check, e.g. `test_rejects_empty_input`."
    ),
    AgentRole.RESEARCHER: (
        "## Role: Researcher\n"
        "You research libraries, APIs and documentation in the Python\n"
        "ecosystem and summarise the findings with short code examples."
    ),
}

GENERAL_RULES = (
    "## General rules\n"
    "- Explain the code briefly; avoid redundant comments.\n"
    "- Handle errors explicitly; never swallow exceptions.\n"
    "- Prefer the standard library unless a dependency is clearly better."
)


def _memory_section(episodes: list[Episode], graph: GraphContext) -> str:
    parts: list[str] = []
    if episodes:
        parts.append("## Past experience")
        for ep in episodes:
            parts.append(f"- [score {ep.outcome_score:.2f}] {ep.task_description[:100]}")
            parts.append(f"  Summary: {ep.trajectory_summary[:150]}")
    if graph.facts:
        parts.append("## Known facts")
        parts.append(graph.to_prompt_string())
    return "\n".join(parts)


def build_system_prompt(
    role: AgentRole,
    description: str,
    episodes: list[Episode],
    graph: GraphContext,
    constraints: tuple[str, ...] | list[str] = (),
    context: str = "",
) -> str:
    sections = [ROLE_INSTRUCTIONS[role]]
    memory = _memory_section(episodes, graph)
    if memory:
        sections.append(memory)
    sections.append("## Task\n" + description)
    if constraints:
        sections.append("## Constraints\n" + "\n".join(f"- {c}" for c in constraints))
    if context.strip():
        sections.append("## Additional context\n" + context)
    sections.append(GENERAL_RULES)
    return "\n\n".join(sections)
