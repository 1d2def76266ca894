"""Agent roles."""

from __future__ import annotations

from enum import Enum


class AgentRole(Enum):
    PLANNER = "PLANNER"
    CODE_WRITER = "CODE_WRITER"
    REVIEWER = "REVIEWER"
    FIXER = "FIXER"
    TESTER = "TESTER"
    RESEARCHER = "RESEARCHER"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def parse(cls, raw: str) -> AgentRole:
        """Accept ``CODE_WRITER``, ``code_writer`` or ``Code Writer``."""
        key = raw.strip().upper().replace(" ", "_").replace("-", "_")
        return cls(key)
