from __future__ import annotations

from ..exceptions import ShipwrightError


class PlanningError(ShipwrightError):
    """The plan returned by the model cannot be executed as given."""

    kind = "planning"


class CyclicDependencyError(PlanningError):
    """Raised when plan step dependencies form a cycle."""

    kind = "cyclic_dependency"

    def __init__(self, remaining: list[str]) -> None:
        self.remaining = remaining
        super().__init__(f"Circular dependency detected. Remaining: {', '.join(remaining)}")
