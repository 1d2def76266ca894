"""Workflow exception types."""

from __future__ import annotations

from ..exceptions import ShipwrightError


class InvalidTransitionError(ShipwrightError):
    """Raised when a task status change is not in the transition table."""

    kind = "invalid_transition"

    def __init__(self, task_id: int, from_status, to_status, message: str | None = None):
        self.task_id = task_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message
            or f"Invalid transition for task {task_id}: "
            f"{from_status.value} -> {to_status.value}"
        )


class TaskNotFoundError(ShipwrightError, KeyError):
    kind = "task_not_found"

    def __init__(self, task_id: int):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")

    def __str__(self) -> str:
        return self.message


class ProjectNotFoundError(ShipwrightError, KeyError):
    kind = "project_not_found"

    def __init__(self, project_id: int):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")

    def __str__(self) -> str:
        return self.message
