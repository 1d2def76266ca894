"""Abstract task-store protocol."""

from typing import Protocol, runtime_checkable

from .models import (
    DevTask,
    Epic,
    Feature,
    Project,
    TaskCategory,
    TaskOutput,
    TaskPriority,
    TaskStatus,
    TaskTransition,
)


@runtime_checkable
class TaskStore(Protocol):
    """Interface that any pipeline persistence backend must implement.

    Every write is its own transaction. ``transition_task`` must validate the
    change, write the new status and append the transition record as one unit.
    """

    async def create_project(self, name: str, description: str, repo_url: str = "") -> Project: ...

    async def get_project(self, project_id: int) -> Project: ...

    async def list_projects(self) -> list[Project]: ...

    async def delete_project(self, project_id: int) -> None: ...

    async def create_epic(
        self, project_id: int, title: str, description: str, order: int = 0
    ) -> Epic: ...

    async def list_epics(self, project_id: int) -> list[Epic]: ...

    async def create_feature(
        self, epic_id: int, title: str, description: str, acceptance_criteria: str = ""
    ) -> Feature: ...

    async def list_features(self, project_id: int) -> list[Feature]: ...

    async def create_task(
        self,
        feature_id: int,
        title: str,
        description: str,
        category: TaskCategory = TaskCategory.BACKEND,
        priority: TaskPriority = TaskPriority.MEDIUM,
        estimated_complexity: int = 1,
        depends_on: list[int] | None = None,
    ) -> DevTask: ...

    async def get_task(self, task_id: int) -> DevTask: ...

    async def list_tasks(
        self, project_id: int, status: TaskStatus | None = None
    ) -> list[DevTask]: ...

    async def get_ready_tasks(self, project_id: int) -> list[DevTask]: ...

    async def add_dependency(self, task_id: int, depends_on_task_id: int) -> None: ...

    async def update_task(
        self,
        task_id: int,
        branch_name: str | None = None,
        pr_url: str | None = None,
        assigned_agent: str | None = None,
    ) -> DevTask: ...

    async def transition_task(
        self,
        task_id: int,
        new_status: TaskStatus,
        reason: str = "",
        triggered_by: str = "system",
    ) -> DevTask: ...

    async def get_task_history(self, task_id: int) -> list[TaskTransition]: ...

    async def save_task_output(
        self, task_id: int, output_type: str, content: str, agent: str = ""
    ) -> TaskOutput: ...

    async def get_task_outputs(self, task_id: int) -> list[TaskOutput]: ...
