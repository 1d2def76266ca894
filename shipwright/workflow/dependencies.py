"""Dependency checks that decide which delivery tasks may start."""

from __future__ import annotations

from .models import DevTask, TaskStatus


def unmet_dependencies(task: DevTask, status_by_id: dict[int, TaskStatus]) -> list[int]:
    """Return dependency ids that have not reached DEPLOYED.

    A dependency id with no known task counts as unmet.
    """
    return [
        dep_id
        for dep_id in task.depends_on
        if status_by_id.get(dep_id) is not TaskStatus.DEPLOYED
    ]


def select_ready_tasks(tasks: list[DevTask], status_by_id: dict[int, TaskStatus]) -> list[DevTask]:
    """PLANNED tasks with no dependencies or with every dependency DEPLOYED.

    Blocked tasks are simply left out; they are picked up on a later query
    once their dependencies deploy.
    """
    return [
        task
        for task in tasks
        if task.status is TaskStatus.PLANNED and not unmet_dependencies(task, status_by_id)
    ]
