"""In-memory task store. Default pipeline backend for tests, demos and the CLI."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from ..workflow.dependencies import select_ready_tasks
from ..workflow.exceptions import InvalidTransitionError, ProjectNotFoundError, TaskNotFoundError
from ..workflow.models import (
    DevTask,
    Epic,
    Feature,
    Project,
    TaskCategory,
    TaskOutput,
    TaskPriority,
    TaskStatus,
    TaskTransition,
    utcnow,
)
from ..workflow.transitions import validate_transition

logger = logging.getLogger(__name__)


class InMemoryTaskStore:
    """TaskStore backed by dicts.

    A single ``asyncio.Lock`` serialises writes so a transition is validated,
    written and logged without another coroutine interleaving. Reads return
    copies; callers never hold a reference into the store.
    """

    def __init__(self) -> None:
        self._projects: dict[int, Project] = {}
        self._epics: dict[int, Epic] = {}
        self._features: dict[int, Feature] = {}
        self._tasks: dict[int, DevTask] = {}
        self._transitions: list[TaskTransition] = []
        self._outputs: list[TaskOutput] = []
        self._ids: dict[str, int] = {}
        self._lock = asyncio.Lock()

    def _next_id(self, kind: str) -> int:
        self._ids[kind] = self._ids.get(kind, 0) + 1
        return self._ids[kind]

    # -- projects -----------------------------------------------------------

    async def create_project(self, name: str, description: str, repo_url: str = "") -> Project:
        async with self._lock:
            project = Project(
                id=self._next_id("project"),
                name=name,
                description=description,
                repo_url=repo_url,
            )
            self._projects[project.id] = project
            return replace(project)

    async def get_project(self, project_id: int) -> Project:
        if project_id not in self._projects:
            raise ProjectNotFoundError(project_id)
        return replace(self._projects[project_id])

    async def list_projects(self) -> list[Project]:
        return [
            replace(p)
            for p in sorted(self._projects.values(), key=lambda p: p.created_at, reverse=True)
        ]

    async def delete_project(self, project_id: int) -> None:
        """Remove a project and everything beneath it."""
        async with self._lock:
            if project_id not in self._projects:
                raise ProjectNotFoundError(project_id)
            task_ids = {t.id for t in self._tasks_of(project_id)}
            feature_ids = {f.id for f in self._features_of(project_id)}
            epic_ids = {e.id for e in self._epics.values() if e.project_id == project_id}

            for task_id in task_ids:
                del self._tasks[task_id]
            for task in self._tasks.values():
                task.depends_on = [d for d in task.depends_on if d not in task_ids]
            for feature_id in feature_ids:
                del self._features[feature_id]
            for epic_id in epic_ids:
                del self._epics[epic_id]
            self._transitions = [t for t in self._transitions if t.task_id not in task_ids]
            self._outputs = [o for o in self._outputs if o.task_id not in task_ids]
            del self._projects[project_id]
            logger.info("Deleted project %s with %d tasks", project_id, len(task_ids))

    # -- epics / features ---------------------------------------------------

    async def create_epic(
        self, project_id: int, title: str, description: str, order: int = 0
    ) -> Epic:
        async with self._lock:
            if project_id not in self._projects:
                raise ProjectNotFoundError(project_id)
            epic = Epic(
                id=self._next_id("epic"),
                project_id=project_id,
                title=title,
                description=description,
                order=order,
            )
            self._epics[epic.id] = epic
            return replace(epic)

    async def list_epics(self, project_id: int) -> list[Epic]:
        epics = [e for e in self._epics.values() if e.project_id == project_id]
        return [replace(e) for e in sorted(epics, key=lambda e: e.order)]

    async def create_feature(
        self, epic_id: int, title: str, description: str, acceptance_criteria: str = ""
    ) -> Feature:
        async with self._lock:
            if epic_id not in self._epics:
                raise KeyError(f"Epic not found: {epic_id}")
            feature = Feature(
                id=self._next_id("feature"),
                epic_id=epic_id,
                title=title,
                description=description,
                acceptance_criteria=acceptance_criteria,
            )
            self._features[feature.id] = feature
            return replace(feature)

    async def list_features(self, project_id: int) -> list[Feature]:
        return [replace(f) for f in self._features_of(project_id)]

    # -- tasks --------------------------------------------------------------

    async def create_task(
        self,
        feature_id: int,
        title: str,
        description: str,
        category: TaskCategory = TaskCategory.BACKEND,
        priority: TaskPriority = TaskPriority.MEDIUM,
        estimated_complexity: int = 1,
        depends_on: list[int] | None = None,
    ) -> DevTask:
        async with self._lock:
            if feature_id not in self._features:
                raise KeyError(f"Feature not found: {feature_id}")
            task = DevTask(
                id=self._next_id("task"),
                feature_id=feature_id,
                title=title,
                description=description,
                category=category,
                priority=priority,
                estimated_complexity=estimated_complexity,
                depends_on=list(depends_on or []),
            )
            self._tasks[task.id] = task
            return self._copy(task)

    async def get_task(self, task_id: int) -> DevTask:
        if task_id not in self._tasks:
            raise TaskNotFoundError(task_id)
        return self._copy(self._tasks[task_id])

    async def list_tasks(self, project_id: int, status: TaskStatus | None = None) -> list[DevTask]:
        tasks = self._tasks_of(project_id)
        if status is not None:
            tasks = [t for t in tasks if t.status is status]
        return [self._copy(t) for t in tasks]

    async def get_ready_tasks(self, project_id: int) -> list[DevTask]:
        status_by_id = {t.id: t.status for t in self._tasks.values()}
        return [self._copy(t) for t in select_ready_tasks(self._tasks_of(project_id), status_by_id)]

    async def add_dependency(self, task_id: int, depends_on_task_id: int) -> None:
        async with self._lock:
            if task_id not in self._tasks:
                raise TaskNotFoundError(task_id)
            if depends_on_task_id not in self._tasks:
                raise TaskNotFoundError(depends_on_task_id)
            task = self._tasks[task_id]
            if depends_on_task_id not in task.depends_on:
                task.depends_on.append(depends_on_task_id)

    async def update_task(
        self,
        task_id: int,
        branch_name: str | None = None,
        pr_url: str | None = None,
        assigned_agent: str | None = None,
    ) -> DevTask:
        async with self._lock:
            if task_id not in self._tasks:
                raise TaskNotFoundError(task_id)
            task = self._tasks[task_id]
            if branch_name is not None:
                task.branch_name = branch_name
            if pr_url is not None:
                task.pr_url = pr_url
            if assigned_agent is not None:
                task.assigned_agent = assigned_agent
            task.updated_at = utcnow()
            return self._copy(task)

    async def transition_task(
        self,
        task_id: int,
        new_status: TaskStatus,
        reason: str = "",
        triggered_by: str = "system",
    ) -> DevTask:
        async with self._lock:
            if task_id not in self._tasks:
                raise TaskNotFoundError(task_id)
            task = self._tasks[task_id]
            current = task.status
            validation = validate_transition(current, new_status)
            if not validation.valid:
                logger.warning("Task %s: %s", task_id, validation.error_message)
                raise InvalidTransitionError(
                    task_id, current, new_status, validation.error_message
                )

            now = utcnow()
            record = TaskTransition(
                id=self._next_id("transition"),
                task_id=task_id,
                from_status=current,
                to_status=new_status,
                reason=reason,
                triggered_by=triggered_by,
                timestamp=now,
            )
            task.status = new_status
            task.updated_at = now
            self._transitions.append(record)
            logger.info("Task %s: %s -> %s", task_id, current.value, new_status.value)
            return self._copy(task)

    async def get_task_history(self, task_id: int) -> list[TaskTransition]:
        return [t for t in self._transitions if t.task_id == task_id]

    # -- outputs ------------------------------------------------------------

    async def save_task_output(
        self, task_id: int, output_type: str, content: str, agent: str = ""
    ) -> TaskOutput:
        async with self._lock:
            if task_id not in self._tasks:
                raise TaskNotFoundError(task_id)
            output = TaskOutput(
                id=self._next_id("output"),
                task_id=task_id,
                output_type=output_type,
                content=content,
                agent=agent,
            )
            self._outputs.append(output)
            return output

    async def get_task_outputs(self, task_id: int) -> list[TaskOutput]:
        return [o for o in self._outputs if o.task_id == task_id]

    # -- helpers ------------------------------------------------------------

    def _features_of(self, project_id: int) -> list[Feature]:
        epic_ids = {e.id for e in self._epics.values() if e.project_id == project_id}
        return [f for f in self._features.values() if f.epic_id in epic_ids]

    def _tasks_of(self, project_id: int) -> list[DevTask]:
        feature_ids = {f.id for f in self._features_of(project_id)}
        tasks = [t for t in self._tasks.values() if t.feature_id in feature_ids]
        return sorted(tasks, key=lambda t: (t.created_at, t.id))

    @staticmethod
    def _copy(task: DevTask) -> DevTask:
        return replace(task, depends_on=list(task.depends_on))
