"""Project analysis: decompose a description into epics, features and tasks."""

from __future__ import annotations

import json
import logging

from ..agents.artifacts import extract_json
from ..agents.protocol import ReasoningClient
from ..events import EventSink, TaskCreatedEvent, emit
from ..workflow.interface import TaskStore
from ..workflow.models import (
    AnalysisEpic,
    AnalysisFeature,
    AnalysisResult,
    AnalysisTask,
    Project,
    TaskCategory,
    TaskPriority,
)

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = """\
You are an experienced software architect. You break project descriptions
into epics, features and tasks. Return only valid JSON.
Give every task a category (DESIGN, BACKEND, FRONTEND, DEVOPS, TESTING,
DOCUMENTATION), a priority (CRITICAL, HIGH, MEDIUM, LOW) and a complexity
from 1 to 5. Declare dependencies between tasks with dependsOnTitles."""

ANALYSIS_FORMAT = """\
{
  "epics": [
    {
      "title": "Epic title",
      "description": "Epic description",
      "features": [
        {
          "title": "Feature title",
          "description": "Feature description",
          "acceptanceCriteria": "Acceptance criteria",
          "tasks": [
            {
              "title": "Task title",
              "description": "Detailed task description",
              "category": "BACKEND",
              "priority": "HIGH",
              "estimatedComplexity": 3,
              "dependsOnTitles": ["Title of another task"]
            }
          ]
        }
      ]
    }
  ]
}"""


def fallback_analysis() -> AnalysisResult:
    return AnalysisResult(
        epics=[
            AnalysisEpic(
                title="Core Implementation",
                description="Main project implementation",
                features=[
                    AnalysisFeature(
                        title="Initial Setup",
                        description="Project setup and core functionality",
                        tasks=[
                            AnalysisTask(
                                title="Project scaffolding",
                                description="Set up project structure and dependencies",
                                category="DEVOPS",
                                priority="HIGH",
                                estimated_complexity=2,
                            )
                        ],
                    )
                ],
            )
        ],
        used_fallback=True,
    )


def _titles(value) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def parse_analysis(text: str) -> AnalysisResult:
    """Parse the model's breakdown. Raises ``ValueError`` on malformed input."""
    data = json.loads(extract_json(text))
    if not isinstance(data, dict) or not isinstance(data.get("epics"), list):
        raise ValueError("Analysis must be an object with an 'epics' list")

    epics = []
    for raw_epic in data["epics"]:
        features = []
        for raw_feature in raw_epic.get("features") or []:
            tasks = []
            for raw_task in raw_feature.get("tasks") or []:
                try:
                    complexity = int(raw_task.get("estimatedComplexity", 1))
                except (TypeError, ValueError):
                    complexity = 1
                tasks.append(
                    AnalysisTask(
                        title=str(raw_task["title"]),
                        description=str(raw_task.get("description", "")),
                        category=str(raw_task.get("category", "BACKEND")),
                        priority=str(raw_task.get("priority", "MEDIUM")),
                        estimated_complexity=complexity,
                        depends_on_titles=_titles(
                            raw_task.get("dependsOnTitles", raw_task.get("dependsOn"))
                        ),
                    )
                )
            features.append(
                AnalysisFeature(
                    title=str(raw_feature["title"]),
                    description=str(raw_feature.get("description", "")),
                    acceptance_criteria=str(raw_feature.get("acceptanceCriteria", "")),
                    tasks=tasks,
                )
            )
        epics.append(
            AnalysisEpic(
                title=str(raw_epic["title"]),
                description=str(raw_epic.get("description", "")),
                features=features,
            )
        )
    return AnalysisResult(epics=epics)


def _category(raw: str) -> TaskCategory:
    try:
        return TaskCategory(raw.strip().upper())
    except ValueError:
        return TaskCategory.BACKEND


def _priority(raw: str) -> TaskPriority:
    try:
        return TaskPriority(raw.strip().upper())
    except ValueError:
        return TaskPriority.MEDIUM


class ProjectAnalyzer:
    """Runs the analysis call and persists the hierarchy to a ``TaskStore``."""

    def __init__(self, reasoning: ReasoningClient, store: TaskStore) -> None:
        self._reasoning = reasoning
        self._store = store

    async def analyze(self, project: Project, on_event: EventSink | None = None) -> AnalysisResult:
        logger.info("Analyzing project: %s", project.name)
        try:
            reply = await self._reasoning.chat(ANALYSIS_SYSTEM_PROMPT, self._prompt(project))
            result = parse_analysis(reply)
        except Exception as e:
            logger.error("Analysis unusable, using fallback breakdown: %s", e)
            result = fallback_analysis()

        await self._persist(project.id, result, on_event)
        logger.info(
            "Analysis complete: %d epics, %d features, %d tasks",
            len(result.epics), result.feature_count, result.task_count,
        )
        return result

    @staticmethod
    def _prompt(project: Project) -> str:
        repo = f"Repository: {project.repo_url}\n" if project.repo_url else ""
        return (
            f"Project name: {project.name}\n"
            f"Project description: {project.description}\n"
            f"{repo}\n"
            "Break this project into epics, features and tasks using this JSON format:\n\n"
            f"{ANALYSIS_FORMAT}\n\n"
            "Rules:\n"
            "- Every epic has at least one feature.\n"
            "- Every feature has at least one task.\n"
            "- estimatedComplexity: 1 (simple) to 5 (very complex).\n"
            "- dependsOnTitles lists titles of other tasks this task needs (may be empty).\n"
            "- Return only JSON."
        )

    async def _persist(
        self, project_id: int, result: AnalysisResult, on_event: EventSink | None
    ) -> None:
        title_to_id: dict[str, int] = {}
        deferred: list[tuple[int, list[str]]] = []

        for order, epic_data in enumerate(result.epics):
            epic = await self._store.create_epic(
                project_id, epic_data.title, epic_data.description, order=order
            )
            for feature_data in epic_data.features:
                feature = await self._store.create_feature(
                    epic.id,
                    feature_data.title,
                    feature_data.description,
                    feature_data.acceptance_criteria,
                )
                for task_data in feature_data.tasks:
                    task = await self._store.create_task(
                        feature.id,
                        task_data.title,
                        task_data.description,
                        category=_category(task_data.category),
                        priority=_priority(task_data.priority),
                        estimated_complexity=min(5, max(1, task_data.estimated_complexity)),
                    )
                    title_to_id[task_data.title] = task.id
                    if task_data.depends_on_titles:
                        deferred.append((task.id, task_data.depends_on_titles))
                    await emit(
                        on_event,
                        TaskCreatedEvent(str(task.id), task.title, task.category.value),
                    )

        for task_id, titles in deferred:
            for title in titles:
                dep_id = title_to_id.get(title)
                if dep_id is None or dep_id == task_id:
                    logger.warning("Could not resolve dependency '%s' for task %s", title, task_id)
                    continue
                await self._store.add_dependency(task_id, dep_id)
