"""Domain models for the delivery pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(Enum):
    CREATED = "CREATED"
    PLANNED = "PLANNED"
    READY = "READY"
    IN_PROGRESS = "IN_PROGRESS"
    PR_OPENED = "PR_OPENED"
    REVIEWING = "REVIEWING"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    APPROVED = "APPROVED"
    MERGED = "MERGED"
    TESTING = "TESTING"
    TEST_PASSED = "TEST_PASSED"
    TEST_FAILED = "TEST_FAILED"
    BUG_CREATED = "BUG_CREATED"
    DEPLOYED = "DEPLOYED"


class TaskCategory(Enum):
    DESIGN = "DESIGN"
    BACKEND = "BACKEND"
    FRONTEND = "FRONTEND"
    DEVOPS = "DEVOPS"
    TESTING = "TESTING"
    DOCUMENTATION = "DOCUMENTATION"


class TaskPriority(Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ProjectStatus(Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


@dataclass
class Project:
    id: int
    name: str
    description: str
    repo_url: str = ""
    status: ProjectStatus = ProjectStatus.ACTIVE
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class Epic:
    id: int
    project_id: int
    title: str
    description: str
    order: int = 0


@dataclass
class Feature:
    id: int
    epic_id: int
    title: str
    description: str
    acceptance_criteria: str = ""


@dataclass
class DevTask:
    id: int
    feature_id: int
    title: str
    description: str
    category: TaskCategory = TaskCategory.BACKEND
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.CREATED
    assigned_agent: str = ""
    branch_name: str = ""
    pr_url: str = ""
    depends_on: list[int] = field(default_factory=list)
    estimated_complexity: int = 1
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class TaskTransition:
    """One immutable entry of a task's audit trail."""

    id: int
    task_id: int
    from_status: TaskStatus
    to_status: TaskStatus
    reason: str = ""
    triggered_by: str = "system"
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class TaskOutput:
    id: int
    task_id: int
    output_type: str
    content: str
    agent: str = ""
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class ProjectStatusReport:
    project_id: int
    project_name: str
    total_tasks: int
    tasks_by_status: dict[str, int]
    epics: list[Epic] = field(default_factory=list)
    features: list[Feature] = field(default_factory=list)
    tasks: list[DevTask] = field(default_factory=list)


@dataclass
class TaskDetail:
    task: DevTask
    history: list[TaskTransition] = field(default_factory=list)
    outputs: list[TaskOutput] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Project analysis payloads (decoded from the model's JSON breakdown)
# ---------------------------------------------------------------------------


@dataclass
class AnalysisTask:
    title: str
    description: str
    category: str = "BACKEND"
    priority: str = "MEDIUM"
    estimated_complexity: int = 1
    depends_on_titles: list[str] = field(default_factory=list)


@dataclass
class AnalysisFeature:
    title: str
    description: str
    acceptance_criteria: str = ""
    tasks: list[AnalysisTask] = field(default_factory=list)


@dataclass
class AnalysisEpic:
    title: str
    description: str
    features: list[AnalysisFeature] = field(default_factory=list)


@dataclass
class AnalysisResult:
    epics: list[AnalysisEpic] = field(default_factory=list)
    used_fallback: bool = False

    @property
    def task_count(self) -> int:
        return sum(len(f.tasks) for e in self.epics for f in e.features)

    @property
    def feature_count(self) -> int:
        return sum(len(e.features) for e in self.epics)
