from .exceptions import InvalidTransitionError, ProjectNotFoundError, TaskNotFoundError
from .interface import TaskStore
from .models import (
    DevTask,
    Epic,
    Feature,
    Project,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    TaskTransition,
)
from .transitions import VALID_TRANSITIONS, validate_transition

__all__ = [
    "DevTask",
    "Epic",
    "Feature",
    "InvalidTransitionError",
    "Project",
    "ProjectNotFoundError",
    "TaskCategory",
    "TaskNotFoundError",
    "TaskPriority",
    "TaskStatus",
    "TaskStore",
    "TaskTransition",
    "VALID_TRANSITIONS",
    "validate_transition",
]
