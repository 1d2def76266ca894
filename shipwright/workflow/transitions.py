"""Task state-machine transitions defined as data.

Pure: no I/O, no logging, no persistence. Stores call ``validate_transition``
before writing and raise ``InvalidTransitionError`` with its message.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import TaskStatus

VALID_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.CREATED: frozenset({TaskStatus.PLANNED}),
    TaskStatus.PLANNED: frozenset({TaskStatus.READY}),
    TaskStatus.READY: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.PR_OPENED}),
    TaskStatus.PR_OPENED: frozenset({TaskStatus.REVIEWING}),
    TaskStatus.REVIEWING: frozenset({TaskStatus.APPROVED, TaskStatus.CHANGES_REQUESTED}),
    TaskStatus.CHANGES_REQUESTED: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.APPROVED: frozenset({TaskStatus.MERGED}),
    TaskStatus.MERGED: frozenset({TaskStatus.TESTING}),
    TaskStatus.TESTING: frozenset({TaskStatus.TEST_PASSED, TaskStatus.TEST_FAILED}),
    TaskStatus.TEST_PASSED: frozenset({TaskStatus.DEPLOYED}),
    TaskStatus.TEST_FAILED: frozenset({TaskStatus.BUG_CREATED}),
    TaskStatus.BUG_CREATED: frozenset({TaskStatus.CREATED}),  # new cycle for the fix
    TaskStatus.DEPLOYED: frozenset(),
}


@dataclass(frozen=True)
class TransitionValidation:
    valid: bool
    error_message: str = ""


def allowed_transitions(from_status: TaskStatus) -> frozenset[TaskStatus]:
    return VALID_TRANSITIONS.get(from_status, frozenset())


def can_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    return to_status in allowed_transitions(from_status)


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> TransitionValidation:
    """Check one requested status change against the table.

    Never corrects the request: an invalid pair yields ``valid=False`` and a
    message naming the legal successors of ``from_status``.
    """
    if can_transition(from_status, to_status):
        return TransitionValidation(valid=True)
    allowed = sorted(s.value for s in allowed_transitions(from_status))
    return TransitionValidation(
        valid=False,
        error_message=(
            f"Invalid transition: {from_status.value} -> {to_status.value}. "
            f"Allowed from {from_status.value}: {', '.join(allowed) or 'none'}"
        ),
    )
