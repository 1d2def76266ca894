"""Wave scheduling for execution plans.

A wave is every not-yet-scheduled step whose dependencies are all in
earlier waves. Steps in one wave run concurrently; waves run in order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .exceptions import CyclicDependencyError, PlanningError

if TYPE_CHECKING:
    from .plan import PlanStep


def compute_waves(steps: list[PlanStep] | tuple[PlanStep, ...]) -> list[list[PlanStep]]:
    """Partition steps into dependency-ordered waves.

    Raises ``PlanningError`` for a dependency on an unknown step and
    ``CyclicDependencyError`` as soon as a round selects nothing while steps
    remain. Each round schedules at least one step, so this terminates
    after at most ``len(steps)`` rounds.
    """
    ids = {s.id for s in steps}
    for step in steps:
        unknown = [d for d in step.depends_on if d not in ids]
        if unknown:
            raise PlanningError(f"Step {step.id} depends on unknown steps: {', '.join(unknown)}")

    scheduled: set[str] = set()
    remaining = list(steps)
    waves: list[list[PlanStep]] = []

    while remaining:
        wave = [s for s in remaining if all(d in scheduled for d in s.depends_on)]
        if not wave:
            raise CyclicDependencyError([s.id for s in remaining])
        waves.append(wave)
        scheduled.update(s.id for s in wave)
        remaining = [s for s in remaining if s.id not in scheduled]

    return waves
