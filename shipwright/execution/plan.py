"""Execution plans produced by the planning call."""

from __future__ import annotations

import json
from dataclasses import dataclass

from ..agents.artifacts import extract_json
from ..agents.roles import AgentRole
from .exceptions import PlanningError
from .scheduler import compute_waves

FALLBACK_STEP_ID = "step_1"


@dataclass(frozen=True)
class PlanStep:
    id: str
    description: str
    assigned_role: AgentRole
    depends_on: tuple[str, ...] = ()
    requires_verification: bool = True
    constraints: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExecutionPlan:
    steps: tuple[PlanStep, ...]

    def waves(self) -> list[list[PlanStep]]:
        return compute_waves(self.steps)

    def get(self, step_id: str) -> PlanStep:
        for step in self.steps:
            if step.id == step_id:
                return step
        raise KeyError(f"Unknown plan step: {step_id}")


def fallback_plan(request: str) -> ExecutionPlan:
    """Single code-writing step covering the whole request."""
    return ExecutionPlan(
        steps=(
            PlanStep(
                id=FALLBACK_STEP_ID,
                description=request,
                assigned_role=AgentRole.CODE_WRITER,
                requires_verification=True,
                constraints=("Python",),
            ),
        )
    )


def validate_plan(plan: ExecutionPlan) -> None:
    """Check ids are unique and every dependency names an earlier step.

    Raises ``PlanningError``; a step depending on itself or on a later step
    is reported as a cycle by ``compute_waves``.
    """
    if not plan.steps:
        raise PlanningError("Plan has no steps")
    seen: set[str] = set()
    for step in plan.steps:
        if step.id in seen:
            raise PlanningError(f"Duplicate step id: {step.id}")
        seen.add(step.id)
    compute_waves(plan.steps)
    earlier: set[str] = set()
    for step in plan.steps:
        late = [d for d in step.depends_on if d not in earlier]
        if late:
            raise PlanningError(f"Step {step.id} depends on later steps: {', '.join(late)}")
        earlier.add(step.id)


def _str_list(value) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def parse_plan(text: str) -> ExecutionPlan:
    """Parse and validate a plan from model output.

    Accepts ``assignedRole`` or ``assignedAgent`` for the role, and JSON
    either in a fenced block or bare. Raises ``PlanningError``.
    """
    try:
        data = json.loads(extract_json(text))
    except ValueError as e:
        raise PlanningError(f"Plan is not valid JSON: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("steps"), list):
        raise PlanningError("Plan JSON must be an object with a 'steps' list")

    steps: list[PlanStep] = []
    for index, raw in enumerate(data["steps"], start=1):
        if not isinstance(raw, dict):
            raise PlanningError(f"Plan step {index} is not an object")
        raw_role = raw.get("assignedRole") or raw.get("assignedAgent")
        if not raw_role:
            raise PlanningError(f"Plan step {index} has no assigned role")
        try:
            role = AgentRole.parse(str(raw_role))
        except ValueError:
            raise PlanningError(f"Plan step {index} has unknown role: {raw_role}") from None
        steps.append(
            PlanStep(
                id=str(raw.get("id") or f"step_{index}"),
                description=str(raw.get("description", "")),
                assigned_role=role,
                depends_on=_str_list(raw.get("dependsOn")),
                requires_verification=bool(raw.get("requiresVerification", True)),
                constraints=_str_list(raw.get("constraints")),
            )
        )

    plan = ExecutionPlan(steps=tuple(steps))
    validate_plan(plan)
    return plan
