"""Tests for wave scheduling and plan parsing."""

from __future__ import annotations

import json

import pytest

from shipwright.agents.roles import AgentRole
from shipwright.execution.exceptions import CyclicDependencyError, PlanningError
from shipwright.execution.plan import (
    FALLBACK_STEP_ID,
    ExecutionPlan,
    PlanStep,
    fallback_plan,
    parse_plan,
    validate_plan,
)
from shipwright.execution.scheduler import compute_waves


def _step(step_id: str, *deps: str, role: AgentRole = AgentRole.CODE_WRITER) -> PlanStep:
    return PlanStep(id=step_id, description=f"do {step_id}", assigned_role=role, depends_on=deps)


def _ids(waves) -> list[list[str]]:
    return [[s.id for s in wave] for wave in waves]


class TestComputeWaves:
    def test_independent_steps_share_a_wave(self):
        waves = compute_waves([_step("a"), _step("b"), _step("c")])
        assert _ids(waves) == [["a", "b", "c"]]

    def test_dependency_pushes_to_next_wave(self):
        waves = compute_waves([_step("s1"), _step("s2", "s1")])
        assert _ids(waves) == [["s1"], ["s2"]]

    def test_diamond(self):
        steps = [_step("a"), _step("b", "a"), _step("c", "a"), _step("d", "b", "c")]
        assert _ids(compute_waves(steps)) == [["a"], ["b", "c"], ["d"]]

    def test_preserves_plan_order_within_wave(self):
        steps = [_step("z"), _step("y"), _step("x", "z")]
        assert _ids(compute_waves(steps)) == [["z", "y"], ["x"]]

    def test_every_step_scheduled_exactly_once(self):
        steps = [
            _step("a"),
            _step("b", "a"),
            _step("c"),
            _step("d", "b", "c"),
            _step("e", "a"),
            _step("f", "e", "d"),
        ]
        waves = compute_waves(steps)
        flat = [s.id for wave in waves for s in wave]
        assert sorted(flat) == sorted(s.id for s in steps)
        assert len(flat) == len(set(flat))

        wave_of = {s.id: i for i, wave in enumerate(waves) for s in wave}
        for step in steps:
            for dep in step.depends_on:
                assert wave_of[dep] < wave_of[step.id]

    def test_cycle_fails_fast(self):
        with pytest.raises(CyclicDependencyError) as exc:
            compute_waves([_step("a", "b"), _step("b", "a"), _step("c")])
        assert "Circular dependency detected" in str(exc.value)
        assert exc.value.remaining == ["a", "b"]
        assert exc.value.kind == "cyclic_dependency"

    def test_self_dependency_is_a_cycle(self):
        with pytest.raises(CyclicDependencyError):
            compute_waves([_step("a", "a")])

    def test_unknown_dependency(self):
        with pytest.raises(PlanningError, match="unknown steps: ghost"):
            compute_waves([_step("a", "ghost")])

    def test_empty(self):
        assert compute_waves([]) == []


class TestValidatePlan:
    def test_empty_plan(self):
        with pytest.raises(PlanningError, match="no steps"):
            validate_plan(ExecutionPlan(steps=()))

    def test_duplicate_ids(self):
        with pytest.raises(PlanningError, match="Duplicate step id"):
            validate_plan(ExecutionPlan(steps=(_step("a"), _step("a"))))

    def test_forward_reference_rejected(self):
        with pytest.raises(PlanningError, match="later steps"):
            validate_plan(ExecutionPlan(steps=(_step("b", "a"), _step("a"))))

    def test_valid_plan(self):
        validate_plan(ExecutionPlan(steps=(_step("a"), _step("b", "a"))))


class TestParsePlan:
    def test_parses_fenced_json(self):
        text = """Here is the plan:
```json
{"steps": [
  {"id": "s1", "description": "Write it", "assignedRole": "CODE_WRITER"},
  {"id": "s2", "description": "Review it", "assignedRole": "REVIEWER",
   "dependsOn": ["s1"], "requiresVerification": false}
]}
```"""
        plan = parse_plan(text)
        assert [s.id for s in plan.steps] == ["s1", "s2"]
        assert plan.get("s2").assigned_role is AgentRole.REVIEWER
        assert plan.get("s2").depends_on == ("s1",)
        assert plan.get("s2").requires_verification is False
        assert plan.get("s1").requires_verification is True

    def test_accepts_assigned_agent_and_default_ids(self):
        text = json.dumps(
            {
                "steps": [
                    {"description": "Research", "assignedAgent": "researcher"},
                    {"description": "Write", "assignedAgent": "Code Writer", "dependsOn": "step_1"},
                ]
            }
        )
        plan = parse_plan(text)
        assert [s.id for s in plan.steps] == ["step_1", "step_2"]
        assert plan.steps[0].assigned_role is AgentRole.RESEARCHER
        assert plan.steps[1].depends_on == ("step_1",)

    def test_constraints(self):
        text = json.dumps(
            {"steps": [{"description": "x", "assignedRole": "FIXER", "constraints": ["Python", "No I/O"]}]}
        )
        assert parse_plan(text).steps[0].constraints == ("Python", "No I/O")

    def test_not_json(self):
        with pytest.raises(PlanningError, match="not valid JSON"):
            parse_plan("I think we should write some code.")

    def test_missing_steps(self):
        with pytest.raises(PlanningError, match="'steps' list"):
            parse_plan('{"plan": []}')

    def test_unknown_role(self):
        with pytest.raises(PlanningError, match="unknown role"):
            parse_plan('{"steps": [{"description": "x", "assignedRole": "WIZARD"}]}')

    def test_missing_role(self):
        with pytest.raises(PlanningError, match="no assigned role"):
            parse_plan('{"steps": [{"description": "x"}]}')

    def test_cycle(self):
        text = json.dumps(
            {
                "steps": [
                    {"id": "a", "description": "x", "assignedRole": "CODE_WRITER", "dependsOn": ["b"]},
                    {"id": "b", "description": "y", "assignedRole": "CODE_WRITER", "dependsOn": ["a"]},
                ]
            }
        )
        with pytest.raises(PlanningError):
            parse_plan(text)


class TestFallbackPlan:
    def test_single_code_writer_step(self):
        plan = fallback_plan("Build a parser")
        assert len(plan.steps) == 1
        step = plan.steps[0]
        assert step.id == FALLBACK_STEP_ID
        assert step.description == "Build a parser"
        assert step.assigned_role is AgentRole.CODE_WRITER
        assert step.requires_verification
        assert step.constraints == ("Python",)

    def test_get_unknown_step(self):
        with pytest.raises(KeyError):
            fallback_plan("x").get("nope")
