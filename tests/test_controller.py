"""Tests for the meta-controller: planning, waves, delegation, verification and repair."""

from __future__ import annotations

import json

from shipwright.agents import (
    AgentLoop,
    AgentRegistry,
    AgentRole,
    Answer,
    CodeArtifact,
    Delegate,
    DelegationContext,
    Error,
)
from shipwright.agents.mocks import RecordingSink, ScriptedReasoningClient
from shipwright.events import StepStatus
from shipwright.execution import (
    DEFAULT_ANSWER,
    FALLBACK_STEP_ID,
    MetaController,
    VerificationGate,
    build_fix_description,
    build_step_context,
)
from shipwright.execution.verification import Issue, Severity, VerificationResult
from shipwright.memory import InMemoryMemory

CODE = CodeArtifact("adder.py", "python", "def add(a, b):\n    return a + b\n")
FIXED = CodeArtifact("adder.py", "python", "def add(a: int, b: int) -> int:\n    return a + b\n")


def _plan(*steps: dict) -> str:
    return json.dumps({"steps": list(steps)})


def _step(step_id, role, *deps, verify=False, description=None):
    return {
        "id": step_id,
        "description": description or f"Do {step_id}",
        "assignedRole": role,
        "dependsOn": list(deps),
        "requiresVerification": verify,
    }


def _controller(plan_reply, clients, judge_reply=None, memory=None):
    memory = memory or InMemoryMemory()
    registry = AgentRegistry()
    for role, client in clients.items():
        registry.register(role, AgentLoop(role, client, [], memory))
    planner = ScriptedReasoningClient(chat_responses=plan_reply if callable(plan_reply) else [plan_reply])
    judge = ScriptedReasoningClient(chat_responses=[judge_reply or json.dumps({"score": 0.9})])
    controller = MetaController(registry, planner, memory, VerificationGate(judge))
    return controller, planner, judge


class TestPlanning:
    async def test_valid_plan_used(self):
        reply = _plan(_step("s1", "CODE_WRITER"), _step("s2", "REVIEWER", "s1"))
        writer = ScriptedReasoningClient([Answer("code")])
        reviewer = ScriptedReasoningClient([Answer("reviewed")])
        controller, planner, _ = _controller(
            reply, {AgentRole.CODE_WRITER: writer, AgentRole.REVIEWER: reviewer}
        )
        response = await controller.process("Write an adder", "sess")
        assert [s.step_id for s in response.plan_steps] == ["s1", "s2"]
        assert response.answer == "reviewed"
        system, user = planner.chat_calls[0]
        assert "execution plan" in system
        assert "Request: Write an adder" in user
        assert "CODE_WRITER" in user

    async def test_unparsable_plan_falls_back(self):
        writer = ScriptedReasoningClient([Answer("fallback answer")])
        controller, _, _ = _controller("Sure, I'll get right on it!", {AgentRole.CODE_WRITER: writer})
        response = await controller.process("Write an adder", "sess")
        assert [s.step_id for s in response.plan_steps] == [FALLBACK_STEP_ID]
        assert response.plan_steps[0].role is AgentRole.CODE_WRITER
        assert response.plan_steps[0].description == "Write an adder"
        assert response.answer == "fallback answer"

    async def test_cyclic_plan_falls_back(self):
        reply = _plan(_step("a", "CODE_WRITER", "b"), _step("b", "CODE_WRITER", "a"))
        writer = ScriptedReasoningClient([Answer("done")])
        controller, _, _ = _controller(reply, {AgentRole.CODE_WRITER: writer})
        plan = await controller.plan("Write an adder")
        assert [s.id for s in plan.steps] == [FALLBACK_STEP_ID]

    async def test_unregistered_role_falls_back(self):
        reply = _plan(_step("s1", "RESEARCHER"))
        writer = ScriptedReasoningClient([Answer("done")])
        controller, _, _ = _controller(reply, {AgentRole.CODE_WRITER: writer})
        plan = await controller.plan("Look something up")
        assert plan.steps[0].assigned_role is AgentRole.CODE_WRITER

    async def test_planning_call_failure_falls_back(self):
        def explode(system, user):
            raise ConnectionError("offline")

        writer = ScriptedReasoningClient([Answer("done")])
        controller, _, _ = _controller(explode, {AgentRole.CODE_WRITER: writer})
        response = await controller.process("Write an adder", "sess")
        assert response.answer == "done"

    async def test_session_context_carried_into_planning(self):
        writer = ScriptedReasoningClient(default=Answer("the adder"))
        controller, planner, _ = _controller("not json", {AgentRole.CODE_WRITER: writer})
        await controller.process("Write an adder", "sess-1")
        await controller.process("Now add types", "sess-1")
        await controller.process("Unrelated", "sess-2")

        assert "Previous conversation" not in planner.chat_calls[0][1]
        second = planner.chat_calls[1][1]
        assert "Last request: Write an adder" in second
        assert "Last answer: the adder" in second
        assert "Previous conversation" not in planner.chat_calls[2][1]


class TestWaves:
    async def test_failed_step_does_not_sink_its_wave(self):
        reply = _plan(
            _step("s1", "CODE_WRITER"),
            _step("s2", "RESEARCHER"),
            _step("s3", "TESTER"),
        )
        clients = {
            AgentRole.CODE_WRITER: ScriptedReasoningClient([Answer("code")]),
            AgentRole.RESEARCHER: ScriptedReasoningClient([Error("API key invalid", recoverable=False)]),
            AgentRole.TESTER: ScriptedReasoningClient([Answer("tests")]),
        }
        controller, _, _ = _controller(reply, clients)
        response = await controller.process("Build it", "sess")

        assert len(response.plan_steps) == 3
        statuses = {s.step_id: s.status for s in response.plan_steps}
        assert statuses == {
            "s1": StepStatus.COMPLETED,
            "s2": StepStatus.FAILED,
            "s3": StepStatus.COMPLETED,
        }
        failed = response.failed_steps
        assert len(failed) == 1
        assert failed[0].output.startswith("Error: ")
        assert "API key invalid" in failed[0].output
        assert response.answer == "tests"

    async def test_dependency_results_flow_into_context(self):
        reply = _plan(_step("s1", "CODE_WRITER"), _step("s2", "REVIEWER", "s1"))
        writer = ScriptedReasoningClient([Answer("wrote adder", artifacts=(CODE,))])
        reviewer = ScriptedReasoningClient([Answer("lgtm")])
        controller, _, _ = _controller(
            reply, {AgentRole.CODE_WRITER: writer, AgentRole.REVIEWER: reviewer}
        )
        await controller.process("Write an adder", "sess")
        system = reviewer.last_system
        assert "[s1 result]: wrote adder" in system
        assert "File: adder.py" in system

    async def test_failed_dependency_contributes_no_context(self):
        reply = _plan(_step("s1", "CODE_WRITER"), _step("s2", "REVIEWER", "s1"))
        writer = ScriptedReasoningClient([Error("fatal", recoverable=False)])
        reviewer = ScriptedReasoningClient([Answer("nothing to review")])
        controller, _, _ = _controller(
            reply, {AgentRole.CODE_WRITER: writer, AgentRole.REVIEWER: reviewer}
        )
        response = await controller.process("Write an adder", "sess")
        assert [s.status for s in response.plan_steps] == [StepStatus.FAILED, StepStatus.COMPLETED]
        assert "[s1 result]" not in reviewer.last_system

    async def test_all_steps_failed(self):
        writer = ScriptedReasoningClient(default=Error("fatal", recoverable=False))
        controller, _, _ = _controller("nope", {AgentRole.CODE_WRITER: writer})
        response = await controller.process("Write an adder", "sess")
        assert response.answer == DEFAULT_ANSWER
        assert response.artifacts == ()

    async def test_plan_events(self):
        reply = _plan(_step("s1", "CODE_WRITER"), _step("s2", "REVIEWER", "s1"))
        clients = {
            AgentRole.CODE_WRITER: ScriptedReasoningClient([Answer("code")]),
            AgentRole.REVIEWER: ScriptedReasoningClient([Answer("ok")]),
        }
        controller, _, _ = _controller(reply, clients)
        sink = RecordingSink()
        await controller.process("Write an adder", "sess", sink)

        updates = [(e.step_id, e.status) for e in sink.of_type("plan_update")]
        assert updates[:2] == [("s1", StepStatus.PENDING), ("s2", StepStatus.PENDING)]
        assert updates.index(("s1", StepStatus.COMPLETED)) < updates.index(("s2", StepStatus.RUNNING))
        assert updates[-1] == ("s2", StepStatus.COMPLETED)

    async def test_synthesis_merges_artifacts_and_metadata(self):
        reply = _plan(_step("s1", "CODE_WRITER"), _step("s2", "TESTER", "s1"))
        test_file = CodeArtifact("test_adder.py", "python", "def test_add(): pass\n")
        clients = {
            AgentRole.CODE_WRITER: ScriptedReasoningClient([Answer("code", artifacts=(CODE,))]),
            AgentRole.TESTER: ScriptedReasoningClient([Answer("tests", artifacts=(test_file,))]),
        }
        controller, _, _ = _controller(reply, clients)
        response = await controller.process("Write an adder", "sess")
        assert [a.filename for a in response.artifacts] == ["adder.py", "test_adder.py"]
        assert response.metadata.total_steps == 2
        assert response.metadata.roles_involved == (AgentRole.CODE_WRITER, AgentRole.TESTER)
        payload = response.to_dict()
        assert payload["plan_steps"][0]["status"] == "COMPLETED"
        assert payload["metadata"]["roles_involved"] == ["CODE_WRITER", "TESTER"]


class TestDelegation:
    async def test_delegated_task_runs_on_target(self):
        delegation = Delegate(
            AgentRole.RESEARCHER,
            DelegationContext(
                reason="Need the API shape",
                task_description="Find the payments API",
                constraints=("Public docs only",),
            ),
        )
        writer = ScriptedReasoningClient([delegation])
        researcher = ScriptedReasoningClient([Answer("The API takes JSON")])
        controller, _, _ = _controller(
            "nope", {AgentRole.CODE_WRITER: writer, AgentRole.RESEARCHER: researcher}
        )
        sink = RecordingSink()
        response = await controller.process("Integrate payments", "sess", sink)
        assert response.answer == "The API takes JSON"
        assert response.plan_steps[0].status is StepStatus.COMPLETED
        assert "Public docs only" in researcher.last_system
        assert "Need the API shape" in researcher.last_system
        assert sink.types.count("delegation") == 1

    async def test_nested_delegation_fails_the_step(self):
        to_researcher = Delegate(
            AgentRole.RESEARCHER, DelegationContext(reason="r", task_description="research")
        )
        back_to_writer = Delegate(
            AgentRole.CODE_WRITER, DelegationContext(reason="w", task_description="write")
        )
        writer = ScriptedReasoningClient([to_researcher])
        researcher = ScriptedReasoningClient([back_to_writer])
        controller, _, _ = _controller(
            "nope", {AgentRole.CODE_WRITER: writer, AgentRole.RESEARCHER: researcher}
        )
        response = await controller.process("Write it", "sess")
        assert response.plan_steps[0].status is StepStatus.FAILED
        assert "Nested delegation" in response.plan_steps[0].output

    async def test_delegation_to_unregistered_role_fails_the_step(self):
        delegation = Delegate(AgentRole.TESTER, DelegationContext(reason="r", task_description="t"))
        writer = ScriptedReasoningClient([delegation])
        controller, _, _ = _controller("nope", {AgentRole.CODE_WRITER: writer})
        response = await controller.process("Write it", "sess")
        assert response.plan_steps[0].status is StepStatus.FAILED
        assert "TESTER" in response.plan_steps[0].output


class TestVerifyAndRepair:
    async def test_passing_verification_keeps_answer(self):
        reply = _plan(_step("s1", "CODE_WRITER", verify=True))
        writer = ScriptedReasoningClient([Answer("code", artifacts=(CODE,))])
        fixer = ScriptedReasoningClient([Answer("fixed", artifacts=(FIXED,))])
        controller, _, judge = _controller(
            reply, {AgentRole.CODE_WRITER: writer, AgentRole.FIXER: fixer}
        )
        response = await controller.process("Write an adder", "sess")
        assert response.answer == "code"
        assert judge.chat_count == 1
        assert fixer.call_count == 0

    async def test_failed_verification_runs_fixer(self):
        reply = _plan(_step("s1", "CODE_WRITER", verify=True))
        judge_reply = json.dumps(
            {"score": 0.3, "issues": ["No type hints"], "suggestions": ["Annotate"]}
        )
        writer = ScriptedReasoningClient([Answer("code", artifacts=(CODE,))])
        fixer = ScriptedReasoningClient([Answer("fixed", artifacts=(FIXED,))])
        controller, _, _ = _controller(
            reply, {AgentRole.CODE_WRITER: writer, AgentRole.FIXER: fixer}, judge_reply
        )
        sink = RecordingSink()
        response = await controller.process("Write an adder", "sess", sink)

        assert response.answer == "fixed"
        assert response.artifacts == (FIXED,)
        assert "## Task\nFix the following code." in fixer.last_system
        assert "- [WARNING] No type hints" in fixer.last_system
        assert any(e.description == "Verifying..." for e in sink.of_type("plan_update"))

    async def test_no_fixer_keeps_original(self):
        reply = _plan(_step("s1", "CODE_WRITER", verify=True))
        writer = ScriptedReasoningClient([Answer("code", artifacts=(CODE,))])
        controller, _, _ = _controller(
            reply, {AgentRole.CODE_WRITER: writer}, json.dumps({"score": 0.1})
        )
        response = await controller.process("Write an adder", "sess")
        assert response.answer == "code"
        assert response.plan_steps[0].status is StepStatus.COMPLETED

    async def test_failing_fixer_keeps_original(self):
        reply = _plan(_step("s1", "CODE_WRITER", verify=True))
        writer = ScriptedReasoningClient([Answer("code", artifacts=(CODE,))])
        fixer = ScriptedReasoningClient(default=Error("gave up", recoverable=False))
        controller, _, _ = _controller(
            reply,
            {AgentRole.CODE_WRITER: writer, AgentRole.FIXER: fixer},
            json.dumps({"score": 0.1}),
        )
        response = await controller.process("Write an adder", "sess")
        assert response.answer == "code"
        assert response.plan_steps[0].status is StepStatus.COMPLETED

    async def test_no_artifacts_skips_verification(self):
        reply = _plan(_step("s1", "CODE_WRITER", verify=True))
        writer = ScriptedReasoningClient([Answer("just prose")])
        controller, _, judge = _controller(reply, {AgentRole.CODE_WRITER: writer})
        await controller.process("Explain adders", "sess")
        assert judge.chat_count == 0


class TestHelpers:
    def test_build_step_context_skips_missing(self):
        results = {"a": Answer("first result", artifacts=(CODE,))}
        context = build_step_context(results, ("a", "missing"))
        assert context.startswith("[a result]: first result")
        assert "File: adder.py" in context
        assert "missing" not in context

    def test_build_step_context_truncates(self):
        context = build_step_context({"a": Answer("x" * 5000)}, ("a",))
        assert len(context) == len("[a result]: ") + 1000

    def test_build_fix_description(self):
        verification = VerificationResult(
            score=0.2,
            issues=(Issue(Severity.CRITICAL, "Compile error: bad indent", "adder.py"),),
            suggestions=("Run a formatter",),
        )
        text = build_fix_description(Answer("code", artifacts=(CODE,)), verification)
        assert "- [CRITICAL] Compile error: bad indent" in text
        assert "- Run a formatter" in text
        assert "# adder.py" in text
