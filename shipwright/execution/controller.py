"""Meta-controller: plan a request, run it in waves, verify and repair."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..agents.exceptions import AgentError, DelegationRequested
from ..agents.protocol import MemoryLayer, ReasoningClient
from ..agents.registry import AgentRegistry
from ..agents.roles import AgentRole
from ..agents.steps import Answer, AnswerMetadata, CodeArtifact
from ..agents.types import AgentTask
from ..events import EventSink, PlanUpdateEvent, StepStatus, emit
from .exceptions import PlanningError
from .plan import ExecutionPlan, PlanStep, fallback_plan, parse_plan
from .verification import VerificationGate, VerificationResult

logger = logging.getLogger(__name__)

DEPENDENCY_CONTEXT_CHARS = 1000
STEP_OUTPUT_CHARS = 500
MAX_PLAN_STEPS = 6
DEFAULT_ANSWER = "Done."

PLANNING_SYSTEM_PROMPT = (
    "You are a task planning expert. Turn the request into an execution plan "
    "and return only valid JSON."
)


@dataclass(frozen=True)
class PlanStepResult:
    step_id: str
    role: AgentRole
    description: str
    status: StepStatus
    output: str | None = None

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "role": self.role.value,
            "description": self.description,
            "status": self.status.value,
            "output": self.output,
        }


@dataclass(frozen=True)
class AgentResponse:
    answer: str
    artifacts: tuple[CodeArtifact, ...] = ()
    plan_steps: tuple[PlanStepResult, ...] = ()
    metadata: AnswerMetadata | None = None

    @property
    def failed_steps(self) -> list[PlanStepResult]:
        return [s for s in self.plan_steps if s.status is StepStatus.FAILED]

    def to_dict(self) -> dict:
        return {
            "answer": self.answer,
            "artifacts": [
                {"filename": a.filename, "language": a.language, "content": a.content}
                for a in self.artifacts
            ],
            "plan_steps": [s.to_dict() for s in self.plan_steps],
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }


class MetaController:
    """Turns one free-text request into a synthesized response.

    Planning asks the model for an ``ExecutionPlan``; anything unusable
    (bad JSON, unknown or unregistered role, forward dependency, cycle)
    falls back to a single CODE_WRITER step. Steps run wave by wave, the
    steps of one wave concurrently. Each step's verification and repair
    happen inside that step's own task, so one failing step never affects
    its siblings. A failed step simply contributes no context to the
    steps that depend on it.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        reasoning: ReasoningClient,
        memory: MemoryLayer,
        verification_gate: VerificationGate | None = None,
    ) -> None:
        self._registry = registry
        self._reasoning = reasoning
        self._memory = memory
        self._gate = verification_gate or VerificationGate(reasoning)

    async def process(
        self,
        request: str,
        session_id: str,
        on_event: EventSink | None = None,
    ) -> AgentResponse:
        logger.info("Processing request: %s", request[:100])
        session_context = await self._memory.get_session_context(session_id)

        plan = await self.plan(request, session_context)
        logger.info("Plan created with %d steps", len(plan.steps))
        for step in plan.steps:
            await emit(on_event, PlanUpdateEvent(step.id, StepStatus.PENDING, step.description))

        results: dict[str, Answer] = {}
        step_results: dict[str, PlanStepResult] = {}

        waves = plan.waves()
        logger.info("Execution waves: %d", len(waves))
        for index, wave in enumerate(waves, start=1):
            logger.info("Wave %d: %s", index, [s.id for s in wave])
            outcomes = await asyncio.gather(
                *(self._run_step(step, results, on_event) for step in wave),
                return_exceptions=True,
            )
            for step, outcome in zip(wave, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("Step %s failed", step.id, exc_info=outcome)
                    message = f"Error: {outcome}"
                    step_results[step.id] = PlanStepResult(
                        step.id, step.assigned_role, step.description, StepStatus.FAILED, message
                    )
                    await emit(on_event, PlanUpdateEvent(step.id, StepStatus.FAILED, message))
                    continue
                results[step.id] = outcome
                step_results[step.id] = PlanStepResult(
                    step.id,
                    step.assigned_role,
                    step.description,
                    StepStatus.COMPLETED,
                    outcome.content[:STEP_OUTPUT_CHARS],
                )
                await emit(
                    on_event, PlanUpdateEvent(step.id, StepStatus.COMPLETED, step.description)
                )

        response = self._synthesize(plan, results, step_results)
        await self._memory.update_session_context(
            session_id,
            f"Last request: {request[:200]}\nLast answer: {response.answer[:500]}",
        )
        return response

    async def plan(self, request: str, session_context: str = "") -> ExecutionPlan:
        roles = ", ".join(r.value for r in self._registry.roles())
        prompt = (
            f"Request: {request}\n\n"
            + (f"Previous conversation:\n{session_context}\n\n" if session_context else "")
            + f"Available roles: {roles}\n\n"
            "Return an execution plan as JSON and nothing else:\n"
            '{"steps": [{"id": "step_1", "description": "What to do", '
            '"assignedRole": "CODE_WRITER", "dependsOn": [], '
            '"requiresVerification": true, "constraints": ["Python"]}]}\n\n'
            "Rules:\n"
            f"- Between 1 and {MAX_PLAN_STEPS} steps.\n"
            "- dependsOn may only name steps listed earlier.\n"
            "- RESEARCHER gathers information first.\n"
            "- CODE_WRITER writes code.\n"
            "- REVIEWER reviews code.\n"
            "- FIXER fixes problems.\n"
            "- TESTER writes tests."
        )
        try:
            reply = await self._reasoning.chat(PLANNING_SYSTEM_PROMPT, prompt)
        except Exception:
            logger.error("Planning call failed, using fallback plan", exc_info=True)
            return fallback_plan(request)

        try:
            plan = parse_plan(reply)
            missing = {s.assigned_role for s in plan.steps} - set(self._registry.roles())
            if missing:
                raise PlanningError(
                    f"No agent registered for: {', '.join(sorted(r.value for r in missing))}"
                )
        except PlanningError as e:
            logger.warning("Plan rejected (%s), using fallback. Reply: %s", e, reply[:300])
            return fallback_plan(request)
        return plan

    async def _run_step(
        self,
        step: PlanStep,
        results: dict[str, Answer],
        on_event: EventSink | None,
    ) -> Answer:
        await emit(on_event, PlanUpdateEvent(step.id, StepStatus.RUNNING, step.description))
        task = AgentTask(
            description=step.description,
            context=build_step_context(results, step.depends_on),
            constraints=step.constraints,
        )
        answer = await self._execute_with_delegation(step.assigned_role, task, on_event)

        if step.requires_verification and answer.artifacts:
            await emit(on_event, PlanUpdateEvent(step.id, StepStatus.RUNNING, "Verifying..."))
            verification = await self._gate.verify(step, answer)
            if not verification.passed:
                logger.warning(
                    "Verification failed for %s: %s",
                    step.id, [i.description for i in verification.issues],
                )
                answer = await self._repair(step, answer, verification, on_event)
        return answer

    async def _execute_with_delegation(
        self, role: AgentRole, task: AgentTask, on_event: EventSink | None
    ) -> Answer:
        loop = self._registry.get(role)
        try:
            return await loop.run(task, on_event)
        except DelegationRequested as delegation:
            target = delegation.target_role
            logger.info("Delegation from %s to %s", role.value, target.value)
            delegated = AgentTask.from_delegation(delegation.delegation.context)
            try:
                return await self._registry.get(target).run(delegated, on_event)
            except DelegationRequested as nested:
                raise AgentError(
                    f"Nested delegation from {target.value} to {nested.target_role.value} "
                    "is not supported"
                ) from nested

    async def _repair(
        self,
        step: PlanStep,
        original: Answer,
        verification: VerificationResult,
        on_event: EventSink | None,
    ) -> Answer:
        if not self._registry.has(AgentRole.FIXER):
            return original
        task = AgentTask(
            description=build_fix_description(original, verification),
            constraints=step.constraints,
        )
        try:
            return await self._registry.get(AgentRole.FIXER).run(task, on_event)
        except Exception:
            logger.warning("Fixer failed for %s, keeping original result", step.id, exc_info=True)
            return original

    def _synthesize(
        self,
        plan: ExecutionPlan,
        results: dict[str, Answer],
        step_results: dict[str, PlanStepResult],
    ) -> AgentResponse:
        ordered = [results[s.id] for s in plan.steps if s.id in results]
        artifacts = tuple(a for answer in ordered for a in answer.artifacts)

        tools: list[str] = []
        roles: list[AgentRole] = []
        duration = 0
        for answer in ordered:
            if answer.metadata is None:
                continue
            duration += answer.metadata.total_duration_ms
            tools.extend(t for t in answer.metadata.tools_used if t not in tools)
            roles.extend(r for r in answer.metadata.roles_involved if r not in roles)

        plan_steps = tuple(step_results[s.id] for s in plan.steps if s.id in step_results)
        return AgentResponse(
            answer=ordered[-1].content if ordered else DEFAULT_ANSWER,
            artifacts=artifacts,
            plan_steps=plan_steps,
            metadata=AnswerMetadata(
                total_steps=len(plan_steps),
                tools_used=tuple(tools),
                total_duration_ms=duration,
                roles_involved=tuple(roles),
            ),
        )


def build_step_context(results: dict[str, Answer], depends_on: tuple[str, ...]) -> str:
    """Summaries and artifacts of the finished dependencies of a step."""
    parts = []
    for dep_id in depends_on:
        answer = results.get(dep_id)
        if answer is None:
            continue
        files = "\n".join(f"File: {a.filename}\n{a.content}" for a in answer.artifacts)
        parts.append(
            f"[{dep_id} result]: {answer.content[:DEPENDENCY_CONTEXT_CHARS]}"
            + (f"\n{files}" if files else "")
        )
    return "\n\n".join(parts)


def build_fix_description(original: Answer, verification: VerificationResult) -> str:
    issues = "\n".join(f"- [{i.severity.value}] {i.description}" for i in verification.issues)
    suggestions = "\n".join(f"- {s}" for s in verification.suggestions)
    code = "\n---\n".join(f"# {a.filename}\n{a.content}" for a in original.artifacts)
    return (
        "Fix the following code.\n\n"
        f"Issues:\n{issues or '- none reported'}\n\n"
        f"Suggestions:\n{suggestions or '- none'}\n\n"
        f"Original code:\n{code}"
    )
