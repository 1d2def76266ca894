from .controller import (
    DEFAULT_ANSWER,
    AgentResponse,
    MetaController,
    PlanStepResult,
    build_fix_description,
    build_step_context,
)
from .exceptions import CyclicDependencyError, PlanningError
from .plan import FALLBACK_STEP_ID, ExecutionPlan, PlanStep, fallback_plan, parse_plan
from .scheduler import compute_waves
from .verification import Issue, Severity, VerificationGate, VerificationResult

__all__ = [
    "DEFAULT_ANSWER",
    "FALLBACK_STEP_ID",
    "AgentResponse",
    "CyclicDependencyError",
    "ExecutionPlan",
    "Issue",
    "MetaController",
    "PlanStep",
    "PlanStepResult",
    "PlanningError",
    "Severity",
    "VerificationGate",
    "VerificationResult",
    "build_fix_description",
    "build_step_context",
    "compute_waves",
    "fallback_plan",
    "parse_plan",
]
