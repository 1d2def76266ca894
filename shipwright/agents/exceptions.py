"""Errors raised by agent loops."""

from __future__ import annotations

from ..exceptions import ShipwrightError
from .roles import AgentRole
from .steps import Delegate


class AgentError(ShipwrightError):
    kind = "agent"


class NonRecoverableAgentError(AgentError):
    kind = "non_recoverable"


class RetryBudgetExceededError(AgentError):
    kind = "retry_exhausted"

    def __init__(self, max_retries: int, last_error: str) -> None:
        self.max_retries = max_retries
        super().__init__(f"Max retries ({max_retries}) exceeded: {last_error}")


class MaxIterationsExceededError(AgentError):
    kind = "iteration_exhausted"

    def __init__(self, iterations: int) -> None:
        self.iterations = iterations
        super().__init__(f"Max iterations ({iterations}) exceeded")


class UnknownRoleError(AgentError):
    kind = "unknown_role"

    def __init__(self, role: AgentRole) -> None:
        self.role = role
        super().__init__(f"No agent registered for role: {role.value}")


class DelegationRequested(Exception):
    """Raised by a loop to hand its task to another role. Not a failure."""

    def __init__(self, delegation: Delegate) -> None:
        self.delegation = delegation
        super().__init__(
            f"Delegating to {delegation.target_role.value}: {delegation.context.reason}"
        )

    @property
    def target_role(self) -> AgentRole:
        return self.delegation.target_role
