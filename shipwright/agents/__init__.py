"""Agent execution core: steps, roles, the reasoning loop and its registry."""

from .exceptions import (
    AgentError,
    DelegationRequested,
    MaxIterationsExceededError,
    NonRecoverableAgentError,
    RetryBudgetExceededError,
    UnknownRoleError,
)
from .loop import AgentLoop
from .protocol import (
    Episode,
    Fact,
    GraphContext,
    MemoryLayer,
    ReasoningClient,
    Tool,
    ToolDefinition,
    ToolParameter,
)
from .registry import AgentRegistry, create_agent_registry
from .roles import AgentRole
from .steps import (
    Act,
    AgentStep,
    Answer,
    AnswerMetadata,
    CodeArtifact,
    Delegate,
    DelegationContext,
    Error,
    Observe,
    Think,
    ToolFailure,
    ToolResult,
    ToolSuccess,
)
from .types import AgentConfig, AgentTask

__all__ = [
    "Act",
    "AgentConfig",
    "AgentError",
    "AgentLoop",
    "AgentRegistry",
    "AgentRole",
    "AgentStep",
    "AgentTask",
    "Answer",
    "AnswerMetadata",
    "CodeArtifact",
    "Delegate",
    "DelegationContext",
    "DelegationRequested",
    "Episode",
    "Error",
    "Fact",
    "GraphContext",
    "MaxIterationsExceededError",
    "MemoryLayer",
    "NonRecoverableAgentError",
    "Observe",
    "ReasoningClient",
    "RetryBudgetExceededError",
    "Think",
    "Tool",
    "ToolDefinition",
    "ToolFailure",
    "ToolParameter",
    "ToolResult",
    "ToolSuccess",
    "UnknownRoleError",
    "create_agent_registry",
]
