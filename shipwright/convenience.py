"""Wiring helpers that assemble the controller and pipeline from config."""

from __future__ import annotations

from .adapters.memory import InMemoryTaskStore
from .agents.protocol import MemoryLayer, ReasoningClient, Tool
from .agents.registry import create_agent_registry
from .config import ShipwrightConfig
from .execution.controller import MetaController
from .execution.verification import VerificationGate
from .memory import GuardedMemory, InMemoryMemory
from .pipeline.analyzer import ProjectAnalyzer
from .pipeline.orchestrator import PipelineOrchestrator
from .tools import default_tools, find_tool
from .workflow.interface import TaskStore


def create_reasoning_client(config: ShipwrightConfig, mock: bool = False) -> ReasoningClient:
    """Offline scripted client for ``mock``, otherwise Claude via the SDK."""
    if mock:
        from .agents.mocks import OfflineReasoningClient

        return OfflineReasoningClient()

    from .agents.claude import ClaudeReasoningClient

    return ClaudeReasoningClient(model=config.model)


def create_controller(
    reasoning: ReasoningClient,
    config: ShipwrightConfig | None = None,
    memory: MemoryLayer | None = None,
    tools: list[Tool] | None = None,
) -> MetaController:
    config = config or ShipwrightConfig()
    memory = GuardedMemory(memory or InMemoryMemory())
    tools = default_tools() if tools is None else tools
    registry = create_agent_registry(reasoning, memory, tools, config.roles)
    gate = VerificationGate(
        reasoning,
        compiler=find_tool(tools, "python_compile"),
        test_runner=find_tool(tools, "run_tests"),
        config=config.verification,
    )
    return MetaController(registry, reasoning, memory, gate)


def create_pipeline(
    reasoning: ReasoningClient,
    config: ShipwrightConfig | None = None,
    store: TaskStore | None = None,
    controller: MetaController | None = None,
    source_control: Tool | None = None,
) -> PipelineOrchestrator:
    config = config or ShipwrightConfig()
    store = store or InMemoryTaskStore()
    controller = controller or create_controller(reasoning, config)
    return PipelineOrchestrator(
        store,
        ProjectAnalyzer(reasoning, store),
        controller,
        source_control=source_control,
        config=config.pipeline,
    )
