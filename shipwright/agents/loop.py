"""Agent execution loop: think, act, observe until an answer or a budget runs out."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Callable, assert_never

from ..events import (
    TOOL_OUTPUT_PREVIEW_CHARS,
    DelegationEvent,
    DoneEvent,
    ErrorEvent,
    EventSink,
    ThinkingEvent,
    ToolCallEvent,
    ToolResultEvent,
    emit,
)
from .exceptions import (
    DelegationRequested,
    MaxIterationsExceededError,
    NonRecoverableAgentError,
    RetryBudgetExceededError,
)
from .prompts import build_system_prompt
from .protocol import MemoryLayer, ReasoningClient, Tool, tool_definition
from .roles import AgentRole
from .steps import (
    Act,
    AgentStep,
    Answer,
    AnswerMetadata,
    Delegate,
    Error,
    Observe,
    Think,
    ToolFailure,
    ToolResult,
    ToolSuccess,
)
from .types import AgentConfig, AgentTask

logger = logging.getLogger(__name__)

EPISODE_RECALL_LIMIT = 5


class AgentLoop:
    """Runs one role's reasoning loop for a single task.

    Each call to the reasoning client consumes one iteration. An ``Act``
    naming a tool that is not registered is answered with a failed
    observation and costs nothing beyond its iteration. Tool faults and
    timeouts become retryable failures the model gets to see; only ``Error``
    steps count against the retry budget.

    Outcomes:
        - ``Answer`` returned, with metadata attached
        - ``DelegationRequested`` raised for a ``Delegate`` step
        - ``NonRecoverableAgentError``, ``RetryBudgetExceededError`` or
          ``MaxIterationsExceededError`` raised otherwise
    """

    def __init__(
        self,
        role: AgentRole,
        reasoning: ReasoningClient,
        tools: list[Tool] | dict[str, Tool],
        memory: MemoryLayer,
        config: AgentConfig | None = None,
        prompt_builder: Callable[..., str] = build_system_prompt,
    ) -> None:
        self.role = role
        self._reasoning = reasoning
        if isinstance(tools, dict):
            self._tools = dict(tools)
        else:
            self._tools = {t.name: t for t in tools}
        self._memory = memory
        self.config = config or AgentConfig()
        self._prompt_builder = prompt_builder

    @property
    def tool_names(self) -> list[str]:
        return sorted(self._tools)

    async def build_system_prompt(self, task: AgentTask) -> str:
        episodes = await self._memory.recall_similar(task.description, limit=EPISODE_RECALL_LIMIT)
        graph = await self._memory.query_graph(task.entities())
        return self._prompt_builder(
            self.role, task.description, episodes, graph, task.constraints, task.context
        )

    async def run(self, task: AgentTask, on_event: EventSink | None = None) -> Answer:
        name = self.role.display_name
        trajectory: list[AgentStep] = []
        retry_count = 0

        logger.info("[%s] Starting task: %s", name, task.description[:80])
        system_prompt = await self.build_system_prompt(task)
        definitions = [tool_definition(t) for t in self._tools.values()]

        for iteration in range(1, self.config.max_iterations + 1):
            logger.debug("[%s] Iteration %d/%d", name, iteration, self.config.max_iterations)

            try:
                step = await self._reasoning.reason(system_prompt, list(trajectory), definitions)
            except Exception as e:
                logger.error("[%s] Reasoning call failed", name, exc_info=True)
                step = Error(
                    message=f"Reasoning call failed: {e}",
                    recoverable=retry_count < self.config.max_retries,
                    suggested_action="Retry",
                )

            if isinstance(step, Observe):
                logger.warning(
                    "[%s] Reasoning client produced an observation for %s; ignored",
                    name, step.tool_name,
                )
                continue

            trajectory.append(step)

            if isinstance(step, Think):
                logger.debug("[%s] Think: %s", name, step.thought[:100])
                if step.confidence >= self.config.confidence_threshold:
                    logger.info("[%s] High confidence (%.2f)", name, step.confidence)
                await emit(on_event, ThinkingEvent(step.thought))

            elif isinstance(step, Act):
                observation = await self._act(step, on_event)
                trajectory.append(observation)

            elif isinstance(step, Answer):
                answer = self._with_metadata(step, trajectory)
                trajectory[-1] = answer
                logger.info("[%s] Answer ready (%d artifacts)", name, len(answer.artifacts))
                try:
                    await self._memory.store_episode(task, list(trajectory), answer)
                except Exception:
                    logger.warning("[%s] Failed to store episode", name, exc_info=True)
                await emit(
                    on_event,
                    DoneEvent(answer.content, answer.metadata.to_dict() if answer.metadata else None),
                )
                return answer

            elif isinstance(step, Delegate):
                logger.info("[%s] Delegating to %s", name, step.target_role.display_name)
                await emit(
                    on_event,
                    DelegationEvent(name, step.target_role.display_name, step.context.reason),
                )
                raise DelegationRequested(step)

            elif isinstance(step, Error):
                logger.warning(
                    "[%s] Error: %s (recoverable: %s)", name, step.message, step.recoverable
                )
                await emit(on_event, ErrorEvent(step.message, step.recoverable))
                if not step.recoverable:
                    raise NonRecoverableAgentError(step.message)
                retry_count += 1
                if retry_count >= self.config.max_retries:
                    raise RetryBudgetExceededError(self.config.max_retries, step.message)

            else:
                assert_never(step)

        raise MaxIterationsExceededError(self.config.max_iterations)

    async def _act(self, step: Act, on_event: EventSink | None) -> Observe:
        name = self.role.display_name
        logger.info("[%s] Act: %s(%s)", name, step.tool_name, step.reasoning[:50])
        await emit(on_event, ToolCallEvent(step.tool_name, str(step.tool_input)))

        tool = self._tools.get(step.tool_name)
        if tool is None:
            await emit(on_event, ToolResultEvent(step.tool_name, "Unknown tool", False))
            return Observe(
                tool_name=step.tool_name,
                result=ToolFailure(f"Unknown tool: {step.tool_name}", retryable=True),
                duration_ms=0,
            )

        started = time.monotonic()
        result: ToolResult
        timeout = self.config.tool_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                result = await tool.execute(dict(step.tool_input))
        except TimeoutError:
            result = ToolFailure(f"Tool timeout ({timeout}s): {step.tool_name}", retryable=True)
        except Exception as e:
            logger.error("[%s] Tool '%s' raised", name, step.tool_name, exc_info=True)
            result = ToolFailure(f"Tool exception: {e}", retryable=True)
        duration_ms = int((time.monotonic() - started) * 1000)

        if isinstance(result, ToolSuccess):
            preview = result.output[:TOOL_OUTPUT_PREVIEW_CHARS]
        else:
            preview = f"ERROR: {result.error}"
        await emit(on_event, ToolResultEvent(step.tool_name, preview, result.is_success))
        return Observe(tool_name=step.tool_name, result=result, duration_ms=duration_ms)

    def _with_metadata(self, answer: Answer, trajectory: list[AgentStep]) -> Answer:
        tools_used: list[str] = []
        for s in trajectory:
            if isinstance(s, Act) and s.tool_name not in tools_used:
                tools_used.append(s.tool_name)
        duration = sum(s.duration_ms for s in trajectory if isinstance(s, Observe))
        return replace(
            answer,
            metadata=AnswerMetadata(
                total_steps=len(trajectory),
                tools_used=tuple(tools_used),
                total_duration_ms=duration,
                roles_involved=(self.role,),
            ),
        )
