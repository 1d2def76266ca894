"""Episodic, graph and session memory."""

from __future__ import annotations

import logging
import re
from typing import assert_never

from ..agents.protocol import Episode, Fact, GraphContext, MemoryLayer
from ..agents.steps import Act, AgentStep, Answer, Delegate, Error, Observe, Think
from ..agents.types import AgentTask

logger = logging.getLogger(__name__)

LONG_TRAJECTORY_STEPS = 8


def summarize_trajectory(trajectory: list[AgentStep]) -> str:
    parts: list[str] = []
    for step in trajectory:
        if isinstance(step, Think):
            parts.append(f"Think: {step.thought[:100]}")
        elif isinstance(step, Act):
            parts.append(f"Act: {step.tool_name}({step.reasoning[:50]})")
        elif isinstance(step, Observe):
            outcome = "success" if step.result.is_success else "failure"
            parts.append(f"Observe: {step.tool_name} -> {outcome}")
        elif isinstance(step, Answer):
            parts.append(f"Answer: {step.content[:100]}")
        elif isinstance(step, Error):
            parts.append(f"Error: {step.message[:100]}")
        elif isinstance(step, Delegate):
            parts.append(f"Delegate: -> {step.target_role.value}")
        else:
            assert_never(step)
    return " | ".join(parts)


def outcome_score(answer: Answer, trajectory: list[AgentStep]) -> float:
    """Heuristic quality of a finished run, in [0, 1]."""
    score = 0.5
    if answer.artifacts:
        score += 0.2
    score -= 0.1 * sum(1 for s in trajectory if isinstance(s, Error))
    if len(trajectory) > LONG_TRAJECTORY_STEPS:
        score -= 0.1
    return min(1.0, max(0.0, score))


def _words(text: str) -> set[str]:
    return set(re.findall(r"[a-z0-9_]+", text.lower()))


class InMemoryMemory:
    """Process-local memory.

    Similarity is word overlap (Jaccard) between the query and the stored
    task description; good enough for tests and single-process runs.
    """

    def __init__(self) -> None:
        self.episodes: list[Episode] = []
        self.facts: list[Fact] = []
        self._sessions: dict[str, str] = {}

    async def recall_similar(self, query: str, limit: int = 5) -> list[Episode]:
        query_words = _words(query)
        if not query_words:
            return []
        scored = []
        for episode in self.episodes:
            words = _words(episode.task_description)
            overlap = len(query_words & words) / len(query_words | words) if words else 0.0
            if overlap > 0:
                scored.append((overlap, episode))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [episode for _, episode in scored[:limit]]

    async def query_graph(self, entities: list[str]) -> GraphContext:
        wanted = {e.lower() for e in entities}
        related = tuple(
            f for f in self.facts
            if f.subject.lower() in wanted or f.object.lower() in wanted
        )
        return GraphContext(facts=related, entities=tuple(entities))

    async def store_episode(
        self, task: AgentTask, trajectory: list[AgentStep], answer: Answer
    ) -> None:
        episode = Episode(
            task_description=task.description,
            trajectory_summary=summarize_trajectory(trajectory),
            outcome_score=outcome_score(answer, trajectory),
            artifacts=tuple(answer.artifacts),
        )
        self.episodes.append(episode)
        logger.debug("Episode stored: %s (score %.2f)", task.description[:50], episode.outcome_score)

    async def update_graph(self, facts: list[Fact]) -> None:
        for fact in facts:
            if fact not in self.facts:
                self.facts.append(fact)

    async def get_session_context(self, session_id: str) -> str:
        return self._sessions.get(session_id, "")

    async def update_session_context(self, session_id: str, context: str) -> None:
        self._sessions[session_id] = context


class GuardedMemory:
    """Wraps a memory backend so its failures degrade to empty results.

    Reads return empty values and writes become no-ops, each logged as a
    warning, so an unavailable backend never fails an agent run.
    """

    def __init__(self, inner: MemoryLayer) -> None:
        self._inner = inner

    async def recall_similar(self, query: str, limit: int = 5) -> list[Episode]:
        try:
            return await self._inner.recall_similar(query, limit)
        except Exception as e:
            logger.warning("Episodic recall failed, returning empty: %s", e)
            return []

    async def query_graph(self, entities: list[str]) -> GraphContext:
        try:
            return await self._inner.query_graph(entities)
        except Exception as e:
            logger.warning("Graph query failed, returning empty: %s", e)
            return GraphContext(entities=tuple(entities))

    async def store_episode(
        self, task: AgentTask, trajectory: list[AgentStep], answer: Answer
    ) -> None:
        try:
            await self._inner.store_episode(task, trajectory, answer)
        except Exception as e:
            logger.warning("Failed to store episode: %s", e)

    async def update_graph(self, facts: list[Fact]) -> None:
        try:
            await self._inner.update_graph(facts)
        except Exception as e:
            logger.warning("Failed to update graph: %s", e)

    async def get_session_context(self, session_id: str) -> str:
        try:
            return await self._inner.get_session_context(session_id)
        except Exception as e:
            logger.warning("Session context read failed: %s", e)
            return ""

    async def update_session_context(self, session_id: str, context: str) -> None:
        try:
            await self._inner.update_session_context(session_id, context)
        except Exception as e:
            logger.warning("Session context write failed: %s", e)
