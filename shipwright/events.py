"""Typed progress events streamed to an optional sink.

Every event has a fixed ``type`` tag and a ``to_dict`` whose keys are the
wire contract for whatever transport sits on top. A sink is any callable
taking one event; it may be a coroutine function. ``None`` means nobody is
listening.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar, Union

TOOL_OUTPUT_PREVIEW_CHARS = 500


class StepStatus(Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ThinkingEvent:
    type: ClassVar[str] = "thinking"
    thought: str

    def to_dict(self) -> dict:
        return {"type": self.type, "thought": self.thought}


@dataclass(frozen=True)
class ToolCallEvent:
    type: ClassVar[str] = "tool_call"
    tool: str
    input: str

    def to_dict(self) -> dict:
        return {"type": self.type, "tool": self.tool, "input": self.input}


@dataclass(frozen=True)
class ToolResultEvent:
    type: ClassVar[str] = "tool_result"
    tool: str
    output: str
    success: bool

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "tool": self.tool,
            "output": self.output,
            "success": self.success,
        }


@dataclass(frozen=True)
class PlanUpdateEvent:
    type: ClassVar[str] = "plan_update"
    step_id: str
    status: StepStatus
    description: str

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "step_id": self.step_id,
            "status": self.status.value,
            "description": self.description,
        }


@dataclass(frozen=True)
class DelegationEvent:
    type: ClassVar[str] = "delegation"
    from_role: str
    to_role: str
    reason: str

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "from_role": self.from_role,
            "to_role": self.to_role,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class DoneEvent:
    type: ClassVar[str] = "done"
    answer: str
    metadata: dict | None = None

    def to_dict(self) -> dict:
        return {"type": self.type, "answer": self.answer, "metadata": self.metadata}


@dataclass(frozen=True)
class ErrorEvent:
    type: ClassVar[str] = "error"
    message: str
    recoverable: bool

    def to_dict(self) -> dict:
        return {"type": self.type, "message": self.message, "recoverable": self.recoverable}


@dataclass(frozen=True)
class PipelineUpdateEvent:
    type: ClassVar[str] = "pipeline_update"
    task_id: str
    status: str
    message: str

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "task_id": self.task_id,
            "status": self.status,
            "message": self.message,
        }


@dataclass(frozen=True)
class TaskCreatedEvent:
    type: ClassVar[str] = "task_created"
    task_id: str
    title: str
    category: str

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "task_id": self.task_id,
            "title": self.title,
            "category": self.category,
        }


StreamEvent = Union[
    ThinkingEvent,
    ToolCallEvent,
    ToolResultEvent,
    PlanUpdateEvent,
    DelegationEvent,
    DoneEvent,
    ErrorEvent,
    PipelineUpdateEvent,
    TaskCreatedEvent,
]

EventSink = Callable[[StreamEvent], Union[Awaitable[Any], Any]]


async def emit(sink: EventSink | None, event: StreamEvent) -> None:
    """Deliver one event, awaiting the sink if it returned an awaitable."""
    if sink is None:
        return
    result = sink(event)
    if inspect.isawaitable(result):
        await result
