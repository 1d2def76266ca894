"""Tests for progress events and sink delivery."""

from __future__ import annotations

from shipwright.events import (
    DelegationEvent,
    DoneEvent,
    ErrorEvent,
    PipelineUpdateEvent,
    PlanUpdateEvent,
    StepStatus,
    TaskCreatedEvent,
    ThinkingEvent,
    ToolCallEvent,
    ToolResultEvent,
    emit,
)


class TestWireFormat:
    def test_type_tags_are_unique(self):
        events = [
            ThinkingEvent("t"),
            ToolCallEvent("tool", "{}"),
            ToolResultEvent("tool", "out", True),
            PlanUpdateEvent("s1", StepStatus.RUNNING, "d"),
            DelegationEvent("Code Writer", "Researcher", "r"),
            DoneEvent("a"),
            ErrorEvent("m", False),
            PipelineUpdateEvent("1", "DEPLOYED", "m"),
            TaskCreatedEvent("1", "t", "BACKEND"),
        ]
        tags = [e.to_dict()["type"] for e in events]
        assert len(set(tags)) == len(tags)
        assert all(e.to_dict()["type"] == e.type for e in events)

    def test_plan_update(self):
        assert PlanUpdateEvent("s1", StepStatus.FAILED, "Error: boom").to_dict() == {
            "type": "plan_update",
            "step_id": "s1",
            "status": "FAILED",
            "description": "Error: boom",
        }

    def test_done(self):
        assert DoneEvent("ok", {"total_steps": 1}).to_dict() == {
            "type": "done",
            "answer": "ok",
            "metadata": {"total_steps": 1},
        }


class TestEmit:
    async def test_none_sink(self):
        await emit(None, ThinkingEvent("ignored"))

    async def test_sync_sink(self):
        seen = []
        await emit(seen.append, ThinkingEvent("hi"))
        assert seen == [ThinkingEvent("hi")]

    async def test_async_sink(self):
        seen = []

        async def sink(event):
            seen.append(event)

        await emit(sink, ErrorEvent("m", True))
        assert seen == [ErrorEvent("m", True)]
