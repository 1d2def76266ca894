"""Reasoning client backed by the claude-agent-sdk.

The SDK drives the Claude CLI as a full agent with its own tools. Here it is
used for single completions: the built-in SDK tools are switched off and
one turn is taken per call. Our own tool catalogue is described in the
prompt, and the model requests a tool by replying with a JSON object, which
is mapped onto ``Act``. Plain text becomes ``Think`` when short and
``Answer`` when long or carrying code blocks.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from pathlib import Path

# Allow nested invocation from within a Claude Code session.
os.environ.pop("CLAUDECODE", None)

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    CLINotFoundError,
    ProcessError,
    ResultMessage,
    TextBlock,
    ToolUseBlock,
    query,
)

from .artifacts import extract_code_artifacts, extract_json
from .exceptions import AgentError
from .protocol import ToolDefinition
from .roles import AgentRole
from .steps import (
    Act,
    AgentStep,
    Answer,
    Delegate,
    DelegationContext,
    Error,
    Observe,
    Think,
    ToolSuccess,
)

logger = logging.getLogger(__name__)

# Replies shorter than this without code blocks are treated as thoughts.
ANSWER_MIN_CHARS = 100

_NON_RECOVERABLE = re.compile(
    r"\b(401|403|unauthori[sz]ed|auth(entication|orization)?(_error)?|api key"
    r"|permission denied|invalid_request(_error)?)\b"
)
_RATE_LIMITED = re.compile(r"\b(429|rate[ _-]?limit(ed|_error)?|too many requests)\b")

REPLY_FORMAT = """\
## How to reply
- To use a tool, reply with only a JSON object:
  {"tool": "<name>", "input": {"<param>": "<value>"}, "reasoning": "<why>"}
- To hand the task to another role, reply with only:
  {"delegate": "<ROLE>", "reason": "<why>", "task": "<what they should do>"}
- Otherwise think out loud briefly, or give your final answer. Put every
  file of a final answer in a fenced block tagged with language and filename."""


def render_tools(tools: list[ToolDefinition]) -> str:
    if not tools:
        return "## Tools\n(none)"
    lines = ["## Tools"]
    for tool in tools:
        params = ", ".join(
            f"{p.name}: {p.type}{'' if p.required else ' (optional)'}" for p in tool.parameters
        )
        lines.append(f"- {tool.name}({params}): {tool.description}")
    return "\n".join(lines)


def render_trajectory(trajectory: list[AgentStep]) -> str:
    if not trajectory:
        return "## Progress so far\nNothing yet. Start the task: think, then use a tool or answer."
    lines = ["## Progress so far"]
    for step in trajectory:
        if isinstance(step, Think):
            lines.append(f"[thought] {step.thought}")
        elif isinstance(step, Act):
            lines.append(f"[tool call] {step.tool_name} {json.dumps(step.tool_input)}")
        elif isinstance(step, Observe):
            if isinstance(step.result, ToolSuccess):
                lines.append(f"[tool result] {step.tool_name}: {step.result.output}")
            else:
                lines.append(f"[tool result] {step.tool_name}: ERROR: {step.result.error}")
        elif isinstance(step, Answer):
            lines.append(f"[answer] {step.content}")
        elif isinstance(step, Error):
            lines.append(f"[error] {step.message}. {step.suggested_action or 'Continue.'}")
        elif isinstance(step, Delegate):
            lines.append(f"[delegation] to {step.target_role.value}: {step.context.reason}")
    lines.append("\nWhat is your next step?")
    return "\n".join(lines)


def classify_failure(exc: BaseException) -> Error:
    """Map an SDK failure to an ``Error`` step; auth and install problems are fatal."""
    if isinstance(exc, CLINotFoundError):
        return Error(message=f"Claude CLI not found: {exc}", recoverable=False)
    if isinstance(exc, TimeoutError):
        return Error(message="Claude call timed out", recoverable=True, suggested_action="Retry")
    text = str(exc).lower()
    if isinstance(exc, ProcessError) and exc.stderr:
        text += " " + exc.stderr.lower()
    if _NON_RECOVERABLE.search(text):
        return Error(message=f"Claude call rejected: {exc}", recoverable=False)
    suggestion = "Rate limited, wait and retry" if _RATE_LIMITED.search(text) else "Retry"
    return Error(message=f"Claude call failed: {exc}", recoverable=True, suggested_action=suggestion)


def parse_reply(text: str, trajectory: list[AgentStep]) -> AgentStep:
    """Map model text onto a step."""
    stripped = text.strip()
    if stripped.startswith("{") or stripped.startswith("```json"):
        try:
            data = json.loads(extract_json(stripped))
        except ValueError:
            data = None
        if isinstance(data, dict) and "tool" in data:
            return Act(
                tool_name=str(data["tool"]),
                tool_input={str(k): str(v) for k, v in (data.get("input") or {}).items()},
                reasoning=str(data.get("reasoning", "")),
            )
        if isinstance(data, dict) and "delegate" in data:
            try:
                role = AgentRole.parse(str(data["delegate"]))
            except ValueError:
                return Error(message=f"Unknown delegation target: {data['delegate']}", recoverable=True)
            return Delegate(
                target_role=role,
                context=DelegationContext(
                    reason=str(data.get("reason", "")),
                    task_description=str(data.get("task", "")),
                    parent_trajectory=tuple(trajectory),
                ),
            )

    artifacts = extract_code_artifacts(stripped)
    if artifacts or len(stripped) > ANSWER_MIN_CHARS:
        return Answer(content=stripped, artifacts=tuple(artifacts))
    return Think(thought=stripped, confidence=0.5)


class ClaudeReasoningClient:
    """Implements ``ReasoningClient`` over ``claude_agent_sdk.query``."""

    def __init__(
        self,
        model: str = "sonnet",
        timeout: float = 180.0,
        working_dir: Path | None = None,
    ) -> None:
        self._model = model
        self._timeout = timeout
        self._working_dir = working_dir

    async def _complete(self, system: str, prompt: str) -> tuple[str, list[ToolUseBlock]]:
        options = ClaudeAgentOptions(
            model=self._model,
            system_prompt=system,
            tools=[],
            max_turns=1,
            cwd=self._working_dir,
        )
        text_parts: list[str] = []
        tool_uses: list[ToolUseBlock] = []
        result_text = ""

        async with asyncio.timeout(self._timeout):
            async for message in query(prompt=prompt, options=options):
                if isinstance(message, AssistantMessage):
                    for block in message.content:
                        if isinstance(block, TextBlock):
                            text_parts.append(block.text)
                        elif isinstance(block, ToolUseBlock):
                            tool_uses.append(block)
                elif isinstance(message, ResultMessage):
                    if message.is_error:
                        raise AgentError(f"Claude returned an error result: {message.result}")
                    result_text = message.result or ""

        text = "\n".join(text_parts).strip() or result_text.strip()
        return text, tool_uses

    async def reason(
        self, system: str, trajectory: list[AgentStep], tools: list[ToolDefinition]
    ) -> AgentStep:
        prompt = "\n\n".join([render_tools(tools), REPLY_FORMAT, render_trajectory(trajectory)])
        try:
            text, tool_uses = await self._complete(system, prompt)
        except Exception as e:
            logger.warning("Claude reasoning call failed: %s", e)
            return classify_failure(e)

        if tool_uses:
            block = tool_uses[0]
            return Act(
                tool_name=block.name,
                tool_input={str(k): str(v) for k, v in (block.input or {}).items()},
                reasoning=text,
            )
        if not text:
            return Error(message="Empty reply", recoverable=True)
        return parse_reply(text, trajectory)

    async def chat(self, system: str, user: str) -> str:
        text, _ = await self._complete(system, user)
        return text
