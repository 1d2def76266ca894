"""Verification gate: compile check, model judgment, test run.

All three layers run when their inputs are present; issues and suggestions
accumulate across them. ``passed`` is derived from the collected issues and
the judge score and cannot be set directly.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum

from ..agents.artifacts import extract_json
from ..agents.protocol import ReasoningClient, Tool
from ..agents.steps import Answer, CodeArtifact, ToolFailure
from ..config import VerificationConfig
from .plan import PlanStep

logger = logging.getLogger(__name__)

JUDGE_SYSTEM_PROMPT = """\
You are a code review judge. Score the code on:
1. Correctness: does it do what the task asks?
2. Idiomatic Python
3. Error handling
4. Performance

Return only JSON:
{"score": 0.0-1.0, "issues": [{"severity": "WARNING", "description": "...", "location": "file.py"}], "suggestions": ["..."]}"""


class Severity(Enum):
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"


@dataclass(frozen=True)
class Issue:
    severity: Severity
    description: str
    location: str | None = None


@dataclass(frozen=True)
class VerificationResult:
    score: float
    issues: tuple[Issue, ...] = ()
    suggestions: tuple[str, ...] = ()
    judge_parsed: bool = True
    pass_threshold: float = 0.7

    @property
    def has_critical(self) -> bool:
        return any(i.severity is Severity.CRITICAL for i in self.issues)

    @property
    def passed(self) -> bool:
        return not self.has_critical and self.score >= self.pass_threshold


@dataclass(frozen=True)
class JudgeVerdict:
    score: float
    issues: tuple[Issue, ...]
    suggestions: tuple[str, ...]


def parse_judgment(text: str) -> JudgeVerdict:
    """Parse the judge's reply. Raises ``ValueError`` when it is unusable."""
    data = json.loads(extract_json(text))
    if not isinstance(data, dict):
        raise ValueError("Judgment is not a JSON object")
    if "score" not in data:
        raise ValueError("Judgment has no score")
    score = min(1.0, max(0.0, float(data["score"])))

    issues: list[Issue] = []
    for raw in data.get("issues") or []:
        if isinstance(raw, str):
            issues.append(Issue(Severity.WARNING, raw))
        elif isinstance(raw, dict):
            try:
                severity = Severity(str(raw.get("severity", "WARNING")).upper())
            except ValueError:
                severity = Severity.WARNING
            location = raw.get("location")
            issues.append(
                Issue(
                    severity,
                    str(raw.get("description", "")),
                    str(location) if location is not None else None,
                )
            )
    suggestions = tuple(str(s) for s in data.get("suggestions") or [])
    return JudgeVerdict(score=score, issues=tuple(issues), suggestions=suggestions)


class VerificationGate:
    """Scores a step's answer.

    Layer 1 compiles every artifact in a compilable language; a failure is
    CRITICAL at that file. Layer 2 asks the model for a score, issues and
    suggestions; an unparsable reply falls back to
    ``config.judge_fallback_score`` and marks ``judge_parsed=False``.
    Layer 3 runs the tests when the answer has both test and source
    artifacts; a failure is CRITICAL. Tool layers are skipped when no tool
    is configured. A tool that raises is logged and its layer skipped.
    """

    def __init__(
        self,
        reasoning: ReasoningClient,
        compiler: Tool | None = None,
        test_runner: Tool | None = None,
        config: VerificationConfig | None = None,
    ) -> None:
        self._reasoning = reasoning
        self._compiler = compiler
        self._test_runner = test_runner
        self.config = config or VerificationConfig()

    async def verify(self, step: PlanStep, answer: Answer) -> VerificationResult:
        issues: list[Issue] = []
        suggestions: list[str] = []

        issues.extend(await self._compile_check(answer.artifacts))

        verdict = await self._judge(step, answer)
        if verdict is None:
            score = self.config.judge_fallback_score
            judge_parsed = False
        else:
            score = verdict.score
            issues.extend(verdict.issues)
            suggestions.extend(verdict.suggestions)
            judge_parsed = True

        issues.extend(await self._run_tests(answer.artifacts))

        result = VerificationResult(
            score=score,
            issues=tuple(issues),
            suggestions=tuple(suggestions),
            judge_parsed=judge_parsed,
            pass_threshold=self.config.pass_threshold,
        )
        logger.info(
            "Verified step %s: score=%.2f issues=%d passed=%s",
            step.id, result.score, len(result.issues), result.passed,
        )
        return result

    async def _compile_check(self, artifacts: tuple[CodeArtifact, ...]) -> list[Issue]:
        if self._compiler is None:
            return []
        issues = []
        languages = {lang.lower() for lang in self.config.compilable_languages}
        for artifact in artifacts:
            if artifact.language.lower() not in languages:
                continue
            try:
                result = await self._compiler.execute(
                    {"code": artifact.content, "filename": artifact.filename}
                )
            except Exception:
                logger.warning("Compile check raised for %s", artifact.filename, exc_info=True)
                continue
            if isinstance(result, ToolFailure):
                issues.append(
                    Issue(Severity.CRITICAL, f"Compile error: {result.error}", artifact.filename)
                )
            else:
                logger.debug("Compile check passed: %s", artifact.filename)
        return issues

    async def _judge(self, step: PlanStep, answer: Answer) -> JudgeVerdict | None:
        code = "\n---\n".join(f"# {a.filename}\n{a.content}" for a in answer.artifacts)
        user = (
            f"Task: {step.description}\n"
            f"Constraints: {', '.join(step.constraints) or 'none'}\n"
            f"Code:\n{code}"
        )
        try:
            reply = await self._reasoning.chat(JUDGE_SYSTEM_PROMPT, user)
            return parse_judgment(reply)
        except Exception as e:
            logger.warning(
                "Judge reply unusable for step %s, using fallback score %.2f: %s",
                step.id, self.config.judge_fallback_score, e,
            )
            return None

    async def _run_tests(self, artifacts: tuple[CodeArtifact, ...]) -> list[Issue]:
        if self._test_runner is None:
            return []
        tests = [a for a in artifacts if a.is_test]
        sources = [a for a in artifacts if not a.is_test]
        if not tests or not sources:
            return []
        try:
            result = await self._test_runner.execute(
                {
                    "source_code": sources[0].content,
                    "source_filename": sources[0].filename,
                    "test_code": tests[0].content,
                    "test_filename": tests[0].filename,
                }
            )
        except Exception:
            logger.warning("Test execution raised", exc_info=True)
            return []
        if isinstance(result, ToolFailure):
            return [Issue(Severity.CRITICAL, f"Tests failed: {result.error}", tests[0].filename)]
        logger.debug("Tests passed")
        return []
