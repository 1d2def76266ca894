"""Configuration for agents, verification and the delivery pipeline.

Defaults live on the dataclasses. ``load_config`` overlays a YAML file:

    model: sonnet
    log_level: INFO
    agents:            # applies to every role
      tool_timeout_seconds: 20
    roles:
      CODE_WRITER:
        max_iterations: 15
    verification:
      pass_threshold: 0.75
    pipeline:
      base_branch: develop
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

from .agents.roles import AgentRole
from .agents.types import DEFAULT_ROLE_CONFIGS, AgentConfig
from .exceptions import ConfigError


@dataclass(frozen=True)
class VerificationConfig:
    pass_threshold: float = 0.7
    # Score used when the judge's reply cannot be parsed. Equal to the pass
    # threshold, so an unparsable judgment never fails a step on its own.
    judge_fallback_score: float = 0.7
    compilable_languages: tuple[str, ...] = ("python", "py")


@dataclass(frozen=True)
class PipelineConfig:
    base_branch: str = "main"
    # Placeholder review gate: any of these in the review text rejects the PR.
    rejection_keywords: tuple[str, ...] = ("major issue", "critical bug", "reject")
    code_output_chars: int = 2000
    reason_chars: int = 500


@dataclass(frozen=True)
class ShipwrightConfig:
    model: str = "sonnet"
    log_level: str = "INFO"
    roles: dict[AgentRole, AgentConfig] = field(
        default_factory=lambda: dict(DEFAULT_ROLE_CONFIGS)
    )
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)

    def agent_config(self, role: AgentRole) -> AgentConfig:
        return self.roles.get(role, AgentConfig())


_TOP_LEVEL_KEYS = {"model", "log_level", "agents", "roles", "verification", "pipeline"}


def _overlay(base, overrides: dict | None, section: str):
    if not overrides:
        return base
    if not isinstance(overrides, dict):
        raise ConfigError(f"Section '{section}' must be a mapping")
    known = {f.name: f for f in fields(base)}
    unknown = set(overrides) - set(known)
    if unknown:
        raise ConfigError(f"Unknown keys in '{section}': {', '.join(sorted(unknown))}")
    values = {}
    for key, value in overrides.items():
        if isinstance(getattr(base, key), tuple) and isinstance(value, list):
            value = tuple(value)
        values[key] = value
    return replace(base, **values)


def build_config(data: dict | None) -> ShipwrightConfig:
    """Build a config from an already-parsed mapping."""
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    shared = data.get("agents") or {}
    roles: dict[AgentRole, AgentConfig] = {}
    for role, default in DEFAULT_ROLE_CONFIGS.items():
        roles[role] = _overlay(default, shared, "agents")

    for raw_role, overrides in (data.get("roles") or {}).items():
        try:
            role = AgentRole.parse(str(raw_role))
        except ValueError:
            raise ConfigError(f"Unknown role in 'roles': {raw_role}") from None
        roles[role] = _overlay(roles[role], overrides, f"roles.{role.value}")

    return ShipwrightConfig(
        model=str(data.get("model", "sonnet")),
        log_level=str(data.get("log_level", "INFO")).upper(),
        roles=roles,
        verification=_overlay(VerificationConfig(), data.get("verification"), "verification"),
        pipeline=_overlay(PipelineConfig(), data.get("pipeline"), "pipeline"),
    )


def load_config(path: Path | str | None = None) -> ShipwrightConfig:
    """Load configuration from a YAML file. A missing file yields defaults."""
    if path is None:
        return ShipwrightConfig()
    path = Path(path)
    if not path.exists():
        return ShipwrightConfig()
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    return build_config(data)
