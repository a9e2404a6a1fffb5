"""Session configuration for the consensus round controller.

Provides:
- SessionConfig: immutable per-session thresholds and round limits
- load_phase_configs(): per-phase configs from a YAML file

Configs are passed explicitly into each session; there is no module-level
mutable default, so concurrent sessions with different configs never
interfere.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from src.core.config import Settings, get_settings
from src.core.constants import (
    DEFAULT_MAX_RETRIES,
    MIN_PAIRWISE_AGENTS,
    ConsensusDefaults,
    Timeouts,
)
from src.core.exceptions import ConsensusConfigError


logger = logging.getLogger(__name__)


# =============================================================================
# SessionConfig
# =============================================================================


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Thresholds and limits for one consensus session.

    Attributes:
        threshold: Consensus score that accepts a round (0.0-1.0)
        min_rounds: Rounds that always run, even on early agreement
        max_rounds: Hard cap on rounds
        warning_threshold: Scores below this emit a ConsensusWarning
        stagnation_threshold: Minimum |delta| between rounds before escalation
        min_successful_agents: Documents needed to score a multi-agent round
        single_agent: Explicit single-agent bypass mode (one adapter, score 1.0)
        max_retries: Retries per agent per round after the first attempt
        call_timeout: Seconds allowed for one adapter call
        round_timeout: Seconds bounding the whole round join

    Raises:
        ConsensusConfigError: Listing every invalid field.
    """

    threshold: float = ConsensusDefaults.THRESHOLD
    min_rounds: int = ConsensusDefaults.MIN_ROUNDS
    max_rounds: int = ConsensusDefaults.MAX_ROUNDS
    warning_threshold: float = ConsensusDefaults.WARNING_THRESHOLD
    stagnation_threshold: float = ConsensusDefaults.STAGNATION_THRESHOLD
    min_successful_agents: int = ConsensusDefaults.MIN_SUCCESSFUL_AGENTS
    single_agent: bool = False
    max_retries: int = DEFAULT_MAX_RETRIES
    call_timeout: float = Timeouts.AGENT_CALL
    round_timeout: float = Timeouts.ROUND

    def __post_init__(self) -> None:
        errors = self._collect_errors()
        if errors:
            summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
            raise ConsensusConfigError(
                f"Invalid session config: {summary}",
                errors=errors,
            )

    def _collect_errors(self) -> list[dict[str, Any]]:
        errors: list[dict[str, Any]] = []

        def add(field: str, message: str) -> None:
            errors.append(
                {"field": field, "value": getattr(self, field), "message": message}
            )

        for name in ("threshold", "warning_threshold", "stagnation_threshold"):
            if not 0.0 <= getattr(self, name) <= 1.0:
                add(name, "must be between 0 and 1")
        if self.warning_threshold > self.threshold:
            add("warning_threshold", "must be <= threshold")
        if self.min_rounds < 1:
            add("min_rounds", "must be at least 1")
        if self.max_rounds < self.min_rounds:
            add("max_rounds", "must be >= min_rounds")
        if self.min_successful_agents < 1:
            add("min_successful_agents", "must be at least 1")
        if self.max_retries < 0:
            add("max_retries", "must be >= 0")
        if self.call_timeout <= 0:
            add("call_timeout", "must be positive")
        if self.round_timeout <= 0:
            add("round_timeout", "must be positive")
        return errors

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        **overrides: Any,
    ) -> SessionConfig:
        """Build a config from application settings.

        Args:
            settings: Settings to read; defaults to get_settings().
            **overrides: Field values that replace the settings values.

        Returns:
            Validated SessionConfig.
        """
        settings = settings or get_settings()
        values: dict[str, Any] = {
            "threshold": settings.consensus_threshold,
            "min_rounds": settings.consensus_min_rounds,
            "max_rounds": settings.consensus_max_rounds,
            "warning_threshold": settings.consensus_warning_threshold,
            "stagnation_threshold": settings.consensus_stagnation_threshold,
            "min_successful_agents": settings.consensus_min_successful_agents,
            "max_retries": settings.agent_max_retries,
            "call_timeout": settings.agent_call_timeout_seconds,
            "round_timeout": settings.round_timeout_seconds,
        }
        values.update(overrides)
        return cls(**values)

    @property
    def required_documents(self) -> int:
        """Documents a round must produce before it can be scored."""
        if self.single_agent:
            return 1
        return max(MIN_PAIRWISE_AGENTS, self.min_successful_agents)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


_CONFIG_FIELDS = frozenset(f.name for f in fields(SessionConfig))


# =============================================================================
# YAML phase configuration
# =============================================================================


def load_phase_configs(
    path: str | Path,
    settings: Settings | None = None,
) -> dict[str, SessionConfig]:
    """Load per-phase session configs from a YAML file.

    Expected layout::

        phases:
          analyze:
            threshold: 0.85
            max_rounds: 4
          plan:
            single_agent: true

    Keys missing from a phase fall back to the settings defaults.

    Args:
        path: YAML file location.
        settings: Settings supplying defaults.

    Returns:
        Mapping of phase_id to SessionConfig; empty if the file is missing.

    Raises:
        ConsensusConfigError: On unknown keys, malformed layout or invalid values.
        yaml.YAMLError: If the file is not valid YAML.
    """
    config_path = Path(path)
    if not config_path.exists():
        logger.warning("Consensus config file not found at %s, using defaults", config_path)
        return {}

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    phases = raw.get("phases", {}) if isinstance(raw, dict) else None
    if not isinstance(phases, dict):
        raise ConsensusConfigError(
            "phases must be a mapping of phase_id to config",
            errors=[{"field": "phases", "value": phases, "message": "must be a mapping"}],
        )

    configs: dict[str, SessionConfig] = {}
    for phase_id, values in phases.items():
        values = values or {}
        if not isinstance(values, dict):
            raise ConsensusConfigError(
                f"Config for phase {phase_id!r} must be a mapping",
                errors=[{"field": f"phases.{phase_id}", "value": values, "message": "must be a mapping"}],
                phase_id=phase_id,
            )
        unknown = sorted(set(values) - _CONFIG_FIELDS)
        if unknown:
            raise ConsensusConfigError(
                f"Unknown keys for phase {phase_id!r}: {', '.join(unknown)}",
                errors=[
                    {"field": f"phases.{phase_id}.{key}", "value": values[key], "message": "unknown key"}
                    for key in unknown
                ],
                phase_id=phase_id,
            )
        try:
            configs[phase_id] = SessionConfig.from_settings(settings, **values)
        except ConsensusConfigError as e:
            e.phase_id = phase_id
            raise

    logger.info("Loaded %d phase configs from %s", len(configs), config_path)
    return configs
