"""Application configuration using Pydantic Settings.

Environment variables are loaded with QUORUM_ prefix. The consensus_*
fields supply the defaults that every session config starts from.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.constants import DEFAULT_MAX_RETRIES, ConsensusDefaults, Timeouts


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service configuration
    service_name: str = "quorum-consensus"
    environment: str = Field(default="development", description="Runtime environment")
    log_level: str = Field(default="INFO", description="Logging level")

    # Consensus defaults
    consensus_threshold: float = Field(
        default=ConsensusDefaults.THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Consensus score required to accept a round",
    )
    consensus_min_rounds: int = Field(
        default=ConsensusDefaults.MIN_ROUNDS,
        description="Rounds that always run before consensus can be accepted",
    )
    consensus_max_rounds: int = Field(
        default=ConsensusDefaults.MAX_ROUNDS,
        description="Hard cap on rounds per session",
    )
    consensus_warning_threshold: float = Field(
        default=ConsensusDefaults.WARNING_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Scores below this emit a ConsensusWarning",
    )
    consensus_stagnation_threshold: float = Field(
        default=ConsensusDefaults.STAGNATION_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Minimum round-over-round improvement before escalation",
    )
    consensus_min_successful_agents: int = Field(
        default=ConsensusDefaults.MIN_SUCCESSFUL_AGENTS,
        description="Documents required to score a multi-agent round",
    )

    # Adapter calls
    agent_max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=0,
        description="Retries per agent per round after the first attempt",
    )
    agent_call_timeout_seconds: float = Field(
        default=Timeouts.AGENT_CALL,
        gt=0,
        description="Timeout for a single adapter call",
    )
    round_timeout_seconds: float = Field(
        default=Timeouts.ROUND,
        gt=0,
        description="Timeout bounding the join of one round",
    )

    model_config = SettingsConfigDict(
        env_prefix="QUORUM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings singleton
    """
    return Settings()
