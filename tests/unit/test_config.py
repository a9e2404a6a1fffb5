"""Unit tests for core configuration.

Pattern: Pydantic Settings testing
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.core.config import Settings, get_settings


class TestSettings:
    """Tests for Settings configuration class."""

    def test_settings_default_values(self) -> None:
        """Test that Settings has sensible defaults.

        Note: Environment variables may override defaults, so we check the
        Field defaults from the model rather than instantiated values.
        """
        fields = Settings.model_fields
        assert fields["service_name"].default == "quorum-consensus"
        assert fields["environment"].default == "development"
        assert fields["log_level"].default == "INFO"
        assert fields["consensus_threshold"].default == 0.90
        assert fields["consensus_min_rounds"].default == 2
        assert fields["consensus_max_rounds"].default == 5
        assert fields["agent_max_retries"].default == 2

    def test_settings_from_environment(self) -> None:
        """Test that Settings loads from environment variables."""
        env_vars = {
            "QUORUM_CONSENSUS_THRESHOLD": "0.8",
            "QUORUM_CONSENSUS_MAX_ROUNDS": "7",
            "QUORUM_AGENT_CALL_TIMEOUT_SECONDS": "30",
            "QUORUM_LOG_LEVEL": "DEBUG",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings()

            assert settings.consensus_threshold == 0.8
            assert settings.consensus_max_rounds == 7
            assert settings.agent_call_timeout_seconds == 30.0
            assert settings.log_level == "DEBUG"

    def test_settings_env_prefix(self) -> None:
        """Test that Settings uses QUORUM_ prefix correctly."""
        env_vars = {
            "CONSENSUS_MAX_ROUNDS": "9",
            "QUORUM_CONSENSUS_MAX_ROUNDS": "4",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings()

            assert settings.consensus_max_rounds == 4

    def test_threshold_bounds_validated(self) -> None:
        """Scores outside [0, 1] are rejected at load time."""
        with pytest.raises(ValidationError):
            Settings(consensus_threshold=1.5)

    def test_timeouts_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(round_timeout_seconds=0)

    def test_explicit_values(self, test_settings: Settings) -> None:
        assert test_settings.environment == "test"
        assert test_settings.log_level == "DEBUG"


class TestGetSettings:
    """Tests for get_settings function."""

    def test_get_settings_returns_settings(self) -> None:
        assert isinstance(get_settings(), Settings)

    def test_get_settings_cached(self) -> None:
        """Test that get_settings returns cached instance."""
        assert get_settings() is get_settings()
