"""Unit tests for src/core/logging module.

Tests structured logging configuration and logger creation.
"""

from unittest.mock import MagicMock, patch

import pytest
import structlog

from src.core.logging import (
    add_service_context,
    bind_session_context,
    clear_session_context,
    configure_logging,
    get_logger,
)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_logging_development(self) -> None:
        """Test logging configuration for development environment."""
        with patch("src.core.logging.get_settings") as mock_settings:
            mock_settings.return_value.environment = "development"
            mock_settings.return_value.log_level = "DEBUG"
            mock_settings.return_value.service_name = "quorum-consensus"

            with patch("src.core.logging.structlog.configure") as mock_configure:
                # Reset configured flag for test
                import src.core.logging as logging_module
                logging_module._configured = False

                configure_logging()

                mock_configure.assert_called_once()

    def test_configure_logging_production_uses_json(self) -> None:
        """Test logging configuration for production environment."""
        with patch("src.core.logging.get_settings") as mock_settings:
            mock_settings.return_value.environment = "production"
            mock_settings.return_value.log_level = "INFO"
            mock_settings.return_value.service_name = "quorum-consensus"

            with patch("src.core.logging.structlog.configure") as mock_configure:
                import src.core.logging as logging_module
                logging_module._configured = False

                configure_logging()

                processors = mock_configure.call_args.kwargs["processors"]
                assert type(processors[-1]).__name__ == "JSONRenderer"

    def test_configure_logging_idempotent(self) -> None:
        """Test that configure_logging only configures once."""
        with patch("src.core.logging.get_settings") as mock_settings:
            mock_settings.return_value.environment = "development"
            mock_settings.return_value.log_level = "INFO"
            mock_settings.return_value.service_name = "quorum-consensus"

            with patch("src.core.logging.structlog.configure") as mock_configure:
                import src.core.logging as logging_module
                logging_module._configured = False

                configure_logging()
                configure_logging()

                mock_configure.assert_called_once()


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_with_name(self) -> None:
        """Test getting a named logger."""
        with patch("src.core.logging.structlog.get_logger") as mock_get:
            mock_get.return_value = MagicMock()

            get_logger("test_module")

            mock_get.assert_called_once_with("test_module")

    def test_get_logger_without_name(self) -> None:
        """Test getting logger without explicit name."""
        with patch("src.core.logging.structlog.get_logger") as mock_get:
            mock_get.return_value = MagicMock()

            get_logger()

            mock_get.assert_called_once_with(None)


class TestAddServiceContext:
    """Tests for add_service_context processor."""

    def test_adds_service_context(self) -> None:
        """Test that service context is added to log events."""
        with patch("src.core.logging.get_settings") as mock_settings:
            mock_settings.return_value.service_name = "quorum-consensus"
            mock_settings.return_value.environment = "test"

            result = add_service_context(None, "info", {"event": "round_evaluated"})

            assert result["service"] == "quorum-consensus"
            assert result["environment"] == "test"

    def test_preserves_existing_fields(self) -> None:
        """Test that existing fields are preserved."""
        with patch("src.core.logging.get_settings") as mock_settings:
            mock_settings.return_value.service_name = "quorum-consensus"
            mock_settings.return_value.environment = "test"

            event_dict = {"event": "round_evaluated", "phase_id": "analyze", "round": 2}
            result = add_service_context(None, "info", event_dict)

            assert result["phase_id"] == "analyze"
            assert result["round"] == 2


class TestSessionContext:
    """Tests for session context binding."""

    @pytest.fixture(autouse=True)
    def clean_contextvars(self):
        structlog.contextvars.clear_contextvars()
        yield
        structlog.contextvars.clear_contextvars()

    def test_binds_phase_only(self) -> None:
        bind_session_context("analyze")

        assert structlog.contextvars.get_contextvars() == {"phase_id": "analyze"}

    def test_binds_phase_and_round(self) -> None:
        bind_session_context("analyze")
        bind_session_context("analyze", round=3)

        context = structlog.contextvars.get_contextvars()
        assert context["phase_id"] == "analyze"
        assert context["round"] == 3

    def test_clear_keeps_unrelated_fields(self) -> None:
        structlog.contextvars.bind_contextvars(request_id="r-1")
        bind_session_context("analyze", round=1)

        clear_session_context()

        assert structlog.contextvars.get_contextvars() == {"request_id": "r-1"}
