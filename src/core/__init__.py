"""Core module - Configuration, logging, constants and exceptions.

Exports:
    - Settings, get_settings: Pydantic Settings configuration
    - configure_logging, get_logger: Structured logging (structlog)
    - Category, CATEGORY_WEIGHTS, ConsensusDefaults, Timeouts: constants
    - Exception classes: ConsensusError, ConsensusConfigError, etc.
"""

from src.core.config import Settings, get_settings
from src.core.constants import (
    CATEGORIES,
    CATEGORY_WEIGHTS,
    DEFAULT_MAX_RETRIES,
    DIVERGENCE_THRESHOLD,
    MIN_PAIRWISE_AGENTS,
    Category,
    ConsensusDefaults,
    Timeouts,
)
from src.core.exceptions import (
    AdapterError,
    ConsensusConfigError,
    ConsensusError,
    InsufficientAgentsError,
    SessionCancelledError,
    SessionClosedError,
)
from src.core.logging import (
    bind_session_context,
    clear_session_context,
    configure_logging,
    get_logger,
)


__all__ = [
    # Configuration
    "Settings",
    "get_settings",
    # Constants
    "CATEGORIES",
    "CATEGORY_WEIGHTS",
    "DEFAULT_MAX_RETRIES",
    "DIVERGENCE_THRESHOLD",
    "MIN_PAIRWISE_AGENTS",
    "Category",
    "ConsensusDefaults",
    "Timeouts",
    # Exceptions
    "AdapterError",
    "ConsensusConfigError",
    "ConsensusError",
    "InsufficientAgentsError",
    "SessionCancelledError",
    "SessionClosedError",
    # Logging
    "bind_session_context",
    "clear_session_context",
    "configure_logging",
    "get_logger",
]
