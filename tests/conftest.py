"""Test configuration and shared fixtures.

Pattern: Pytest fixtures, conftest.py
"""

import pytest

from src.consensus.config import SessionConfig
from src.consensus.events import InMemoryEventBus
from src.consensus.models import AnalysisDocument
from src.consensus.store import InMemoryRoundStore
from src.core.config import Settings, get_settings


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with safe defaults."""
    return Settings(
        environment="test",
        log_level="DEBUG",
    )


@pytest.fixture
def fast_config() -> SessionConfig:
    """Session config with short timeouts and no retries."""
    return SessionConfig(
        threshold=0.9,
        min_rounds=2,
        max_rounds=5,
        max_retries=0,
        call_timeout=1.0,
        round_timeout=2.0,
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are lru_cached; isolate env changes between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Document Fixtures
# ============================================================================

@pytest.fixture
def identical_documents() -> list[AnalysisDocument]:
    """Two agents reporting exactly the same statements."""
    return [
        AnalysisDocument(
            agent_id=agent_id,
            round=1,
            claims=("X", "Y"),
            risks=("Z",),
            recommendations=("W",),
        )
        for agent_id in ("claude", "gemini")
    ]


# ============================================================================
# Collaborator Fixtures
# ============================================================================

@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def round_store() -> InMemoryRoundStore:
    return InMemoryRoundStore()
