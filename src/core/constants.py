"""Consensus engine constants and default configuration values.

Provides centralized constants for the consensus protocol:
- Category weights for the round-level consensus score
- Default round-escalation thresholds
- Default adapter timeouts and retry budget
"""

from enum import Enum


# =============================================================================
# Statement Categories
# =============================================================================

class Category(str, Enum):
    """Statement categories extracted from every analysis document."""

    CLAIMS = "claims"
    RISKS = "risks"
    RECOMMENDATIONS = "recommendations"


CATEGORIES: tuple[Category, ...] = (
    Category.CLAIMS,
    Category.RISKS,
    Category.RECOMMENDATIONS,
)

# Fixed weights; must sum to 1.0
CATEGORY_WEIGHTS: dict[Category, float] = {
    Category.CLAIMS: 0.40,
    Category.RISKS: 0.30,
    Category.RECOMMENDATIONS: 0.30,
}

WEIGHT_SUM_TOLERANCE = 1e-9

# Agent pairs scoring below this in a category are reported as divergent
DIVERGENCE_THRESHOLD = 0.5


# =============================================================================
# Round Escalation Defaults
# =============================================================================

class ConsensusDefaults:
    """Default values for per-session consensus configuration.

    These can be overridden via Settings or per phase.
    """

    THRESHOLD: float = 0.90
    MIN_ROUNDS: int = 2
    MAX_ROUNDS: int = 5
    WARNING_THRESHOLD: float = 0.30
    STAGNATION_THRESHOLD: float = 0.02
    MIN_SUCCESSFUL_AGENTS: int = 2


# =============================================================================
# Adapter Call Defaults
# =============================================================================

class Timeouts:
    """Default timeout values in seconds."""

    AGENT_CALL: float = 120.0
    ROUND: float = 600.0


DEFAULT_MAX_RETRIES = 2

# Pairwise comparison needs at least two contributors
MIN_PAIRWISE_AGENTS = 2
