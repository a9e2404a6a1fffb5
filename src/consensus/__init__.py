"""Consensus module for multi-agent round-based agreement.

Purpose: Run N independent agent adapters per round, score their agreement
per category, and escalate through rounds until consensus, the round cap,
or human review.

This module provides:
- AgentAdapterProtocol: Duck-typed interface for agent adapters
- HeadingExtractor / JsonExtractor: Categorized statement extraction
- similarity(): Jaccard similarity over normalized statements
- evaluate_round(): Weighted round-level consensus score
- RoundController / decide(): Round escalation state machine
- ConsensusEngine: Orchestrator running adapters concurrently per round
- Event models and InMemoryEventBus; InMemoryRoundStore
- SessionConfig / load_phase_configs(): Per-session configuration
"""

from src.consensus.config import SessionConfig, load_phase_configs
from src.consensus.controller import (
    ConsensusSession,
    Decision,
    RoundController,
    decide,
)
from src.consensus.engine import ConsensusEngine, SessionHandle
from src.consensus.evaluator import (
    category_score,
    evaluate_round,
    find_agreement,
    find_disagreements,
    find_divergences,
    pair_scores,
    validate_weights,
)
from src.consensus.events import (
    ConsensusEvent,
    ConsensusWarning,
    InMemoryEventBus,
    RoundEvaluated,
    RoundStarted,
    SessionFinished,
)
from src.consensus.extractor import (
    ExtractedStatements,
    ExtractorProtocol,
    HeadingExtractor,
    JsonExtractor,
)
from src.consensus.models import (
    AnalysisDocument,
    Divergence,
    FinalState,
    ReviewReason,
    RoundContext,
    RoundResult,
    SessionSnapshot,
)
from src.consensus.protocols import (
    AgentAdapterProtocol,
    EventSinkProtocol,
    RoundStoreProtocol,
)
from src.consensus.similarity import normalize_statement, similarity
from src.consensus.store import InMemoryRoundStore

__all__ = [
    "AgentAdapterProtocol",
    "AnalysisDocument",
    "ConsensusEngine",
    "ConsensusEvent",
    "ConsensusSession",
    "ConsensusWarning",
    "Decision",
    "Divergence",
    "EventSinkProtocol",
    "ExtractedStatements",
    "ExtractorProtocol",
    "FinalState",
    "HeadingExtractor",
    "InMemoryEventBus",
    "InMemoryRoundStore",
    "JsonExtractor",
    "ReviewReason",
    "RoundContext",
    "RoundController",
    "RoundEvaluated",
    "RoundResult",
    "RoundStarted",
    "RoundStoreProtocol",
    "SessionConfig",
    "SessionFinished",
    "SessionHandle",
    "SessionSnapshot",
    "category_score",
    "decide",
    "evaluate_round",
    "find_agreement",
    "find_disagreements",
    "find_divergences",
    "load_phase_configs",
    "normalize_statement",
    "pair_scores",
    "similarity",
    "validate_weights",
]
