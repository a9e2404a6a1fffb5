"""Data models for the consensus protocol.

Models:
- AnalysisDocument: one agent's categorized output for one round
- Divergence: one agent pair scoring low in one category
- RoundResult: evaluation of one round (per-category and weighted score)
- RoundContext: what an adapter sees from earlier rounds
- SessionSnapshot: immutable read-only view of a consensus session
- FinalState / ReviewReason: session lifecycle enums

Frozen dataclasses throughout; mappings are wrapped in MappingProxyType
so an attached result cannot be altered by readers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from src.consensus.config import SessionConfig
from src.core.constants import CATEGORIES, Category


# =============================================================================
# Lifecycle enums
# =============================================================================


class FinalState(str, Enum):
    """Consensus session state.

    States:
        IN_PROGRESS: Rounds are still being run
        CONSENSUS_REACHED: Score met the threshold after min_rounds
        MAX_ROUNDS_EXHAUSTED: Round cap hit without consensus
        HUMAN_REVIEW_REQUIRED: Automated iteration cannot decide
    """

    IN_PROGRESS = "in_progress"
    CONSENSUS_REACHED = "consensus_reached"
    MAX_ROUNDS_EXHAUSTED = "max_rounds_exhausted"
    HUMAN_REVIEW_REQUIRED = "human_review_required"

    @property
    def is_terminal(self) -> bool:
        return self is not FinalState.IN_PROGRESS


class ReviewReason(str, Enum):
    """Reason code carried by a HumanReviewRequired session."""

    STAGNATION = "stagnation"
    INSUFFICIENT_AGENTS = "insufficient_agents"
    CANCELLED = "cancelled"


# =============================================================================
# AnalysisDocument
# =============================================================================


@dataclass(frozen=True, slots=True)
class AnalysisDocument:
    """One agent's output for one round.

    Attributes:
        agent_id: Identifier of the producing agent
        round: 1-based round number
        raw_text: Full unstructured output (audit only, never scored)
        claims: Claim statements in extraction order
        risks: Risk statements in extraction order
        recommendations: Recommendation statements in extraction order
        has_markers: False when extraction found no category marker; the
            document then agrees with nothing
    """

    agent_id: str
    round: int
    raw_text: str = ""
    claims: tuple[str, ...] = ()
    risks: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    has_markers: bool = True

    def __post_init__(self) -> None:
        if self.round < 1:
            raise ValueError(f"AnalysisDocument round must be >= 1, got {self.round}")
        # Accept lists from callers but store tuples
        for category in CATEGORIES:
            object.__setattr__(self, category.value, tuple(getattr(self, category.value)))

    def statements(self, category: Category) -> tuple[str, ...]:
        """Statements for one category."""
        return getattr(self, Category(category).value)

    @property
    def is_empty(self) -> bool:
        """True when no category holds any statement."""
        return not (self.claims or self.risks or self.recommendations)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "agent_id": self.agent_id,
            "round": self.round,
            "raw_text": self.raw_text,
            "claims": list(self.claims),
            "risks": list(self.risks),
            "recommendations": list(self.recommendations),
            "has_markers": self.has_markers,
        }


# =============================================================================
# Divergence
# =============================================================================


@dataclass(frozen=True, slots=True)
class Divergence:
    """One agent pair whose statements diverge in one category.

    Attributes:
        category: Category the pair was scored on
        agent_a: First agent of the pair (canonical document order)
        agent_b: Second agent of the pair
        items_a: Statements agent_a asserted in the category
        items_b: Statements agent_b asserted in the category
        score: Pairwise similarity, below DIVERGENCE_THRESHOLD
    """

    category: Category
    agent_a: str
    agent_b: str
    items_a: tuple[str, ...]
    items_b: tuple[str, ...]
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "agent_a": self.agent_a,
            "agent_b": self.agent_b,
            "items_a": list(self.items_a),
            "items_b": list(self.items_b),
            "score": self.score,
        }


# =============================================================================
# RoundResult
# =============================================================================


@dataclass(frozen=True, slots=True)
class RoundResult:
    """Evaluation of one consensus round.

    Attributes:
        round: 1-based round number
        per_category_score: Average pairwise similarity per category (0.0-1.0)
        consensus_score: Weighted sum of per-category scores (0.0-1.0)
        agent_documents: Documents the round was scored from
        disagreements: Statements per category not asserted by every agent
        dropped_agents: Agents that produced no document this round
        divergences: Agent pairs scoring below DIVERGENCE_THRESHOLD per category
        agreement: Statements per category asserted by every agent
    """

    round: int
    per_category_score: Mapping[Category, float]
    consensus_score: float
    agent_documents: tuple[AnalysisDocument, ...]
    disagreements: Mapping[Category, tuple[str, ...]] = field(default_factory=dict)
    dropped_agents: tuple[str, ...] = ()
    divergences: tuple[Divergence, ...] = ()
    agreement: Mapping[Category, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "per_category_score", MappingProxyType(dict(self.per_category_score))
        )
        for name in ("disagreements", "agreement"):
            object.__setattr__(
                self,
                name,
                MappingProxyType({k: tuple(v) for k, v in getattr(self, name).items()}),
            )
        object.__setattr__(self, "agent_documents", tuple(self.agent_documents))
        object.__setattr__(self, "dropped_agents", tuple(self.dropped_agents))
        object.__setattr__(self, "divergences", tuple(self.divergences))

    @property
    def agent_ids(self) -> tuple[str, ...]:
        """Agents that contributed a document."""
        return tuple(d.agent_id for d in self.agent_documents)

    def with_dropped_agents(self, dropped: list[str] | tuple[str, ...]) -> RoundResult:
        """Copy of this result recording agents dropped from the round."""
        return replace(self, dropped_agents=tuple(dropped))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "round": self.round,
            "per_category_score": {k.value: v for k, v in self.per_category_score.items()},
            "consensus_score": self.consensus_score,
            "agent_documents": [d.to_dict() for d in self.agent_documents],
            "disagreements": {k.value: list(v) for k, v in self.disagreements.items()},
            "dropped_agents": list(self.dropped_agents),
            "divergences": [d.to_dict() for d in self.divergences],
            "agreement": {k.value: list(v) for k, v in self.agreement.items()},
        }


# =============================================================================
# RoundContext
# =============================================================================


@dataclass(frozen=True, slots=True)
class RoundContext:
    """Prior-round context handed to every adapter for the next round.

    Attributes:
        phase_id: Phase the session belongs to
        round: Round the adapter is about to answer
        previous_score: Consensus score of the prior round, if any
        disagreements: Prior round's statements lacking full agreement
        score_history: Consensus scores of all earlier rounds
        divergences: Prior round's divergent agent pairs
        agreement: Prior round's statements shared by every agent
    """

    phase_id: str
    round: int
    previous_score: float | None = None
    disagreements: Mapping[Category, tuple[str, ...]] = field(default_factory=dict)
    score_history: tuple[float, ...] = ()
    divergences: tuple[Divergence, ...] = ()
    agreement: Mapping[Category, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def first(cls, phase_id: str) -> RoundContext:
        return cls(phase_id=phase_id, round=1)

    @classmethod
    def after(cls, phase_id: str, rounds: tuple[RoundResult, ...]) -> RoundContext:
        """Context for the round following the given history."""
        if not rounds:
            return cls.first(phase_id)
        last = rounds[-1]
        return cls(
            phase_id=phase_id,
            round=last.round + 1,
            previous_score=last.consensus_score,
            disagreements=MappingProxyType(dict(last.disagreements)),
            score_history=tuple(r.consensus_score for r in rounds),
            divergences=last.divergences,
            agreement=MappingProxyType(dict(last.agreement)),
        )

    def render(self) -> str:
        """Disagreement summary text for inclusion in an adapter prompt."""
        if self.previous_score is None:
            return ""

        lines = [
            f"Round {self.round - 1} consensus score: {self.previous_score:.2f}.",
        ]

        shared = [(c, self.agreement.get(c, ())) for c in CATEGORIES]
        if any(items for _, items in shared):
            lines.append("Statements every agent shares:")
            lines.extend(_render_sections(shared))

        disputed = [(c, self.disagreements.get(c, ())) for c in CATEGORIES]
        if any(items for _, items in disputed):
            lines.append("Statements not shared by every agent:")
            lines.extend(_render_sections(disputed))
        else:
            lines.append("No disputed statements were recorded.")

        if self.divergences:
            lines.append("Most divergent agent pairs:")
            lines.extend(
                f"- {d.category.value}: {d.agent_a} vs {d.agent_b} (similarity {d.score:.2f})"
                for d in self.divergences
            )
        return "\n".join(lines)


def _render_sections(sections: list[tuple[Category, tuple[str, ...]]]) -> list[str]:
    lines: list[str] = []
    for category, items in sections:
        if not items:
            continue
        lines.append(f"## {category.value.capitalize()}")
        lines.extend(f"- {item}" for item in items)
    return lines


# =============================================================================
# SessionSnapshot
# =============================================================================


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Immutable view of a consensus session.

    Attributes:
        phase_id: Phase the session belongs to
        config: Session configuration
        rounds: Round results in execution order
        final_state: Current lifecycle state
        reason: Reason code when final_state is HUMAN_REVIEW_REQUIRED
        annotation: Human-readable detail for the reason
    """

    phase_id: str
    config: SessionConfig
    rounds: tuple[RoundResult, ...] = ()
    final_state: FinalState = FinalState.IN_PROGRESS
    reason: ReviewReason | None = None
    annotation: str = ""

    @property
    def total_rounds(self) -> int:
        return len(self.rounds)

    @property
    def latest(self) -> RoundResult | None:
        return self.rounds[-1] if self.rounds else None

    @property
    def scores(self) -> tuple[float, ...]:
        return tuple(r.consensus_score for r in self.rounds)

    @property
    def is_terminal(self) -> bool:
        return self.final_state.is_terminal

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "phase_id": self.phase_id,
            "config": self.config.to_dict(),
            "rounds": [r.to_dict() for r in self.rounds],
            "final_state": self.final_state.value,
            "reason": self.reason.value if self.reason else None,
            "annotation": self.annotation,
        }
