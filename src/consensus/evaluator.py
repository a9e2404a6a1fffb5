"""Consensus Evaluator for one round of agent documents.

Aggregates per-category pairwise similarities across all agent pairs into
a single round-level consensus score:

    consensus = 0.40 * claims + 0.30 * risks + 0.30 * recommendations

Exit Criteria:
- Identical documents → consensus_score = 1.0
- Permuting the input documents never changes the result
- One document (single-agent bypass) → every category scores 1.0
- A document without recognized category markers agrees with nothing
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping, Sequence
from itertools import combinations

from src.consensus.models import AnalysisDocument, Divergence, RoundResult
from src.consensus.similarity import normalize_statement, normalize_statements, similarity
from src.core.constants import (
    CATEGORIES,
    CATEGORY_WEIGHTS,
    DIVERGENCE_THRESHOLD,
    MIN_PAIRWISE_AGENTS,
    WEIGHT_SUM_TOLERANCE,
    Category,
)
from src.core.exceptions import ConsensusConfigError


logger = logging.getLogger(__name__)


# =============================================================================
# Weight validation
# =============================================================================


def validate_weights(weights: Mapping[Category, float]) -> None:
    """Check that weights cover every category and sum to 1.0.

    Raises:
        ConsensusConfigError: If a category is missing, a weight is negative,
            or the weights do not sum to 1.0.
    """
    errors = []
    for category in CATEGORIES:
        if category not in weights:
            errors.append({"field": f"weights.{category.value}", "value": None, "message": "missing"})
        elif weights[category] < 0:
            errors.append(
                {"field": f"weights.{category.value}", "value": weights[category], "message": "must be >= 0"}
            )

    total = sum(weights.values())
    if not math.isclose(total, 1.0, abs_tol=WEIGHT_SUM_TOLERANCE):
        errors.append({"field": "weights", "value": total, "message": "must sum to 1.0"})

    if errors:
        raise ConsensusConfigError("Invalid category weights", errors=errors)


# =============================================================================
# Per-category scoring
# =============================================================================


def pair_scores(
    documents: Sequence[AnalysisDocument],
    category: Category,
) -> list[tuple[AnalysisDocument, AnalysisDocument, float]]:
    """Similarity of one category for every unordered agent pair.

    A pair that includes a document without recognized category markers
    scores 0.0, ahead of the both-empty rule.
    """
    return [
        (
            doc_a,
            doc_b,
            similarity(doc_a.statements(category), doc_b.statements(category))
            if doc_a.has_markers and doc_b.has_markers
            else 0.0,
        )
        for doc_a, doc_b in combinations(documents, 2)
    ]


def category_score(documents: Sequence[AnalysisDocument], category: Category) -> float:
    """Average pairwise similarity of one category across all agent pairs.

    Args:
        documents: Documents to compare (already ordered).
        category: Category to score.

    Returns:
        Mean similarity over unordered pairs; 1.0 for a single document.
    """
    if len(documents) < MIN_PAIRWISE_AGENTS:
        return 1.0

    scores = [score for _, _, score in pair_scores(documents, category)]
    return sum(scores) / len(scores)


def find_divergences(
    documents: Sequence[AnalysisDocument],
    category: Category,
    threshold: float = DIVERGENCE_THRESHOLD,
) -> tuple[Divergence, ...]:
    """Agent pairs whose similarity in one category is below threshold."""
    return tuple(
        Divergence(
            category=category,
            agent_a=doc_a.agent_id,
            agent_b=doc_b.agent_id,
            items_a=doc_a.statements(category),
            items_b=doc_b.statements(category),
            score=score,
        )
        for doc_a, doc_b, score in pair_scores(documents, category)
        if score < threshold
    )


def find_agreement(
    documents: Sequence[AnalysisDocument],
    category: Category,
) -> tuple[str, ...]:
    """Statements of one category asserted by every agent.

    The first spelling seen (in document order) is reported once. Documents
    without recognized markers share nothing.
    """
    if not documents or not all(d.has_markers for d in documents):
        return ()

    shared = frozenset.intersection(
        *(normalize_statements(d.statements(category)) for d in documents)
    )
    return _first_spellings(documents, category, lambda key: key in shared)


def find_disagreements(
    documents: Sequence[AnalysisDocument],
    category: Category,
) -> tuple[str, ...]:
    """Statements of one category not asserted by every agent.

    The first spelling seen (in document order) is reported once.
    """
    if len(documents) < MIN_PAIRWISE_AGENTS:
        return ()

    per_agent = [normalize_statements(d.statements(category)) for d in documents]
    shared = frozenset.intersection(*per_agent)
    return _first_spellings(documents, category, lambda key: key not in shared)


def _first_spellings(
    documents: Sequence[AnalysisDocument],
    category: Category,
    keep: Callable[[str], bool],
) -> tuple[str, ...]:
    seen: set[str] = set()
    selected: list[str] = []
    for doc in documents:
        for statement in doc.statements(category):
            key = normalize_statement(statement)
            if key and keep(key) and key not in seen:
                seen.add(key)
                selected.append(statement)
    return tuple(selected)


# =============================================================================
# evaluate_round
# =============================================================================


def _ordered(documents: Sequence[AnalysisDocument]) -> list[AnalysisDocument]:
    # Canonical order makes float accumulation identical for any permutation
    return sorted(documents, key=lambda d: (d.agent_id, d.raw_text))


def evaluate_round(
    documents: Sequence[AnalysisDocument],
    weights: Mapping[Category, float] | None = None,
) -> RoundResult:
    """Score one round from the documents of all contributing agents.

    Args:
        documents: Documents for a single round (one per agent).
        weights: Category weights; defaults to CATEGORY_WEIGHTS.

    Returns:
        RoundResult with per-category scores, weighted consensus score
        and disagreement summary.

    Raises:
        ConsensusConfigError: If no documents are given, their round numbers
            differ, or the weights are invalid.
    """
    weights = CATEGORY_WEIGHTS if weights is None else weights
    validate_weights(weights)

    if not documents:
        raise ConsensusConfigError(
            "evaluate_round requires at least one document",
            errors=[{"field": "documents", "value": 0, "message": "empty"}],
        )

    rounds = sorted({d.round for d in documents})
    if len(rounds) > 1:
        raise ConsensusConfigError(
            f"Documents span multiple rounds: {rounds}",
            errors=[{"field": "documents.round", "value": rounds, "message": "must share one round"}],
        )

    ordered = _ordered(documents)

    per_category = {c: category_score(ordered, c) for c in CATEGORIES}
    consensus = sum(weights[c] * per_category[c] for c in CATEGORIES)
    consensus = max(0.0, min(1.0, consensus))

    disagreements = {c: find_disagreements(ordered, c) for c in CATEGORIES}
    agreement = {c: find_agreement(ordered, c) for c in CATEGORIES}
    divergences = tuple(d for c in CATEGORIES for d in find_divergences(ordered, c))

    logger.info(
        "Round %d evaluated: score=%.3f (claims=%.3f, risks=%.3f, recommendations=%.3f) agents=%d divergent_pairs=%d unmarked=%d",
        rounds[0],
        consensus,
        per_category[Category.CLAIMS],
        per_category[Category.RISKS],
        per_category[Category.RECOMMENDATIONS],
        len(ordered),
        len(divergences),
        sum(1 for d in ordered if not d.has_markers),
    )

    return RoundResult(
        round=rounds[0],
        per_category_score=per_category,
        consensus_score=consensus,
        agent_documents=tuple(ordered),
        disagreements=disagreements,
        divergences=divergences,
        agreement=agreement,
    )
