"""Unit tests for statement-set similarity.

Exit Criteria:
- similarity(A, B) == similarity(B, A)
- similarity([], []) == 1.0; similarity([], non-empty) == 0.0
- Normalization is case- and punctuation-insensitive
"""

from __future__ import annotations

import pytest

from src.consensus.similarity import normalize_statement, normalize_statements, similarity


# =============================================================================
# normalize_statement
# =============================================================================


class TestNormalizeStatement:
    """Case folding, punctuation and whitespace handling."""

    def test_lowercases(self) -> None:
        assert normalize_statement("Use PostgreSQL") == "use postgresql"

    def test_strips_punctuation(self) -> None:
        assert normalize_statement("Cache: invalidate, often!") == "cache invalidate often"

    def test_collapses_whitespace(self) -> None:
        assert normalize_statement("  too    many\tspaces \n") == "too many spaces"

    def test_punctuation_only_becomes_empty(self) -> None:
        assert normalize_statement("...!?") == ""

    def test_normalize_statements_drops_empty(self) -> None:
        assert normalize_statements(["A.", "---", "a"]) == frozenset({"a"})


# =============================================================================
# similarity
# =============================================================================


class TestSimilarity:
    """Jaccard similarity over whole normalized statements."""

    def test_identical_sets_score_one(self) -> None:
        assert similarity(["X", "Y"], ["X", "Y"]) == 1.0

    def test_disjoint_sets_score_zero(self) -> None:
        assert similarity(["X"], ["Y"]) == 0.0

    def test_partial_overlap(self) -> None:
        # {x, y} vs {y, z} → 1 / 3
        assert similarity(["X", "Y"], ["Y", "Z"]) == pytest.approx(1 / 3)

    def test_both_empty_is_vacuous_agreement(self) -> None:
        assert similarity([], []) == 1.0

    @pytest.mark.parametrize("non_empty", [["X"], ["X", "Y", "Z"]])
    def test_exactly_one_empty_scores_zero(self, non_empty: list[str]) -> None:
        assert similarity([], non_empty) == 0.0
        assert similarity(non_empty, []) == 0.0

    def test_case_and_punctuation_insensitive(self) -> None:
        assert similarity(["Add retries."], ["add RETRIES"]) == 1.0

    def test_duplicates_collapse_at_comparison(self) -> None:
        assert similarity(["X", "X", "x!"], ["X"]) == 1.0

    def test_statements_are_compared_whole_not_by_token(self) -> None:
        assert similarity(["add retry logic"], ["add logic"]) == 0.0

    def test_punctuation_only_statements_count_as_empty(self) -> None:
        assert similarity(["..."], []) == 1.0

    @pytest.mark.parametrize(
        ("set_a", "set_b"),
        [
            (["X", "Y"], ["Y", "Z"]),
            (["a"], []),
            ([], []),
            (["one", "two", "three"], ["Three", "four"]),
            (["same"], ["same"]),
        ],
    )
    def test_symmetric(self, set_a: list[str], set_b: list[str]) -> None:
        assert similarity(set_a, set_b) == similarity(set_b, set_a)

    def test_result_within_unit_interval(self) -> None:
        score = similarity(["a", "b", "c"], ["c", "d"])
        assert 0.0 <= score <= 1.0
