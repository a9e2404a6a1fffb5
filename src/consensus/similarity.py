"""Statement-set similarity for one category.

similarity(A, B) = |A ∩ B| / |A ∪ B| over whole normalized statements
(case-folded, punctuation-insensitive, whitespace-collapsed).

Edge cases:
- Both empty → 1.0 (two agents asserting nothing trivially agree)
- Exactly one empty → 0.0
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable


_PUNCTUATION_PATTERN = re.compile(r"[^\w\s]|_")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_statement(statement: str) -> str:
    """Normalize a statement for comparison.

    Args:
        statement: Original statement text.

    Returns:
        Case-folded statement with punctuation removed and whitespace collapsed.
    """
    text = unicodedata.normalize("NFKC", statement).casefold()
    text = _PUNCTUATION_PATTERN.sub(" ", text)
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def normalize_statements(statements: Iterable[str]) -> frozenset[str]:
    """Normalize statements into a set, dropping ones that normalize to empty."""
    normalized = (normalize_statement(s) for s in statements)
    return frozenset(s for s in normalized if s)


def similarity(set_a: Iterable[str], set_b: Iterable[str]) -> float:
    """Jaccard similarity between two statement sequences.

    Symmetric by construction: similarity(a, b) == similarity(b, a).

    Args:
        set_a: Statements from the first agent.
        set_b: Statements from the second agent.

    Returns:
        Similarity between 0.0 and 1.0.
    """
    norm_a = normalize_statements(set_a)
    norm_b = normalize_statements(set_b)

    if not norm_a and not norm_b:
        return 1.0
    if not norm_a or not norm_b:
        return 0.0

    return len(norm_a & norm_b) / len(norm_a | norm_b)
