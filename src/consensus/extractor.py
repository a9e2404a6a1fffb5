"""Categorized extraction of statements from agent output.

Splits free-form analysis text into three ordered statement sequences:
claims, risks and recommendations.

Strategies (all satisfy ExtractorProtocol):
- HeadingExtractor: markdown headings, bold labels or "Label:" lines
- JsonExtractor: JSON object with category arrays, optionally fenced

Extraction is pure and never raises; unrecognized input yields three empty
sequences with has_markers False. Duplicates inside a category are preserved.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from src.core.constants import CATEGORIES, Category


# =============================================================================
# Module Constants
# =============================================================================

_CATEGORY_ALIASES: dict[str, Category] = {
    "claim": Category.CLAIMS,
    "claims": Category.CLAIMS,
    "finding": Category.CLAIMS,
    "findings": Category.CLAIMS,
    "risk": Category.RISKS,
    "risks": Category.RISKS,
    "concern": Category.RISKS,
    "concerns": Category.RISKS,
    "recommendation": Category.RECOMMENDATIONS,
    "recommendations": Category.RECOMMENDATIONS,
    "suggestion": Category.RECOMMENDATIONS,
    "suggestions": Category.RECOMMENDATIONS,
    "action": Category.RECOMMENDATIONS,
    "actions": Category.RECOMMENDATIONS,
}
_LABEL_QUALIFIERS = frozenset(
    {"key", "main", "top", "primary", "major", "open", "potential", "identified"}
)

# "## Risks", "**Risks**", "Risks:" (optionally followed by inline text)
_HEADING_PATTERN = re.compile(r"^\s{0,3}#{1,6}\s+(?P<label>.+?)\s*#*\s*$")
_BOLD_LABEL_PATTERN = re.compile(r"^\s*\*\*(?P<label>[^*]+?)\*\*\s*:?\s*(?P<rest>.*)$")
_COLON_LABEL_PATTERN = re.compile(r"^\s*(?P<label>[A-Za-z][A-Za-z ]{0,40}?)\s*:\s*(?P<rest>.*)$")
_BULLET_PATTERN = re.compile(r"^\s*(?:[-*+•]|\d+[.)])\s+")
_FENCED_JSON_PATTERN = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


# =============================================================================
# ExtractedStatements
# =============================================================================


@dataclass(frozen=True, slots=True)
class ExtractedStatements:
    """Statements extracted from one document, per category.

    has_markers is False when no category marker was recognized; such a
    document agrees with nothing when scored.
    """

    claims: tuple[str, ...] = ()
    risks: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    has_markers: bool = False

    @classmethod
    def empty(cls) -> ExtractedStatements:
        return cls()


# =============================================================================
# ExtractorProtocol
# =============================================================================


@runtime_checkable
class ExtractorProtocol(Protocol):
    """Strategy that turns raw agent text into categorized statements."""

    def extract(self, raw_text: str) -> ExtractedStatements:
        """Extract statements; must be deterministic and never raise."""
        ...


def _resolve_category(label: str, *, strict: bool = False) -> Category | None:
    """Map a heading label like 'Key Risks' to its category.

    In strict mode (inline "Label:" lines) only qualifier words may precede
    the category noun, so prose such as "The risk: ..." stays a statement.
    """
    words = re.findall(r"[a-z]+", label.lower())
    if not words:
        return None
    if strict and not set(words[:-1]) <= _LABEL_QUALIFIERS:
        return None
    # Last word carries the noun: "Key Risks", "Main Findings"
    return _CATEGORY_ALIASES.get(words[-1])


def _clean_statement(line: str) -> str:
    return _BULLET_PATTERN.sub("", line, count=1).strip()


# =============================================================================
# HeadingExtractor
# =============================================================================


class HeadingExtractor:
    """Extract statements grouped under recognizable category headings.

    Each non-empty line below a category heading becomes one statement,
    with bullet markers stripped. Lines before the first heading, or below
    a heading that names no category, are ignored.

    Example:
        >>> HeadingExtractor().extract("## Risks\\n- Data loss\\n").risks
        ('Data loss',)
    """

    def extract(self, raw_text: str) -> ExtractedStatements:
        if not raw_text or not raw_text.strip():
            return ExtractedStatements.empty()

        buckets: dict[Category, list[str]] = {c: [] for c in CATEGORIES}
        current: Category | None = None
        has_markers = False

        for line in raw_text.splitlines():
            if not line.strip():
                continue

            matched, category, rest = self._match_label(line)
            if matched:
                current = category
                if current is not None:
                    has_markers = True
                    if rest:
                        buckets[current].append(rest)
                continue

            if current is None:
                continue

            statement = _clean_statement(line)
            if statement:
                buckets[current].append(statement)

        return ExtractedStatements(
            claims=tuple(buckets[Category.CLAIMS]),
            risks=tuple(buckets[Category.RISKS]),
            recommendations=tuple(buckets[Category.RECOMMENDATIONS]),
            has_markers=has_markers,
        )

    def _match_label(self, line: str) -> tuple[bool, Category | None, str]:
        """Detect a section label.

        Returns:
            (is_label, category or None for a non-category heading, inline text)
        """
        heading = _HEADING_PATTERN.match(line)
        if heading:
            return True, _resolve_category(heading.group("label")), ""

        bold = _BOLD_LABEL_PATTERN.match(line)
        if bold:
            category = _resolve_category(bold.group("label"))
            if category is not None:
                return True, category, bold.group("rest").strip()

        # Bulleted lines are statements even when they contain a colon
        if _BULLET_PATTERN.match(line):
            return False, None, ""

        colon = _COLON_LABEL_PATTERN.match(line)
        if colon:
            category = _resolve_category(colon.group("label"), strict=True)
            if category is not None:
                return True, category, colon.group("rest").strip()

        return False, None, ""


# =============================================================================
# JsonExtractor
# =============================================================================


class JsonExtractor:
    """Extract statements from a JSON object with category arrays.

    Accepts bare JSON or a fenced ```json block. Non-string items and
    malformed input are ignored. An object counts as marked when it carries
    at least one category key.
    """

    def extract(self, raw_text: str) -> ExtractedStatements:
        payload = self._load(raw_text)
        if payload is None:
            return ExtractedStatements.empty()

        values: dict[str, tuple[str, ...]] = {}
        for category in CATEGORIES:
            items = payload.get(category.value, [])
            if not isinstance(items, list):
                items = []
            values[category.value] = tuple(
                item.strip() for item in items
                if isinstance(item, str) and item.strip()
            )
        has_markers = any(category.value in payload for category in CATEGORIES)
        return ExtractedStatements(**values, has_markers=has_markers)

    def _load(self, raw_text: str) -> dict | None:
        if not raw_text or not raw_text.strip():
            return None

        fenced = _FENCED_JSON_PATTERN.search(raw_text)
        text = fenced.group(1) if fenced else raw_text.strip()
        try:
            payload = json.loads(text)
        except (ValueError, RecursionError):
            # JSONDecodeError, oversized integers and deeply nested input
            return None
        return payload if isinstance(payload, dict) else None
