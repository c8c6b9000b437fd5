"""Merchant similarity scoring on a 0-100 scale.

Exact (case-insensitive) match scores 100, containment scores 85, and
anything else falls back to normalized Levenshtein distance.
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein

EXACT_SCORE = 100.0
CONTAINS_SCORE = 85.0


def levenshtein_distance(a: str, b: str) -> int:
    """Unit-cost insert/delete/substitute edit distance over the full strings."""
    return Levenshtein.distance(a, b)


def similarity(a: str | None, b: str | None) -> float:
    """Compare two merchant tokens. Symmetric; empty input scores 0."""
    if not a or not b:
        return 0.0

    s1 = a.lower()
    s2 = b.lower()

    if s1 == s2:
        return EXACT_SCORE
    if s1 in s2 or s2 in s1:
        return CONTAINS_SCORE

    max_len = max(len(s1), len(s2))
    distance = levenshtein_distance(s1, s2)
    return max(0.0, (max_len - distance) / max_len * 100)
