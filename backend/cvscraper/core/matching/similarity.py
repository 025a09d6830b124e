"""Fuzzy similarity between series names.

Scores combine three signals, tried in order:

1. Exact match of the normalized strings (1.0).
2. Containment of one normalized string in the other, weighted by how much
   of the longer string the shorter one covers (0.70 to 0.85).
3. Word overlap: Jaccard over word sets (60%) plus word order measured as the
   longest common subsequence of the word sequences (40%).
"""

from __future__ import annotations

import re
from collections.abc import Sequence

_SEPARATORS = frozenset("-:'/")


def normalize_for_comparison(text: str | None) -> str:
    """Normalize a series name for comparison.

    Lowercases, keeps letters and digits, turns whitespace and the
    separators ``- : ' /`` into spaces, drops all other characters and
    collapses runs of spaces.

    Args:
        text: Raw series name

    Returns:
        Normalized string ("Spider-Man: Blue" -> "spider man blue")
    """
    if not text:
        return ""
    chars = []
    for char in text.lower():
        if char.isalnum():
            chars.append(char)
        elif char.isspace() or char in _SEPARATORS:
            chars.append(" ")
    return re.sub(r"\s+", " ", "".join(chars).strip())


def longest_common_subsequence(a: Sequence[str], b: Sequence[str]) -> int:
    """Length of the longest common subsequence of two word sequences."""
    previous = [0] * (len(b) + 1)
    for word_a in a:
        current = [0] * (len(b) + 1)
        for j, word_b in enumerate(b, start=1):
            if word_a == word_b:
                current[j] = previous[j - 1] + 1
            else:
                current[j] = max(previous[j], current[j - 1])
        previous = current
    return previous[-1]


def string_similarity(a: str | None, b: str | None) -> float:
    """Score how similar two series names are.

    Args:
        a: First name (usually the user's query)
        b: Second name (usually a catalog name)

    Returns:
        Similarity between 0.0 and 1.0. Symmetric in its arguments.
    """
    if not a or not b:
        return 0.0

    normalized_a = normalize_for_comparison(a)
    normalized_b = normalize_for_comparison(b)

    if normalized_a == normalized_b:
        return 1.0

    if normalized_a in normalized_b or normalized_b in normalized_a:
        shorter, longer = sorted((len(normalized_a), len(normalized_b)))
        return 0.70 + (shorter / longer) * 0.15

    words_a = normalized_a.split()
    words_b = normalized_b.split()
    set_a = set(words_a)
    set_b = set(words_b)

    union = len(set_a | set_b)
    if union == 0:
        return 0.0

    jaccard = len(set_a & set_b) / union
    order_similarity = longest_common_subsequence(words_a, words_b) / max(
        len(words_a), len(words_b)
    )
    return min(1.0, jaccard * 0.6 + order_similarity * 0.4)
