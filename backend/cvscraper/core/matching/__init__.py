"""Matching system for ComicVine searches.

Similarity, scoring, credit classification and imprint resolution. All
functions here are pure: no network access, no shared state.
"""

from .config import DEFAULT_CONFIG, MatchingConfig
from .credits import CreditBuckets, credit_names, extract_credits
from .imprints import is_imprint, resolve_publisher, split_publisher, try_resolve
from .scoring import score_issue, score_volume, settle
from .similarity import normalize_for_comparison, string_similarity

__all__ = [
    "MatchingConfig",
    "DEFAULT_CONFIG",
    "CreditBuckets",
    "credit_names",
    "extract_credits",
    "is_imprint",
    "resolve_publisher",
    "split_publisher",
    "try_resolve",
    "score_issue",
    "score_volume",
    "settle",
    "normalize_for_comparison",
    "string_similarity",
]
