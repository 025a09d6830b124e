"""Confidence scores for issue and volume candidates.

Both scores are additive heuristics built on ``string_similarity``. Issue
counts reported by ComicVine are never used: they are frequently stale
(Detective Comics 2016 reports 170 issues but runs past 1070).
"""

from __future__ import annotations

from collections.abc import Iterable

from cvscraper.core.comicvine.models import IssueCandidate, VolumeCandidate
from cvscraper.core.utils import parse_int

from .config import DEFAULT_CONFIG, MatchingConfig
from .similarity import string_similarity

# Float noise must never flip a threshold comparison (0.70, 0.9).
_PRECISION = 10


def settle(score: float) -> float:
    """Round away float noise and clamp into [0, 1]."""
    return max(0.0, min(1.0, round(score, _PRECISION)))


def _contains(haystack: str | None, needle: str) -> bool:
    return bool(haystack) and needle.lower() in haystack.lower()  # type: ignore[union-attr]


def format_keyword_adjustment(
    query: str,
    targets: Iterable[str | None],
    keywords: Iterable[str],
    config: MatchingConfig,
) -> float:
    """Reward candidates that share the query's format keywords ("TPB", "Annual", ...).

    Args:
        query: The user's series query
        targets: Candidate strings checked for each keyword (title, series name)
        keywords: Keywords to look for
        config: Matching configuration

    Returns:
        Sum of bonuses and penalties for every keyword present in the query
    """
    targets = list(targets)
    adjustment = 0.0
    for keyword in keywords:
        if not _contains(query, keyword):
            continue
        if any(_contains(target, keyword) for target in targets):
            adjustment += config.format_keyword_match
        else:
            adjustment -= config.format_keyword_mismatch_penalty
    return adjustment


def issue_number_matches(candidate_issue_number: str | None, issue_number: int) -> bool:
    """Check a catalog issue number against a searched integer issue number."""
    if not candidate_issue_number:
        return False
    parsed = parse_int(candidate_issue_number)
    if parsed is not None and parsed == issue_number:
        return True
    return candidate_issue_number == str(issue_number)


def score_issue(
    series_query: str,
    issue_number: int | None,
    year: int | None,
    candidate: IssueCandidate,
    config: MatchingConfig | None = None,
) -> float:
    """Compute the match score of an issue candidate.

    Args:
        series_query: Series text the user searched for
        issue_number: Searched issue number, if any
        year: Searched cover year, if any
        candidate: Parsed catalog issue
        config: Matching configuration (defaults to DEFAULT_CONFIG)

    Returns:
        Score between 0.0 and 1.0
    """
    if config is None:
        config = DEFAULT_CONFIG

    score = 0.0
    issue_matched = False

    series_similarity = string_similarity(series_query, candidate.series)
    score += series_similarity * config.series_similarity_weight

    if issue_number is not None:
        if candidate.issue_number:
            if issue_number_matches(candidate.issue_number, issue_number):
                score += config.issue_number_match
                issue_matched = True
            else:
                score -= config.issue_number_mismatch_penalty
    else:
        score += config.issue_number_absent

    if year is not None:
        if candidate.year is not None:
            year_diff = abs(year - candidate.year)
            if year_diff == 0:
                score += config.year_exact_match
            elif year_diff == 1:
                score += config.year_off_by_one
            elif year_diff == 2:
                score += config.year_off_by_two
    else:
        score += config.year_absent

    if candidate.cover_url:
        score += config.cover_image_bonus
    if candidate.description:
        score += config.description_bonus
    if issue_matched and series_similarity >= config.confident_series_similarity:
        score += config.confident_series_bonus

    score += format_keyword_adjustment(
        series_query,
        (candidate.title, candidate.series),
        config.issue_format_keywords,
        config,
    )

    return settle(score)


def score_volume(
    series_query: str,
    year: int | None,
    volume: VolumeCandidate,
    config: MatchingConfig | None = None,
) -> float:
    """Compute the match score of a volume candidate.

    Year proximity rewards volumes that started on or shortly before the
    searched year (long-running series) and shrinks the score the further
    away the start year is.

    Args:
        series_query: Series text the user searched for
        year: Searched year, if any
        volume: Parsed catalog volume
        config: Matching configuration (defaults to DEFAULT_CONFIG)

    Returns:
        Score between 0.0 and 1.0
    """
    if config is None:
        config = DEFAULT_CONFIG

    score = string_similarity(series_query, volume.name)
    score += format_keyword_adjustment(
        series_query,
        (volume.name,),
        config.volume_format_keywords,
        config,
    )

    if year is not None and volume.start_year is not None:
        year_diff = abs(year - volume.start_year)
        started_before = volume.start_year <= year

        if year_diff == 0:
            score = min(1.0, score + 0.10)
        elif year_diff <= 2 and started_before:
            score = min(1.0, score + 0.08)
        elif year_diff <= 5 and started_before:
            score = min(1.0, score + 0.05)
        elif year_diff <= 10 and started_before:
            score = min(1.0, score + 0.03)
        elif year_diff <= 10:
            score *= 0.95
        elif year_diff <= 20:
            score *= 0.85
        elif year_diff <= 40:
            score *= 0.70
        else:
            score *= 0.50

    return settle(score)
