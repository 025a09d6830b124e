"""Matching configuration - scoring weights and thresholds."""

from dataclasses import dataclass

ISSUE_FORMAT_KEYWORDS = ("Director's Cut", "TPB", "Trade Paperback", "Hardcover", "Annual")
VOLUME_FORMAT_KEYWORDS = ("Director's Cut", "TPB", "Trade Paperback", "Hardcover")


@dataclass
class MatchingConfig:
    """Configuration for ComicVine matching.

    This class centralizes all scoring weights and thresholds,
    making it easy to adjust matching behavior.
    """

    # Issue scoring weights
    series_similarity_weight: float = 0.35
    issue_number_match: float = 0.30
    issue_number_mismatch_penalty: float = 0.05
    issue_number_absent: float = 0.15
    year_exact_match: float = 0.20
    year_off_by_one: float = 0.15
    year_off_by_two: float = 0.10
    year_absent: float = 0.10
    cover_image_bonus: float = 0.075
    description_bonus: float = 0.075
    confident_series_bonus: float = 0.05
    confident_series_similarity: float = 0.70

    # Format keywords ("TPB", "Annual", ...) present in the query
    format_keyword_match: float = 0.15
    format_keyword_mismatch_penalty: float = 0.05
    issue_format_keywords: tuple[str, ...] = ISSUE_FORMAT_KEYWORDS
    volume_format_keywords: tuple[str, ...] = VOLUME_FORMAT_KEYWORDS

    # Volume-enhanced search
    volumes_to_probe: int = 5
    confident_volume_score: float = 0.9
    combined_base: float = 0.30
    combined_volume_weight: float = 0.50
    combined_found_bonus: float = 0.10
    combined_year_exact: float = 0.10
    combined_year_off_by_one: float = 0.05


# Default config instance
DEFAULT_CONFIG = MatchingConfig()
