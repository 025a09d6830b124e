"""Volume-enhanced issue search.

A direct issue search ranks by free-text relevance, which buries the exact
issue under reprints and same-name series. Finding the volume first and then
asking for the issue inside it is far more reliable:

1. search volumes by series name (no year filter)
2. rescore volumes with the year and keep the top few
3. probe each volume for the issue number, one at a time
4. fall back to a direct issue search when nothing is found
"""

from __future__ import annotations

import structlog

from cvscraper.core.comicvine.client import ComicVineClient
from cvscraper.core.comicvine.models import IssueCandidate, VolumeCandidate
from cvscraper.core.matching.config import DEFAULT_CONFIG, MatchingConfig
from cvscraper.core.matching.scoring import score_volume, settle
from cvscraper.core.metrics import search_fallbacks_total
from cvscraper.core.utils import parse_int

logger = structlog.get_logger("cvscraper.core.comicvine.search")


def _volume_rank(item: tuple[VolumeCandidate, float]) -> tuple[float, bool, int]:
    volume, score = item
    volume_id = parse_int(volume.id)
    return (-score, volume_id is None, volume_id if volume_id is not None else 0)


class SearchOrchestrator:
    """Runs the volume-enhanced search on top of a ComicVineClient."""

    def __init__(self, client: ComicVineClient, config: MatchingConfig | None = None):
        self.client = client
        self.config = config or DEFAULT_CONFIG

    def _year_bonus(self, year: int | None, cover_year: int | None) -> float:
        if year is None or cover_year is None:
            return 0.0
        year_diff = abs(year - cover_year)
        if year_diff == 0:
            return self.config.combined_year_exact
        if year_diff == 1:
            return self.config.combined_year_off_by_one
        return 0.0

    def combined_score(self, volume_score: float, year: int | None, cover_year: int | None) -> float:
        """Score an issue found inside a volume from the volume's score and the cover year."""
        return settle(
            min(
                1.0,
                self.config.combined_base
                + volume_score * self.config.combined_volume_weight
                + self._year_bonus(year, cover_year)
                + self.config.combined_found_bonus,
            )
        )

    async def _fallback(
        self,
        reason: str,
        series: str,
        issue_number: int | None,
        year: int | None,
    ) -> list[IssueCandidate]:
        search_fallbacks_total.labels(reason=reason).inc()
        logger.info("Falling back to direct issue search", reason=reason, series=series)
        return await self.client.search_issues(series, issue_number, year)

    async def search_enhanced(
        self,
        series: str,
        issue_number: int | None = None,
        year: int | None = None,
    ) -> list[IssueCandidate]:
        """Search for an issue, preferring volume-first lookups.

        Args:
            series: Series name to search for
            issue_number: Issue number; without it this is a direct issue search
            year: Cover year, used to rank volumes and the found issues

        Returns:
            Candidates sorted by match score descending
        """
        logger.info("Volume-enhanced search", series=series, issue_number=issue_number, year=year)

        if issue_number is None:
            return await self._fallback("no_issue_number", series, issue_number, year)

        volumes = await self.client.search_volumes(series)
        if not volumes:
            return await self._fallback("no_volumes", series, issue_number, year)

        scored = [(volume, score_volume(series, year, volume, self.config)) for volume in volumes]
        scored.sort(key=_volume_rank)
        top_volumes = scored[: self.config.volumes_to_probe]

        logger.info(
            "Top scored volumes",
            volumes=[f"{volume.name}={score:.0%}" for volume, score in top_volumes[:3]],
            total=len(volumes),
        )

        matches: list[IssueCandidate] = []
        for volume, volume_score in top_volumes:
            logger.debug(
                "Probing volume",
                volume_id=volume.id,
                volume_name=volume.name,
                volume_score=volume_score,
                issue_number=issue_number,
            )
            issue = await self.client.get_issue_by_volume_and_number(volume.id, issue_number)
            if issue is None:
                logger.debug(
                    "Issue not in volume",
                    volume_id=volume.id,
                    issue_number=issue_number,
                    issue_count=volume.issue_count,
                )
                continue

            matches.append(
                issue.model_copy(
                    update={
                        "match_score": self.combined_score(volume_score, year, issue.year),
                        "series": volume.name,
                        "volume_id": volume.id,
                        "publisher": volume.publisher,
                        "volume_start_year": volume.start_year,
                    }
                )
            )

            if volume_score >= self.config.confident_volume_score:
                logger.debug("Confident volume match, stopping", volume_id=volume.id)
                break

        if not matches:
            return await self._fallback("no_volume_hits", series, issue_number, year)

        matches.sort(key=lambda c: c.match_score, reverse=True)
        return matches
