"""ComicVine API client: rate-limited requests, response parsing, scoring."""

from __future__ import annotations

from typing import Any
from urllib import parse as urllib_parse

import structlog
from pydantic import TypeAdapter, ValidationError

from cvscraper.core.comicvine.models import (
    CVIssue,
    CVIssueDetail,
    CVResponse,
    CVVolume,
    IssueCandidate,
    IssueMetadata,
    VolumeCandidate,
)
from cvscraper.core.comicvine.ratelimit import (
    ENDPOINT_ISSUE,
    ENDPOINT_ISSUES,
    ENDPOINT_SEARCH,
    RateLimiter,
    get_rate_limiter,
)
from cvscraper.core.comicvine.transport import Fetcher, HttpxFetcher
from cvscraper.core.config import DEFAULT_BASE_URL
from cvscraper.core.errors import ConfigurationError, MalformedResponseError, NotFoundError
from cvscraper.core.matching.config import DEFAULT_CONFIG, MatchingConfig
from cvscraper.core.matching.credits import credit_names, extract_credits
from cvscraper.core.matching.imprints import split_publisher
from cvscraper.core.matching.scoring import score_issue, score_volume
from cvscraper.core.utils import mask_api_key, normalize_issue_number, parse_cover_date, strip_html

logger = structlog.get_logger("cvscraper.core.comicvine.client")

ISSUE_SEARCH_FIELDS = "id,name,issue_number,volume,cover_date,image,site_detail_url,description"
VOLUME_SEARCH_FIELDS = "id,name,start_year,publisher,count_of_issues,image,description"
VOLUME_ISSUE_FIELDS = "id,name,issue_number,volume,cover_date,image,description"
VOLUME_ISSUES_LIST_FIELDS = "id,name,issue_number,cover_date,image"
ISSUE_DETAIL_FIELDS = (
    "id,name,issue_number,volume,cover_date,description,"
    "person_credits,character_credits,team_credits,location_credits,"
    "story_arc_credits,image,site_detail_url"
)

_issue_list = TypeAdapter(list[CVIssue])
_volume_list = TypeAdapter(list[CVVolume])


def is_valid_cover_url(url: str) -> bool:
    """Check that a cover URL is an absolute http(s) URL. The image is never fetched."""
    try:
        parsed = urllib_parse.urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class ComicVineClient:
    """ComicVine API client.

    Every request passes through the shared RateLimiter. Search-style
    operations degrade to empty results on catalog errors; the detail
    lookup raises.
    """

    def __init__(
        self,
        api_key: str | None,
        fetcher: Fetcher | None = None,
        rate_limiter: RateLimiter | None = None,
        base_url: str = DEFAULT_BASE_URL,
        issue_search_limit: int = 25,
        volume_search_limit: int = 100,
        config: MatchingConfig | None = None,
    ):
        """Initialize ComicVine client.

        Args:
            api_key: ComicVine API key. Operations raise ConfigurationError while blank.
            fetcher: Fetch capability (default: HttpxFetcher from settings)
            rate_limiter: Limiter shared with other clients (default: process-wide limiter)
            base_url: ComicVine API base URL
            issue_search_limit: Result limit for issue searches
            volume_search_limit: Result limit for volume searches
            config: Matching configuration used to score results
        """
        self.api_key = (api_key or "").strip()
        self.fetcher = fetcher if fetcher is not None else HttpxFetcher.from_settings()
        self.rate_limiter = rate_limiter if rate_limiter is not None else get_rate_limiter()
        self.base_url = base_url.rstrip("/")
        self.issue_search_limit = issue_search_limit
        self.volume_search_limit = volume_search_limit
        self.config = config or DEFAULT_CONFIG

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _require_api_key(self, endpoint: str) -> None:
        if not self.api_key:
            raise ConfigurationError("ComicVine API key is not configured", endpoint=endpoint)

    def _build_url(self, endpoint: str, params: dict[str, Any]) -> str:
        """Build ComicVine API URL."""
        endpoint_path = endpoint.strip("/")
        url = f"{self.base_url}/{endpoint_path}/"
        request_params = {"format": "json", **params}
        request_params["api_key"] = self.api_key
        query = urllib_parse.urlencode(request_params, safe=",:")
        return f"{url}?{query}"

    async def _request(self, tag: str, endpoint: str, params: dict[str, Any]) -> str:
        """Acquire a rate limit slot for ``tag`` and fetch ``endpoint``.

        Raises:
            ConfigurationError: API key missing (nothing is acquired or sent)
            RateLimitExceeded: Quota for ``tag`` exhausted
            TransportError: Propagated unmodified from the fetcher
        """
        self._require_api_key(tag)
        await self.rate_limiter.acquire(tag)

        url = self._build_url(endpoint, params)
        logger.debug("Calling ComicVine API", endpoint=endpoint, url=mask_api_key(url))
        return await self.fetcher(url)

    def _parse_list(self, body: str, adapter: TypeAdapter, endpoint: str) -> list[Any]:
        """Parse a list response, degrading to [] on any catalog or shape error."""
        try:
            envelope = CVResponse.model_validate_json(body)
        except ValidationError as e:
            logger.warning("Malformed ComicVine response", endpoint=endpoint, error=str(e))
            return []

        if not envelope.ok:
            logger.warning(
                "ComicVine API error",
                endpoint=endpoint,
                status_code=envelope.status_code,
                error=envelope.error,
            )
            return []

        if not envelope.results:
            return []

        try:
            return adapter.validate_python(envelope.results)
        except ValidationError as e:
            logger.warning("Malformed ComicVine results", endpoint=endpoint, error=str(e))
            return []

    def _issue_candidate(
        self,
        issue: CVIssue,
        cover_url: str | None,
        **overrides: Any,
    ) -> IssueCandidate:
        volume = issue.volume
        cover_date = parse_cover_date(issue.cover_date)
        fields: dict[str, Any] = {
            "id": str(issue.id),
            "series": (volume.name if volume else None) or "Unknown",
            "issue_number": issue.issue_number,
            "title": issue.name,
            "year": cover_date.year if cover_date else None,
            "month": cover_date.month if cover_date else None,
            "publisher": volume.publisher.name if volume and volume.publisher else None,
            "cover_url": cover_url,
            "description": strip_html(issue.description),
            "volume_id": str(volume.id) if volume else None,
            "volume_start_year": volume.start_year if volume else None,
            "count": volume.count_of_issues if volume else None,
        }
        fields.update(overrides)
        return IssueCandidate(**fields)

    async def search_issues(
        self,
        series: str,
        issue_number: int | None = None,
        year: int | None = None,
    ) -> list[IssueCandidate]:
        """Search issues by series text (and issue number), best match first.

        Args:
            series: Series name to search for
            issue_number: Issue number appended to the query and used for scoring
            year: Cover year used for scoring

        Returns:
            Scored candidates sorted by match score descending
        """
        query = series if issue_number is None else f"{series} {issue_number}"
        logger.info("Searching issues", query=query, year=year)

        body = await self._request(
            ENDPOINT_SEARCH,
            "search",
            {
                "resources": "issue",
                "query": query,
                "field_list": ISSUE_SEARCH_FIELDS,
                "limit": self.issue_search_limit,
            },
        )
        issues: list[CVIssue] = self._parse_list(body, _issue_list, "search")

        candidates = []
        for issue in issues:
            image = issue.image
            cover_url = (image.medium_url or image.small_url) if image else None
            candidate = self._issue_candidate(issue, cover_url)
            score = score_issue(series, issue_number, year, candidate, self.config)
            candidates.append(candidate.model_copy(update={"match_score": score}))

        candidates.sort(key=lambda c: c.match_score, reverse=True)

        if candidates:
            logger.debug("Issue search results", query=query, count=len(candidates))
        else:
            logger.warning("No issues found", query=query)
        return candidates

    async def search_volumes(self, query: str, year: int | None = None) -> list[VolumeCandidate]:
        """Search volumes by name.

        Results keep catalog order. When ``year`` is given, only volumes that
        started that year are returned.
        """
        body = await self._request(
            ENDPOINT_SEARCH,
            "search",
            {
                "resources": "volume",
                "query": query,
                "field_list": VOLUME_SEARCH_FIELDS,
                "limit": self.volume_search_limit,
            },
        )
        volumes: list[CVVolume] = self._parse_list(body, _volume_list, "search")

        candidates = []
        for volume in volumes:
            candidate = VolumeCandidate(
                id=str(volume.id),
                name=volume.name or "Unknown",
                start_year=volume.start_year,
                publisher=volume.publisher.name if volume.publisher else None,
                issue_count=volume.count_of_issues,
                cover_url=volume.image.medium_url if volume.image else None,
                description=strip_html(volume.description),
            )
            score = score_volume(query, year, candidate, self.config)
            candidates.append(candidate.model_copy(update={"score": score}))

        if year is not None:
            candidates = [c for c in candidates if c.start_year == year]

        logger.debug("Volume search results", query=query, year=year, count=len(candidates))
        return candidates

    async def get_issue_by_volume_and_number(
        self,
        volume_id: str | int,
        issue_number: int,
    ) -> IssueCandidate | None:
        """Look up one issue inside a volume.

        Returns:
            Candidate with score 1.0, or None when the volume has no such issue
            or the issue's cover URL is not a usable http(s) URL
        """
        body = await self._request(
            ENDPOINT_ISSUES,
            "issues",
            {
                "filter": f"volume:{volume_id},issue_number:{issue_number}",
                "field_list": VOLUME_ISSUE_FIELDS,
                "limit": 5,
            },
        )
        issues: list[CVIssue] = self._parse_list(body, _issue_list, "issues")
        if not issues:
            logger.debug("Issue not found in volume", volume_id=volume_id, issue_number=issue_number)
            return None

        issue = issues[0]
        image = issue.image
        cover_url = (image.medium_url or image.small_url) if image else None
        candidate = self._issue_candidate(issue, cover_url, match_score=1.0)

        if cover_url and not is_valid_cover_url(cover_url):
            logger.warning(
                "Rejecting issue with unusable cover URL",
                volume_id=volume_id,
                issue_number=issue_number,
                cover_url=cover_url,
            )
            return None

        if not cover_url:
            logger.debug("Issue has no cover image", volume_id=volume_id, issue_number=issue_number)
        return candidate

    async def get_issue_detail(self, issue_id: str | int) -> IssueMetadata:
        """Fetch full issue metadata including credits.

        Raises:
            NotFoundError: Catalog reported an error or returned no issue
            MalformedResponseError: Body is not a valid ComicVine response
        """
        endpoint = f"issue/4000-{issue_id}"
        body = await self._request(ENDPOINT_ISSUE, endpoint, {"field_list": ISSUE_DETAIL_FIELDS})

        try:
            envelope = CVResponse.model_validate_json(body)
        except ValidationError as e:
            raise MalformedResponseError(
                f"Invalid response for issue {issue_id}", endpoint=ENDPOINT_ISSUE
            ) from e

        if not envelope.ok or not envelope.results:
            raise NotFoundError(
                f"Issue {issue_id} not found (status={envelope.status_code})",
                endpoint=ENDPOINT_ISSUE,
            )

        try:
            detail = CVIssueDetail.model_validate(envelope.results)
        except ValidationError as e:
            raise MalformedResponseError(
                f"Invalid issue payload for issue {issue_id}", endpoint=ENDPOINT_ISSUE
            ) from e

        return self._build_metadata(str(issue_id), detail)

    def _build_metadata(self, issue_id: str, detail: CVIssueDetail) -> IssueMetadata:
        volume = detail.volume
        publisher, imprint = split_publisher(
            volume.publisher.name if volume and volume.publisher else None
        )
        cover_date = parse_cover_date(detail.cover_date)
        credits = extract_credits(detail.person_credits)
        image = detail.image

        return IssueMetadata(
            source_id=issue_id,
            volume_id=str(volume.id) if volume else None,
            series=volume.name if volume else None,
            title=detail.name,
            issue_number=detail.issue_number,
            volume=volume.start_year if volume else None,
            count=volume.count_of_issues if volume else None,
            publisher=publisher,
            imprint=imprint,
            summary=strip_html(detail.description),
            year=cover_date.year if cover_date else None,
            month=cover_date.month if cover_date else None,
            day=cover_date.day if cover_date else None,
            cover_url=(image.super_url or image.medium_url) if image else None,
            cover_url_small=image.small_url if image else None,
            web=detail.site_detail_url,
            writers=credits.writers,
            pencillers=credits.pencillers,
            inkers=credits.inkers,
            colorists=credits.colorists,
            letterers=credits.letterers,
            cover_artists=credits.cover_artists,
            editors=credits.editors,
            characters=credit_names(detail.character_credits),
            teams=credit_names(detail.team_credits),
            locations=credit_names(detail.location_credits),
            story_arcs=credit_names(detail.story_arc_credits),
        )

    async def get_volume_issues(self, volume_id: str | int) -> list[IssueCandidate]:
        """List issues of a volume in ascending issue-number order.

        Issue numbers that do not normalize to a number ("Annual") sort last;
        ties keep catalog order.
        """
        body = await self._request(
            ENDPOINT_ISSUES,
            "issues",
            {
                "filter": f"volume:{volume_id}",
                "field_list": VOLUME_ISSUES_LIST_FIELDS,
                "sort": "issue_number:asc",
                "limit": 100,
            },
        )
        issues: list[CVIssue] = self._parse_list(body, _issue_list, "issues")

        candidates = [
            self._issue_candidate(
                issue,
                issue.image.small_url if issue.image else None,
                volume_id=str(volume_id),
                match_score=1.0,
            )
            for issue in issues
        ]

        def sort_key(candidate: IssueCandidate) -> tuple[bool, float]:
            number = normalize_issue_number(candidate.issue_number)
            return (number is None, number if number is not None else 0.0)

        return sorted(candidates, key=sort_key)
