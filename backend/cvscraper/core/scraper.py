"""ComicVine scraper facade.

Host applications talk to this class: it resolves the API key, validates
request payloads before anything touches the network, and runs batch
scrapes. Routing, permissions and writing metadata back into a library are
left to the host.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from cvscraper.core.comicvine.client import ComicVineClient
from cvscraper.core.comicvine.models import (
    IssueCandidate,
    IssueMetadata,
    RateLimitStatus,
    ScrapeItem,
    ScrapeOutcome,
    ScrapeReport,
    SearchRequest,
    VolumeCandidate,
    VolumeSearchRequest,
)
from cvscraper.core.comicvine.ratelimit import RateLimiter, get_rate_limiter
from cvscraper.core.comicvine.search import SearchOrchestrator
from cvscraper.core.comicvine.transport import Fetcher, HttpxFetcher
from cvscraper.core.config import Settings, get_settings
from cvscraper.core.errors import BadRequestError, ConfigurationError
from cvscraper.core.matching.config import DEFAULT_CONFIG, MatchingConfig
from cvscraper.core.tracing import trace_context
from cvscraper.core.utils import parse_int

logger = structlog.get_logger("cvscraper.core.scraper")

SettingsLookup = Callable[[str], str | None]

# Checked in order after an explicit key; older hosts stored the key under the legacy names
API_KEY_LOOKUP_KEYS = (
    "api_key",
    "Credentials:ComicVine:ApiKey",
    "MetadataScraper:ComicVine:ApiKey",
)

MISSING_API_KEY_MESSAGE = (
    "Comic Vine API key not configured. "
    "Get a free key at https://comicvine.gamespot.com/api/"
)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate(model: type[ModelT], payload: ModelT | Mapping[str, Any]) -> ModelT:
    """Validate a request payload, turning validation errors into BadRequestError."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'request'}: {error['msg']}"
            for error in e.errors()
        )
        raise BadRequestError(f"Invalid request: {problems}") from e


def _require_id(value: Any, name: str) -> int:
    parsed = parse_int(value)
    if parsed is None or parsed <= 0:
        raise BadRequestError(f"{name} must be a numeric ComicVine ID, got {value!r}")
    return parsed


class ComicVineScraper:
    """Entry point for searching ComicVine and scraping issue metadata."""

    def __init__(
        self,
        settings: Settings | None = None,
        fetcher: Fetcher | None = None,
        rate_limiter: RateLimiter | None = None,
        settings_lookup: SettingsLookup | None = None,
        api_key: str | None = None,
        config: MatchingConfig | None = None,
    ):
        """Initialize the scraper.

        Args:
            settings: Scraper settings (default: get_settings())
            fetcher: Fetch capability (default: HttpxFetcher built from settings)
            rate_limiter: Rate limiter (default: the process-wide limiter)
            settings_lookup: Host settings lookup used to find the API key
            api_key: Explicit API key, takes precedence over every other source
            config: Matching configuration
        """
        self.settings = settings or get_settings()
        self.fetcher = fetcher if fetcher is not None else HttpxFetcher.from_settings(self.settings)
        self.rate_limiter = (
            rate_limiter if rate_limiter is not None else get_rate_limiter(self.settings)
        )
        self.settings_lookup = settings_lookup
        self.api_key = api_key
        self.config = config or DEFAULT_CONFIG

        self._client: ComicVineClient | None = None

    def resolve_api_key(self) -> str:
        """Find the API key.

        Order: explicit key, host lookup ("api_key" then the legacy names),
        then Settings.api_key.

        Raises:
            ConfigurationError: No source has a non-blank key
        """
        candidates: list[str | None] = [self.api_key]
        if self.settings_lookup is not None:
            candidates.extend(self.settings_lookup(key) for key in API_KEY_LOOKUP_KEYS)
        candidates.append(self.settings.api_key)

        for candidate in candidates:
            if candidate and candidate.strip():
                return candidate.strip()

        raise ConfigurationError(MISSING_API_KEY_MESSAGE)

    def client(self) -> ComicVineClient:
        """Client for the currently resolved API key (rebuilt when the key changes)."""
        api_key = self.resolve_api_key()
        if self._client is None or self._client.api_key != api_key:
            self._client = ComicVineClient(
                api_key=api_key,
                fetcher=self.fetcher,
                rate_limiter=self.rate_limiter,
                base_url=self.settings.base_url,
                issue_search_limit=self.settings.issue_search_limit,
                volume_search_limit=self.settings.volume_search_limit,
                config=self.config,
            )
        return self._client

    def _orchestrator(self) -> SearchOrchestrator:
        return SearchOrchestrator(self.client(), self.config)

    async def search(self, request: SearchRequest | Mapping[str, Any]) -> list[IssueCandidate]:
        """Search issues. Routes to the volume-enhanced search unless disabled."""
        client = self.client()
        req = _validate(SearchRequest, request)
        if req.use_volume_search:
            return await SearchOrchestrator(client, self.config).search_enhanced(
                req.query, req.issue_number, req.year
            )
        return await client.search_issues(req.query, req.issue_number, req.year)

    async def search_issues(
        self,
        series: str,
        issue_number: int | str | None = None,
        year: int | None = None,
    ) -> list[IssueCandidate]:
        client = self.client()
        req = _validate(
            SearchRequest,
            {"query": series, "issue_number": issue_number, "year": year, "use_volume_search": False},
        )
        return await client.search_issues(req.query, req.issue_number, req.year)

    async def search_enhanced(
        self,
        series: str,
        issue_number: int | str | None = None,
        year: int | None = None,
    ) -> list[IssueCandidate]:
        orchestrator = self._orchestrator()
        req = _validate(SearchRequest, {"query": series, "issue_number": issue_number, "year": year})
        return await orchestrator.search_enhanced(req.query, req.issue_number, req.year)

    async def search_volumes(
        self,
        request: VolumeSearchRequest | Mapping[str, Any] | str,
        year: int | None = None,
    ) -> list[VolumeCandidate]:
        """Search volumes by name; accepts a query string or a request payload."""
        client = self.client()
        if isinstance(request, str):
            request = {"query": request, "year": year}
        req = _validate(VolumeSearchRequest, request)
        return await client.search_volumes(req.query, req.year)

    async def get_issue_metadata(self, issue_id: str | int) -> IssueMetadata:
        client = self.client()
        return await client.get_issue_detail(_require_id(issue_id, "issue_id"))

    async def get_volume_issues(self, volume_id: str | int) -> list[IssueCandidate]:
        client = self.client()
        return await client.get_volume_issues(_require_id(volume_id, "volume_id"))

    def get_rate_limit_status(self) -> dict[str, RateLimitStatus]:
        return self.rate_limiter.status()

    async def scrape(
        self,
        items: Iterable[ScrapeItem | Mapping[str, Any]],
        auto_apply_threshold: float | None = None,
    ) -> ScrapeReport:
        """Search each comic and fetch metadata for confident matches.

        Items run one after another, each under its own trace ID. A failing
        item is recorded and the batch continues; cancellation stops it.

        Args:
            items: Comics to scrape
            auto_apply_threshold: Minimum best-match score to accept
                (default: Settings.auto_apply_threshold)

        Returns:
            ScrapeReport with one outcome per item
        """
        orchestrator = self._orchestrator()

        scrape_items = [_validate(ScrapeItem, item) for item in items]
        if not scrape_items:
            raise BadRequestError("At least one item is required")

        threshold = (
            self.settings.auto_apply_threshold
            if auto_apply_threshold is None
            else auto_apply_threshold
        )
        if not 0.0 <= threshold <= 1.0:
            raise BadRequestError(f"auto_apply_threshold must be between 0 and 1, got {threshold}")

        logger.info("Starting scrape", items=len(scrape_items), threshold=threshold)

        report = ScrapeReport()
        for item in scrape_items:
            with trace_context(item_key=item.key):
                try:
                    outcome = await self._scrape_item(orchestrator, item, threshold)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.exception("Error scraping comic", item_key=item.key)
                    outcome = ScrapeOutcome(key=item.key, status="error", message=f"Error: {e}")

            if outcome.status == "matched":
                report.processed += 1
            else:
                report.failed += 1
            report.outcomes.append(outcome)

        logger.info("Scrape complete", processed=report.processed, failed=report.failed)
        return report

    async def _scrape_item(
        self,
        orchestrator: SearchOrchestrator,
        item: ScrapeItem,
        threshold: float,
    ) -> ScrapeOutcome:
        search_term = (item.series or "").strip() or (item.file_name or "").strip()
        if not search_term:
            return ScrapeOutcome(key=item.key, status="error", message="No series or file name to search for")

        issue_number = parse_int(item.issue_number)
        results = await orchestrator.search_enhanced(search_term, issue_number, item.year)
        if not results:
            return ScrapeOutcome(key=item.key, status="no_results", message=f"No results for: {search_term}")

        best_match = results[0]
        logger.info(
            "Best match",
            candidates=len(results),
            issue_id=best_match.id,
            match_score=best_match.match_score,
            threshold=threshold,
        )
        if best_match.match_score < threshold:
            return ScrapeOutcome(
                key=item.key,
                status="low_confidence",
                message=f"No confident match for: {search_term} (best: {best_match.match_score:.0%})",
                best_match=best_match,
            )

        metadata = await orchestrator.client.get_issue_detail(best_match.id)
        return ScrapeOutcome(
            key=item.key,
            status="matched",
            message=f"Matched: {search_term} -> ComicVine issue {best_match.id}",
            best_match=best_match,
            metadata=metadata,
            update=metadata.to_update_fields(include_count=self.settings.enable_issue_count_sync),
        )
