"""Tests for the scraper facade: key resolution, validation and batch scraping."""

from __future__ import annotations

import asyncio

import pytest
from conftest import TEST_API_KEY, FakeFetcher, envelope, issue_payload, volume_payload

from cvscraper.core.comicvine.models import ScrapeItem, SearchRequest
from cvscraper.core.comicvine.ratelimit import RateLimiter
from cvscraper.core.config import Settings
from cvscraper.core.errors import BadRequestError, ConfigurationError, TransportError
from cvscraper.core.scraper import ComicVineScraper
from cvscraper.core.tracing import get_trace_id


@pytest.fixture
def scraper(settings: Settings, fetcher: FakeFetcher, rate_limiter: RateLimiter) -> ComicVineScraper:
    return ComicVineScraper(settings=settings, fetcher=fetcher, rate_limiter=rate_limiter)


def _unkeyed(fetcher: FakeFetcher, rate_limiter: RateLimiter, **kwargs) -> ComicVineScraper:
    return ComicVineScraper(
        settings=Settings(_env_file=None, api_key=None),
        fetcher=fetcher,
        rate_limiter=rate_limiter,
        **kwargs,
    )


def _route_batman_one(fetcher: FakeFetcher) -> None:
    """Volume 796 "Batman" has issue #1 (ID 111) with full detail."""
    fetcher.add(
        "search",
        envelope([volume_payload(796, "Batman", start_year=2016)]),
        resources="volume",
        query="Batman",
    )
    fetcher.add(
        "issues",
        envelope([issue_payload(111, "1", volume_id=796, cover_date="2016-06-15")]),
        filter="volume:796,issue_number:1",
    )
    fetcher.add(
        "issue/4000-111",
        envelope(
            issue_payload(
                111,
                "1",
                name="I Am Gotham",
                cover_date="2016-06-15",
                volume={"id": 796, "name": "Batman", "count_of_issues": 170, "publisher": {"name": "DC Comics"}},
                person_credits=[{"name": "Tom King", "role": "writer"}],
            )
        ),
    )


# --- API key resolution -------------------------------------------------------


def test_explicit_api_key_wins(fetcher: FakeFetcher, rate_limiter: RateLimiter) -> None:
    """Test the explicit key beats lookups and settings."""
    scraper = ComicVineScraper(
        settings=Settings(_env_file=None, api_key="from-settings"),
        fetcher=fetcher,
        rate_limiter=rate_limiter,
        settings_lookup=lambda key: "from-lookup",
        api_key="explicit",
    )

    assert scraper.resolve_api_key() == "explicit"


def test_api_key_lookup_order(fetcher: FakeFetcher, rate_limiter: RateLimiter) -> None:
    """Test lookup keys are tried in order: plugin key, then legacy keys."""
    values = {
        "Credentials:ComicVine:ApiKey": "legacy-credentials",
        "MetadataScraper:ComicVine:ApiKey": "legacy-scraper",
    }
    asked: list[str] = []

    def lookup(key: str) -> str | None:
        asked.append(key)
        return values.get(key)

    scraper = _unkeyed(fetcher, rate_limiter, settings_lookup=lookup)

    assert scraper.resolve_api_key() == "legacy-credentials"
    assert asked[:2] == ["api_key", "Credentials:ComicVine:ApiKey"]

    values.pop("Credentials:ComicVine:ApiKey")
    assert scraper.resolve_api_key() == "legacy-scraper"

    values["api_key"] = "  plugin-key  "
    assert scraper.resolve_api_key() == "plugin-key"


def test_api_key_falls_back_to_settings(fetcher: FakeFetcher, rate_limiter: RateLimiter) -> None:
    """Test Settings.api_key is used when the lookup has nothing."""
    scraper = ComicVineScraper(
        settings=Settings(_env_file=None, api_key="from-settings"),
        fetcher=fetcher,
        rate_limiter=rate_limiter,
        settings_lookup=lambda key: "   ",
    )

    assert scraper.resolve_api_key() == "from-settings"


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_validation(
    fetcher: FakeFetcher, rate_limiter: RateLimiter
) -> None:
    """Test a missing key is reported even for invalid requests, with no network calls."""
    scraper = _unkeyed(fetcher, rate_limiter, settings_lookup=lambda key: None)

    with pytest.raises(ConfigurationError, match="API key not configured"):
        await scraper.search({})
    with pytest.raises(ConfigurationError):
        await scraper.search_volumes("Batman")
    with pytest.raises(ConfigurationError):
        await scraper.get_issue_metadata("abc")
    with pytest.raises(ConfigurationError):
        await scraper.scrape([])

    assert fetcher.urls == []


# --- Validation -------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"query": ""}, {"query": "   "}, {"query": None}])
async def test_search_rejects_missing_query(
    scraper: ComicVineScraper, fetcher: FakeFetcher, payload: dict
) -> None:
    """Test a missing or blank query is a bad request with zero network calls."""
    with pytest.raises(BadRequestError):
        await scraper.search(payload)

    assert fetcher.urls == []


@pytest.mark.asyncio
async def test_bad_ids_rejected(scraper: ComicVineScraper, fetcher: FakeFetcher) -> None:
    """Test non-numeric issue and volume IDs are bad requests."""
    for bad in ["abc", "", "4000-1", "0", None, "1.5"]:
        with pytest.raises(BadRequestError):
            await scraper.get_issue_metadata(bad)
        with pytest.raises(BadRequestError):
            await scraper.get_volume_issues(bad)

    with pytest.raises(BadRequestError):
        await scraper.search_volumes({"query": " "})
    with pytest.raises(BadRequestError):
        await scraper.search_issues("")

    assert fetcher.urls == []


# --- Operations -------------------------------------------------------------


@pytest.mark.asyncio
async def test_search_accepts_camel_case_payload(scraper: ComicVineScraper, fetcher: FakeFetcher) -> None:
    """Test host payloads with camelCase keys route to the direct search when asked."""
    fetcher.add("search", envelope([issue_payload(1, "5")]), resources="issue")

    results = await scraper.search({"query": " Batman ", "issueNumber": "5", "year": 2016, "useVolumeSearch": False})

    assert [r.id for r in results] == ["1"]
    [params] = fetcher.requests("search")
    assert params["resources"] == "issue"
    assert params["query"] == "Batman 5"


@pytest.mark.asyncio
async def test_search_non_integer_issue_number_is_ignored(
    scraper: ComicVineScraper, fetcher: FakeFetcher
) -> None:
    """Test an issue number like "1.5" searches as if none was given."""
    request = SearchRequest.model_validate({"query": "Batman", "issueNumber": "1.5"})
    assert request.issue_number is None

    await scraper.search(request)

    # No issue number: enhanced search goes straight to the issue search
    assert [p["resources"] for p in fetcher.requests("search")] == ["issue"]
    assert fetcher.requests("search")[0]["query"] == "Batman"


@pytest.mark.asyncio
async def test_search_defaults_to_volume_search(scraper: ComicVineScraper, fetcher: FakeFetcher) -> None:
    """Test the default search is volume-enhanced."""
    _route_batman_one(fetcher)

    results = await scraper.search({"query": "Batman", "issueNumber": 1, "year": 2016})

    assert [r.id for r in results] == ["111"]
    assert fetcher.requests("search")[0]["resources"] == "volume"


@pytest.mark.asyncio
async def test_search_volumes_and_metadata(scraper: ComicVineScraper, fetcher: FakeFetcher) -> None:
    """Test facade pass-through operations."""
    _route_batman_one(fetcher)

    volumes = await scraper.search_volumes({"query": "Batman", "year": 2016})
    metadata = await scraper.get_issue_metadata("111")
    issues = await scraper.get_volume_issues(796)

    assert [v.id for v in volumes] == ["796"]
    assert metadata.title == "I Am Gotham"
    assert metadata.writers == ["Tom King"]
    assert fetcher.requests("issues")[-1]["filter"] == "volume:796"
    assert issues == []
    assert all(TEST_API_KEY in url for url in fetcher.urls)


@pytest.mark.asyncio
async def test_rate_limit_status(scraper: ComicVineScraper) -> None:
    """Test status reflects requests made through the facade."""
    assert scraper.get_rate_limit_status() == {}

    await scraper.search_issues("Batman")

    status = scraper.get_rate_limit_status()
    assert status["search"].used == 1
    assert status["search"].remaining == 199


# --- Batch scrape -----------------------------------------------------------


@pytest.mark.asyncio
async def test_scrape_outcomes(scraper: ComicVineScraper, fetcher: FakeFetcher) -> None:
    """Test each outcome kind is reported and counted."""
    _route_batman_one(fetcher)

    report = await scraper.scrape(
        [
            ScrapeItem(key="matched", series="Batman", issue_number="1", year=2016),
            {"key": "nothing", "series": "Nonexistent Series", "issue_number": "1"},
            {"key": "nameless"},
        ]
    )

    assert [o.status for o in report.outcomes] == ["matched", "no_results", "error"]
    assert report.processed == 1
    assert report.failed == 2
    assert report.success is True
    assert report.message == "Processed 1 comics, 2 failed"

    matched = report.outcomes[0]
    assert matched.best_match is not None
    assert matched.best_match.id == "111"
    assert matched.metadata is not None
    assert matched.update is not None
    assert matched.update["series"] == "Batman"
    assert matched.update["writer"] == "Tom King"
    # Issue count sync is off by default
    assert matched.update["count"] is None


@pytest.mark.asyncio
async def test_scrape_accepts_numeric_issue_number(scraper: ComicVineScraper, fetcher: FakeFetcher) -> None:
    """Test mapping items may carry the issue number as an int."""
    _route_batman_one(fetcher)

    report = await scraper.scrape([{"key": "a", "series": "Batman", "issue_number": 1}])

    [outcome] = report.outcomes
    assert outcome.status == "matched"
    assert outcome.best_match is not None
    assert outcome.best_match.id == "111"
    assert [p["filter"] for p in fetcher.requests("issues")] == ["volume:796,issue_number:1"]


@pytest.mark.asyncio
async def test_scrape_low_confidence(scraper: ComicVineScraper, fetcher: FakeFetcher) -> None:
    """Test a best match below the threshold is not applied."""
    _route_batman_one(fetcher)

    report = await scraper.scrape([ScrapeItem(key="a", series="Batman", issue_number="1")], auto_apply_threshold=0.99)

    [outcome] = report.outcomes
    assert outcome.status == "low_confidence"
    assert outcome.metadata is None
    assert outcome.best_match is not None
    assert report.success is False
    assert fetcher.requests("issue/4000-111") == []


@pytest.mark.asyncio
async def test_scrape_uses_file_name_and_count_sync(
    fetcher: FakeFetcher, rate_limiter: RateLimiter
) -> None:
    """Test the file name is searched when the series is missing, and count sync is honored."""
    settings = Settings(_env_file=None, api_key=TEST_API_KEY, enable_issue_count_sync=True)
    scraper = ComicVineScraper(settings=settings, fetcher=fetcher, rate_limiter=rate_limiter)
    _route_batman_one(fetcher)

    report = await scraper.scrape([ScrapeItem(key="f", file_name="Batman", issue_number="001")])

    [outcome] = report.outcomes
    assert outcome.status == "matched"
    assert outcome.update is not None
    assert outcome.update["count"] == 170
    assert fetcher.requests("search")[0]["query"] == "Batman"


@pytest.mark.asyncio
async def test_scrape_item_errors_do_not_stop_the_batch(
    scraper: ComicVineScraper, fetcher: FakeFetcher
) -> None:
    """Test a failing item is recorded as an error and the next item still runs."""
    fetcher.add("search", TransportError("HTTP 503 from ComicVine", status_code=503), query="Broken")
    _route_batman_one(fetcher)

    report = await scraper.scrape(
        [
            ScrapeItem(key="broken", series="Broken"),
            ScrapeItem(key="ok", series="Batman", issue_number="1", year=2016),
        ]
    )

    assert [o.status for o in report.outcomes] == ["error", "matched"]
    assert "HTTP 503" in report.outcomes[0].message
    assert (report.processed, report.failed) == (1, 1)


@pytest.mark.asyncio
async def test_scrape_runs_items_in_trace_context(scraper: ComicVineScraper, fetcher: FakeFetcher) -> None:
    """Test each item gets its own trace ID and the caller's context is restored."""
    seen: list[str | None] = []
    original = fetcher.__call__

    async def recording_fetch(url: str) -> str:
        seen.append(get_trace_id())
        return await original(url)

    scraper.fetcher = recording_fetch
    scraper._client = None

    await scraper.scrape([ScrapeItem(key="a", series="Saga"), ScrapeItem(key="b", series="Saga")])

    assert len(seen) == 2
    assert all(seen)
    assert seen[0] != seen[1]
    assert get_trace_id() is None


@pytest.mark.asyncio
async def test_scrape_validation(scraper: ComicVineScraper, fetcher: FakeFetcher) -> None:
    """Test empty batches, bad items and bad thresholds are rejected up front."""
    with pytest.raises(BadRequestError):
        await scraper.scrape([])
    with pytest.raises(BadRequestError):
        await scraper.scrape([{"series": "Batman"}])
    with pytest.raises(BadRequestError):
        await scraper.scrape([ScrapeItem(key="a", series="Batman")], auto_apply_threshold=1.5)

    assert fetcher.urls == []


@pytest.mark.asyncio
async def test_scrape_cancellation_propagates(settings: Settings, fetcher: FakeFetcher) -> None:
    """Test cancelling a batch mid-pacing cancels it instead of recording an error."""
    limiter = RateLimiter(min_interval_seconds=30)
    scraper = ComicVineScraper(settings=settings, fetcher=fetcher, rate_limiter=limiter)
    await limiter.acquire("search")

    task = asyncio.create_task(scraper.scrape([ScrapeItem(key="a", series="Batman")]))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert fetcher.urls == []
