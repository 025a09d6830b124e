"""Shared fixtures for unit tests: a fake ComicVine fetcher and payload builders."""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any
from urllib.parse import parse_qsl, urlparse

import pytest
import structlog

from cvscraper.core.comicvine.client import ComicVineClient
from cvscraper.core.comicvine.ratelimit import RateLimiter, reset_rate_limiter
from cvscraper.core.config import Settings

TEST_API_KEY = "test-key"


class FakeFetcher:
    """Serves canned ComicVine responses and records every requested URL.

    Routes match on the endpoint path ("search", "issues", "issue/4000-1")
    and, optionally, on query parameters. The first matching route wins.
    Unrouted requests get a successful empty response.
    """

    def __init__(self) -> None:
        self.urls: list[str] = []
        self._routes: list[tuple[str, dict[str, str], Any]] = []

    def add(self, endpoint: str, response: Any, **params: Any) -> None:
        """Route ``endpoint`` to ``response`` (dict -> JSON, str -> raw body, exception -> raised)."""
        self._routes.append((endpoint.strip("/"), {k: str(v) for k, v in params.items()}, response))

    @staticmethod
    def _split(url: str) -> tuple[str, dict[str, str]]:
        parsed = urlparse(url)
        return parsed.path.rstrip("/"), dict(parse_qsl(parsed.query))

    def requests(self, endpoint: str | None = None) -> list[dict[str, str]]:
        """Query parameters of recorded requests, optionally for one endpoint."""
        recorded = []
        for url in self.urls:
            path, query = self._split(url)
            if endpoint is None or path.endswith("/" + endpoint.strip("/")):
                recorded.append(query)
        return recorded

    async def __call__(self, url: str) -> str:
        self.urls.append(url)
        path, query = self._split(url)

        for endpoint, params, response in self._routes:
            if not path.endswith("/" + endpoint):
                continue
            if any(query.get(key) != value for key, value in params.items()):
                continue
            if isinstance(response, BaseException):
                raise response
            if isinstance(response, str):
                return response
            return json.dumps(response)

        return json.dumps(envelope([]))


def envelope(results: Any, status_code: int = 1, error: str = "OK") -> dict[str, Any]:
    """Wrap results in the ComicVine response envelope."""
    count = len(results) if isinstance(results, list) else 1
    return {
        "status_code": status_code,
        "error": error,
        "limit": 100,
        "offset": 0,
        "number_of_page_results": count,
        "number_of_total_results": count,
        "results": results,
    }


def volume_payload(
    volume_id: int,
    name: str,
    start_year: Any = None,
    publisher: str | None = "DC Comics",
    count_of_issues: Any = None,
    description: str | None = None,
) -> dict[str, Any]:
    return {
        "id": volume_id,
        "name": name,
        "start_year": start_year,
        "count_of_issues": count_of_issues,
        "description": description,
        "publisher": {"id": 10, "name": publisher} if publisher else None,
        "image": {"medium_url": f"https://comicvine.gamespot.com/a/uploads/{volume_id}.jpg"},
    }


def issue_payload(
    issue_id: int,
    issue_number: Any,
    volume_id: int = 1,
    volume_name: str = "Batman",
    cover_date: str | None = None,
    name: str | None = None,
    description: str | None = None,
    image: dict[str, Any] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    payload = {
        "id": issue_id,
        "name": name,
        "issue_number": issue_number,
        "cover_date": cover_date,
        "description": description,
        "site_detail_url": f"https://comicvine.gamespot.com/issue/4000-{issue_id}/",
        "volume": {"id": volume_id, "name": volume_name},
        "image": image,
    }
    payload.update(extra)
    return payload


@pytest.fixture(autouse=True)
def _clean_state() -> Iterator[None]:
    """Reset process-wide state between tests."""
    reset_rate_limiter()
    structlog.contextvars.clear_contextvars()
    yield
    reset_rate_limiter()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def rate_limiter() -> RateLimiter:
    """Limiter with the real quota but no pacing delay."""
    return RateLimiter(capacity=200, window_seconds=3600, min_interval_seconds=0)


@pytest.fixture
def client(fetcher: FakeFetcher, rate_limiter: RateLimiter) -> ComicVineClient:
    return ComicVineClient(api_key=TEST_API_KEY, fetcher=fetcher, rate_limiter=rate_limiter)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, api_key=TEST_API_KEY, min_request_interval_seconds=0)
