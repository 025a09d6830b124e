"""Exception hierarchy for the ComicVine scraper.

    CVScraperError  (base)
    +-- ConfigurationError      (API key missing; raised before any network access)
    +-- BadRequestError         (invalid request fields; raised before any network access)
    +-- RateLimitExceeded       (per-endpoint quota exhausted; retryable)
    +-- NotFoundError           (detail lookup returned nothing)
    +-- TransportError          (raised by the fetcher, never retried here)
    +-- MalformedResponseError  (unparsable body on a detail endpoint)

Search endpoints never raise NotFoundError or MalformedResponseError; "no
results" is an empty list.
"""

from __future__ import annotations

from datetime import timedelta


class CVScraperError(Exception):
    """Base exception for all scraper errors.

    Carries a human-readable ``message`` and the optional catalog ``endpoint``
    that was involved, so log lines can be filtered per endpoint.
    """

    def __init__(self, message: str = "ComicVine request failed", endpoint: str | None = None):
        self._message = message
        self._endpoint = endpoint
        super().__init__(message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def endpoint(self) -> str | None:
        return self._endpoint

    def __str__(self) -> str:
        if self._endpoint:
            return f"[{self._endpoint}] {self._message}"
        return self._message


class ConfigurationError(CVScraperError):
    """Required configuration (the API key) is missing."""


class BadRequestError(CVScraperError):
    """A request is missing a required field or carries an invalid value."""


class RateLimitExceeded(CVScraperError):
    """The rolling-window quota for an endpoint is exhausted."""

    def __init__(self, endpoint: str, wait_seconds: float):
        self.wait_seconds = max(0.0, wait_seconds)
        super().__init__(
            f"Rate limit exceeded. Try again in {self.wait_seconds / 60:.1f} minutes.",
            endpoint=endpoint,
        )

    @property
    def retry_after(self) -> timedelta:
        return timedelta(seconds=self.wait_seconds)


class NotFoundError(CVScraperError):
    """A single required object was not returned by the catalog."""


class TransportError(CVScraperError):
    """The fetch capability failed (network error or non-2xx HTTP status)."""

    def __init__(self, message: str, status_code: int | None = None, endpoint: str | None = None):
        self.status_code = status_code
        super().__init__(message, endpoint=endpoint)


class MalformedResponseError(CVScraperError):
    """The catalog returned a body that does not match the expected envelope."""
