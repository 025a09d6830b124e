"""HTTP fetch capability used by the ComicVine client."""

from __future__ import annotations

from typing import Protocol

import httpx
import structlog

from cvscraper.core.config import Settings, get_settings
from cvscraper.core.errors import TransportError
from cvscraper.core.utils import mask_api_key

logger = structlog.get_logger("cvscraper.core.comicvine.transport")


class Fetcher(Protocol):
    """Fetch a URL and return the response body as text.

    Implementations raise TransportError for network failures and non-2xx
    statuses. The client never retries.
    """

    async def __call__(self, url: str) -> str: ...


class HttpxFetcher:
    """Default fetcher backed by httpx.AsyncClient."""

    def __init__(
        self,
        timeout: float = 15.0,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent or Settings.model_fields["user_agent"].default
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> HttpxFetcher:
        if settings is None:
            settings = get_settings()
        return cls(timeout=settings.request_timeout_seconds, user_agent=settings.user_agent)

    async def __call__(self, url: str) -> str:
        safe_url = mask_api_key(url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    url,
                    headers={
                        "User-Agent": self.user_agent,
                        "Accept": "application/json",
                    },
                )
                response.raise_for_status()
                return response.text
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning("ComicVine returned an error status", status_code=status_code, url=safe_url)
            raise TransportError(f"HTTP {status_code} from ComicVine", status_code=status_code) from e
        except httpx.RequestError as e:
            logger.warning("ComicVine request failed", error=str(e), url=safe_url)
            raise TransportError(f"Request to ComicVine failed: {e}") from e
