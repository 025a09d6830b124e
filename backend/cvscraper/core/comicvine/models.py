"""Pydantic models for ComicVine responses and scraper results.

Wire models (``CV*``) mirror the JSON the catalog returns and ignore unknown
fields. Result models are what the scraper hands back to its callers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cvscraper.core.utils import parse_int

PROVIDER = "ComicVine"


def _tolerant_int(value: Any) -> int | None:
    """Accept ints, numeric strings, blanks and garbage (ComicVine sends all four)."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return parse_int(value)


# --- Wire models ------------------------------------------------------------


class CVImage(BaseModel):
    """Image URLs attached to an issue or volume."""

    icon_url: str | None = None
    thumb_url: str | None = None
    small_url: str | None = None
    medium_url: str | None = None
    super_url: str | None = None
    original_url: str | None = None


class CVPublisher(BaseModel):
    id: int | None = None
    name: str | None = None


class CVVolume(BaseModel):
    """Volume (series) data - ComicVine calls a series a "volume"."""

    id: int = 0
    name: str | None = None
    start_year: int | None = None
    count_of_issues: int | None = None
    description: str | None = None
    publisher: CVPublisher | None = None
    image: CVImage | None = None

    @field_validator("start_year", "count_of_issues", mode="before")
    @classmethod
    def _string_or_number(cls, value: Any) -> int | None:
        return _tolerant_int(value)


class CVIssue(BaseModel):
    """Basic issue data returned from the search and issues endpoints."""

    id: int = 0
    name: str | None = None
    issue_number: str | None = None
    cover_date: str | None = None
    description: str | None = None
    site_detail_url: str | None = None
    volume: CVVolume | None = None
    image: CVImage | None = None

    @field_validator("issue_number", mode="before")
    @classmethod
    def _issue_number_as_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value)


class CVCredit(BaseModel):
    id: int | None = None
    name: str | None = None
    role: str | None = None


class CVIssueDetail(CVIssue):
    """Full issue details from the issue/4000-{id} endpoint, with credits."""

    person_credits: list[CVCredit] | None = None
    character_credits: list[CVCredit] | None = None
    team_credits: list[CVCredit] | None = None
    location_credits: list[CVCredit] | None = None
    story_arc_credits: list[CVCredit] | None = None


class CVResponse(BaseModel):
    """Envelope shared by every ComicVine response.

    status_code: 1 = success, 100 = invalid API key, 101 = object not found,
    102 = bad request. ``results`` is validated separately per endpoint.
    """

    status_code: int
    error: str | None = None
    limit: int = 0
    offset: int = 0
    number_of_page_results: int = 0
    number_of_total_results: int = 0
    results: Any = None

    @property
    def ok(self) -> bool:
        return self.status_code == 1


# --- Result models ----------------------------------------------------------


class IssueCandidate(BaseModel):
    """A catalog issue that may match the searched comic."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="ComicVine issue ID")
    provider: str = PROVIDER
    series: str = Field(default="Unknown", description="Volume name")
    issue_number: str | None = None
    title: str | None = None
    year: int | None = Field(default=None, description="Cover year")
    month: int | None = Field(default=None, description="Cover month")
    publisher: str | None = None
    cover_url: str | None = None
    description: str | None = None
    volume_id: str | None = None
    volume_start_year: int | None = None
    count: int | None = Field(default=None, description="Issue count reported for the volume")
    match_score: float = Field(default=0.0, ge=0.0, le=1.0)


class VolumeCandidate(BaseModel):
    """A catalog volume that may match the searched series."""

    model_config = ConfigDict(frozen=True)

    id: str
    provider: str = PROVIDER
    name: str = "Unknown"
    start_year: int | None = None
    publisher: str | None = None
    issue_count: int | None = None
    cover_url: str | None = None
    description: str | None = None
    score: float = Field(default=0.0, ge=0.0, le=1.0)


class IssueMetadata(BaseModel):
    """Full scraped issue metadata."""

    provider: str = PROVIDER
    source_id: str
    volume_id: str | None = None
    series: str | None = None
    title: str | None = None
    issue_number: str | None = None
    volume: int | None = Field(default=None, description="Volume start year")
    count: int | None = Field(default=None, description="Issue count reported for the volume")
    publisher: str | None = None
    imprint: str | None = None
    summary: str | None = None
    year: int | None = None
    month: int | None = None
    day: int | None = None
    cover_url: str | None = None
    cover_url_small: str | None = None
    web: str | None = None

    writers: list[str] = Field(default_factory=list)
    pencillers: list[str] = Field(default_factory=list)
    inkers: list[str] = Field(default_factory=list)
    colorists: list[str] = Field(default_factory=list)
    letterers: list[str] = Field(default_factory=list)
    cover_artists: list[str] = Field(default_factory=list)
    editors: list[str] = Field(default_factory=list)
    characters: list[str] = Field(default_factory=list)
    teams: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    story_arcs: list[str] = Field(default_factory=list)

    def to_update_fields(self, include_count: bool = False) -> dict[str, Any]:
        """Flatten into the field set a host library applies to a comic.

        Args:
            include_count: Include the volume issue count. ComicVine counts are
                often stale, so hosts opt in explicitly.

        Returns:
            Mapping of field name to value, credits joined with ", "
        """
        return {
            "series": self.series,
            "number": self.issue_number,
            "count": self.count if include_count else None,
            "title": self.title,
            "summary": self.summary,
            "year": self.year,
            "month": self.month,
            "publisher": self.publisher,
            "imprint": self.imprint,
            "writer": ", ".join(self.writers),
            "penciller": ", ".join(self.pencillers),
            "inker": ", ".join(self.inkers),
            "colorist": ", ".join(self.colorists),
            "letterer": ", ".join(self.letterers),
            "cover_artist": ", ".join(self.cover_artists),
            "editor": ", ".join(self.editors),
            "story_arc": ", ".join(self.story_arcs),
            "web": self.web,
        }


class RateLimitStatus(BaseModel):
    """Usage snapshot for one endpoint."""

    endpoint: str
    used: int
    remaining: int = Field(..., ge=0)
    limit: int
    reset_time: datetime | None = None


# --- Requests ---------------------------------------------------------------


class SearchRequest(BaseModel):
    """Issue search request as sent by a host (camelCase keys accepted)."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    query: str = Field(..., min_length=1, description="Series name, title, etc.")
    issue_number: int | None = Field(default=None, alias="issueNumber")
    year: int | None = None
    use_volume_search: bool = Field(default=True, alias="useVolumeSearch")

    @field_validator("issue_number", mode="before")
    @classmethod
    def _lenient_issue_number(cls, value: Any) -> int | None:
        # Non-integral issue numbers ("1.5", "Annual") search without an issue number.
        return parse_int(value)


class VolumeSearchRequest(BaseModel):
    """Volume search request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    query: str = Field(..., min_length=1, description="Series name to search for")
    year: int | None = Field(default=None, description="Start year filter")


# --- Batch scraping ---------------------------------------------------------


class ScrapeItem(BaseModel):
    """One comic to scrape in a batch."""

    key: str = Field(..., description="Caller's identifier for the comic")
    series: str | None = None
    issue_number: str | None = None
    year: int | None = None
    file_name: str | None = None

    @field_validator("issue_number", mode="before")
    @classmethod
    def _issue_number_as_text(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value


class ScrapeOutcome(BaseModel):
    key: str
    status: Literal["matched", "no_results", "low_confidence", "error"]
    message: str
    best_match: IssueCandidate | None = None
    metadata: IssueMetadata | None = None
    update: dict[str, Any] | None = None


class ScrapeReport(BaseModel):
    processed: int = 0
    failed: int = 0
    outcomes: list[ScrapeOutcome] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.processed > 0

    @property
    def message(self) -> str:
        return f"Processed {self.processed} comics, {self.failed} failed"
