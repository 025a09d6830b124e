"""Classify ComicVine person credits into creator roles.

ComicVine roles are free text ("writer, penciler", "Cover, Colorist"), so
classification uses substring containment per comma-separated token rather
than exact matches. One person can land in several buckets.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from cvscraper.core.comicvine.models import CVCredit


@dataclass
class CreditBuckets:
    """Creator names per role, deduplicated, in first-seen order."""

    writers: list[str] = field(default_factory=list)
    pencillers: list[str] = field(default_factory=list)
    inkers: list[str] = field(default_factory=list)
    colorists: list[str] = field(default_factory=list)
    letterers: list[str] = field(default_factory=list)
    cover_artists: list[str] = field(default_factory=list)
    editors: list[str] = field(default_factory=list)


def _add(bucket: list[str], name: str) -> None:
    if name not in bucket:
        bucket.append(name)


def split_roles(role: str | None) -> list[str]:
    """Split a raw role string into lowercase tokens ("Writer, Artist" -> ["writer", "artist"])."""
    return [token.strip() for token in (role or "").lower().split(",") if token.strip()]


def extract_credits(credits: Iterable[CVCredit] | None) -> CreditBuckets:
    """Sort person credits into role buckets.

    Args:
        credits: ``person_credits`` from an issue detail response

    Returns:
        CreditBuckets with no duplicate names in any bucket
    """
    buckets = CreditBuckets()
    for credit in credits or ():
        name = credit.name or ""
        if not name:
            continue

        for role in split_roles(credit.role):
            if "writer" in role:
                _add(buckets.writers, name)
            if "pencil" in role:
                _add(buckets.pencillers, name)
            if role == "artist":
                _add(buckets.pencillers, name)
                _add(buckets.inkers, name)
            if "ink" in role:
                _add(buckets.inkers, name)
            if "color" in role:
                _add(buckets.colorists, name)
            if "letter" in role:
                _add(buckets.letterers, name)
            if "cover" in role:
                _add(buckets.cover_artists, name)
            if "edit" in role:
                _add(buckets.editors, name)

    return buckets


def credit_names(credits: Iterable[CVCredit] | None) -> list[str]:
    """Non-empty names from character, team, location or story arc credits."""
    return [credit.name for credit in credits or () if credit.name]
