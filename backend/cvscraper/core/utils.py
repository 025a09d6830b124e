"""Shared utility functions for cvscraper."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from bs4 import BeautifulSoup


def normalize_issue_number(value: str | None) -> float | None:
    """Normalize an issue number string to a float.

    Handles fractional issue numbers (½, ¼, ¾) and various formats.

    Args:
        value: Issue number string (e.g., "001", "1.5", "½")

    Returns:
        Normalized issue number as float, or None if invalid
    """
    if not value:
        return None
    text = value.strip().lower()
    if not text:
        return None
    replacements = {
        "½": ".5",
        "¼": ".25",
        "¾": ".75",
    }
    for token, replacement in replacements.items():
        text = text.replace(token, replacement)
    text = text.replace(",", ".").replace("#", " ")
    text = re.sub(r"(?<=\d)[a-z]+", "", text)
    text = re.sub(r"[^0-9.\-]", " ", text)
    text = text.strip()
    if not text:
        return None
    # Some values include multiple numbers; take first segment that parses.
    for candidate in text.split():
        if candidate.count(".") > 1:
            continue
        if candidate in {"-", "--", "-.", "."}:
            continue
        try:
            return float(candidate)
        except ValueError:
            continue
    return None


def parse_int(value: Any) -> int | None:
    """Parse an integer from an int or a strictly integral string.

    "12" and " 12 " parse; "12.0", "12a" and "" do not.

    Args:
        value: Value to parse

    Returns:
        Parsed integer or None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = str(value).strip()
    if not re.fullmatch(r"[+-]?\d+", text):
        return None
    return int(text)


def strip_html(html: str | None) -> str | None:
    """Reduce an HTML fragment to plain text.

    Tags are removed, entities decoded and whitespace collapsed.

    Args:
        html: HTML fragment (ComicVine descriptions are HTML)

    Returns:
        Plain text, or None when nothing but markup/whitespace remains
    """
    if not html:
        return None
    text = BeautifulSoup(html, "html.parser").get_text(" ")
    text = re.sub(r"\s+", " ", text).strip()
    return text or None


_COVER_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d", "%Y-%m", "%Y/%m/%d", "%m/%d/%Y")


def parse_cover_date(value: str | None) -> date | None:
    """Parse a ComicVine cover date ("2018-04-30") into a date.

    Args:
        value: Cover date string

    Returns:
        Parsed date, or None when the value is empty or unparsable
    """
    if not value:
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in _COVER_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def mask_api_key(url: str) -> str:
    """Hide the api_key query parameter before a URL is logged."""
    if "api_key=" not in url:
        return url
    return re.sub(r"api_key=[^&]*", "api_key=***", url)
