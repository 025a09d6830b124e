"""ComicVine metadata scraper: catalog search, match scoring and issue metadata."""

__version__ = "0.1.0"
