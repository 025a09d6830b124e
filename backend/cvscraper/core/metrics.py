"""Prometheus metrics for catalog access."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# Catalog request metrics
comicvine_requests_total = Counter(
    "cvscraper_comicvine_requests_total",
    "Total number of ComicVine requests admitted by the rate limiter",
    ["endpoint"],
)
comicvine_rate_limit_rejections_total = Counter(
    "cvscraper_comicvine_rate_limit_rejections_total",
    "Total number of requests rejected because the endpoint quota was exhausted",
    ["endpoint"],
)
comicvine_pacing_delay_seconds = Histogram(
    "cvscraper_comicvine_pacing_delay_seconds",
    "Time callers spent waiting for the global request pacing interval",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 0.75, 1.0, 2.0),
)

# Search metrics
search_fallbacks_total = Counter(
    "cvscraper_search_fallbacks_total",
    "Total number of volume-enhanced searches that fell back to direct issue search",
    ["reason"],  # reason: no_issue_number, no_volumes, no_volume_hits
)
