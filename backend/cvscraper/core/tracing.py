"""Trace IDs for correlating the log lines of one search or scrape."""

from __future__ import annotations

import uuid
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import structlog.contextvars as contextvars


def generate_trace_id() -> str:
    """Generate a unique trace ID (32 hex characters)."""
    return uuid.uuid4().hex


def get_trace_id() -> str | None:
    """Get the trace ID bound to the current context, if any."""
    return contextvars.get_contextvars().get("trace_id")


@contextmanager
def trace_context(trace_id: str | None = None, **bindings: Any) -> Generator[str]:
    """Bind a trace ID (and extra fields) to every log line inside the block.

    The previous context is restored on exit, so trace contexts nest: a batch
    scrape can run each item under its own ID.

    Args:
        trace_id: Trace ID to use. A new one is generated when None.
        **bindings: Extra context fields, e.g. ``item_key``

    Yields:
        The trace ID being used

    Example:
        >>> with trace_context(item_key="comic-1") as trace_id:
        ...     logger.info("Scraping")  # includes trace_id and item_key
    """
    previous = dict(contextvars.get_contextvars())

    if trace_id is None:
        trace_id = generate_trace_id()

    contextvars.clear_contextvars()
    contextvars.bind_contextvars(trace_id=trace_id, **bindings)

    try:
        yield trace_id
    finally:
        contextvars.clear_contextvars()
        if previous:
            contextvars.bind_contextvars(**previous)
