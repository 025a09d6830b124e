"""Logging configuration.

Scraper code logs through structlog. Everything ends up in stdlib logging
handlers: stdout, or JSON files when a logs directory is configured.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.types import EventDict

ExcInfo = tuple[type[BaseException] | None, BaseException | None, TracebackType | None]

TracebackFrame = dict[str, str | int | None]

ExceptionDetails = dict[str, None | str | list[TracebackFrame]]

APP_LOG_FILENAME = "cvscraper.json.log"
HTTP_LOG_FILENAME = "cvscraper.http.json.log"

# Chatty HTTP client loggers, routed to their own file
HTTP_LOGGERS = ("httpx", "httpcore", "httpcore.connection", "httpcore.http11")


def _as_exc_info(value: Any) -> ExcInfo | None:
    """Coerce the forms structlog accepts for ``exc_info`` into a tuple."""
    if value is True:
        value = sys.exc_info()
    elif isinstance(value, BaseException):
        value = (type(value), value, value.__traceback__)
    if not isinstance(value, tuple) or value[0] is None:
        return None
    return value  # type: ignore[return-value]


def format_exception_for_json(exc_info: ExcInfo | None) -> ExceptionDetails:
    """Format exception information for JSON logging.

    Args:
        exc_info: Exception info tuple from sys.exc_info() or None

    Returns:
        Dictionary with exception_type, exception_message, exception_module,
        traceback_frames (innermost last) and traceback_text. Empty when there
        is no exception.
    """
    if exc_info is None or exc_info[0] is None:
        return {}

    exc_type, exc_value, exc_tb = exc_info
    details: ExceptionDetails = {
        "exception_type": exc_type.__name__,
        "exception_message": str(exc_value) if exc_value is not None else None,
        "exception_module": exc_type.__module__,
    }
    if exc_tb is None:
        return details

    frames: list[TracebackFrame] = []
    for summary in traceback.extract_tb(exc_tb):
        frame: TracebackFrame = {
            "filename": summary.filename,
            "lineno": summary.lineno,
            "function": summary.name,
        }
        if summary.line:
            frame["source_line"] = summary.line
        frames.append(frame)

    details["traceback_frames"] = frames
    details["traceback_text"] = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    return details


def exception_processor(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Replace ``exc_info`` with structured exception fields.

    Adds ``exception`` (see format_exception_for_json) and a one-line
    ``exception_summary`` such as ``"TransportError: HTTP 502 from ComicVine"``.
    """
    exc_info = _as_exc_info(event_dict.pop("exc_info", None))
    details = format_exception_for_json(exc_info)
    if not details:
        return event_dict

    event_dict["exception"] = details
    if details.get("exception_message"):
        event_dict["exception_summary"] = f"{details['exception_type']}: {details['exception_message']}"
    return event_dict


class JSONFormatter(logging.Formatter):
    """One JSON object per stdlib record (used for the HTTP client log file)."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds")
        payload: dict[str, Any] = {
            "timestamp": timestamp.replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            payload["exception"] = format_exception_for_json(record.exc_info)  # type: ignore[arg-type]
        return json.dumps(payload, ensure_ascii=False, default=str)


def _route_logger(name: str, handler: logging.Handler, level: int) -> None:
    """Send a stdlib logger only to ``handler``, replacing earlier handlers."""
    target = logging.getLogger(name)
    target.setLevel(level)
    target.propagate = False
    for existing in target.handlers[:]:
        existing.close()
        target.removeHandler(existing)
    target.addHandler(handler)


def _open_file_handlers(logs_dir: Path, level: int) -> tuple[logging.Handler, logging.Handler] | None:
    """Open the scraper and HTTP JSON log files, or None if the directory is unusable."""
    opened: list[logging.Handler] = []
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        opened.append(logging.FileHandler(logs_dir / APP_LOG_FILENAME, encoding="utf-8"))
        opened.append(logging.FileHandler(logs_dir / HTTP_LOG_FILENAME, encoding="utf-8"))
    except OSError as e:
        # structlog is not configured yet, so report straight to stderr
        sys.stderr.write(f"Warning: Failed to setup file logging in {logs_dir}: {e}\n")
        for handler in opened:
            handler.close()
        return None

    app_handler, http_handler = opened
    app_handler.setLevel(level)
    http_handler.setLevel(logging.DEBUG)
    http_handler.setFormatter(JSONFormatter())
    return app_handler, http_handler


def setup_logging(debug: bool = False, logs_dir: Path | None = None) -> None:
    """Setup structured logging with structlog.

    Configures:
    - Scraper logs: stdout (pretty in debug, JSON otherwise), or a JSON file
      when ``logs_dir`` is set
    - HTTP client logs (httpx/httpcore): separate JSON file at WARNING level

    Falls back to stdout when the log files cannot be opened.

    Args:
        debug: Enable debug logging
        logs_dir: Optional directory for JSON log files
    """
    level = logging.DEBUG if debug else logging.INFO
    file_handlers = _open_file_handlers(logs_dir, level) if logs_dir else None

    if file_handlers:
        app_handler, http_handler = file_handlers
    else:
        app_handler = logging.StreamHandler(sys.stdout)
        app_handler.setLevel(level)

    logging.basicConfig(format="%(message)s", level=level, handlers=[app_handler], force=True)

    if file_handlers:
        for name in HTTP_LOGGERS:
            _route_logger(name, http_handler, logging.WARNING)

    # File logs are always JSON; the console is pretty only in debug mode
    renderer: Any
    if file_handlers or not debug:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,  # trace_id, item_key
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            exception_processor,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    structlog.get_logger("cvscraper.logging").info(
        "Logging configured",
        level=logging.getLevelName(level),
        debug=debug,
        app_log_file=str(logs_dir / APP_LOG_FILENAME) if file_handlers and logs_dir else None,
        http_log_file=str(logs_dir / HTTP_LOG_FILENAME) if file_handlers and logs_dir else None,
    )
