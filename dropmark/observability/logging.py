"""Structured logging configuration for the importer."""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, TextIO

import structlog

from dropmark.fetch.redact import redact_url_credentials


# Event keys that may carry an endpoint URL
_URL_KEYS = ("api_endpoint", "url")


def redact_event_urls(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Strip credentials from endpoint URLs in an event.

    Collections and items bind the raw endpoint, so this runs for every event
    rather than at each call site.
    """
    for key in _URL_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = redact_url_credentials(value)
    return event_dict


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structlog for importer events.

    Args:
        level: Minimum level to emit (default: INFO).
        output: Stream to write to (default: stderr).
        json_format: Render JSON lines if True, plain console text otherwise.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_event_urls,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json_format
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    processors.append(renderer)

    # Loggers are bound per collection and item, so nothing is cached.
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=False,
    )
