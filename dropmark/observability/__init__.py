"""Observability module for logging."""

from dropmark.observability.logging import configure_logging, redact_event_urls


__all__ = [
    "configure_logging",
    "redact_event_urls",
]
