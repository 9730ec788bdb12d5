"""Fetch pipeline for Dropmark collections.

This module fetches a collection endpoint with:
- Pluggable request preparation (headers, auth, tracing)
- Progress-reported, size-limited body reads
- Strict or lenient JSON decoding
- Stage-specific diagnostic codes for every fatal failure
"""

from dropmark.fetch.client import (
    CollectionFetcher,
    ResponseSizeExceededError,
    import_collection,
)
from dropmark.fetch.endpoint import is_valid_api_endpoint
from dropmark.fetch.redact import redact_headers, redact_url_credentials


__all__ = [
    "CollectionFetcher",
    "ResponseSizeExceededError",
    "import_collection",
    "is_valid_api_endpoint",
    "redact_headers",
    "redact_url_credentials",
]
