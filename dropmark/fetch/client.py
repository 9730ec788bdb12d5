"""Fetch pipeline: request, read, decode and finalize a collection."""

import json
import time
from io import BytesIO
from typing import NoReturn

import httpx
import structlog

from dropmark.collection import Collection, notify_trackers
from dropmark.constants import (
    COMPONENT_FETCH,
    DEFAULT_CHUNK_SIZE,
    ENDPOINT_NOT_RECOGNIZED,
    HTTP_STATUS_OK,
    INVALID_API_RESP_HTTP_STATUS_CODE,
    INVALID_ITEM_FIELD_DROPPED,
    JSON_RESPONSE_NOT_DECODABLE,
    UNABLE_TO_CREATE_HTTP_REQUEST,
    UNABLE_TO_DECODE_JSON_RESPONSE,
    UNABLE_TO_EXECUTE_HTTP_GET_REQUEST,
    UNABLE_TO_READ_BODY_FROM_HTTP_RESPONSE,
)
from dropmark.fetch.endpoint import is_valid_api_endpoint
from dropmark.fetch.redact import redact_headers, redact_url_credentials
from dropmark.issues import DropmarkAPIError, Issue
from dropmark.metrics import ImportMetrics
from dropmark.models import decode_collection_payload
from dropmark.options import ImportOptions, resolve_options


logger = structlog.get_logger()


class ResponseSizeExceededError(Exception):
    """Raised when response size exceeds the configured limit."""


class CollectionFetcher:
    """Fetches a Dropmark collection and finalizes its items.

    Each stage that can fail raises DropmarkAPIError carrying an Issue
    with a stage-specific code:
    - DROPMARKAPIE-0100: the request could not be built
    - DROPMARKAPIE-0200: the request could not be sent
    - DROPMARKAPIE-0300: the response status was not 200
    - DROPMARKAPIE-0400: the body could not be read
    - DROPMARKAPIE-0500: the body was not a JSON object (strict decode)
    """

    def __init__(self, options: ImportOptions | None = None) -> None:
        """Initialize the fetcher.

        Args:
            options: Import options; defaults to ImportOptions().
        """
        self._options = options or ImportOptions()
        self._metrics = ImportMetrics.get_instance()
        self._log = logger.bind(component=COMPONENT_FETCH)

    @property
    def options(self) -> ImportOptions:
        return self._options

    def fetch(self, api_endpoint: str) -> Collection:
        """Fetch, decode and finalize the collection at an endpoint.

        Args:
            api_endpoint: Absolute URL of the collection JSON.

        Returns:
            The finalized Collection.

        Raises:
            DropmarkAPIError: If any fetch stage fails.
        """
        start_time_ns = time.perf_counter_ns()
        log = self._log.bind(api_endpoint=redact_url_credentials(api_endpoint))

        pending: list[Issue] = []
        recognized = is_valid_api_endpoint(api_endpoint)
        if self._options.validate_endpoint and not recognized:
            log.warning("endpoint_not_recognized")
            pending.append(
                Issue(
                    api_endpoint=api_endpoint,
                    code=ENDPOINT_NOT_RECOGNIZED,
                    message=(
                        f"{api_endpoint!r} is not a recognized Dropmark API endpoint"
                    ),
                    is_error=False,
                )
            )

        client = self._options.http_client
        owns_client = client is None
        if client is None:
            client = httpx.Client(timeout=self._options.timeout_seconds)
            # No User-Agent unless a request preparer sets one
            del client.headers["User-Agent"]

        try:
            body = self._request_body(client, api_endpoint, log)
        finally:
            if owns_client:
                client.close()

        collection = self._decode(api_endpoint, body, pending, log)
        self._options.reader_progress.complete_activity(
            f"Completed Dropmark API request {api_endpoint!r} "
            f"with {len(collection)} items"
        )

        collection.finalize(self._options)

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_duration(duration_ms)
        log.info(
            "fetch_complete",
            items=len(collection),
            bytes=len(body),
            errors=len(collection.errors()),
            warnings=len(collection.warnings()),
            duration_ms=round(duration_ms, 2),
        )
        return collection

    def _fail(
        self,
        api_endpoint: str,
        code: str,
        message: str,
        log: structlog.stdlib.BoundLogger,
        status_code: int | None = None,
    ) -> NoReturn:
        """Record a fetch-fatal failure and raise it.

        Raises:
            DropmarkAPIError: Always.
        """
        issue = Issue(api_endpoint=api_endpoint, code=code, message=message)
        error = DropmarkAPIError(issue, status_code=status_code)
        self._metrics.record_failure(code)
        log.warning("fetch_failed", code=code, status_code=status_code, error=message)
        if self._options.error_tracker is not None:
            self._options.error_tracker(code, error)
        raise error

    def _request_body(
        self,
        client: httpx.Client,
        api_endpoint: str,
        log: structlog.stdlib.BoundLogger,
    ) -> bytes:
        """Build, prepare and send the request, then read the body.

        Args:
            client: HTTP client.
            api_endpoint: Endpoint URL.
            log: Bound logger.

        Returns:
            Response body bytes.
        """
        try:
            request = client.build_request("GET", api_endpoint)
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            self._fail(
                api_endpoint,
                UNABLE_TO_CREATE_HTTP_REQUEST,
                f"Unable to create HTTP request: {e}",
                log,
            )
        if request.url.scheme not in ("http", "https") or not request.url.host:
            self._fail(
                api_endpoint,
                UNABLE_TO_CREATE_HTTP_REQUEST,
                f"Unable to create HTTP request: {api_endpoint!r} is not an "
                "absolute http(s) URL",
                log,
            )

        for prepare in self._options.request_preparers:
            prepare(client, request)
        log.debug("request_prepared", headers=redact_headers(dict(request.headers)))

        try:
            response = client.send(request, stream=True)
        except httpx.HTTPError as e:
            self._fail(
                api_endpoint,
                UNABLE_TO_EXECUTE_HTTP_GET_REQUEST,
                f"Unable to execute HTTP GET request: {e}",
                log,
            )

        try:
            self._metrics.record_request(response.status_code)
            if response.status_code != HTTP_STATUS_OK:
                self._fail(
                    api_endpoint,
                    INVALID_API_RESP_HTTP_STATUS_CODE,
                    "Dropmark API status is not HTTP OK (200): "
                    f"{response.status_code}",
                    log,
                    status_code=response.status_code,
                )
            return self._read_body(response, api_endpoint, log)
        finally:
            response.close()

    def _read_body(
        self,
        response: httpx.Response,
        api_endpoint: str,
        log: structlog.stdlib.BoundLogger,
    ) -> bytes:
        """Read the response body through the reader progress reporter.

        Args:
            response: Streaming HTTP response.
            api_endpoint: Endpoint URL.
            log: Bound logger.

        Returns:
            Response body bytes.
        """
        expected_bytes = _content_length(response)
        max_size = self._options.max_response_size_bytes
        summary = (
            f"Processing Dropmark API request {api_endpoint!r} "
            f"({expected_bytes if expected_bytes is not None else 'unknown'} bytes)"
        )

        buffer = BytesIO()
        total_read = 0
        try:
            if expected_bytes is not None and expected_bytes > max_size:
                msg = f"Response size {expected_bytes} exceeds limit {max_size}"
                raise ResponseSizeExceededError(msg)

            chunks = self._options.reader_progress.start_reader_activity(
                summary,
                expected_bytes,
                response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE),
            )
            for chunk in chunks:
                total_read += len(chunk)
                if total_read > max_size:
                    msg = (
                        f"Response size exceeded limit of {max_size} bytes "
                        f"(read {total_read} bytes)"
                    )
                    raise ResponseSizeExceededError(msg)
                buffer.write(chunk)
        except (httpx.HTTPError, httpx.StreamError, ResponseSizeExceededError) as e:
            self._fail(
                api_endpoint,
                UNABLE_TO_READ_BODY_FROM_HTTP_RESPONSE,
                f"Unable to read body from HTTP response: {e}",
                log,
                status_code=response.status_code,
            )

        self._metrics.record_bytes(total_read)
        log.debug("body_read", bytes=total_read, expected_bytes=expected_bytes)
        return buffer.getvalue()

    def _decode(
        self,
        api_endpoint: str,
        body: bytes,
        pending: list[Issue],
        log: structlog.stdlib.BoundLogger,
    ) -> Collection:
        """Decode the body into a Collection.

        A body that is not a JSON object fails the fetch in strict mode and
        yields an empty collection with a warning otherwise. Fields of the
        wrong type are dropped with a warning in both modes.

        Args:
            api_endpoint: Endpoint URL.
            body: Response body.
            pending: Issues recorded before the collection existed.
            log: Bound logger.

        Returns:
            Collection of fresh items.
        """
        problem: str | None = None
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
            problem = f"Unable to decode JSON response: {e}"
        else:
            if not isinstance(data, dict):
                problem = (
                    "Unable to decode JSON response: expected an object, "
                    f"got {type(data).__name__}"
                )

        issues = list(pending)
        if problem is not None:
            if self._options.strict_decode:
                self._fail(api_endpoint, UNABLE_TO_DECODE_JSON_RESPONSE, problem, log)
            collection = Collection(api_endpoint)
            issues.append(
                Issue(
                    api_endpoint=api_endpoint,
                    code=JSON_RESPONSE_NOT_DECODABLE,
                    message=problem,
                    is_error=False,
                )
            )
        else:
            result = decode_collection_payload(data)
            collection = Collection.from_payload(api_endpoint, result.payload)
            issues.extend(
                Issue(
                    api_endpoint=api_endpoint,
                    code=INVALID_ITEM_FIELD_DROPPED,
                    message=f"Dropped {name!r}: value does not match the expected type",
                    is_error=False,
                )
                for name in result.dropped_fields
            )

        for issue in issues:
            collection.add_issue(issue)
            notify_trackers(issue, self._options)

        log.info(
            "payload_decoded",
            name=collection.name,
            items=len(collection),
            decode_warnings=len(issues) - len(pending),
        )
        return collection


def _content_length(response: httpx.Response) -> int | None:
    """Get the declared body length, or None when absent or invalid."""
    value = response.headers.get("content-length")
    if value is None:
        return None
    try:
        size = int(value)
    except ValueError:
        return None
    return size if size >= 0 else None


def import_collection(
    api_endpoint: str,
    options: ImportOptions | None = None,
    *capabilities: object,
) -> Collection:
    """Fetch a Dropmark collection and finalize its items.

    Args:
        api_endpoint: Absolute URL of the collection JSON.
        options: Import options; defaults to ImportOptions().
        capabilities: Capability objects applied on top of ``options``,
            see resolve_options().

    Returns:
        The finalized Collection.

    Raises:
        DropmarkAPIError: If any fetch stage fails.
    """
    if capabilities:
        options = resolve_options(*capabilities, base=options)
    return CollectionFetcher(options).fetch(api_endpoint)
