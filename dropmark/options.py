"""Import options and resolution of caller-supplied capabilities."""

from collections.abc import Callable, Mapping
from typing import Annotated, Any, Protocol, runtime_checkable

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from dropmark.constants import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
)
from dropmark.item import TraversedLink
from dropmark.progress import (
    BoundedProgressReporter,
    ReaderProgressReporter,
    SilentProgressReporter,
)
from dropmark.settings import DropmarkSettings, get_settings


logger = structlog.get_logger()

RequestPreparerFunc = Callable[[httpx.Client, httpx.Request], None]


@runtime_checkable
class HTTPClientProvider(Protocol):
    """Supplies the HTTP client used for the API request."""

    def http_client(self) -> httpx.Client: ...


@runtime_checkable
class RequestPreparer(Protocol):
    """Mutates the API request before it is sent (headers, auth, tracing)."""

    def on_prepare_http_request(
        self, client: httpx.Client, request: httpx.Request
    ) -> None: ...


@runtime_checkable
class TidyHandler(Protocol):
    """Notified of every tidy edit applied to an item."""

    def on_tidy(self, edit: str) -> None: ...


@runtime_checkable
class ErrorTracker(Protocol):
    """Notified of every error issue."""

    def on_error(self, code: str, error: Exception) -> None: ...


@runtime_checkable
class WarningTracker(Protocol):
    """Notified of every warning issue."""

    def on_warning(self, code: str, message: str) -> None: ...


@runtime_checkable
class LinkTraverser(Protocol):
    """Resolves item links to their final destination."""

    def is_url_traversable(
        self,
        url: str,
        suggested: bool,
        warn: Callable[[str, str], None],
    ) -> bool: ...

    def traverse_link(self, url: str) -> TraversedLink: ...


@runtime_checkable
class AsyncRequested(Protocol):
    """Asks for items to be finalized concurrently."""

    def is_async_requested(self) -> bool: ...


def user_agent_preparer(user_agent: str) -> RequestPreparerFunc:
    """Create a request preparer that sets the User-Agent header.

    Args:
        user_agent: Header value.

    Returns:
        Preparer function.
    """

    def prepare(client: httpx.Client, request: httpx.Request) -> None:
        request.headers["User-Agent"] = user_agent

    return prepare


class ImportOptions(BaseModel):
    """Everything a caller may plug into an import.

    Each field is optional and defaults to a no-op: silent progress,
    sequential finalize, a fetcher-owned client with a 90 second timeout,
    and no link traversal.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    http_client: httpx.Client | None = Field(
        default=None, description="Client to use; the fetcher owns one if None"
    )
    timeout_seconds: Annotated[float, Field(gt=0.0, le=600.0)] = (
        DEFAULT_HTTP_TIMEOUT_SECONDS
    )
    request_preparers: tuple[RequestPreparerFunc, ...] = Field(
        default=(), description="Run in order before the request is sent"
    )
    reader_progress: ReaderProgressReporter = Field(
        default_factory=SilentProgressReporter
    )
    bounded_progress: BoundedProgressReporter = Field(
        default_factory=SilentProgressReporter
    )
    tidy_handler: Callable[[str], None] | None = None
    error_tracker: Callable[[str, Exception], None] | None = None
    warning_tracker: Callable[[str, str], None] | None = None
    link_traverser: LinkTraverser | None = None
    traverse_link_func: Callable[[str], TraversedLink] | None = None
    front_matter_parser: Callable[[str], Mapping[str, Any]] | None = None
    run_concurrently: bool = False
    max_workers: Annotated[int, Field(ge=1)] | None = Field(
        default=None, description="Concurrent finalize cap; None means one per item"
    )
    strict_decode: bool = Field(
        default=True, description="Fail the fetch when the body is not a JSON object"
    )
    max_response_size_bytes: Annotated[int, Field(ge=1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    validate_endpoint: bool = Field(
        default=False, description="Warn when the endpoint is not a Dropmark URL"
    )

    @property
    def traverses_links(self) -> bool:
        """Check if a link traverser of either kind is configured."""
        return self.link_traverser is not None or self.traverse_link_func is not None

    def with_capabilities(self, *capabilities: object) -> "ImportOptions":
        """Return a copy with the given capability objects applied.

        Args:
            capabilities: Objects to resolve, see resolve_options().

        Returns:
            New ImportOptions.
        """
        return resolve_options(*capabilities, base=self)

    @classmethod
    def from_settings(
        cls, settings: DropmarkSettings | None = None
    ) -> "ImportOptions":
        """Build options from environment settings.

        Args:
            settings: Settings to use; read from the environment if None.

        Returns:
            ImportOptions reflecting the settings.
        """
        settings = settings or get_settings()
        preparers: tuple[RequestPreparerFunc, ...] = ()
        if settings.user_agent:
            preparers = (user_agent_preparer(settings.user_agent),)

        return cls(
            timeout_seconds=settings.timeout_seconds,
            request_preparers=preparers,
            run_concurrently=settings.run_concurrently,
            max_workers=settings.max_workers,
            strict_decode=settings.strict_decode,
            validate_endpoint=settings.validate_endpoint,
        )


def resolve_options(
    *capabilities: object,
    base: ImportOptions | None = None,
) -> ImportOptions:
    """Resolve a heterogeneous list of capability objects into options.

    Every object is checked against each capability protocol, so one object
    may supply several capabilities. When two objects supply the same
    capability the later one wins, except request preparers, which all run
    in the order given. Objects that supply nothing are ignored.

    Args:
        capabilities: Capability objects in registration order.
        base: Options to start from; defaults to ImportOptions().

    Returns:
        Resolved ImportOptions.
    """
    base = base or ImportOptions()
    updates: dict[str, Any] = {}
    preparers = list(base.request_preparers)

    for capability in capabilities:
        matched = False

        if isinstance(capability, httpx.Client):
            updates["http_client"] = capability
            matched = True
        if isinstance(capability, HTTPClientProvider):
            updates["http_client"] = capability.http_client()
            matched = True
        if isinstance(capability, RequestPreparer):
            preparers.append(capability.on_prepare_http_request)
            matched = True
        if isinstance(capability, ReaderProgressReporter):
            updates["reader_progress"] = capability
            matched = True
        if isinstance(capability, BoundedProgressReporter):
            updates["bounded_progress"] = capability
            matched = True
        if isinstance(capability, TidyHandler):
            updates["tidy_handler"] = capability.on_tidy
            matched = True
        if isinstance(capability, ErrorTracker):
            updates["error_tracker"] = capability.on_error
            matched = True
        if isinstance(capability, WarningTracker):
            updates["warning_tracker"] = capability.on_warning
            matched = True
        if isinstance(capability, LinkTraverser):
            updates["link_traverser"] = capability
            matched = True
        if isinstance(capability, AsyncRequested):
            updates["run_concurrently"] = capability.is_async_requested()
            matched = True

        if not matched:
            logger.debug(
                "option_ignored",
                component="options",
                option_type=type(capability).__name__,
            )

    updates["request_preparers"] = tuple(preparers)
    return base.model_copy(update=updates)
