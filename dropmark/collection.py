"""Dropmark collection entity and per-item finalization."""

import time
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed

import structlog

from dropmark.constants import (
    COMPONENT_COLLECTION,
    CONTENT_SOURCE_NAME,
    ITEM_FINALIZE_FAILED,
)
from dropmark.issues import Issue, IssueError, Issues
from dropmark.item import Item, TraversedLink
from dropmark.metrics import ImportMetrics
from dropmark.models import CollectionPayload
from dropmark.options import ImportOptions


logger = structlog.get_logger()


def notify_trackers(issue: Issue, options: ImportOptions) -> None:
    """Forward an issue to the configured error or warning tracker.

    Args:
        issue: The issue to forward.
        options: Options holding the trackers.
    """
    if issue.is_error:
        if options.error_tracker is not None:
            options.error_tracker(issue.code, IssueError(issue))
    elif options.warning_tracker is not None:
        options.warning_tracker(issue.code, issue.detail)


class Collection:
    """A Dropmark collection: its name, its items, and the issues found.

    The collection owns its items. Items are finalized by ``finalize()``;
    after that the item list is not changed.
    """

    def __init__(
        self,
        api_endpoint: str,
        name: str = "",
        items: list[Item] | None = None,
    ) -> None:
        """Initialize the collection.

        Args:
            api_endpoint: Endpoint the collection was fetched from.
            name: Display name from the payload.
            items: Items in payload order.
        """
        self._api_endpoint = api_endpoint
        self.name = name
        self._items: list[Item] = items or []
        self._issues = Issues()
        self._metrics = ImportMetrics.get_instance()
        self._log = logger.bind(
            component=COMPONENT_COLLECTION,
            api_endpoint=api_endpoint,
        )

    @classmethod
    def from_payload(
        cls, api_endpoint: str, payload: CollectionPayload
    ) -> "Collection":
        """Create a collection from a decoded payload.

        Args:
            api_endpoint: Endpoint the payload was fetched from.
            payload: Decoded payload.

        Returns:
            Collection with one fresh Item per record.
        """
        items = [Item(record, api_endpoint) for record in payload.items]
        return cls(api_endpoint, name=payload.name, items=items)

    @property
    def api_endpoint(self) -> str:
        """Get the endpoint which produced the collection."""
        return self._api_endpoint

    @property
    def content_source_name(self) -> str:
        return CONTENT_SOURCE_NAME

    @property
    def items(self) -> list[Item]:
        return self._items

    @property
    def issues(self) -> Issues:
        return self._issues

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items)

    def __getitem__(self, index: int) -> Item:
        return self._items[index]

    def content(self, start: int, end: int) -> Item | list[Item]:
        """Get one item, or an inclusive range of items.

        Args:
            start: First index.
            end: Last index (inclusive).

        Returns:
            The item when start == end, otherwise a list.
        """
        if start == end:
            return self._items[start]
        return self._items[start : end + 1]

    def for_each(
        self,
        handler: Callable[[int, Item, int], bool],
        before: Callable[[int], None] | None = None,
        after: Callable[[int, int], None] | None = None,
    ) -> int:
        """Visit items in order until the handler returns False.

        Args:
            handler: Called with (index, item, total); False stops the walk.
            before: Called with the total before the walk.
            after: Called with (handled, total) after the walk.

        Returns:
            Number of items handled.
        """
        total = len(self._items)
        handled = 0

        if before is not None:
            before(total)

        for index, item in enumerate(self._items):
            if not handler(index, item, total):
                break
            handled += 1

        if after is not None:
            after(handled, total)
        return handled

    def add_issue(self, issue: Issue) -> None:
        """Record a collection-level issue.

        Args:
            issue: The issue to record.
        """
        self._issues.append(issue)
        self._metrics.record_issue(issue.code)
        self._log.debug(
            "issue_recorded",
            code=issue.code,
            is_error=issue.is_error,
            item_index=issue.item_index,
        )

    def errors(self) -> list[Issue]:
        """Get all error issues from fetch and finalize."""
        return self._issues.errors()

    def warnings(self) -> list[Issue]:
        """Get all warning issues from fetch and finalize."""
        return self._issues.warnings()

    def issue_counts(self) -> tuple[int, int, int]:
        """Count issues as (total, errors, warnings)."""
        return self._issues.issue_counts()

    def handle_issues(
        self,
        on_error: Callable[[Issue], None] | None,
        on_warning: Callable[[Issue], None] | None,
    ) -> None:
        """Dispatch each recorded issue to the matching handler."""
        self._issues.handle_issues(on_error, on_warning)

    def finalize(self, options: ImportOptions | None = None) -> None:
        """Finalize every item, sequentially or concurrently.

        Each item gets its position, its tidy pass and, when a traverser is
        configured, its link traversal. Problems with one item are recorded
        and never stop the others. The call returns only when every item is
        done.

        Args:
            options: Import options; defaults to ImportOptions().
        """
        options = options or ImportOptions()
        count = len(self._items)
        fresh = sum(1 for item in self._items if not item.finalized)
        start_time_ns = time.perf_counter_ns()

        def on_issue(issue: Issue) -> None:
            self.add_issue(issue)
            notify_trackers(issue, options)

        traversable, traverse = self._link_functions(options, on_issue)

        def finalize_item(index: int, item: Item) -> None:
            item.finalize(
                index,
                on_tidy=options.tidy_handler,
                on_issue=on_issue,
                front_matter_parser=options.front_matter_parser,
            )
            if traversable is not None and traverse is not None:
                item.traverse_link(traversable, traverse, on_issue=on_issue)

        def record_failure(index: int, item: Item, error: Exception) -> None:
            self._log.error(
                "item_finalize_error",
                index=index,
                item_id=item.id,
                error=str(error),
            )
            item.add_issue(
                ITEM_FINALIZE_FAILED,
                f"Unable to finalize item {index}: {error}",
                is_error=True,
                on_issue=on_issue,
            )

        progress = options.bounded_progress
        progress.start_activity(
            f"Importing {count} Dropmark Links from {self._api_endpoint!r}", count
        )
        self._log.info(
            "finalize_started",
            item_count=count,
            concurrent=options.run_concurrently,
            max_workers=options.max_workers,
        )

        if options.run_concurrently and count > 0:
            max_workers = options.max_workers or count
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                future_to_index = {
                    executor.submit(finalize_item, index, item): index
                    for index, item in enumerate(self._items)
                }

                for future in as_completed(future_to_index):
                    index = future_to_index[future]
                    try:
                        future.result()
                    except Exception as e:  # noqa: BLE001
                        record_failure(index, self._items[index], e)
                    progress.increment()
        else:
            for index, item in enumerate(self._items):
                try:
                    finalize_item(index, item)
                except Exception as e:  # noqa: BLE001
                    record_failure(index, item, e)
                progress.increment()

        progress.complete_activity(
            f"Imported {count} Dropmark Links from {self._api_endpoint!r}"
        )

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_items_finalized(fresh)
        total, errors, warnings = self.issue_counts()
        self._log.info(
            "finalize_complete",
            item_count=count,
            newly_finalized=fresh,
            issues=total,
            errors=errors,
            warnings=warnings,
            duration_ms=round(duration_ms, 2),
        )

    def _link_functions(
        self,
        options: ImportOptions,
        on_issue: Callable[[Issue], None],
    ) -> tuple[
        Callable[[Item], bool] | None,
        Callable[[Item], TraversedLink] | None,
    ]:
        """Build the traversability check and traverse call for the options.

        Items that fail their own traversability check never reach the
        traverser. A traverser object may additionally veto an item.

        Returns:
            Tuple of (traversable, traverse), both None when no traverser
            is configured.
        """

        def warn_for(item: Item) -> Callable[[str, str], None]:
            def warn(code: str, message: str) -> None:
                item.add_issue(code, message, is_error=False, on_issue=on_issue)

            return warn

        traverser = options.link_traverser
        if traverser is not None:

            def traverser_allows(item: Item) -> bool:
                warn = warn_for(item)
                if not item.is_traversable(warn):
                    return False
                return traverser.is_url_traversable(item.original_url, True, warn)

            def traverse_with_traverser(item: Item) -> TraversedLink:
                return traverser.traverse_link(item.original_url)

            return traverser_allows, traverse_with_traverser

        traverse_func = options.traverse_link_func
        if traverse_func is not None:

            def item_allows(item: Item) -> bool:
                return item.is_traversable(warn_for(item))

            def traverse_with_func(item: Item) -> TraversedLink:
                return traverse_func(item.original_url)

            return item_allows, traverse_with_func

        return None, None
