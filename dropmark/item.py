"""Bookmark item entity: tidy pass, timestamps, and link traversal."""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import BaseModel, ConfigDict, Field

from dropmark.constants import (
    COMPONENT_ITEM,
    ITEM_DELETED,
    ITEM_FRONT_MATTER_INVALID,
    ITEM_LINK_EMPTY,
    ITEM_NOT_LINK,
    ITEM_TIMESTAMP_INVALID,
    ITEM_TRAVERSAL_FAILED,
    LINK_ITEM_TYPE,
    TIMESTAMP_FORMAT,
    UTC_ZONE_NAMES,
)
from dropmark.issues import Issue
from dropmark.models import ItemRecord, Tag, Thumbnails
from dropmark.state_machine import ItemStateMachine


logger = structlog.get_logger()

# Removes " | Healthcare IT News" from "xyz title | Healthcare IT News"
_SOURCE_NAME_SUFFIX = re.compile(r" \| .*$")

IssueSink = Callable[[Issue], None]
WarnFunc = Callable[[str, str], None]


@runtime_checkable
class TraversedLink(Protocol):
    """Result of resolving an item's link to its destination."""

    @property
    def original_url(self) -> str:
        """URL as it appeared in the item."""
        ...

    @property
    def final_url(self) -> str:
        """URL after redirects and cleanup."""
        ...


class ResolvedLink(BaseModel):
    """Plain TraversedLink value for traversers that need one."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    original_url: str = Field(description="URL as it appeared in the item")
    final_url: str = Field(description="URL after redirects and cleanup")


@runtime_checkable
class FirstSentenceExtractor(Protocol):
    """Natural-language first sentence extraction."""

    def first_sentence(self, text: str) -> str:
        """Return the first sentence of ``text``.

        Raises:
            ValueError: If no sentence can be found.
        """
        ...


FrontMatterParser = Callable[[str], Mapping[str, Any]]


@dataclass(frozen=True)
class TidyResult:
    """Output of the content/description tidy heuristic."""

    content: str
    description: str
    edits: tuple[str, ...] = ()


def is_standalone_url(text: str) -> bool:
    """Check if text is exactly one absolute URL and nothing else.

    Args:
        text: Text to check.

    Returns:
        True if text has a scheme and host and contains no whitespace.
    """
    if not text or any(ch.isspace() for ch in text):
        return False
    try:
        parsed = urlparse(text)
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def tidy_content(index: int, content: str, description: str) -> TidyResult:
    """Fix known data-entry anomalies in an item's content and description.

    Dropmark sometimes stores the bookmark URL as the content. When it does,
    the description replaces the content. Afterwards, a description that
    merely repeats the content is blanked. The second check runs on the
    output of the first.

    Args:
        index: Item position, used in edit notes.
        content: Raw content.
        description: Raw description.

    Returns:
        TidyResult with the new values and the edit notes applied.
    """
    edits: list[str] = []

    if is_standalone_url(content):
        edits.append(
            f'Item[{index}].Content was a URL "{content}", replaced with Description'
        )
        content = description

    if description and content == description:
        edits.append(
            f"Item[{index}].Content was the same as the Description, "
            "set Description to blank"
        )
        description = ""

    return TidyResult(content=content, description=description, edits=tuple(edits))


def parse_timestamp(value: str) -> datetime | None:
    """Parse a Dropmark timestamp such as ``2018-03-30 20:53:37 UTC``.

    Zone abbreviations that name no known zone are read as UTC.

    Args:
        value: Timestamp string; may be empty.

    Returns:
        Timezone-aware datetime, or None when value is empty.

    Raises:
        ValueError: If the value is not in the expected format.
    """
    parts = value.split()
    if not parts:
        return None
    if len(parts) != 3:  # noqa: PLR2004
        msg = f"timestamp {value!r} is not in 'YYYY-MM-DD HH:MM:SS TZ' form"
        raise ValueError(msg)

    date_part, time_part, zone = parts
    stamp = f"{date_part} {time_part}"
    naive = datetime.strptime(stamp, TIMESTAMP_FORMAT)  # noqa: DTZ007

    if zone.upper() in UTC_ZONE_NAMES:
        return naive.replace(tzinfo=UTC)
    try:
        return naive.replace(tzinfo=ZoneInfo(zone))
    except (ZoneInfoNotFoundError, ValueError):
        return naive.replace(tzinfo=UTC)


class Item:
    """A single bookmark within a collection.

    Wraps the immutable ``ItemRecord`` and carries the state produced by
    finalization: position, tidied text, edit notes, parsed timestamps and
    the write-once link traversal result.
    """

    def __init__(self, record: ItemRecord, api_endpoint: str = "") -> None:
        """Initialize the item.

        Args:
            record: The decoded API record.
            api_endpoint: Endpoint the record came from, used in issues.
        """
        self._record = record
        self._api_endpoint = api_endpoint
        self._state = ItemStateMachine(record.id or "<unknown>")

        self.index = 0
        self.content = record.content
        self.description = record.description
        self.edits: list[str] = []
        self.created_on: datetime | None = None
        self.updated_on: datetime | None = None
        self.deleted_on: datetime | None = None
        self.front_matter: dict[str, Any] = {}

        self.link_traversable = False
        self.traversed_link: TraversedLink | None = None
        self.link_traversal_error: Exception | None = None

        self._issues: list[Issue] = []

    def __repr__(self) -> str:
        return f"Item(id={self.id!r}, index={self.index}, link={self.link!r})"

    @property
    def record(self) -> ItemRecord:
        """Get the raw API record."""
        return self._record

    @property
    def finalized(self) -> bool:
        """Check if finalize() has run."""
        return self._state.is_finalized

    @property
    def link_traversal_attempted(self) -> bool:
        """Check if traverse_link() has run."""
        return self._state.is_traversal_attempted

    @property
    def id(self) -> str:
        return self._record.id

    @property
    def type(self) -> str:
        return self._record.type

    @property
    def link(self) -> str:
        return self._record.link

    @property
    def tags(self) -> list[Tag]:
        return self._record.tags

    @property
    def thumbnails(self) -> Thumbnails | None:
        return self._record.thumbnails

    @property
    def edit_url(self) -> str:
        return self._record.url

    @property
    def is_deleted(self) -> bool:
        return bool(self._record.deleted_at)

    @property
    def title(self) -> str:
        return self._record.name

    @property
    def clean_title(self) -> str:
        """Title without a trailing " | Source Name" suffix."""
        return _SOURCE_NAME_SUFFIX.sub("", self._record.name)

    @property
    def summary(self) -> str:
        return self.description

    @property
    def body(self) -> str:
        return self.content

    @property
    def categories(self) -> list[str]:
        return [tag.name for tag in self._record.tags]

    @property
    def featured_image_url(self) -> str:
        return self._record.thumbnail

    @property
    def original_url(self) -> str:
        return self._record.link

    @property
    def final_url(self) -> str:
        """Destination URL after traversal, else the original link."""
        if self.link_traversable and self.traversed_link is not None:
            return self.traversed_link.final_url
        return self._record.link

    @property
    def issues(self) -> list[Issue]:
        """Get all issues recorded for this item."""
        return list(self._issues)

    def errors(self) -> list[Issue]:
        """Get error issues recorded for this item."""
        return [issue for issue in self._issues if issue.is_error]

    def first_sentence_of_body(self, extractor: FirstSentenceExtractor) -> str:
        """Get the first sentence of the body.

        Args:
            extractor: Sentence extraction collaborator.

        Returns:
            The first sentence.
        """
        return extractor.first_sentence(self.body)

    def add_issue(
        self,
        code: str,
        message: str,
        is_error: bool,
        on_issue: IssueSink | None = None,
    ) -> Issue:
        """Record an issue against this item.

        Args:
            code: Stable issue code.
            message: Human-readable message.
            is_error: Error (True) or warning.
            on_issue: Notified of the recorded issue.

        Returns:
            The recorded issue.
        """
        issue = Issue(
            api_endpoint=self._api_endpoint,
            code=code,
            message=message,
            is_error=is_error,
            item_index=self.index,
        )
        self._issues.append(issue)
        if on_issue is not None:
            on_issue(issue)
        return issue

    def finalize(
        self,
        index: int,
        on_tidy: Callable[[str], None] | None = None,
        on_issue: IssueSink | None = None,
        front_matter_parser: FrontMatterParser | None = None,
    ) -> None:
        """Assign the position and run the tidy pass, once.

        Calling finalize on an already finalized item does nothing. An
        exception from a callback propagates, but the item still counts as
        finalized.

        Args:
            index: Zero-based position in the collection.
            on_tidy: Notified of each edit note.
            on_issue: Notified of each item-level issue.
            front_matter_parser: Optional parser for the tidied content.
        """
        if self.finalized:
            return

        self.index = index
        tidied = tidy_content(index, self.content, self.description)
        self.content = tidied.content
        self.description = tidied.description
        self.edits.extend(tidied.edits)

        # FINALIZED is reached even if a callback raises
        try:
            if on_tidy is not None:
                for edit in tidied.edits:
                    on_tidy(edit)

            self._parse_timestamps(on_issue)

            if front_matter_parser is not None and self.content:
                try:
                    self.front_matter = dict(front_matter_parser(self.content))
                except Exception as e:  # noqa: BLE001
                    self.add_issue(
                        ITEM_FRONT_MATTER_INVALID,
                        f"Unable to parse front matter of item {index}: {e}",
                        is_error=True,
                        on_issue=on_issue,
                    )
        finally:
            self._state.to_finalized()

        logger.debug(
            "item_finalized",
            component=COMPONENT_ITEM,
            item_id=self.id,
            index=index,
            edits=len(self.edits),
        )

    def _parse_timestamps(self, on_issue: IssueSink | None) -> None:
        for field_name in ("created_at", "updated_at", "deleted_at"):
            raw = getattr(self._record, field_name)
            try:
                parsed = parse_timestamp(raw)
            except ValueError as e:
                self.add_issue(
                    ITEM_TIMESTAMP_INVALID,
                    f"Unable to parse {field_name} of item {self.index}: {e}",
                    is_error=True,
                    on_issue=on_issue,
                )
                continue
            setattr(self, field_name.replace("_at", "_on"), parsed)

    def is_traversable(self, warn: WarnFunc) -> bool:
        """Check if the item's link may be traversed.

        Deleted items, items that are not links and items without a link are
        not traversable. The reason is reported through ``warn``.

        Args:
            warn: Called with (code, message) when the item is rejected.

        Returns:
            True if the link may be traversed.
        """
        if self._record.deleted_at:
            warn(ITEM_DELETED, "Item marked as deleted, not traversable")
            return False

        if self._record.type != LINK_ITEM_TYPE:
            warn(
                ITEM_NOT_LINK,
                f"Item 'type' is {self._record.type!r} not 'link', not traversable",
            )
            return False

        if not self._record.link.strip():
            warn(ITEM_LINK_EMPTY, "Empty link, not traversable")
            return False

        return True

    def traverse_link(
        self,
        traversable: Callable[["Item"], bool],
        traverse: Callable[["Item"], TraversedLink],
        on_issue: IssueSink | None = None,
    ) -> None:
        """Resolve the item's link, once.

        A second call does nothing. Traversal failures are recorded on the
        item rather than raised. An exception from ``traversable`` propagates,
        and the traversal still counts as attempted.

        Args:
            traversable: Decides whether the link may be traversed.
            traverse: Resolves the link.
            on_issue: Notified of a traversal failure.
        """
        if self.link_traversal_attempted:
            return

        try:
            self.link_traversable = traversable(self)
            if self.link_traversable:
                try:
                    self.traversed_link = traverse(self)
                except Exception as e:  # noqa: BLE001
                    self.link_traversal_error = e
                    self.add_issue(
                        ITEM_TRAVERSAL_FAILED,
                        f"Unable to traverse link {self.link!r} "
                        f"of item {self.index}: {e}",
                        is_error=True,
                        on_issue=on_issue,
                    )
        finally:
            self._state.to_traversal_attempted()
