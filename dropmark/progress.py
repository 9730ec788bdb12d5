"""Progress reporting ports for long-running import activities."""

from collections.abc import Iterable, Iterator
from threading import Lock
from typing import Protocol, runtime_checkable

import structlog


logger = structlog.get_logger()


@runtime_checkable
class ReaderProgressReporter(Protocol):
    """Reports byte-level progress while a response body is read."""

    def start_reader_activity(
        self,
        summary: str,
        expected_bytes: int | None,
        chunks: Iterable[bytes],
    ) -> Iterable[bytes]:
        """Start a byte-stream activity.

        Args:
            summary: Description of the activity.
            expected_bytes: Declared body length, or None when unknown.
            chunks: The body chunk stream.

        Returns:
            A chunk stream that yields exactly the bytes of ``chunks``.
        """
        ...

    def complete_activity(self, summary: str) -> None:
        """Mark the current activity as complete."""
        ...


@runtime_checkable
class BoundedProgressReporter(Protocol):
    """Reports item-count progress where the upper bound is known.

    Implementations must tolerate concurrent ``increment`` calls.
    """

    def start_activity(self, summary: str, expected_items: int) -> None:
        """Start an activity with a known number of steps."""
        ...

    def increment(self, by: int = 1) -> None:
        """Advance the activity."""
        ...

    def complete_activity(self, summary: str) -> None:
        """Mark the current activity as complete."""
        ...


class SilentProgressReporter:
    """Reporter that does nothing; used when no reporter is configured."""

    def start_reader_activity(
        self,
        summary: str,
        expected_bytes: int | None,
        chunks: Iterable[bytes],
    ) -> Iterable[bytes]:
        return chunks

    def start_activity(self, summary: str, expected_items: int) -> None:
        pass

    def increment(self, by: int = 1) -> None:
        pass

    def complete_activity(self, summary: str) -> None:
        pass


class SummaryProgressReporter:
    """Logs the start and completion of each activity, nothing in between."""

    def __init__(self, prefix: str) -> None:
        """Initialize the reporter.

        Args:
            prefix: Label bound to every log line.
        """
        self._log = logger.bind(component="progress", prefix=prefix)

    def start_reader_activity(
        self,
        summary: str,
        expected_bytes: int | None,
        chunks: Iterable[bytes],
    ) -> Iterable[bytes]:
        self._log.info(
            "activity_started", summary=summary, expected_bytes=expected_bytes
        )
        return chunks

    def start_activity(self, summary: str, expected_items: int) -> None:
        self._log.info(
            "activity_started", summary=summary, expected_items=expected_items
        )

    def increment(self, by: int = 1) -> None:
        pass

    def complete_activity(self, summary: str) -> None:
        self._log.info("activity_completed", summary=summary)


class CountingProgressReporter:
    """Thread-safe reporter that keeps counters and an event trail.

    Useful for callers that poll progress from another thread.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self.expected_bytes: int | None = None
        self.bytes_read = 0
        self.expected_items = 0
        self.items_completed = 0
        self.events: list[tuple[str, str | int | None]] = []

    def start_reader_activity(
        self,
        summary: str,
        expected_bytes: int | None,
        chunks: Iterable[bytes],
    ) -> Iterable[bytes]:
        with self._lock:
            self.expected_bytes = expected_bytes
            self.bytes_read = 0
            self.events.append(("start_reader", expected_bytes))
        return self._count_bytes(chunks)

    def _count_bytes(self, chunks: Iterable[bytes]) -> Iterator[bytes]:
        for chunk in chunks:
            with self._lock:
                self.bytes_read += len(chunk)
            yield chunk

    def start_activity(self, summary: str, expected_items: int) -> None:
        with self._lock:
            self.expected_items = expected_items
            self.items_completed = 0
            self.events.append(("start", expected_items))

    def increment(self, by: int = 1) -> None:
        with self._lock:
            self.items_completed += by
            self.events.append(("increment", by))

    def complete_activity(self, summary: str) -> None:
        with self._lock:
            self.events.append(("complete", summary))
