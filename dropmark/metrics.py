"""Metrics collection for collection imports."""

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock


# Module-level singleton state
_metrics_instance: "ImportMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class ImportMetrics:
    """Thread-safe metrics for import operations.

    Tracks API requests, bytes read, fetch failures, finalized items and
    issues. Use get_instance() for singleton access.
    """

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    requests_by_status: Counter[int] = field(default_factory=Counter)
    failures_by_code: Counter[str] = field(default_factory=Counter)
    issues_by_code: Counter[str] = field(default_factory=Counter)
    bytes_total: int = 0
    items_finalized: int = 0
    fetch_count: int = 0
    fetch_duration_ms_total: float = 0.0

    @classmethod
    def get_instance(cls) -> "ImportMetrics":
        """Get the singleton instance (thread-safe).

        Returns:
            The shared ImportMetrics instance.
        """
        global _metrics_instance  # noqa: PLW0603
        if _metrics_instance is None:
            with _metrics_lock:
                if _metrics_instance is None:
                    _metrics_instance = cls()
        return _metrics_instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        global _metrics_instance  # noqa: PLW0603
        with _metrics_lock:
            _metrics_instance = None

    def record_request(self, status_code: int) -> None:
        """Record an API response status."""
        with self._lock:
            self.requests_by_status[status_code] += 1

    def record_bytes(self, count: int) -> None:
        """Record bytes read from a response body."""
        with self._lock:
            self.bytes_total += count

    def record_failure(self, code: str) -> None:
        """Record a fetch-fatal failure by issue code."""
        with self._lock:
            self.failures_by_code[code] += 1

    def record_issue(self, code: str) -> None:
        """Record a non-fatal issue by code."""
        with self._lock:
            self.issues_by_code[code] += 1

    def record_items_finalized(self, count: int) -> None:
        """Record finalized items."""
        with self._lock:
            self.items_finalized += count

    def record_duration(self, duration_ms: float) -> None:
        """Record the duration of one fetch."""
        with self._lock:
            self.fetch_count += 1
            self.fetch_duration_ms_total += duration_ms

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average fetch duration.

        Returns:
            Average duration in milliseconds.
        """
        with self._lock:
            if self.fetch_count == 0:
                return 0.0
            return self.fetch_duration_ms_total / self.fetch_count

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "requests_by_status": dict(self.requests_by_status),
                "failures_by_code": dict(self.failures_by_code),
                "issues_by_code": dict(self.issues_by_code),
                "bytes_total": self.bytes_total,
                "items_finalized": self.items_finalized,
                "fetch_count": self.fetch_count,
                "fetch_duration_ms_total": self.fetch_duration_ms_total,
            }
