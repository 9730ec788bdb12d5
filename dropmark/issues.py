"""Diagnostic records for the Dropmark importer."""

from collections.abc import Callable, Iterator
from threading import Lock
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class Issue(BaseModel):
    """A coded, classified problem encountered during fetch or finalize.

    The code is stable and safe to branch on; the message is for humans.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_endpoint: str = Field(description="Endpoint of the fetch attempt")
    code: Annotated[str, Field(min_length=1, description="Stable issue code")]
    message: Annotated[str, Field(min_length=1, description="Human-readable message")]
    is_error: bool = Field(default=True, description="Error (True) or warning")
    item_index: int | None = Field(
        default=None, description="Index of the item the issue belongs to"
    )

    @property
    def is_warning(self) -> bool:
        """Check if the issue is a warning."""
        return not self.is_error

    @property
    def detail(self) -> str:
        """Message with the item position appended, when there is one."""
        if self.item_index is None:
            return self.message
        return f"{self.message} (item {self.item_index})"

    def __str__(self) -> str:
        return f"[{self.code}] {self.detail}"


class Issues:
    """Thread-safe, append-only list of issues.

    Appends may come from concurrent item tasks, so all access is guarded.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._issues: list[Issue] = []

    def append(self, issue: Issue) -> None:
        """Record an issue.

        Args:
            issue: The issue to record.
        """
        with self._lock:
            self._issues.append(issue)

    def errors_and_warnings(self) -> list[Issue]:
        """Get a snapshot of all issues in recording order."""
        with self._lock:
            return list(self._issues)

    def errors(self) -> list[Issue]:
        """Get all error issues."""
        return [i for i in self.errors_and_warnings() if i.is_error]

    def warnings(self) -> list[Issue]:
        """Get all warning issues."""
        return [i for i in self.errors_and_warnings() if i.is_warning]

    def issue_counts(self) -> tuple[int, int, int]:
        """Count issues.

        Returns:
            Tuple of (total, errors, warnings).
        """
        snapshot = self.errors_and_warnings()
        errors = sum(1 for i in snapshot if i.is_error)
        return len(snapshot), errors, len(snapshot) - errors

    def handle_issues(
        self,
        on_error: Callable[[Issue], None] | None,
        on_warning: Callable[[Issue], None] | None,
    ) -> None:
        """Dispatch each issue to the matching handler.

        Args:
            on_error: Called for every error issue.
            on_warning: Called for every warning issue.
        """
        for issue in self.errors_and_warnings():
            if issue.is_error and on_error is not None:
                on_error(issue)
            elif issue.is_warning and on_warning is not None:
                on_warning(issue)

    def __len__(self) -> int:
        with self._lock:
            return len(self._issues)

    def __iter__(self) -> Iterator[Issue]:
        return iter(self.errors_and_warnings())


class IssueError(Exception):
    """Exception form of an error issue, handed to error trackers."""

    def __init__(self, issue: Issue) -> None:
        super().__init__(issue.detail)
        self.issue = issue
        self.code = issue.code


class DropmarkAPIError(IssueError):
    """Raised when a fetch stage fails and no collection can be returned."""

    def __init__(self, issue: Issue, status_code: int | None = None) -> None:
        """Initialize the error.

        Args:
            issue: The issue describing the failing stage.
            status_code: HTTP status code, when a response was received.
        """
        super().__init__(issue)
        self.api_endpoint = issue.api_endpoint
        self.status_code = status_code

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "code": self.code,
            "message": self.issue.message,
            "api_endpoint": self.api_endpoint,
            "status_code": self.status_code,
        }
