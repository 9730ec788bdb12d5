"""Import bookmark collections from the Dropmark JSON API.

Typical use::

    from dropmark import ImportOptions, import_collection

    collection = import_collection(
        "https://shah.dropmark.com/652682.json",
        ImportOptions(run_concurrently=True),
    )
    for item in collection:
        print(item.index, item.title, item.final_url)
"""

from dropmark.collection import Collection
from dropmark.fetch import CollectionFetcher, import_collection, is_valid_api_endpoint
from dropmark.issues import DropmarkAPIError, Issue, IssueError, Issues
from dropmark.item import (
    FirstSentenceExtractor,
    Item,
    ResolvedLink,
    TidyResult,
    TraversedLink,
    tidy_content,
)
from dropmark.metrics import ImportMetrics
from dropmark.models import CollectionPayload, ItemRecord, Tag, Thumbnails
from dropmark.observability import configure_logging
from dropmark.options import ImportOptions, resolve_options, user_agent_preparer
from dropmark.progress import (
    BoundedProgressReporter,
    CountingProgressReporter,
    ReaderProgressReporter,
    SilentProgressReporter,
    SummaryProgressReporter,
)
from dropmark.settings import DropmarkSettings
from dropmark.state_machine import ItemState, ItemStateTransitionError, TraversalState


__all__ = [
    "BoundedProgressReporter",
    "Collection",
    "CollectionFetcher",
    "CollectionPayload",
    "CountingProgressReporter",
    "DropmarkAPIError",
    "DropmarkSettings",
    "FirstSentenceExtractor",
    "ImportMetrics",
    "ImportOptions",
    "Issue",
    "IssueError",
    "Issues",
    "Item",
    "ItemRecord",
    "ItemState",
    "ItemStateTransitionError",
    "ReaderProgressReporter",
    "ResolvedLink",
    "SilentProgressReporter",
    "SummaryProgressReporter",
    "Tag",
    "Thumbnails",
    "TidyResult",
    "TraversalState",
    "TraversedLink",
    "configure_logging",
    "import_collection",
    "is_valid_api_endpoint",
    "resolve_options",
    "tidy_content",
    "user_agent_preparer",
]
