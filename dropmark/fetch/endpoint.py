"""Recognition of Dropmark collection endpoints."""

import re

from dropmark.constants import API_ENDPOINT_PATTERN


_API_ENDPOINT = re.compile(API_ENDPOINT_PATTERN)


def is_valid_api_endpoint(api_endpoint: str) -> bool:
    """Check if a URL looks like a Dropmark collection endpoint.

    The check is advisory; fetching does not require it to pass.

    Args:
        api_endpoint: URL to check, e.g. https://shah.dropmark.com/652682.json

    Returns:
        True if the URL has the shape of a collection endpoint.
    """
    return bool(_API_ENDPOINT.match(api_endpoint))
