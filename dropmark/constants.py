"""Constants for the Dropmark importer.

Diagnostic codes are stable identifiers meant for programmatic dispatch.
Messages may change between releases; codes do not.
"""

# Fetch-stage errors
UNABLE_TO_CREATE_HTTP_REQUEST = "DROPMARKAPIE-0100"
UNABLE_TO_EXECUTE_HTTP_GET_REQUEST = "DROPMARKAPIE-0200"
INVALID_API_RESP_HTTP_STATUS_CODE = "DROPMARKAPIE-0300"
UNABLE_TO_READ_BODY_FROM_HTTP_RESPONSE = "DROPMARKAPIE-0400"
UNABLE_TO_DECODE_JSON_RESPONSE = "DROPMARKAPIE-0500"

# Fetch-stage warnings
JSON_RESPONSE_NOT_DECODABLE = "DROPMARKAPIW-0510"
INVALID_ITEM_FIELD_DROPPED = "DROPMARKAPIW-0520"
ENDPOINT_NOT_RECOGNIZED = "DROPMARKAPIW-0600"

# Item-level warnings
ITEM_DELETED = "DMIWARN-001-ITEMDELETED"
ITEM_NOT_LINK = "DMIWARN-002-ITEMNOTLINK"
ITEM_LINK_EMPTY = "DMIWARN-003-LINKEMPTY"

# Item-level errors
ITEM_TIMESTAMP_INVALID = "DMIERR-001-TIMESTAMP"
ITEM_FRONT_MATTER_INVALID = "DMIERR-002-FRONTMATTER"
ITEM_TRAVERSAL_FAILED = "DMIERR-003-TRAVERSAL"
ITEM_FINALIZE_FAILED = "DMIERR-004-FINALIZE"

# Name reported as the content source
CONTENT_SOURCE_NAME = "Dropmark"

# Item type that is eligible for link traversal
LINK_ITEM_TYPE = "link"

# Dropmark timestamps look like "2018-03-30 20:53:37 UTC"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
UTC_ZONE_NAMES = frozenset({"UTC", "GMT", "Z"})

# Shape of a public collection endpoint, e.g. https://shah.dropmark.com/652682.json
API_ENDPOINT_PATTERN = r"^https://(.*)\.dropmark\.com/([0-9]+)\.json$"

# Log component names
COMPONENT_FETCH = "fetch"
COMPONENT_COLLECTION = "collection"
COMPONENT_ITEM = "item"

# HTTP
HTTP_STATUS_OK = 200
DEFAULT_HTTP_TIMEOUT_SECONDS = 90.0
DEFAULT_MAX_RESPONSE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_CHUNK_SIZE = 8192
