"""Wire models for the Dropmark collection API."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


_ModelT = TypeVar("_ModelT", bound=BaseModel)


class _WireModel(BaseModel):
    """Base for payload records: immutable, unknown keys ignored, nulls absent."""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        """Treat JSON null the same as a missing field."""
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if value is not None}
        return data


class Thumbnails(_WireModel):
    """A group of image URLs in several sizes."""

    mini: str = ""
    small: str = ""
    large: str = ""
    cropped: str = ""
    uncropped: str = ""


class Tag(_WireModel):
    """A single tag."""

    id: int = 0
    name: str = ""


class ItemRecord(_WireModel):
    """A bookmark exactly as the API returned it.

    Every field is optional. Derived and tidied state lives on ``Item``.
    """

    id: str = ""
    is_url: bool = False
    type: str = ""
    mime: str = ""
    link: str = ""
    name: str = ""
    description: str = ""
    content: str = ""
    tags: list[Tag] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    deleted_at: str = ""
    thumbnail: str = ""
    thumbnails: Thumbnails | None = None
    user_id: str = ""
    username: str = ""
    user_name: str = ""
    user_email: str = ""
    user_avatar: Thumbnails | None = None
    url: str = Field(default="", description="Dropmark edit URL for the item")


class CollectionPayload(_WireModel):
    """Top-level collection object."""

    name: str = ""
    items: list[ItemRecord] = Field(default_factory=list)


@dataclass
class DecodeResult:
    """Outcome of decoding a collection payload.

    ``dropped_fields`` names every value that had to be discarded because it
    did not match the expected type, e.g. ``items[2].tags``.
    """

    payload: CollectionPayload
    dropped_fields: list[str] = field(default_factory=list)


def validate_leniently(
    model: type[_ModelT],
    data: Mapping[str, Any],
    path: str = "",
) -> tuple[_ModelT, list[str]]:
    """Validate a mapping, discarding top-level fields that fail validation.

    Args:
        model: Model class to validate into.
        data: Raw mapping.
        path: Prefix used when naming dropped fields.

    Returns:
        Tuple of (model instance, names of dropped fields).
    """
    remaining = dict(data)
    dropped: list[str] = []

    while True:
        try:
            return model.model_validate(remaining), dropped
        except ValidationError as e:
            bad_keys = {
                str(error["loc"][0])
                for error in e.errors()
                if error["loc"] and str(error["loc"][0]) in remaining
            }
            if not bad_keys:
                raise
            for key in sorted(bad_keys):
                del remaining[key]
                dropped.append(f"{path}.{key}" if path else key)


def decode_collection_payload(data: Mapping[str, Any]) -> DecodeResult:
    """Decode a parsed JSON object into a CollectionPayload.

    Missing fields take their defaults. Fields of the wrong type are dropped
    and reported instead of failing the whole payload. Item entries that are
    not objects are skipped.

    Args:
        data: The parsed top-level JSON object.

    Returns:
        DecodeResult with the payload and dropped field names.
    """
    dropped: list[str] = []

    name = data.get("name")
    if name is not None and not isinstance(name, str):
        dropped.append("name")
        name = None

    raw_items = data.get("items")
    if raw_items is not None and not isinstance(raw_items, list):
        dropped.append("items")
        raw_items = None

    records: list[ItemRecord] = []
    for index, raw in enumerate(raw_items or []):
        path = f"items[{index}]"
        if not isinstance(raw, Mapping):
            dropped.append(path)
            continue
        record, item_dropped = validate_leniently(ItemRecord, raw, path)
        records.append(record)
        dropped.extend(item_dropped)

    payload = CollectionPayload(name=name or "", items=records)
    return DecodeResult(payload=payload, dropped_fields=dropped)
