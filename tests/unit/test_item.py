"""Unit tests for the Item entity and its tidy pass."""

from datetime import UTC, datetime
from typing import Any

import pytest

from dropmark.constants import (
    ITEM_DELETED,
    ITEM_FRONT_MATTER_INVALID,
    ITEM_LINK_EMPTY,
    ITEM_NOT_LINK,
    ITEM_TIMESTAMP_INVALID,
    ITEM_TRAVERSAL_FAILED,
)
from dropmark.issues import Issue
from dropmark.item import (
    Item,
    ResolvedLink,
    TraversedLink,
    is_standalone_url,
    parse_timestamp,
    tidy_content,
)
from dropmark.models import ItemRecord


def make_item(**fields: Any) -> Item:
    values: dict[str, Any] = {"id": "1", "type": "link", "link": "https://a.example"}
    values.update(fields)
    return Item(ItemRecord.model_validate(values), "https://x.dropmark.com/1.json")


class TestIsStandaloneUrl:
    """Tests for URL detection in content."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "text",
        ["https://example.com", "http://bit.ly/x?y=1", "ftp://files.example.com/a"],
    )
    def test_urls(self, text: str) -> None:
        """Test absolute URLs are detected."""
        assert is_standalone_url(text) is True

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "text",
        [
            "",
            "plain words",
            "see https://example.com",
            "https://example.com trailing",
            "example.com/path",
            "mailto:someone@example.com",
        ],
    )
    def test_non_urls(self, text: str) -> None:
        """Test prose and partial URLs are not detected."""
        assert is_standalone_url(text) is False


class TestTidyContent:
    """Tests for the content/description tidy heuristic."""

    @pytest.mark.unit
    def test_url_content_replaced_then_duplicate_blanked(self) -> None:
        """Test both edits apply when content is a URL."""
        result = tidy_content(1, "https://bit.ly/x", "Summary text")

        assert result.content == "Summary text"
        assert result.description == ""
        assert result.edits == (
            'Item[1].Content was a URL "https://bit.ly/x", replaced with Description',
            "Item[1].Content was the same as the Description, "
            "set Description to blank",
        )

    @pytest.mark.unit
    def test_duplicate_description_blanked(self) -> None:
        """Test a description equal to the content is blanked."""
        result = tidy_content(2, "Same text.", "Same text.")

        assert result.content == "Same text."
        assert result.description == ""
        assert len(result.edits) == 1

    @pytest.mark.unit
    def test_distinct_values_untouched(self) -> None:
        """Test nothing changes for ordinary content."""
        result = tidy_content(0, "Body text.", "Summary.")

        assert result.content == "Body text."
        assert result.description == "Summary."
        assert result.edits == ()

    @pytest.mark.unit
    def test_url_content_without_description(self) -> None:
        """Test URL content with no description becomes empty, one edit."""
        result = tidy_content(0, "https://bit.ly/x", "")

        assert result.content == ""
        assert result.description == ""
        assert len(result.edits) == 1

    @pytest.mark.unit
    def test_both_empty(self) -> None:
        """Test empty content and description need no edits."""
        assert tidy_content(0, "", "").edits == ()


class TestParseTimestamp:
    """Tests for Dropmark timestamp parsing."""

    @pytest.mark.unit
    def test_utc(self) -> None:
        """Test a UTC timestamp."""
        assert parse_timestamp("2018-03-30 20:53:37 UTC") == datetime(
            2018, 3, 30, 20, 53, 37, tzinfo=UTC
        )

    @pytest.mark.unit
    def test_empty(self) -> None:
        """Test an empty value is absent, not an error."""
        assert parse_timestamp("") is None
        assert parse_timestamp("   ") is None

    @pytest.mark.unit
    def test_named_zone(self) -> None:
        """Test an IANA zone name is honored."""
        parsed = parse_timestamp("2018-03-30 20:53:37 America/New_York")

        assert parsed is not None
        assert parsed.utcoffset() is not None
        assert parsed.astimezone(UTC).hour == 0

    @pytest.mark.unit
    def test_unknown_abbreviation_is_utc(self) -> None:
        """Test unknown abbreviations read as UTC."""
        parsed = parse_timestamp("2018-03-30 20:53:37 XYZ")

        assert parsed == datetime(2018, 3, 30, 20, 53, 37, tzinfo=UTC)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value", ["yesterday", "2018-03-30", "2018-13-30 20:53:37 UTC"]
    )
    def test_invalid(self, value: str) -> None:
        """Test malformed timestamps raise ValueError."""
        with pytest.raises(ValueError):
            parse_timestamp(value)


class TestItemAccessors:
    """Tests for derived item accessors."""

    @pytest.mark.unit
    def test_clean_title(self) -> None:
        """Test the source-name suffix is removed."""
        item = make_item(name="xyz title | Healthcare IT News")

        assert item.title == "xyz title | Healthcare IT News"
        assert item.clean_title == "xyz title"

    @pytest.mark.unit
    def test_categories_and_image(self) -> None:
        """Test categories come from tags and the image from thumbnail."""
        item = make_item(
            tags=[{"id": 1, "name": "ai"}, {"id": 2, "name": "health"}],
            thumbnail="https://cdn.example/t.png",
        )

        assert item.categories == ["ai", "health"]
        assert item.featured_image_url == "https://cdn.example/t.png"

    @pytest.mark.unit
    def test_final_url_defaults_to_link(self) -> None:
        """Test final_url falls back to the original link."""
        item = make_item()

        assert item.original_url == "https://a.example"
        assert item.final_url == "https://a.example"

    @pytest.mark.unit
    def test_first_sentence_of_body(self) -> None:
        """Test sentence extraction is delegated."""

        class FirstLine:
            def first_sentence(self, text: str) -> str:
                return text.split(". ")[0] + "."

        item = make_item(content="One sentence. Another one.")

        assert item.first_sentence_of_body(FirstLine()) == "One sentence."

    @pytest.mark.unit
    def test_first_sentence_error_propagates(self) -> None:
        """Test extractor failures reach the caller."""

        class Failing:
            def first_sentence(self, text: str) -> str:
                raise ValueError("no sentence")

        with pytest.raises(ValueError, match="no sentence"):
            make_item(content="").first_sentence_of_body(Failing())


class TestItemFinalize:
    """Tests for Item.finalize."""

    @pytest.mark.unit
    def test_assigns_index_and_tidies(self) -> None:
        """Test finalize sets the index and applies tidy edits."""
        item = make_item(content="https://bit.ly/x", description="Summary")
        edits: list[str] = []

        item.finalize(4, on_tidy=edits.append)

        assert item.finalized is True
        assert item.index == 4
        assert item.body == "Summary"
        assert item.summary == ""
        assert item.edits == edits
        assert len(edits) == 2
        assert edits[0].startswith("Item[4].")

    @pytest.mark.unit
    def test_record_left_untouched(self) -> None:
        """Test tidy never changes the decoded record."""
        item = make_item(content="Same", description="Same")
        item.finalize(0)

        assert item.record.description == "Same"
        assert item.description == ""

    @pytest.mark.unit
    def test_idempotent(self) -> None:
        """Test a second finalize changes nothing."""
        item = make_item(content="https://bit.ly/x", description="Summary")
        item.finalize(1)
        item.finalize(7)

        assert item.index == 1
        assert len(item.edits) == 2

    @pytest.mark.unit
    def test_failing_tidy_handler_still_finalizes(self) -> None:
        """Test a raising tidy handler leaves the item finalized and complete."""
        calls: list[str] = []

        def failing(edit: str) -> None:
            calls.append(edit)
            raise RuntimeError("sink closed")

        item = make_item(content="https://bit.ly/x", description="Summary")

        with pytest.raises(RuntimeError, match="sink closed"):
            item.finalize(0, on_tidy=failing)
        item.finalize(0, on_tidy=failing)

        assert item.finalized is True
        assert len(item.edits) == 2
        assert item.body == "Summary"
        assert item.summary == ""
        assert len(calls) == 1

    @pytest.mark.unit
    def test_parses_timestamps(self) -> None:
        """Test timestamps become aware datetimes."""
        item = make_item(
            created_at="2018-03-30 20:53:37 UTC",
            updated_at="2018-03-31 08:00:00 UTC",
        )
        item.finalize(0)

        assert item.created_on == datetime(2018, 3, 30, 20, 53, 37, tzinfo=UTC)
        assert item.updated_on == datetime(2018, 3, 31, 8, 0, 0, tzinfo=UTC)
        assert item.deleted_on is None
        assert item.errors() == []

    @pytest.mark.unit
    def test_bad_timestamp_recorded(self) -> None:
        """Test a malformed timestamp becomes an item error."""
        item = make_item(created_at="last tuesday")
        seen: list[Issue] = []

        item.finalize(2, on_issue=seen.append)

        assert item.finalized is True
        assert item.created_on is None
        assert [i.code for i in item.errors()] == [ITEM_TIMESTAMP_INVALID]
        assert seen[0].item_index == 2
        assert "created_at" in seen[0].message

    @pytest.mark.unit
    def test_front_matter(self) -> None:
        """Test the front matter parser receives the tidied content."""
        item = make_item(content="title: Hello")
        item.finalize(0, front_matter_parser=lambda text: {"raw": text})

        assert item.front_matter == {"raw": "title: Hello"}

    @pytest.mark.unit
    def test_front_matter_failure_recorded(self) -> None:
        """Test front matter errors are recorded, not raised."""

        def broken(text: str) -> dict[str, Any]:
            raise ValueError("bad yaml")

        item = make_item(content="---")
        item.finalize(0, front_matter_parser=broken)

        assert item.finalized is True
        assert [i.code for i in item.errors()] == [ITEM_FRONT_MATTER_INVALID]


class TestItemTraversal:
    """Tests for traversability and link traversal."""

    @pytest.mark.unit
    def test_link_item_traversable(self) -> None:
        """Test a live link item is traversable without warnings."""
        warnings: list[tuple[str, str]] = []

        assert make_item().is_traversable(lambda c, m: warnings.append((c, m)))
        assert warnings == []

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("fields", "code"),
        [
            ({"deleted_at": "2018-04-01 00:00:00 UTC"}, ITEM_DELETED),
            ({"type": "image"}, ITEM_NOT_LINK),
            ({"link": "   "}, ITEM_LINK_EMPTY),
            ({"deleted_at": "2018-04-01 00:00:00 UTC", "type": "note"}, ITEM_DELETED),
        ],
    )
    def test_untraversable_reasons(self, fields: dict[str, Any], code: str) -> None:
        """Test each rejection reason warns with its own code."""
        warnings: list[str] = []

        result = make_item(**fields).is_traversable(lambda c, m: warnings.append(c))

        assert result is False
        assert warnings == [code]

    @pytest.mark.unit
    def test_not_link_message_names_type(self) -> None:
        """Test the not-a-link warning quotes the actual type."""
        messages: list[str] = []
        make_item(type="image").is_traversable(lambda c, m: messages.append(m))

        assert messages == ["Item 'type' is 'image' not 'link', not traversable"]

    @pytest.mark.unit
    def test_traverse_sets_final_url(self) -> None:
        """Test a successful traversal changes final_url."""
        item = make_item(link="https://bit.ly/x")

        item.traverse_link(
            lambda i: True,
            lambda i: ResolvedLink(
                original_url=i.original_url, final_url="https://dest.example/a"
            ),
        )

        assert item.link_traversal_attempted is True
        assert item.link_traversable is True
        assert isinstance(item.traversed_link, TraversedLink)
        assert item.final_url == "https://dest.example/a"
        assert item.original_url == "https://bit.ly/x"

    @pytest.mark.unit
    def test_untraversable_skips_traverse(self) -> None:
        """Test the traverse call is skipped when not traversable."""
        calls: list[Item] = []

        def traverse(i: Item) -> TraversedLink:
            calls.append(i)
            return ResolvedLink(original_url="", final_url="")

        item = make_item()
        item.traverse_link(lambda i: False, traverse)

        assert calls == []
        assert item.link_traversal_attempted is True
        assert item.traversed_link is None
        assert item.final_url == item.original_url

    @pytest.mark.unit
    def test_write_once(self) -> None:
        """Test a second traversal call does nothing."""
        item = make_item()
        first = ResolvedLink(original_url="https://a.example", final_url="https://b")
        second = ResolvedLink(original_url="https://a.example", final_url="https://c")

        item.traverse_link(lambda i: True, lambda i: first)
        item.traverse_link(lambda i: True, lambda i: second)

        assert item.final_url == "https://b"

    @pytest.mark.unit
    def test_traversal_failure_recorded(self) -> None:
        """Test a failing traverser records an error and keeps the link."""

        def traverse(i: Item) -> TraversedLink:
            raise ConnectionError("dns failure")

        item = make_item()
        seen: list[Issue] = []
        item.traverse_link(lambda i: True, traverse, on_issue=seen.append)

        assert isinstance(item.link_traversal_error, ConnectionError)
        assert item.traversed_link is None
        assert item.final_url == "https://a.example"
        assert [i.code for i in seen] == [ITEM_TRAVERSAL_FAILED]
        assert item.errors() == seen

    @pytest.mark.unit
    def test_failing_predicate_counts_as_attempted(self) -> None:
        """Test a raising traversability check is never retried."""
        checks: list[Item] = []

        def failing(i: Item) -> bool:
            checks.append(i)
            raise RuntimeError("blocked")

        def traverse(i: Item) -> TraversedLink:
            return ResolvedLink(original_url=i.original_url, final_url="https://b")

        item = make_item()

        with pytest.raises(RuntimeError, match="blocked"):
            item.traverse_link(failing, traverse)
        item.traverse_link(failing, traverse)

        assert len(checks) == 1
        assert item.link_traversal_attempted is True
        assert item.link_traversable is False
        assert item.final_url == "https://a.example"
