"""Tests for page file front matter."""

from datetime import datetime, timezone

import pytest

from wiki_mirror.errors import FrontMatterError
from wiki_mirror.frontmatter import (
    NewPageFrontMatter,
    PageFrontMatter,
    parse,
    serialize,
    split,
)

HASH = "a" * 64


def _page_fm(**overrides):
    values = {
        "page_id": "123",
        "version": 4,
        "title": "My Page",
        "updated": datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        "parent_id": "100",
        "content_hash": HASH,
    }
    values.update(overrides)
    return PageFrontMatter(**values)


class TestSerialize:
    def test_camel_case_keys(self):
        text = serialize(_page_fm(), "Body\n")
        assert text.startswith("---\npageId: '123'\nversion: 4\ntitle: My Page\n")
        assert "parentId: '100'\n" in text
        assert f"contentHash: {HASH}\n" in text
        assert text.endswith("---\n\nBody\n")

    def test_none_fields_omitted(self):
        text = serialize(_page_fm(parent_id=None), "x")
        assert "parentId" not in text
        assert "position" not in text
        assert "versionMessage" not in text

    def test_body_gets_trailing_newline(self):
        assert serialize(NewPageFrontMatter(title="New"), "x").endswith("\nx\n")

    def test_round_trip(self):
        fm = _page_fm(position=2, author_name="Jane", version_message="typo")
        parsed, body = parse(serialize(fm, "# Heading\n\nText\n"))
        assert parsed == fm
        assert body == "# Heading\n\nText\n"


class TestParse:
    def test_no_header(self):
        assert parse("# Just markdown\n") == (None, "# Just markdown\n")

    def test_new_page_header(self):
        fm, body = parse("---\ntitle: Draft\nparentId: 7\n---\n\nBody\n")
        assert isinstance(fm, NewPageFrontMatter)
        assert fm.title == "Draft"
        assert fm.parent_id == "7"
        assert body == "Body\n"

    def test_unquoted_numeric_page_id(self):
        text = (
            "---\npageId: 123\nversion: 1\ntitle: T\n"
            f"updated: 2026-01-01T00:00:00Z\ncontentHash: {HASH}\n---\nBody\n"
        )
        fm, body = parse(text)
        assert isinstance(fm, PageFrontMatter)
        assert fm.page_id == "123"
        assert body == "Body\n"

    def test_bom_stripped(self):
        fm, body = parse("\ufeff---\ntitle: T\n---\nx\n")
        assert fm.title == "T"
        assert body == "x\n"

    def test_crlf_line_endings(self):
        fm, body = parse("---\r\ntitle: T\r\n---\r\n\r\nx\r\n")
        assert fm.title == "T"
        assert body == "x\r\n"

    def test_invalid_yaml(self):
        with pytest.raises(FrontMatterError, match="invalid YAML"):
            parse("---\ntitle: [unclosed\n---\n", "a.md")

    def test_header_not_a_mapping(self):
        with pytest.raises(FrontMatterError, match="not a mapping"):
            parse("---\n- a\n- b\n---\n", "a.md")

    def test_bad_content_hash(self):
        text = (
            "---\npageId: '1'\nversion: 1\ntitle: T\n"
            "updated: 2026-01-01T00:00:00Z\ncontentHash: nope\n---\n"
        )
        with pytest.raises(FrontMatterError, match="contentHash") as exc_info:
            parse(text, "docs/a.md")
        assert exc_info.value.path == "docs/a.md"

    def test_missing_required_field(self):
        with pytest.raises(FrontMatterError, match="version"):
            parse(f"---\npageId: '1'\ntitle: T\ncontentHash: {HASH}\n---\n")


class TestSplit:
    def test_split_returns_raw_mapping(self):
        data, body = split("---\nfoo: bar\n---\nrest\n")
        assert data == {"foo": "bar"}
        assert body == "rest\n"

    def test_empty_header(self):
        data, body = split("---\n\n---\nrest")
        assert data == {}
        assert body == "rest"
